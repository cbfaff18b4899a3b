"""
Stage nodes for the sequential part of the pipeline.

Each factory closes over the config and services and returns a node function
(state) -> patch, the same way the graph's nodes are written everywhere else.

Stages:
- brief_creation: inputs -> structured marketing brief
- theme_generation: iterative search over the source document -> N themes
- deep_research: iterative search focused on the selected theme -> dossier
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict

from ..agents.memory import ConceptMemory
from ..agents.retrieval import EvidenceRetrievalLoop, format_evidence
from ..config import PipelineConfig
from ..errors import ArityError, InputError
from ..validation.schemas import MarketingBrief, ResearchDossier, theme_batch_schema
from .preflight import preflight_check
from .state import WorkflowState


logger = logging.getLogger("workflow.stages")


@dataclass(frozen=True)
class PipelineServices:
    """External collaborators injected into the graph."""
    generation: Any
    search: Any


BRIEF_SYSTEM_PROMPT = """You are a senior marketing strategist. Turn the business information below into a structured marketing brief for a content campaign.

The campaign will produce {articles_count} article(s), {linkedin_posts_count} LinkedIn post(s) and {social_posts_count} social media post(s).
The call to action type is "{cta_type}".

Return JSON only:
{{
  "executive_summary": "...",
  "target_persona": {{"demographic": "...", "psychographic": "...", "pain_points": ["..."], "motivations": ["..."]}},
  "campaign_objectives": ["..."],
  "key_messages": ["..."],
  "content_strategy": {{"articles": "...", "linkedin_posts": "...", "social_posts": "..."}},
  "call_to_action": {{"type": "{cta_type}", "message": "...", "url": null}}
}}"""

THEME_SYSTEM_PROMPT = """You are synthesizing research findings from a source document into exactly {theme_count} distinct campaign themes.

Each theme needs:
- "id": a short unique slug
- "title": a punchy campaign title
- "description": one or two sentences
- "why_it_works": exactly {bullet_count} bullets, each grounded in the evidence
- "detailed_description": a paragraph on how the theme plays out across channels

The themes must be clearly different from each other and from any previously proposed themes.

Return JSON only:
{{"themes": [{{"id": "...", "title": "...", "description": "...", "why_it_works": ["..."], "detailed_description": "..."}}], "search_summary": "..."}}"""

RESEARCH_SYSTEM_PROMPT = """You are a research analyst building an evidence dossier for a selected campaign theme.

Using ONLY the evidence provided:
1. Extract 6-8 key findings, each with the claim, the supporting evidence, and your confidence (high, medium or low)
2. Suggest exactly {concept_count} content concepts that develop the theme, each with a title, angle, rationale, evidence_refs (ids of the supporting evidence) and content_direction
3. Summarize the research in one paragraph

Return JSON only:
{{"key_findings": [{{"claim": "...", "evidence": "...", "confidence": "high"}}], "suggested_concepts": [{{"title": "...", "angle": "...", "rationale": "...", "evidence_refs": ["..."], "content_direction": "..."}}], "summary": "..."}}"""


def render_inputs(state: WorkflowState) -> str:
    lines = [
        f"Business context: {state.get('business_context', '')}",
        f"Target audience: {state.get('target_audience', '')}",
        f"Marketing goals: {state.get('marketing_goals', '')}",
        f"Call to action: {state.get('cta_type', '')}",
    ]
    if state.get("cta_url"):
        lines.append(f"Call to action URL: {state['cta_url']}")
    return "\n".join(lines)


def render_record(record: Dict[str, Any]) -> str:
    """Pretty JSON for embedding a stored artifact in a prompt."""
    return json.dumps(record, indent=2)


def _require(state: WorkflowState, field_name: str, message: str) -> Any:
    value = state.get(field_name)
    if not value:
        raise InputError(message)
    return value


def create_brief_node(config: PipelineConfig, services: PipelineServices) -> Callable:
    """Brief creation: validate inputs, then one generation call."""

    def brief_creation_node(state: WorkflowState) -> Dict:
        # Inputs are checked before anything leaves the process
        preflight_check(state)

        logger.info("[brief_creation] Generating marketing brief...")
        messages = [
            {
                "role": "system",
                "content": BRIEF_SYSTEM_PROMPT.format(
                    articles_count=state.get("articles_count", 0),
                    linkedin_posts_count=state.get("linkedin_posts_count", 0),
                    social_posts_count=state.get("social_posts_count", 0),
                    cta_type=state.get("cta_type"),
                ),
            },
            {"role": "user", "content": render_inputs(state)},
        ]
        brief = services.generation.generate_structured("brief", messages, MarketingBrief)

        record = brief.model_dump()
        if state.get("cta_url") and not record["call_to_action"].get("url"):
            record["call_to_action"]["url"] = state["cta_url"]

        logger.info(f"[brief_creation] Brief ready: {len(record['key_messages'])} key messages")
        return {
            "brief": record,
            "stage": "theme_generation",
        }

    return brief_creation_node


def create_theme_node(config: PipelineConfig, services: PipelineServices) -> Callable:
    """Theme generation: retrieval loop over the document, then one synthesis call."""
    theme_count = config.themes.count
    bullet_count = config.themes.bullet_count
    batch_schema = theme_batch_schema(bullet_count)

    def theme_generation_node(state: WorkflowState) -> Dict:
        brief = _require(state, "brief", "Theme generation needs a marketing brief")
        document_id = _require(state, "selected_document_id", "Theme generation needs a selected source document")

        memory = ConceptMemory.from_state(state)
        if memory.previous_themes:
            logger.info(f"[theme_generation] Avoiding {len(memory.avoid_titles())} previous theme title(s)")

        loop = EvidenceRetrievalLoop(
            services.generation,
            services.search,
            config.theme_retrieval,
            stage="themes",
        )
        result = loop.run(
            objective=f"Find {theme_count} distinct, evidence-backed campaign angles for this brief",
            context=f"{render_inputs(state)}\n\nMarketing brief:\n{render_record(brief)}",
            partition_id=config.partition_for(document_id),
            memory=memory,
        )

        user_prompt = (
            f"Marketing brief:\n{render_record(brief)}\n\n"
            f"Evidence ({len(result.evidence)} items, best first):\n{format_evidence(result.evidence)}"
        )
        avoid_block = memory.render_for_prompt()
        if avoid_block:
            user_prompt += f"\n\n{avoid_block}"

        batch = services.generation.generate_structured(
            "themes",
            [
                {
                    "role": "system",
                    "content": THEME_SYSTEM_PROMPT.format(theme_count=theme_count, bullet_count=bullet_count),
                },
                {"role": "user", "content": user_prompt},
            ],
            batch_schema,
        )
        themes = [theme.model_dump() for theme in batch.themes]

        for repeat in memory.find_repeats(themes):
            logger.warning(
                f"[theme_generation] Theme '{repeat['title']}' repeats earlier theme '{repeat['matches']}'"
            )

        logger.info(f"[theme_generation] Generated {len(themes)} theme(s)")
        return {
            "theme_candidates": themes,
            "search_history": result.search_log,
            "needs_human_input": False,
            "is_complete": False,
        }

    return theme_generation_node


def create_research_node(config: PipelineConfig, services: PipelineServices) -> Callable:
    """Deep research: retrieval loop focused on the selected theme, then the dossier."""
    concept_count = config.concept_count

    def deep_research_node(state: WorkflowState) -> Dict:
        theme = _require(state, "selected_theme", "Deep research needs a selected theme")
        brief = _require(state, "brief", "Deep research needs a marketing brief")
        document_id = _require(state, "selected_document_id", "Deep research needs a selected source document")

        logger.info(f"[deep_research] Researching theme '{theme.get('title')}'")
        loop = EvidenceRetrievalLoop(
            services.generation,
            services.search,
            config.research_retrieval,
            stage="research",
        )
        result = loop.run(
            objective=f"Gather specific evidence that supports the campaign theme '{theme.get('title')}'",
            context=f"Selected theme:\n{render_record(theme)}\n\nMarketing brief:\n{render_record(brief)}",
            partition_id=config.partition_for(document_id),
            # avoid-lists steer theme regeneration, not research on the chosen theme
            memory=ConceptMemory(),
        )

        user_prompt = (
            f"Selected theme:\n{render_record(theme)}\n\n"
            f"Marketing brief:\n{render_record(brief)}\n\n"
            f"Evidence ({len(result.evidence)} items, best first):\n{format_evidence(result.evidence)}"
        )
        if result.emerging_concepts:
            angles = "\n".join(f"- {c['angle']}: {c['reasoning']}" for c in result.emerging_concepts)
            user_prompt += f"\n\nAngles noticed while searching:\n{angles}"

        dossier = services.generation.generate_structured(
            "research",
            [
                {"role": "system", "content": RESEARCH_SYSTEM_PROMPT.format(concept_count=concept_count)},
                {"role": "user", "content": user_prompt},
            ],
            ResearchDossier,
        )
        if len(dossier.suggested_concepts) != concept_count:
            raise ArityError("suggested concepts", concept_count, len(dossier.suggested_concepts))

        logger.info(
            f"[deep_research] Dossier ready: {len(dossier.key_findings)} findings, "
            f"{len(dossier.suggested_concepts)} concepts"
        )
        return {
            "research_dossier": dossier.model_dump(),
            "search_history": result.search_log,
            "stage": "research_complete",
            "needs_human_input": False,
        }

    return deep_research_node
