"""
Evidence Retrieval Loop

Bounded, self-directed iterative search over one source document:

1. Seed: one generation call proposes broad starting queries
2. Round: run each pending query against the vector index, then one analysis
   call reads the round's hits and proposes follow-up queries
3. Stop: global search cap reached, or the analysis proposes nothing new
4. Consolidate: dedup by id, sort by score, keep the top M

The calling stage does the final synthesis call on the consolidated evidence.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..config import RetrievalSettings
from ..errors import ExhaustionError, ExternalCallError
from ..validation.schemas import RoundAnalysis, SearchPlan
from .memory import ConceptMemory, normalize_query


SEED_SYSTEM_PROMPT = """You are an iterative research agent that builds understanding progressively through sequential searches of a single source document.

Start broad. Propose 2-4 short keyword search queries (2-6 words each) that will surface the most useful material for the objective below.

Return JSON only: {"queries": ["query one", "query two"]}"""

ANALYSIS_SYSTEM_PROMPT = """You are an iterative research agent analysing search results from a single source document.

For the results of this round:
1. Summarise what you learned and what is still missing
2. Propose up to {max_follow_ups} follow-up searches (short keyword phrases, 2-6 words) that go deeper or fill gaps
3. Do not repeat searches that were already run
4. Return an empty next_queries list when the material is exhausted

Return JSON only:
{{"analysis": "what was learned", "next_queries": ["..."], "emerging_concepts": [{{"angle": "...", "reasoning": "..."}}]}}"""


def consolidate_evidence(items: List[Dict[str, Any]], top_m: int) -> List[Dict[str, Any]]:
    """
    Dedup evidence by id and keep the best top_m.

    The first occurrence of an id wins. Sorting is stable, so items with
    equal scores keep the order in which they were first seen.
    """
    seen = set()
    unique = []
    for item in items:
        if item["id"] in seen:
            continue
        seen.add(item["id"])
        unique.append(item)

    unique.sort(key=lambda item: item["score"], reverse=True)
    return unique[:top_m]


def format_evidence(items: List[Dict[str, Any]], max_chars: int = 600) -> str:
    """Render evidence items as numbered prompt text."""
    lines = []
    for i, item in enumerate(items, 1):
        category = f" [{item['category']}]" if item.get("category") else ""
        lines.append(f"[{i}] id={item['id']} score={item['score']:.3f}{category}\n{item['text'][:max_chars]}")
    return "\n\n".join(lines)


@dataclass
class RetrievalResult:
    """Outcome of one retrieval run."""
    evidence: List[Dict[str, Any]]
    search_log: List[Dict[str, Any]]
    searches_issued: int
    emerging_concepts: List[Dict[str, str]] = field(default_factory=list)


class EvidenceRetrievalLoop:
    """
    Drives the vector search service through progressively refined queries.

    Rounds are strictly sequential. A failed search is logged and skipped;
    seed and analysis failures abort the run.
    """

    def __init__(self, generation, search, settings: RetrievalSettings, stage: str):
        """
        Initialize the loop.

        Args:
            generation: GenerationService (or anything with generate_structured)
            search: VectorSearchClient (or anything with search)
            settings: Caps and ranking sizes for this run
            stage: Stage name, used for model selection and log entries
        """
        self.generation = generation
        self.search = search
        self.settings = settings
        self.stage = stage
        self.logger = logging.getLogger("agents.retrieval")

    def run(self, objective: str, context: str, partition_id: str, memory: ConceptMemory) -> RetrievalResult:
        """
        Run the loop to completion.

        Args:
            objective: What the evidence is for (e.g. "find campaign angles")
            context: Brief/theme context for query generation
            partition_id: Vector namespace of the source document
            memory: Concept memory for steering away from explored ground

        Returns:
            RetrievalResult with the consolidated top-M evidence

        Raises:
            ExhaustionError: No search returned any evidence
            ExternalCallError / ParseError: Seed or analysis call failed
        """
        max_searches = self.settings.max_searches
        pending = self._seed_queries(objective, context, memory)

        issued = set()
        collected: List[Dict[str, Any]] = []
        search_log: List[Dict[str, Any]] = []
        emerging: List[Dict[str, str]] = []
        searches = 0

        while pending and searches < max_searches:
            round_entries = []
            round_hits: List[Dict[str, Any]] = []

            for query in pending:
                if searches >= max_searches:
                    break
                normalized = normalize_query(query)
                if not normalized or normalized in issued:
                    self.logger.debug(f"Skipping repeated query '{query}'")
                    continue
                issued.add(normalized)
                searches += 1

                self.logger.info(f"[{self.stage}] Search {searches}/{max_searches}: {query}")
                entry = {
                    "stage": self.stage,
                    "query": query,
                    "result_count": 0,
                    "analysis": "",
                    "next_queries": [],
                    "error": None,
                }
                try:
                    hits = self.search.search(
                        query,
                        partition_id,
                        top_k=self.settings.top_k,
                        top_n=self.settings.top_n,
                    )
                except ExternalCallError as e:
                    self.logger.warning(f"[{self.stage}] Search failed, skipping '{query}': {e}")
                    entry["error"] = str(e)
                else:
                    entry["result_count"] = len(hits)
                    round_hits.extend(hits)

                search_log.append(entry)
                round_entries.append(entry)

            pending = []
            if not round_entries:
                break
            collected.extend(round_hits)

            if searches >= max_searches:
                self.logger.info(f"[{self.stage}] Reached search cap ({max_searches})")
                break

            analysis = self._analyse_round(objective, round_hits, search_log)
            follow_ups = [q for q in analysis.next_queries if q.strip()][:self.settings.max_follow_ups]
            for entry in round_entries:
                entry["analysis"] = analysis.analysis
                entry["next_queries"] = list(follow_ups)
            emerging.extend(concept.model_dump() for concept in analysis.emerging_concepts)

            if not follow_ups:
                self.logger.info(f"[{self.stage}] Analysis proposed no follow-ups, stopping")
                break
            pending = follow_ups

        if not collected:
            raise ExhaustionError(
                f"{self.stage}: {searches} search(es) returned no evidence from partition '{partition_id}'"
            )

        evidence = consolidate_evidence(collected, self.settings.top_m)
        self.logger.info(
            f"[{self.stage}] Retrieval complete: {searches} searches, "
            f"{len(collected)} hits, {len(evidence)} kept"
        )
        return RetrievalResult(
            evidence=evidence,
            search_log=search_log,
            searches_issued=searches,
            emerging_concepts=emerging,
        )

    def _seed_queries(self, objective: str, context: str, memory: ConceptMemory) -> List[str]:
        memory_block = memory.render_for_prompt()
        user_prompt = f"Objective: {objective}\n\n{context}"
        if memory_block:
            user_prompt += f"\n\n{memory_block}"

        plan = self.generation.generate_structured(
            self.stage,
            [
                {"role": "system", "content": SEED_SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            SearchPlan,
        )
        self.logger.info(f"[{self.stage}] Seed queries: {plan.queries}")
        return list(plan.queries)

    def _analyse_round(
        self,
        objective: str,
        round_hits: List[Dict[str, Any]],
        search_log: List[Dict[str, Any]],
    ) -> RoundAnalysis:
        history = "\n".join(
            f"- {entry['query']} ({entry['result_count']} results)" for entry in search_log
        )
        results = format_evidence(round_hits) if round_hits else "No results this round."

        return self.generation.generate_structured(
            self.stage,
            [
                {
                    "role": "system",
                    "content": ANALYSIS_SYSTEM_PROMPT.format(max_follow_ups=self.settings.max_follow_ups),
                },
                {
                    "role": "user",
                    "content": (
                        f"Objective: {objective}\n\n"
                        f"Searches so far:\n{history}\n\n"
                        f"Results from this round:\n{results}"
                    ),
                },
            ],
            RoundAnalysis,
        )
