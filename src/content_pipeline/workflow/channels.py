"""
Channel stages: drafting and editing for article, LinkedIn and social.

Every channel is an independent track. Its draft task writes only
<channel>_draft and its edit task writes only <channel>_edit, which is what
lets the fan-out coordinator run them side by side.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Type

from pydantic import BaseModel

from ..errors import ArityError, InputError
from ..validation.schemas import (
    ArticleBatch,
    EditedArticleBatch,
    EditedLinkedInBatch,
    EditedSocialBatch,
    LinkedInBatch,
    SocialBatch,
)
from .fanout import ChannelTask
from .stages import PipelineServices, render_record


logger = logging.getLogger("workflow.channels")


@dataclass(frozen=True)
class ChannelSpec:
    name: str
    count_field: str
    items_field: str
    draft_schema: Type[BaseModel]
    edit_schema: Type[BaseModel]
    writer_prompt: str
    editor_prompt: str

    @property
    def draft_field(self) -> str:
        return f"{self.name}_draft"

    @property
    def edit_field(self) -> str:
        return f"{self.name}_edit"

    @property
    def writer_stage(self) -> str:
        return f"{self.name}_writer"

    @property
    def editor_stage(self) -> str:
        return f"{self.name}_editor"


ARTICLE_WRITER_PROMPT = """Write {count} long-form article(s) for this campaign. The research has already been done for you.

Articles should be 800-1200 words, open with a strong hook, use the research findings as evidence, and end with the campaign's call to action.

Return JSON only:
{{"articles": [{{"headline": "...", "subheadline": "...", "body": "...", "word_count": 0, "key_takeaways": ["..."], "seo_keywords": ["..."], "call_to_action": "..."}}]}}"""

LINKEDIN_WRITER_PROMPT = """Draft {count} LinkedIn post(s) for this campaign. The research has already been done for you.

Posts should be professional yet engaging, lead with a hook, include relevant hashtags and a clear call to action. Each post stands alone but is part of one cohesive campaign.

Return JSON only:
{{"posts": [{{"hook": "...", "body": "...", "call_to_action": "...", "hashtags": ["..."], "character_count": 0}}], "campaign_narrative": "..."}}"""

SOCIAL_WRITER_PROMPT = """Draft {count} short social media post(s) for this campaign, spread across twitter, facebook and instagram. The research has already been done for you.

Respect each platform's conventions and length limits. Suggest a visual for every post.

Return JSON only:
{{"posts": [{{"platform": "twitter", "content": "...", "hashtags": ["..."], "character_count": 0, "visual_suggestion": "..."}}], "posting_strategy": "..."}}"""

EDITOR_PROMPT = """You are a senior content editor. Edit the {label} draft below for clarity, accuracy against the brief, brand voice and call-to-action strength.

Keep exactly {count} item(s) and the same structure. Add "editing_notes" describing what you changed and a "quality_score" from 1 to 10 for the edited result.

Return JSON only: the edited draft object with "editing_notes" and "quality_score" added."""


CHANNELS: List[ChannelSpec] = [
    ChannelSpec(
        name="article",
        count_field="articles_count",
        items_field="articles",
        draft_schema=ArticleBatch,
        edit_schema=EditedArticleBatch,
        writer_prompt=ARTICLE_WRITER_PROMPT,
        editor_prompt=EDITOR_PROMPT,
    ),
    ChannelSpec(
        name="linkedin",
        count_field="linkedin_posts_count",
        items_field="posts",
        draft_schema=LinkedInBatch,
        edit_schema=EditedLinkedInBatch,
        writer_prompt=LINKEDIN_WRITER_PROMPT,
        editor_prompt=EDITOR_PROMPT,
    ),
    ChannelSpec(
        name="social",
        count_field="social_posts_count",
        items_field="posts",
        draft_schema=SocialBatch,
        edit_schema=EditedSocialBatch,
        writer_prompt=SOCIAL_WRITER_PROMPT,
        editor_prompt=EDITOR_PROMPT,
    ),
]


def _check_count(spec: ChannelSpec, batch: BaseModel, expected: int) -> None:
    actual = len(getattr(batch, spec.items_field))
    if actual != expected:
        raise ArityError(f"{spec.name} items", expected, actual)


def create_draft_task(spec: ChannelSpec, services: PipelineServices) -> ChannelTask:
    """Drafting task for one channel."""

    def draft(state: Mapping[str, Any]) -> Dict[str, Any]:
        count = state.get(spec.count_field, 0)
        if not count:
            logger.info(f"[{spec.name}] No {spec.name} content requested, skipping draft")
            return {spec.draft_field: None}

        brief = state.get("brief")
        dossier = state.get("research_dossier")
        theme = state.get("selected_theme")
        if not brief or not dossier or not theme:
            raise InputError(f"{spec.name} drafting needs a brief, a selected theme and a research dossier")

        logger.info(f"[{spec.name}] Drafting {count} item(s)...")
        batch = services.generation.generate_structured(
            spec.writer_stage,
            [
                {"role": "system", "content": spec.writer_prompt.format(count=count)},
                {
                    "role": "user",
                    "content": (
                        f"Marketing brief:\n{render_record(brief)}\n\n"
                        f"Research findings:\n{render_record(dossier)}\n\n"
                        f"Theme:\n{render_record(theme)}\n\n"
                        f"Number of items requested: {count}"
                    ),
                },
            ],
            spec.draft_schema,
        )
        _check_count(spec, batch, count)
        return {spec.draft_field: batch.model_dump()}

    return ChannelTask(name=spec.name, run=draft, writes=frozenset({spec.draft_field}))


def create_edit_task(spec: ChannelSpec, services: PipelineServices) -> ChannelTask:
    """Editing task for one channel."""

    def edit(state: Mapping[str, Any]) -> Dict[str, Any]:
        count = state.get(spec.count_field, 0)
        if not count:
            return {spec.edit_field: None}

        brief = state.get("brief")
        draft = state.get(spec.draft_field)
        if not brief or not draft:
            raise InputError(f"{spec.name} editing needs a brief and a {spec.name} draft")

        logger.info(f"[{spec.name}] Editing draft...")
        edited = services.generation.generate_structured(
            spec.editor_stage,
            [
                {"role": "system", "content": spec.editor_prompt.format(label=spec.name, count=count)},
                {
                    "role": "user",
                    "content": f"Marketing brief:\n{render_record(brief)}\n\nDraft:\n{render_record(draft)}",
                },
            ],
            spec.edit_schema,
        )
        _check_count(spec, edited, count)
        logger.info(f"[{spec.name}] Edited, quality score {edited.quality_score}/10")
        return {spec.edit_field: edited.model_dump()}

    return ChannelTask(name=spec.name, run=edit, writes=frozenset({spec.edit_field}))


def create_drafting_tasks(services: PipelineServices) -> List[ChannelTask]:
    return [create_draft_task(spec, services) for spec in CHANNELS]


def create_editing_tasks(services: PipelineServices) -> List[ChannelTask]:
    return [create_edit_task(spec, services) for spec in CHANNELS]
