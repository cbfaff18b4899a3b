"""
Record schemas for every generated artifact.

Stages never read raw model text: each generation call is validated into one
of these models and stored in the workflow state as model_dump() output.
"""

from functools import lru_cache
from typing import List, Literal, Optional, Type

from pydantic import BaseModel, Field, create_model, field_validator


# === BRIEF ===

class TargetPersona(BaseModel):
    demographic: str
    psychographic: str
    pain_points: List[str]
    motivations: List[str]


class ContentStrategy(BaseModel):
    articles: str
    linkedin_posts: str
    social_posts: str


class CallToAction(BaseModel):
    type: Literal["download_whitepaper", "contact_us"]
    message: str
    url: Optional[str] = None


class MarketingBrief(BaseModel):
    """Structured marketing brief produced by the brief stage."""
    executive_summary: str
    target_persona: TargetPersona
    campaign_objectives: List[str] = Field(min_length=1)
    key_messages: List[str] = Field(min_length=1)
    content_strategy: ContentStrategy
    call_to_action: CallToAction


# === RETRIEVAL ===

class SearchPlan(BaseModel):
    """Seed queries for a retrieval run."""
    queries: List[str] = Field(min_length=2, max_length=4)


class EmergingConcept(BaseModel):
    angle: str
    reasoning: str


class RoundAnalysis(BaseModel):
    """What one retrieval round learned and where to look next."""
    analysis: str
    next_queries: List[str] = Field(default_factory=list)
    emerging_concepts: List[EmergingConcept] = Field(default_factory=list)


# === THEMES ===

class ThemeBase(BaseModel):
    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    description: str
    detailed_description: str


class ThemeBatchBase(BaseModel):
    search_summary: str = ""

    @field_validator("themes", check_fields=False)
    @classmethod
    def _unique_ids(cls, themes):
        ids = [theme.id for theme in themes]
        if len(ids) != len(set(ids)):
            raise ValueError("theme ids must be unique within a batch")
        return themes


@lru_cache(maxsize=None)
def theme_schema(bullet_count: int = 3) -> Type[BaseModel]:
    """Theme model whose why_it_works list has exactly bullet_count entries."""
    return create_model(
        "Theme",
        __base__=ThemeBase,
        why_it_works=(List[str], Field(min_length=bullet_count, max_length=bullet_count)),
    )


@lru_cache(maxsize=None)
def theme_batch_schema(bullet_count: int = 3) -> Type[BaseModel]:
    """
    Theme batch model for a given bullet count.

    The exact number of themes is not part of the schema; the graph checks it
    after the stage so a short batch surfaces as an ArityError.
    """
    return create_model(
        "ThemeBatch",
        __base__=ThemeBatchBase,
        themes=(List[theme_schema(bullet_count)], Field(min_length=1)),
    )


# === RESEARCH ===

class KeyFinding(BaseModel):
    claim: str
    evidence: str
    confidence: Literal["high", "medium", "low"]


class SuggestedConcept(BaseModel):
    title: str
    angle: str
    rationale: str
    evidence_refs: List[str]
    content_direction: str


class ResearchDossier(BaseModel):
    """Synthesized evidence package for the selected theme."""
    key_findings: List[KeyFinding] = Field(min_length=1)
    suggested_concepts: List[SuggestedConcept]
    summary: str


# === CHANNEL CONTENT ===

class Article(BaseModel):
    headline: str
    subheadline: str
    body: str
    word_count: int = Field(ge=0)
    key_takeaways: List[str]
    seo_keywords: List[str]
    call_to_action: str


class ArticleBatch(BaseModel):
    articles: List[Article]


class LinkedInPost(BaseModel):
    hook: str
    body: str
    call_to_action: str
    hashtags: List[str]
    character_count: int = Field(ge=0)


class LinkedInBatch(BaseModel):
    posts: List[LinkedInPost]
    campaign_narrative: str


class SocialPost(BaseModel):
    platform: Literal["twitter", "facebook", "instagram"]
    content: str
    hashtags: List[str]
    character_count: int = Field(ge=0)
    visual_suggestion: str


class SocialBatch(BaseModel):
    posts: List[SocialPost]
    posting_strategy: str


class EditorialReview(BaseModel):
    editing_notes: str
    quality_score: float = Field(ge=1, le=10)


class EditedArticleBatch(ArticleBatch, EditorialReview):
    pass


class EditedLinkedInBatch(LinkedInBatch, EditorialReview):
    pass


class EditedSocialBatch(SocialBatch, EditorialReview):
    pass
