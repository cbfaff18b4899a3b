"""
LangGraph State Schema for the Content Pipeline

One record threads through every stage. Stages return partial patches and the
graph merges them per field:
- append: previous_themes, search_history (operator.add reducer)
- replace: theme_candidates (the whole batch is swapped)
- overwrite: every other field (last write wins)

The state holds only plain data so it can be handed to a caller, stored as
JSON, and handed back to resume the run.
"""

import copy
import json
import operator
from typing import Any, Annotated, Dict, List, Literal, Optional, TypedDict


Stage = Literal[
    "brief_creation",
    "theme_generation",
    "awaiting_theme_selection",
    "theme_selected",
    "research_complete",
    "content_complete",
]

CTA_TYPES = ("download_whitepaper", "contact_us")


class SearchLogEntry(TypedDict):
    """One issued search and what the following analysis made of it."""
    stage: str
    query: str
    result_count: int
    analysis: str
    next_queries: List[str]
    error: Optional[str]


class WorkflowState(TypedDict, total=False):
    """Full state of one content pipeline run."""

    business_context: str
    target_audience: str
    marketing_goals: str
    articles_count: int
    linkedin_posts_count: int
    social_posts_count: int
    cta_type: str
    cta_url: Optional[str]
    selected_document_id: str

    brief: Optional[Dict[str, Any]]

    theme_candidates: List[Dict[str, Any]]
    selected_theme: Optional[Dict[str, Any]]
    previous_themes: Annotated[List[Dict[str, Any]], operator.add]
    search_history: Annotated[List[Dict[str, Any]], operator.add]
    regeneration_count: int

    research_dossier: Optional[Dict[str, Any]]

    article_draft: Optional[Dict[str, Any]]
    linkedin_draft: Optional[Dict[str, Any]]
    social_draft: Optional[Dict[str, Any]]
    article_edit: Optional[Dict[str, Any]]
    linkedin_edit: Optional[Dict[str, Any]]
    social_edit: Optional[Dict[str, Any]]

    stage: Stage
    needs_human_input: bool
    is_complete: bool


def create_initial_state(inputs: Dict[str, Any]) -> WorkflowState:
    """Create the state for a new run from submitted brief parameters."""
    return {
        "business_context": inputs.get("business_context", ""),
        "target_audience": inputs.get("target_audience", ""),
        "marketing_goals": inputs.get("marketing_goals", ""),
        "articles_count": inputs.get("articles_count", 1),
        "linkedin_posts_count": inputs.get("linkedin_posts_count", 4),
        "social_posts_count": inputs.get("social_posts_count", 8),
        "cta_type": inputs.get("cta_type", "download_whitepaper"),
        "cta_url": inputs.get("cta_url"),
        "selected_document_id": inputs.get("selected_document_id", ""),
        "brief": None,
        "theme_candidates": [],
        "selected_theme": None,
        "previous_themes": [],
        "search_history": [],
        "regeneration_count": 0,
        "research_dossier": None,
        "article_draft": None,
        "linkedin_draft": None,
        "social_draft": None,
        "article_edit": None,
        "linkedin_edit": None,
        "social_edit": None,
        "stage": "brief_creation",
        "needs_human_input": False,
        "is_complete": False,
    }


def copy_state(state: Dict[str, Any]) -> WorkflowState:
    """Deep copy, so callers' checkpoints are never touched by a later run."""
    return copy.deepcopy(dict(state))


def serialize_state(state: Dict[str, Any]) -> str:
    return json.dumps(state, indent=2)


def deserialize_state(data: str) -> WorkflowState:
    """Load a state saved by serialize_state, filling any fields added since."""
    loaded = json.loads(data)
    if not isinstance(loaded, dict):
        raise ValueError("Serialized workflow state must be a JSON object")
    state = create_initial_state(loaded)
    state.update(loaded)
    return state
