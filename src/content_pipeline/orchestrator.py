"""
Content Pipeline Orchestrator - Main Entry Point

Drives the content pipeline graph through its human-in-the-loop checkpoint.

Public API (every call takes and returns a plain, serializable state):
- start(brief_inputs): brief -> themes, stops awaiting theme selection
- select_theme(state, theme_id): records the choice and runs deep research
- regenerate(state): folds the current themes into memory and makes new ones
- run_content_stage(state): drafts and edits every channel in parallel

The caller's state is never modified. A failed call leaves the last returned
state as a valid checkpoint to retry from.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from .agents.memory import ConceptMemory
from .config import PipelineConfig
from .errors import InputError
from .tools.generation import GenerationService
from .tools.vector_search import VectorSearchClient
from .workflow import (
    PipelineServices,
    compile_graph,
    copy_state,
    create_initial_state,
    preflight_check,
)


class ContentPipelineOrchestrator:
    """
    LangGraph-based orchestrator for the content pipeline.

    The graph is compiled once from the frozen config and the injected
    services; each public call enters it at the stage recorded in the state.
    """

    def __init__(
        self,
        config: PipelineConfig,
        generation: Optional[Any] = None,
        search: Optional[Any] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Pipeline configuration
            generation: Generation service (defaults to the ChatOpenAI-backed one)
            search: Vector search client (defaults to the HTTP client)
        """
        self.config = config
        self.logger = logging.getLogger("content_orchestrator")

        self.services = PipelineServices(
            generation=generation or GenerationService(config),
            search=search or VectorSearchClient(config.search),
        )

        self.logger.info("Compiling content pipeline graph...")
        self.graph = compile_graph(config, self.services)
        self.logger.info("Content pipeline orchestrator initialized")

    # === PUBLIC API ===

    def start(self, brief_inputs: Dict[str, Any]) -> Dict[str, Any]:
        """
        Start a new run from submitted brief parameters.

        Args:
            brief_inputs: business_context, target_audience, marketing_goals,
                selected_document_id, cta_type and optional channel counts / cta_url

        Returns:
            State awaiting theme selection

        Raises:
            InputError: If required inputs are missing (before any external call)
        """
        state = create_initial_state(brief_inputs)
        preflight_check(state)
        return self._invoke("start", state)

    def select_theme(self, state: Dict[str, Any], theme_id: str) -> Dict[str, Any]:
        """
        Record the chosen theme and continue into deep research.

        Args:
            state: State returned by start() or regenerate()
            theme_id: Id of one of the current theme candidates

        Returns:
            State after deep research (or after content, when the pipeline
            is configured not to pause)

        Raises:
            InputError: If the run is not awaiting a selection or the id is unknown
        """
        self._require_awaiting_selection(state, "select a theme")

        candidates = state.get("theme_candidates") or []
        selected = next((theme for theme in candidates if theme.get("id") == theme_id), None)
        if selected is None:
            available = ", ".join(theme.get("id", "?") for theme in candidates)
            raise InputError(f"Theme '{theme_id}' not found (available: {available})")

        next_state = copy_state(state)
        next_state.update({
            "selected_theme": dict(selected),
            "previous_themes": ConceptMemory.fold(state.get("previous_themes", []), candidates),
            "stage": "theme_selected",
            "needs_human_input": False,
        })
        self.logger.info(f"Theme selected: {selected.get('title')} ({theme_id})")
        return self._invoke("select_theme", next_state)

    def regenerate(self, state: Dict[str, Any]) -> Dict[str, Any]:
        """
        Discard the current theme batch and generate a fresh one.

        The discarded themes are remembered so the new batch avoids them.
        """
        self._require_awaiting_selection(state, "regenerate themes")

        next_state = copy_state(state)
        next_state.update({
            "previous_themes": ConceptMemory.fold(
                state.get("previous_themes", []),
                state.get("theme_candidates") or [],
            ),
            "theme_candidates": [],
            "regeneration_count": state.get("regeneration_count", 0) + 1,
            "stage": "theme_generation",
            "needs_human_input": False,
        })
        self.logger.info(f"Regenerating themes (regeneration #{next_state['regeneration_count']})")
        return self._invoke("regenerate", next_state)

    def run_content_stage(self, state: Dict[str, Any]) -> Dict[str, Any]:
        """
        Draft and edit content for every channel.

        Raises:
            InputError: If there is no research dossier yet
        """
        if not state.get("research_dossier"):
            raise InputError("Content stage needs a research dossier; select a theme first")

        next_state = copy_state(state)
        next_state.update({
            "stage": "research_complete",
            "is_complete": False,
        })
        return self._invoke("run_content_stage", next_state)

    # === HELPERS ===

    def _require_awaiting_selection(self, state: Dict[str, Any], action: str) -> None:
        if state.get("stage") != "awaiting_theme_selection":
            raise InputError(
                f"Cannot {action} at stage '{state.get('stage')}'; the run is not awaiting theme selection"
            )

    def _invoke(self, call: str, state: Dict[str, Any]) -> Dict[str, Any]:
        """Run the graph from the state's stage, logging timing and transitions."""
        entry_stage = state.get("stage")
        self.logger.info(f"{call}: entering pipeline at '{entry_stage}'")
        start_time = datetime.now()

        try:
            final_state = self.graph.invoke(state)
        except Exception as e:
            elapsed = (datetime.now() - start_time).total_seconds()
            self.logger.error(f"{call} failed after {elapsed:.2f}s: {e}", exc_info=True)
            raise

        execution_time = (datetime.now() - start_time).total_seconds()
        self.logger.info(
            f"{call}: '{entry_stage}' -> '{final_state.get('stage')}' in {execution_time:.2f}s"
        )

        # Stages only add or overwrite, so overlaying keeps fields the graph left empty
        result = dict(state)
        result.update(final_state)
        return result

    def summarize(self, state: Dict[str, Any]) -> Dict[str, Any]:
        """Compact view of a state for request layers and the CLI."""
        channels = {}
        for name in ("article", "linkedin", "social"):
            channels[name] = {
                "drafted": state.get(f"{name}_draft") is not None,
                "edited": state.get(f"{name}_edit") is not None,
                "quality_score": (state.get(f"{name}_edit") or {}).get("quality_score"),
            }

        search_history = state.get("search_history", [])
        return {
            "stage": state.get("stage"),
            "needs_human_input": state.get("needs_human_input", False),
            "is_complete": state.get("is_complete", False),
            "theme_candidates": [
                {"id": theme.get("id"), "title": theme.get("title")}
                for theme in state.get("theme_candidates", [])
            ],
            "selected_theme": (state.get("selected_theme") or {}).get("title"),
            "previous_themes": len(state.get("previous_themes", [])),
            "regeneration_count": state.get("regeneration_count", 0),
            "searches": len(search_history),
            "failed_searches": sum(1 for entry in search_history if entry.get("error")),
            "has_dossier": state.get("research_dossier") is not None,
            "channels": channels,
        }

    def describe_stages(self) -> List[Dict[str, str]]:
        """Describe every pipeline stage in execution order."""
        return [
            {"stage": "brief_creation", "description": "Validate inputs and write a structured marketing brief"},
            {"stage": "theme_generation", "description": "Iterative document search, then exactly N campaign themes"},
            {"stage": "await_selection", "description": "Human checkpoint: select a theme or regenerate"},
            {"stage": "deep_research", "description": "Theme-focused iterative search, then a research dossier"},
            {"stage": "content_drafting", "description": "Article, LinkedIn and social drafts in parallel"},
            {"stage": "content_editing", "description": "Parallel editing pass with quality scores"},
        ]
