"""
Stage Graph for the Content Pipeline

Fixed stage sequence with one human checkpoint:

    brief_creation -> theme_generation -> await_selection -> END
                                   (caller picks a theme, or regenerates)
    deep_research -> [pause] -> content_drafting -> content_editing -> END

A conditional entry edge routes on the state's stage tag, so the same
compiled graph serves the initial run and every resumption. Routing
predicates see the merged state after each stage and raise instead of
guessing when a precondition is broken.
"""

import logging
from typing import Dict

from langgraph.graph import StateGraph, END, START

from ..config import PipelineConfig
from ..errors import ArityError, InputError
from .channels import create_drafting_tasks, create_editing_tasks
from .fanout import FanOutCoordinator
from .stages import PipelineServices, create_brief_node, create_research_node, create_theme_node
from .state import WorkflowState


logger = logging.getLogger("workflow.graph")

# stage tag -> node the run (re)enters at
ENTRY_POINTS = {
    "brief_creation": "brief_creation",
    "theme_generation": "theme_generation",
    "theme_selected": "deep_research",
    "research_complete": "content_drafting",
}


def create_pipeline_graph(config: PipelineConfig, services: PipelineServices) -> StateGraph:
    """
    Build the pipeline graph.

    Args:
        config: Immutable pipeline configuration
        services: Generation and search collaborators

    Returns:
        Uncompiled StateGraph
    """
    graph = StateGraph(WorkflowState)

    drafting = FanOutCoordinator(create_drafting_tasks(services), max_workers=config.max_workers)
    editing = FanOutCoordinator(create_editing_tasks(services), max_workers=config.max_workers)

    # === NODE IMPLEMENTATIONS ===

    def await_selection_node(state: WorkflowState) -> Dict:
        """Suspend: the caller must pick a theme (or ask for new ones)."""
        logger.info(
            f"[await_selection] {len(state.get('theme_candidates', []))} theme(s) ready, waiting for selection"
        )
        return {
            "stage": "awaiting_theme_selection",
            "needs_human_input": True,
            "is_complete": False,
        }

    def content_drafting_node(state: WorkflowState) -> Dict:
        logger.info(f"[content_drafting] Fanning out to {', '.join(drafting.channel_names)}")
        return drafting.run(state)

    def content_editing_node(state: WorkflowState) -> Dict:
        logger.info(f"[content_editing] Fanning out to {', '.join(editing.channel_names)}")
        patch = editing.run(state)
        patch.update({
            "stage": "content_complete",
            "needs_human_input": False,
            "is_complete": True,
        })
        return patch

    # === ADD NODES TO GRAPH ===

    graph.add_node("brief_creation", create_brief_node(config, services))
    graph.add_node("theme_generation", create_theme_node(config, services))
    graph.add_node("await_selection", await_selection_node)
    graph.add_node("deep_research", create_research_node(config, services))
    graph.add_node("content_drafting", content_drafting_node)
    graph.add_node("content_editing", content_editing_node)

    # === ROUTING FUNCTIONS ===

    def route_entry(state: WorkflowState) -> str:
        stage = state.get("stage", "brief_creation")
        if stage not in ENTRY_POINTS:
            raise InputError(f"Cannot run the pipeline from stage '{stage}'")
        return stage

    def route_after_brief(state: WorkflowState) -> str:
        if not state.get("brief"):
            raise InputError("Brief creation finished without a brief")
        return "themes"

    def route_after_themes(state: WorkflowState) -> str:
        count = len(state.get("theme_candidates") or [])
        if count != config.themes.count:
            raise ArityError("themes", config.themes.count, count)
        return "await"

    def route_after_research(state: WorkflowState) -> str:
        return "pause" if config.pause_after_research else "draft"

    # === ADD EDGES ===

    graph.add_conditional_edges(START, route_entry, ENTRY_POINTS)

    graph.add_conditional_edges(
        "brief_creation",
        route_after_brief,
        {"themes": "theme_generation"}
    )

    graph.add_conditional_edges(
        "theme_generation",
        route_after_themes,
        {"await": "await_selection"}
    )

    # Human checkpoint: the run ends here and resumes through the orchestrator
    graph.add_edge("await_selection", END)

    graph.add_conditional_edges(
        "deep_research",
        route_after_research,
        {"pause": END, "draft": "content_drafting"}
    )

    graph.add_edge("content_drafting", "content_editing")
    graph.add_edge("content_editing", END)

    return graph


def compile_graph(config: PipelineConfig, services: PipelineServices):
    """Compile the pipeline graph for execution."""
    graph = create_pipeline_graph(config, services)
    return graph.compile()
