"""
LangGraph content pipeline workflow.

State, stage nodes, channel fan-out and the stage graph that ties them together.
"""

from .state import (
    WorkflowState,
    SearchLogEntry,
    create_initial_state,
    copy_state,
    serialize_state,
    deserialize_state,
)
from .fanout import ChannelTask, FanOutCoordinator
from .preflight import preflight_check, find_violations
from .stages import PipelineServices, create_brief_node, create_theme_node, create_research_node
from .channels import CHANNELS, ChannelSpec, create_drafting_tasks, create_editing_tasks
from .graph import create_pipeline_graph, compile_graph

__all__ = [
    # State
    "WorkflowState",
    "SearchLogEntry",
    "create_initial_state",
    "copy_state",
    "serialize_state",
    "deserialize_state",
    # Fan-out
    "ChannelTask",
    "FanOutCoordinator",
    # Stages
    "preflight_check",
    "find_violations",
    "PipelineServices",
    "create_brief_node",
    "create_theme_node",
    "create_research_node",
    # Channels
    "CHANNELS",
    "ChannelSpec",
    "create_drafting_tasks",
    "create_editing_tasks",
    # Graph
    "create_pipeline_graph",
    "compile_graph",
]
