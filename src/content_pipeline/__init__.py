"""
Content Pipeline

Turns a business brief and an indexed source document into campaign themes,
an evidence dossier, and edited article, LinkedIn and social content.
"""

from .config import PipelineConfig, load_config
from .errors import (
    PipelineError,
    InputError,
    ExternalCallError,
    ParseError,
    ExhaustionError,
    ArityError,
    FanOutMergeError,
)
from .orchestrator import ContentPipelineOrchestrator

__all__ = [
    "ContentPipelineOrchestrator",
    "PipelineConfig",
    "load_config",
    "PipelineError",
    "InputError",
    "ExternalCallError",
    "ParseError",
    "ExhaustionError",
    "ArityError",
    "FanOutMergeError",
]
