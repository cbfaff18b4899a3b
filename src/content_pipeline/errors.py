"""
Error taxonomy for the content pipeline.

Every stage raises one of these; the orchestrator logs and re-raises,
it never swaps a failure for placeholder content.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for all pipeline failures."""


class InputError(PipelineError):
    """A required precondition is missing (no brief, unknown theme id, wrong stage)."""


class ExternalCallError(PipelineError):
    """A search or generation call failed or timed out."""

    def __init__(self, service: str, message: str):
        super().__init__(f"{service} call failed: {message}")
        self.service = service


class ParseError(PipelineError):
    """Generated text could not be turned into a conforming record."""

    def __init__(self, schema_name: str, reason: str, raw_text: Optional[str] = None):
        super().__init__(f"Could not parse {schema_name}: {reason}")
        self.schema_name = schema_name
        self.reason = reason
        self.raw_text = raw_text


class ExhaustionError(PipelineError):
    """The retrieval loop finished without a single usable evidence item."""


class ArityError(PipelineError):
    """A structured batch came back with the wrong number of items."""

    def __init__(self, what: str, expected: int, actual: int):
        super().__init__(f"Expected exactly {expected} {what}, got {actual}")
        self.what = what
        self.expected = expected
        self.actual = actual


class FanOutMergeError(PipelineError):
    """Sibling channel patches collided or wrote fields they did not declare."""
