"""Schemas and the structured output validator."""

from .structured_output import StructuredOutputValidator, extract_json_block, recover_balanced_object
from . import schemas

__all__ = [
    "StructuredOutputValidator",
    "extract_json_block",
    "recover_balanced_object",
    "schemas",
]
