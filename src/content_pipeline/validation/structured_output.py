"""
Structured Output Validator

Turns free-form generated text into a validated record, or fails with a
ParseError carrying the raw text. There is no middle ground: callers never
see a partially typed value.

Text handling:
- Fenced block (``` with any language tag) -> the content up to the last
  closing fence outside JSON strings
- Opening fence without a closing fence (truncated output) -> brace-balance
  recovery of the balanced prefix
- Unfenced text with surrounding prose -> same recovery from the first '{'
"""

import logging
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..errors import ParseError


ModelT = TypeVar("ModelT", bound=BaseModel)

FENCE = "```"

logger = logging.getLogger("validation.structured_output")


def extract_json_block(text: str) -> Optional[str]:
    """
    Pull the JSON object text out of a model response.

    A fence only counts when it opens before the first '{'; fences inside
    JSON strings (markdown bodies) are ignored.

    Args:
        text: Raw generated text

    Returns:
        Candidate JSON text, or None if no object could be located
    """
    fence_at = text.find(FENCE)
    brace_at = text.find("{")
    if fence_at == -1 or (brace_at != -1 and brace_at < fence_at):
        return recover_balanced_object(text)

    body = text[fence_at + len(FENCE):]
    # Language tag on the opening line, any case (json, JSON, javascript)
    newline = body.find("\n")
    if newline != -1 and "{" not in body[:newline]:
        body = body[newline + 1:]

    closing = _last_fence_outside_strings(body)
    if closing is None:
        # Opening fence but no closing one: the response was cut off
        logger.debug("Unclosed code fence, attempting brace recovery")
        return recover_balanced_object(body)
    return recover_balanced_object(body[:closing])


def _last_fence_outside_strings(text: str) -> Optional[int]:
    last = None
    in_string = False
    escaped = False
    index = 0
    while index < len(text):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif text.startswith(FENCE, index):
            last = index
            index += len(FENCE)
            continue
        index += 1
    return last


def recover_balanced_object(text: str) -> Optional[str]:
    """
    Cut text down to its brace-balanced prefix.

    Scans from the first '{', tracking nesting depth while ignoring braces
    inside JSON strings, and cuts at the last position where depth returns
    to 0. Returns None when the first object never closes.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    end = None

    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                end = index + 1
            elif depth < 0:
                # stray closing brace in trailing prose
                break

    if end is None:
        return None
    return text[start:end]


class StructuredOutputValidator:
    """
    Stateless validator shared by every stage.

    No retries happen here; a failure is reported once and the calling stage
    decides what that means (usually: abort the run).
    """

    def parse(self, text: str, schema: Type[ModelT]) -> ModelT:
        """
        Parse generated text against a schema.

        Args:
            text: Raw generated text
            schema: Pydantic model to validate against

        Returns:
            Validated model instance

        Raises:
            ParseError: If no object can be extracted or it does not conform
        """
        schema_name = schema.__name__
        if not text or not text.strip():
            raise ParseError(schema_name, "empty response", text)

        candidate = extract_json_block(text)
        if candidate is None:
            raise ParseError(schema_name, "no complete JSON object found", text)

        try:
            return schema.model_validate_json(candidate, strict=True)
        except ValidationError as e:
            logger.warning(f"{schema_name} failed validation with {e.error_count()} error(s)")
            raise ParseError(schema_name, _summarize(e), text) from e

    def validate_data(self, data: Any, schema: Type[ModelT]) -> ModelT:
        """Validate already-structured output (provider fast path) against the same schema."""
        schema_name = schema.__name__
        if isinstance(data, BaseModel):
            data = data.model_dump()

        try:
            return schema.model_validate(data, strict=True)
        except ValidationError as e:
            raise ParseError(schema_name, _summarize(e), repr(data)) from e


def _summarize(error: ValidationError, limit: int = 3) -> str:
    parts = []
    for item in error.errors()[:limit]:
        location = ".".join(str(part) for part in item.get("loc", ())) or "<root>"
        parts.append(f"{location}: {item.get('msg', 'invalid')}")
    if error.error_count() > limit:
        parts.append(f"... {error.error_count() - limit} more")
    return "; ".join(parts)
