"""
Pre-flight checks for brief inputs.

Runs before any external call so a bad submission costs nothing. Every
violation is fatal.
"""

from typing import Any, Dict, List

from ..errors import InputError
from .state import CTA_TYPES


REQUIRED_TEXT_FIELDS = ("business_context", "target_audience", "marketing_goals", "selected_document_id")
COUNT_FIELDS = ("articles_count", "linkedin_posts_count", "social_posts_count")


def find_violations(inputs: Dict[str, Any]) -> List[Dict[str, str]]:
    """
    Collect every problem with the submitted brief parameters.

    Returns:
        List of {"field", "message"} dicts (empty when the inputs are usable)
    """
    violations = []

    for field_name in REQUIRED_TEXT_FIELDS:
        value = inputs.get(field_name)
        if not isinstance(value, str) or not value.strip():
            violations.append({"field": field_name, "message": "is required"})

    for field_name in COUNT_FIELDS:
        value = inputs.get(field_name, 0)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            violations.append({"field": field_name, "message": "must be a non-negative integer"})

    if all(isinstance(inputs.get(f), int) for f in COUNT_FIELDS) and not any(
        inputs.get(f) for f in COUNT_FIELDS
    ):
        violations.append({"field": "counts", "message": "at least one channel needs content"})

    cta_type = inputs.get("cta_type")
    if cta_type not in CTA_TYPES:
        violations.append({
            "field": "cta_type",
            "message": f"must be one of {', '.join(CTA_TYPES)}",
        })

    cta_url = inputs.get("cta_url")
    if cta_url is not None and not isinstance(cta_url, str):
        violations.append({"field": "cta_url", "message": "must be a string"})

    return violations


def preflight_check(inputs: Dict[str, Any]) -> None:
    """Raise InputError listing every violation, or return quietly."""
    violations = find_violations(inputs)
    if violations:
        details = "; ".join(f"{v['field']} {v['message']}" for v in violations)
        raise InputError(f"Invalid brief inputs: {details}")
