"""Concept memory and the evidence retrieval loop."""

from .memory import ConceptMemory, normalize_query
from .retrieval import EvidenceRetrievalLoop, RetrievalResult, consolidate_evidence, format_evidence

__all__ = [
    "ConceptMemory",
    "EvidenceRetrievalLoop",
    "RetrievalResult",
    "consolidate_evidence",
    "format_evidence",
    "normalize_query",
]
