"""External service adapters: chat generation and vector search."""

from .generation import GenerationService, to_langchain_messages
from .vector_search import VectorSearchClient

__all__ = ["GenerationService", "VectorSearchClient", "to_langchain_messages"]
