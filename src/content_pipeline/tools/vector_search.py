"""
Vector Search Client
Queries the vector index that holds the chunked source documents.

Each source document lives in its own partition (namespace). The service
returns ranked snippets; when top_n is given it re-ranks the top_k
candidates and keeps the best top_n.
"""

from typing import Any, Dict, List, Optional
import os
import time
import logging
import requests

from ..config import SearchSettings
from ..errors import ExternalCallError


class VectorSearchClient:
    """
    HTTP client for the vector search service.

    Sequential calls are spaced by min_request_interval so an iterative
    retrieval loop does not hammer the index.
    """

    def __init__(self, settings: SearchSettings, session: Optional[requests.Session] = None):
        """
        Initialize the search client.

        Args:
            settings: Search section of the pipeline config
            session: Optional session (tests pass a fake one)
        """
        self.settings = settings
        self.logger = logging.getLogger("tools.vector_search")

        self.api_key = os.getenv("VECTOR_SEARCH_API_KEY")
        self.search_url = settings.base_url.rstrip("/") + "/search"
        self.min_request_interval = settings.min_request_interval
        self._last_request_time = 0.0
        self._session = session or requests.Session()

    def search(
        self,
        query: str,
        partition_id: str,
        top_k: int = 10,
        top_n: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Search one partition of the index.

        Args:
            query: Natural-language search query
            partition_id: Namespace of the selected source document
            top_k: Number of candidates to retrieve
            top_n: Keep only the best top_n after re-ranking (None disables re-ranking)

        Returns:
            List of evidence items:
            {
                "id": str,
                "score": float,
                "text": str,
                "category": str,
            }

        Raises:
            ExternalCallError: On transport errors, timeouts or bad responses
        """
        payload = {
            "query": query,
            "namespace": partition_id,
            "top_k": top_k,
        }
        if top_n is not None:
            payload["top_n"] = top_n

        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        self._respect_rate_limit()
        try:
            resp = self._session.post(
                self.search_url,
                json=payload,
                headers=headers,
                timeout=self.settings.timeout,
            )
        except requests.RequestException as e:
            raise ExternalCallError("vector_search", str(e)) from e
        finally:
            self._last_request_time = time.time()

        if not resp.ok:
            raise ExternalCallError("vector_search", f"HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            data = resp.json()
        except ValueError as e:
            raise ExternalCallError("vector_search", f"invalid JSON response: {e}") from e

        raw_results = (data.get("results") if isinstance(data, dict) else None) or []
        if not isinstance(raw_results, list):
            raise ExternalCallError("vector_search", f"unexpected results type: {type(raw_results).__name__}")

        results = self._parse_results(raw_results)
        self.logger.info(f"Search '{query}' returned {len(results)} result(s)")
        return results

    def _parse_results(self, raw_results: List[Any]) -> List[Dict[str, Any]]:
        """Normalize raw hits; hits without an id cannot be deduplicated and are dropped."""
        results = []
        for hit in raw_results:
            if not isinstance(hit, dict) or not hit.get("id"):
                continue
            try:
                score = float(hit.get("score") or 0.0)
            except (TypeError, ValueError):
                self.logger.warning(f"Dropping hit {hit['id']!r} with non-numeric score {hit.get('score')!r}")
                continue
            metadata = hit.get("metadata") or {}
            if not isinstance(metadata, dict):
                metadata = {}
            results.append({
                "id": str(hit["id"]),
                "score": score,
                "text": hit.get("text") or metadata.get("text", ""),
                "category": hit.get("category") or metadata.get("category", ""),
            })
        return results

    def _respect_rate_limit(self) -> None:
        elapsed = time.time() - self._last_request_time
        if elapsed < self.min_request_interval:
            time.sleep(self.min_request_interval - elapsed)
