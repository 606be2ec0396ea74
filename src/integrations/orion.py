"""
ORION-CORE memory service client.

ORION-CORE stores free-text "memories" with metadata and serves semantic
search over them. This module wraps its MCP HTTP endpoints and adapts them
to the personalization boundary contracts:

- OrionMemoryClient: search-memories / store-memory / health over aiohttp;
  also records recommendation events (recommendation_feedback memories)
- OrionCandidateRetriever: CandidateRetriever backed by memory search
- OrionInteractionStore: InteractionStore backed by the user's own memories

Transport failures, timeouts and HTTP errors surface as UpstreamUnavailable.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from core.logging import LoggerMixin
from core.utils import ensure_utc, first_present, utc_now
from personalization.errors import UpstreamUnavailable
from personalization.models import (
    InteractionKind,
    InteractionRecord,
    RecommendationCandidate,
    parse_records,
)
from personalization.query import build_contextual_query


SEARCH_PATH = "/api/mcp/search-memories"
STORE_PATH = "/api/mcp/store-memory"
HEALTH_PATH = "/health"

RECOMMENDATION_FEEDBACK = "recommendation_feedback"
CONTENT_ANALYSIS = "content_analysis"


class OrionMemoryClient(LoggerMixin):
    """
    Async client for the ORION-CORE MCP memory endpoints.

    Usage:
        async with OrionMemoryClient("http://localhost:8090") as client:
            results = await client.search_memories("category:Abstract", limit=25)
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8090",
        timeout_seconds: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
        source: str = "ai-marketplace",
        version: str = "1.0",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.source = source
        self.version = version
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "OrionMemoryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    # ---------------------------------------------------------------------
    # Transport
    # ---------------------------------------------------------------------

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with self._get_session().post(url, json=payload, timeout=self.timeout) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    raise UpstreamUnavailable("orion", f"HTTP {resp.status} from {path}: {body[:200]}")
                return await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.warning("ORION request failed", path=path, error=str(e) or type(e).__name__)
            raise UpstreamUnavailable("orion", str(e) or type(e).__name__) from e

    # ---------------------------------------------------------------------
    # Memory API
    # ---------------------------------------------------------------------

    async def search_memories(
        self,
        query: str,
        limit: int = 10,
        threshold: float = 0.7,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        data = await self._post(SEARCH_PATH, {
            "query": query,
            "top_k": limit,
            "threshold": threshold,
            "filters": filters or {},
            "include_metadata": True,
            "include_context": True,
        })
        results = data.get("results") or []
        self.logger.debug("Searched memories", query=query, results=len(results))
        return results

    async def store_memory(
        self,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        payload_metadata = dict(metadata or {})
        payload_metadata.setdefault("timestamp", utc_now().isoformat())
        payload_metadata["source"] = self.source
        payload_metadata["version"] = self.version
        return await self._post(STORE_PATH, {"content": content, "metadata": payload_metadata})

    async def health(self) -> Dict[str, Any]:
        """Health of the memory service. Never raises."""
        url = f"{self.base_url}{HEALTH_PATH}"
        start = time.perf_counter()
        try:
            async with self._get_session().get(url, timeout=self.timeout) as resp:
                status = "healthy" if resp.status < 400 else "error"
                return {
                    "status": status,
                    "url": self.base_url,
                    "http_status": resp.status,
                    "response_time_ms": round((time.perf_counter() - start) * 1000, 2),
                }
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return {"status": "error", "url": self.base_url, "error": str(e) or type(e).__name__}

    # ---------------------------------------------------------------------
    # RecommendationEventSink
    # ---------------------------------------------------------------------

    async def record_recommendation_event(self, user_id: str, event: Dict[str, Any]) -> None:
        count = event.get("recommendations_generated", 0)
        metadata = {"user_id": user_id, "memory_type": RECOMMENDATION_FEEDBACK, **event}
        await self.store_memory(f"Generated {count} recommendations for user {user_id}", metadata)


# =============================================================================
# Adapters
# =============================================================================

def candidate_from_memory(result: Dict[str, Any]) -> RecommendationCandidate:
    """Map a memory search result to a RecommendationCandidate."""
    metadata = result.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}
    return RecommendationCandidate(
        id=first_present(metadata, "product_id") or first_present(result, "id", "memory_id", default=""),
        base_score=first_present(result, "score", "similarity"),
        category=first_present(metadata, "product_category", "category"),
        style=first_present(metadata, "product_style", "style"),
        timestamp=metadata.get("timestamp"),
        content=result.get("content"),
        metadata=metadata,
    )


class OrionCandidateRetriever(LoggerMixin):
    """CandidateRetriever backed by ORION-CORE semantic search."""

    def __init__(
        self,
        client: OrionMemoryClient,
        limit: int = 25,
        threshold: float = 0.7,
        memory_types: Sequence[str] = (CONTENT_ANALYSIS, InteractionKind.PRODUCT_VIEW.value),
    ) -> None:
        self.client = client
        self.limit = limit
        self.threshold = threshold
        self.memory_types = list(memory_types)

    async def retrieve(
        self,
        query: str,
        limit: Optional[int] = None,
        exclude_user: Optional[str] = None,
    ) -> List[RecommendationCandidate]:
        filters: Dict[str, Any] = {"memory_type": self.memory_types}
        if exclude_user:
            filters["exclude_user"] = exclude_user

        results = await self.client.search_memories(
            query, limit=limit or self.limit, threshold=self.threshold, filters=filters
        )
        candidates = [candidate_from_memory(r) for r in results if isinstance(r, dict)]
        self.logger.debug("Retrieved candidates", query=query, candidates=len(candidates))
        return candidates


class OrionInteractionStore(LoggerMixin):
    """
    InteractionStore backed by ORION-CORE memories.

    Reads run a contextual semantic search restricted to the user's own
    memories; writes store one memory per interaction.
    """

    def __init__(self, client: OrionMemoryClient, threshold: float = 0.6) -> None:
        self.client = client
        self.threshold = threshold

    async def fetch_interactions(
        self,
        user_id: str,
        since: datetime,
        kinds: Optional[Sequence[InteractionKind]] = None,
        limit: Optional[int] = None,
        query: Optional[str] = None,
    ) -> List[InteractionRecord]:
        kinds = [InteractionKind(k) for k in kinds] if kinds else list(InteractionKind)
        results = await self.client.search_memories(
            query or build_contextual_query(user_id),
            limit=limit or 20,
            threshold=self.threshold,
            filters={
                "user_id": user_id,
                "memory_type": [k.value for k in kinds],
                "timestamp_range": {"start": ensure_utc(since).isoformat()},
            },
        )
        return parse_records(results)

    async def record_interaction(self, record: InteractionRecord) -> None:
        metadata = record.attributes.model_dump(exclude_none=True)
        metadata.update({
            "user_id": record.user_id,
            "memory_type": record.kind.value,
            "timestamp": record.timestamp.isoformat(),
        })
        await self.client.store_memory(describe_interaction(record), metadata)


def describe_interaction(record: InteractionRecord) -> str:
    """Human-readable memory content for an interaction."""
    attrs = record.attributes
    user = record.user_id
    if record.kind == InteractionKind.PRODUCT_VIEW:
        return (
            f'User {user} viewed product "{attrs.title or ""}" ({attrs.product_id or ""}) '
            f"in category {attrs.category or 'unknown'}"
        )
    if record.kind == InteractionKind.SEARCH_QUERY:
        return f'User {user} searched for "{attrs.query or ""}" and found {attrs.result_count or 0} results'
    if record.kind == InteractionKind.USER_INTERACTION:
        return f"User {user} performed {attrs.action or 'interaction'} on {attrs.product_id or 'page'}"
    return f"User {user} recorded {record.kind.value}"
