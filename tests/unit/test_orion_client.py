"""
Unit tests for the ORION-CORE memory client and adapters.

The aiohttp session is replaced by a small fake that records requests and
returns canned responses, so no network is needed.
"""

import asyncio

import aiohttp
import pytest

from personalization.errors import UpstreamUnavailable


class FakeResponse:
    def __init__(self, status=200, payload=None, text=""):
        self.status = status
        self._payload = payload if payload is not None else {}
        self._text = text

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def json(self):
        return self._payload

    async def text(self):
        return self._text


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.requests = []
        self.closed = False

    def _request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response

    def post(self, url, **kwargs):
        return self._request("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._request("GET", url, **kwargs)

    async def close(self):
        self.closed = True


def _client(session):
    from integrations.orion import OrionMemoryClient
    return OrionMemoryClient("http://orion:8090/", session=session)


MEMORY_RESULTS = [
    {
        "id": "mem-1",
        "score": 0.91,
        "content": "Blue Horizon, abstract canvas",
        "metadata": {
            "memory_type": "content_analysis",
            "product_id": "p-1",
            "product_category": "Abstract",
            "timestamp": "2024-05-30T08:00:00Z",
        },
    },
    {"memory_id": "mem-2", "similarity": 0.75, "metadata": {"category": "Portrait"}},
]


# =============================================================================
# Client
# =============================================================================

class TestOrionMemoryClient:

    def test_search_payload(self):
        session = FakeSession(FakeResponse(payload={"results": MEMORY_RESULTS}))

        results = asyncio.run(_client(session).search_memories(
            "category:Abstract", limit=5, threshold=0.6, filters={"memory_type": ["content_analysis"]}
        ))

        method, url, kwargs = session.requests[0]
        assert method == "POST"
        assert url == "http://orion:8090/api/mcp/search-memories"
        assert kwargs["json"] == {
            "query": "category:Abstract",
            "top_k": 5,
            "threshold": 0.6,
            "filters": {"memory_type": ["content_analysis"]},
            "include_metadata": True,
            "include_context": True,
        }
        assert results == MEMORY_RESULTS

    def test_search_without_results_key(self):
        session = FakeSession(FakeResponse(payload={"success": True}))

        assert asyncio.run(_client(session).search_memories("q")) == []

    def test_http_error(self):
        session = FakeSession(FakeResponse(status=503, text="overloaded"))

        with pytest.raises(UpstreamUnavailable) as exc_info:
            asyncio.run(_client(session).search_memories("q"))

        assert exc_info.value.service == "orion"
        assert "HTTP 503" in exc_info.value.reason

    def test_transport_error(self):
        session = FakeSession(error=aiohttp.ClientConnectionError("refused"))

        with pytest.raises(UpstreamUnavailable):
            asyncio.run(_client(session).search_memories("q"))

    def test_timeout(self):
        session = FakeSession(error=asyncio.TimeoutError())

        with pytest.raises(UpstreamUnavailable) as exc_info:
            asyncio.run(_client(session).search_memories("q"))

        assert exc_info.value.reason == "TimeoutError"

    def test_store_memory_metadata(self):
        session = FakeSession(FakeResponse(payload={"success": True}))

        asyncio.run(_client(session).store_memory(
            "hello", {"memory_type": "product_view", "timestamp": "2024-05-30T08:00:00+00:00"}
        ))

        _, url, kwargs = session.requests[0]
        assert url.endswith("/api/mcp/store-memory")
        metadata = kwargs["json"]["metadata"]
        assert metadata["timestamp"] == "2024-05-30T08:00:00+00:00"
        assert metadata["source"] == "ai-marketplace"
        assert metadata["version"] == "1.0"

    def test_store_memory_adds_timestamp(self):
        session = FakeSession()

        asyncio.run(_client(session).store_memory("hello"))

        assert "timestamp" in session.requests[0][2]["json"]["metadata"]

    def test_health(self):
        healthy = asyncio.run(_client(FakeSession(FakeResponse(status=200))).health())
        failing = asyncio.run(_client(FakeSession(error=aiohttp.ClientConnectionError("x"))).health())

        assert healthy["status"] == "healthy"
        assert healthy["http_status"] == 200
        assert failing["status"] == "error"

    def test_injected_session_not_closed(self):
        session = FakeSession()

        asyncio.run(_client(session).close())

        assert session.closed is False

    def test_recommendation_event(self):
        session = FakeSession()

        asyncio.run(_client(session).record_recommendation_event(
            "user-1", {"query": "q", "recommendations_generated": 4, "confidence": 0.5}
        ))

        payload = session.requests[0][2]["json"]
        assert payload["content"] == "Generated 4 recommendations for user user-1"
        assert payload["metadata"]["memory_type"] == "recommendation_feedback"
        assert payload["metadata"]["user_id"] == "user-1"
        assert payload["metadata"]["confidence"] == 0.5


# =============================================================================
# Adapters
# =============================================================================

class TestCandidateRetriever:

    def test_candidates_from_results(self):
        from integrations.orion import OrionCandidateRetriever

        session = FakeSession(FakeResponse(payload={"results": MEMORY_RESULTS}))
        retriever = OrionCandidateRetriever(_client(session), limit=25, threshold=0.7)

        candidates = asyncio.run(retriever.retrieve("category:Abstract", exclude_user="user-1"))

        assert [c.id for c in candidates] == ["p-1", "mem-2"]
        assert candidates[0].base_score == 0.91
        assert candidates[0].category == "Abstract"
        assert candidates[0].timestamp is not None
        assert candidates[1].base_score == 0.75
        assert candidates[1].category == "Portrait"
        assert candidates[1].timestamp is None

        payload = session.requests[0][2]["json"]
        assert payload["top_k"] == 25
        assert payload["filters"] == {
            "memory_type": ["content_analysis", "product_view"],
            "exclude_user": "user-1",
        }

    def test_malformed_metadata_values(self):
        from integrations.orion import OrionCandidateRetriever

        results = [
            {"score": 0.9, "metadata": {"product_category": "Abstract"}},
            {"score": 0.8, "metadata": {"product_category": 12, "product_style": ["x"]}},
            {"id": "mem-3", "score": 0.7, "metadata": "oops"},
        ]
        session = FakeSession(FakeResponse(payload={"results": results}))

        candidates = asyncio.run(OrionCandidateRetriever(_client(session)).retrieve("q"))

        assert len(candidates) == 3
        assert candidates[0].category == "Abstract"
        assert candidates[1].base_score == 0.8
        assert candidates[1].category is None
        assert candidates[1].style is None
        assert candidates[2].id == "mem-3"
        assert candidates[2].metadata == {}

    def test_recommend_with_malformed_candidates(self, make_view, clock):
        from integrations.interaction_store import InMemoryInteractionStore
        from integrations.orion import OrionCandidateRetriever
        from personalization.service import PersonalizationService

        results = [
            {"score": 0.9, "metadata": {"product_id": "p-1", "product_category": "Abstract"}},
            {"score": 0.8, "metadata": {"product_id": "p-2", "product_category": 12, "product_style": ["x"]}},
        ]
        session = FakeSession(FakeResponse(payload={"results": results}))
        service = PersonalizationService(
            store=InMemoryInteractionStore([make_view(user_id="u1", category="Abstract")]),
            retriever=OrionCandidateRetriever(_client(session)),
            clock=clock,
        )

        result = asyncio.run(service.recommend("u1"))

        assert result.degraded is False
        assert [r.candidate.id for r in result.recommendations] == ["p-1", "p-2"]
        assert result.recommendations[1].candidate.category is None

    def test_upstream_error_propagates(self):
        from integrations.orion import OrionCandidateRetriever

        retriever = OrionCandidateRetriever(_client(FakeSession(FakeResponse(status=500))))

        with pytest.raises(UpstreamUnavailable):
            asyncio.run(retriever.retrieve("q"))


class TestOrionInteractionStore:

    def test_fetch_parses_memories(self, now):
        from integrations.orion import OrionInteractionStore

        results = [
            {"id": "m1", "metadata": {"memory_type": "product_view", "user_id": "u1",
                                      "timestamp": "2024-05-30T08:00:00Z", "product_category": "Abstract"}},
            {"id": "m2", "metadata": {"memory_type": "recommendation_feedback",
                                      "timestamp": "2024-05-30T08:00:00Z"}},
        ]
        session = FakeSession(FakeResponse(payload={"results": results}))
        store = OrionInteractionStore(_client(session))

        records = asyncio.run(store.fetch_interactions("u1", now, query="user:u1 page:/shop"))

        assert len(records) == 1
        assert records[0].attributes.category == "Abstract"
        payload = session.requests[0][2]["json"]
        assert payload["query"] == "user:u1 page:/shop"
        assert payload["threshold"] == 0.6
        assert payload["filters"]["user_id"] == "u1"
        assert len(payload["filters"]["memory_type"]) == 5

    def test_record_stores_memory(self, make_view):
        from integrations.orion import OrionInteractionStore

        session = FakeSession()
        record = make_view(category="Abstract", product_id="p-1", title="Blue Horizon")

        asyncio.run(OrionInteractionStore(_client(session)).record_interaction(record))

        payload = session.requests[0][2]["json"]
        assert payload["content"] == 'User user-1 viewed product "Blue Horizon" (p-1) in category Abstract'
        assert payload["metadata"]["memory_type"] == "product_view"
        assert payload["metadata"]["timestamp"] == record.timestamp.isoformat()
