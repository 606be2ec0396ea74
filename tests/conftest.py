"""
Pytest configuration and shared fixtures for the personalization tests.
"""
import os
import sys
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

# Load environment variables
from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))

# Settings required at import time by api.app; no network in tests
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-key")
os.environ["ORION_ENABLED"] = "false"
os.environ["REDIS_ENABLED"] = "false"


FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


# ============================================================================
# Fixtures: Clock
# ============================================================================

@pytest.fixture
def now() -> datetime:
    """Fixed reference instant for deterministic recency weights."""
    return FIXED_NOW


@pytest.fixture
def clock():
    """Injectable clock returning the fixed instant."""
    return lambda: FIXED_NOW


# ============================================================================
# Fixtures: Test Data Factories
# ============================================================================

@pytest.fixture
def make_record():
    """
    Factory for InteractionRecords.

    Usage:
        make_record("product_view", days_ago=2, category="Abstract", style="Modern")
    """
    from personalization.models import InteractionRecord

    def _make(kind, days_ago: float = 0, user_id: str = "user-1", **attributes):
        return InteractionRecord(
            user_id=user_id,
            kind=kind,
            timestamp=FIXED_NOW - timedelta(days=days_ago),
            attributes=attributes,
        )

    return _make


@pytest.fixture
def make_view(make_record):
    def _make(days_ago: float = 0, **attributes):
        return make_record("product_view", days_ago=days_ago, **attributes)
    return _make


@pytest.fixture
def make_search(make_record):
    def _make(days_ago: float = 0, **attributes):
        return make_record("search_query", days_ago=days_ago, **attributes)
    return _make


@pytest.fixture
def make_candidate():
    """Factory for RecommendationCandidates; ``days_ago=None`` leaves timestamp unset."""
    from personalization.models import RecommendationCandidate

    def _make(id: str = "item-1", base_score=0.5, category=None, days_ago=0, **kwargs):
        timestamp = FIXED_NOW - timedelta(days=days_ago) if days_ago is not None else None
        return RecommendationCandidate(
            id=id,
            base_score=base_score,
            category=category,
            timestamp=timestamp,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_profile():
    """Factory for UserProfiles with explicit insight weights."""
    from personalization.models import (
        DominantCharacteristics,
        InsightSet,
        UserProfile,
    )

    def _make(categories=None, exploration_score: float = 0.5, confidence: float = 0.0,
              user_id: str = "user-1", **dominant):
        return UserProfile(
            user_id=user_id,
            insights=InsightSet(preferred_categories=dict(categories or {})),
            activity_level=0,
            last_active=None,
            exploration_score=exploration_score,
            confidence=confidence,
            dominant_characteristics=DominantCharacteristics(**dominant),
            built_at=FIXED_NOW,
        )

    return _make


@pytest.fixture
def interaction_rows() -> list[dict]:
    """Raw rows as returned by the Supabase interactions table."""
    return [
        {
            "user_id": "user-1",
            "kind": "product_view",
            "occurred_at": "2024-06-01T12:00:00+00:00",
            "attributes": {"category": "Abstract", "style": "Modern", "view_duration_seconds": 40},
        },
        {
            "user_id": "user-1",
            "kind": "search_query",
            "occurred_at": "2024-05-31T12:00:00+00:00",
            "attributes": {"query": "blue canvas", "query_categories": ["Abstract"], "query_intent": "buy"},
        },
        {
            "user_id": "user-1",
            "kind": "product_view",
            "occurred_at": None,
            "attributes": {"category": "Portrait"},
        },
    ]


# ============================================================================
# Fixtures: Mocks
# ============================================================================

@pytest.fixture
def mock_supabase_client():
    """Supabase client whose query builder chain always returns itself."""
    client = MagicMock()
    query = MagicMock()
    client.table.return_value = query
    for method in ("select", "eq", "gte", "in_", "order", "limit", "insert"):
        getattr(query, method).return_value = query
    query.execute.return_value = MagicMock(data=[])
    return client


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (require external services)"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow running"
    )
