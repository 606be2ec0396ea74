"""
Personalization engine.

Turns a user's interaction history into a weighted preference profile and
uses it to re-rank recommendation candidates.

Usage:
    from personalization import PreferenceExtractor, ProfileBuilder, RecommendationRanker

    extractor = PreferenceExtractor()
    memories = extractor.extract(records)
    insights = extractor.build_insights(memories)
    profile = ProfileBuilder().build_profile(memories, insights, user_id="u1")
    ranked = RecommendationRanker().rank(candidates, profile)
"""

from personalization.config import DEFAULT_CONFIG, PersonalizationConfig
from personalization.confidence import estimate_confidence
from personalization.errors import MalformedRecord, PersonalizationError, UpstreamUnavailable
from personalization.extractor import PreferenceExtractor
from personalization.models import (
    CategorizedMemorySet,
    InsightSet,
    InteractionKind,
    InteractionRecord,
    PersonalizationContext,
    PersonalizedRecommendations,
    RecommendationCandidate,
    ScoredRecommendation,
    UserProfile,
    parse_records,
)
from personalization.profile_builder import ProfileBuilder
from personalization.query import build_contextual_query, build_recommendation_query
from personalization.ranker import RecommendationRanker
from personalization.service import PersonalizationService

__all__ = [
    "DEFAULT_CONFIG",
    "PersonalizationConfig",
    "estimate_confidence",
    "MalformedRecord",
    "PersonalizationError",
    "UpstreamUnavailable",
    "PreferenceExtractor",
    "CategorizedMemorySet",
    "InsightSet",
    "InteractionKind",
    "InteractionRecord",
    "PersonalizationContext",
    "PersonalizedRecommendations",
    "RecommendationCandidate",
    "ScoredRecommendation",
    "UserProfile",
    "parse_records",
    "ProfileBuilder",
    "build_contextual_query",
    "build_recommendation_query",
    "RecommendationRanker",
    "PersonalizationService",
]
