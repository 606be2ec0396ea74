"""
Personalization Service.

Orchestrates the full pipeline for one user:

    InteractionStore -> PreferenceExtractor -> ProfileBuilder
        -> recommendation query -> CandidateRetriever
        -> RecommendationRanker -> estimate_confidence

The scoring components are synchronous and pure; only the store, retriever
and event sink are awaited. Upstream failures never propagate out of
recommend(): a failed store yields a profile built from zero records, a
failed retriever yields an empty list, and the result is flagged degraded.
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from core.logging import get_logger
from core.utils import utc_now
from personalization.cache import ProfileCache
from personalization.config import DEFAULT_CONFIG, PersonalizationConfig
from personalization.confidence import estimate_confidence
from personalization.errors import UpstreamUnavailable
from personalization.extractor import PreferenceExtractor
from personalization.models import (
    InteractionKind,
    InteractionRecord,
    PersonalizationContext,
    PersonalizedRecommendations,
    RecommendationCandidate,
    ScoredRecommendation,
    UserProfile,
)
from personalization.profile_builder import ProfileBuilder
from personalization.query import build_contextual_query, build_recommendation_query
from personalization.ranker import RecommendationRanker


logger = get_logger(__name__)


# =============================================================================
# Boundary Contracts
# =============================================================================

class InteractionStore(Protocol):
    """Source of truth for interaction records. Ordering is not guaranteed."""

    async def fetch_interactions(
        self,
        user_id: str,
        since: datetime,
        kinds: Optional[Sequence[InteractionKind]] = None,
        limit: Optional[int] = None,
        query: Optional[str] = None,
    ) -> List[InteractionRecord]: ...

    async def record_interaction(self, record: InteractionRecord) -> None: ...


class CandidateRetriever(Protocol):
    """Semantic search over the item catalogue."""

    async def retrieve(
        self,
        query: str,
        limit: Optional[int] = None,
        exclude_user: Optional[str] = None,
    ) -> List[RecommendationCandidate]: ...


class RecommendationEventSink(Protocol):
    async def record_recommendation_event(self, user_id: str, event: Dict[str, Any]) -> None: ...


PROFILE_KINDS = tuple(InteractionKind)


# =============================================================================
# Service
# =============================================================================

class PersonalizationService:
    """
    Builds profiles and personalized recommendations.

    Usage:
        service = PersonalizationService(store, retriever)
        result = await service.recommend("user-123", PersonalizationContext(mood="calm"))
    """

    def __init__(
        self,
        store: InteractionStore,
        retriever: CandidateRetriever,
        cache: Optional[ProfileCache] = None,
        event_sink: Optional[RecommendationEventSink] = None,
        config: Optional[PersonalizationConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        interaction_window_days: int = 30,
        interaction_limit: int = 50,
        candidate_limit: int = 25,
    ):
        self.store = store
        self.retriever = retriever
        self.cache = cache
        self.event_sink = event_sink
        self.config = config or DEFAULT_CONFIG
        self.clock = clock or utc_now
        self.interaction_window = timedelta(days=interaction_window_days)
        self.interaction_limit = interaction_limit
        self.candidate_limit = candidate_limit

        self.extractor = PreferenceExtractor(self.config, self.clock)
        self.profile_builder = ProfileBuilder(self.config)
        self.ranker = RecommendationRanker(self.config, self.clock)

    # -------------------------------------------------------------------------
    # Profiles
    # -------------------------------------------------------------------------

    def profile_from_records(
        self,
        user_id: str,
        records: Sequence[InteractionRecord],
        now: Optional[datetime] = None,
    ) -> UserProfile:
        """Build a profile from already-fetched records (no I/O)."""
        memories = self.extractor.extract(records, now=now)
        insights = self.extractor.build_insights(memories)
        return self.profile_builder.build_profile(memories, insights, user_id=user_id)

    async def build_profile(
        self,
        user_id: str,
        context: Optional[PersonalizationContext] = None,
        refresh: bool = False,
    ) -> UserProfile:
        profile, _ = await self._load_profile(user_id, context, self.clock(), refresh)
        return profile

    async def _load_profile(
        self,
        user_id: str,
        context: Optional[PersonalizationContext],
        now: datetime,
        refresh: bool,
    ) -> Tuple[UserProfile, Optional[str]]:
        if self.cache is not None and not refresh:
            cached = self.cache.get(user_id)
            if cached is not None:
                logger.debug("Profile cache hit", user_id=user_id)
                return cached, None

        degraded_reason = None
        try:
            records = await self.store.fetch_interactions(
                user_id,
                since=now - self.interaction_window,
                kinds=PROFILE_KINDS,
                limit=self.interaction_limit,
                query=build_contextual_query(user_id, context),
            )
        except UpstreamUnavailable as e:
            logger.warning(
                "Interaction store unavailable, building empty profile",
                user_id=user_id,
                error=str(e),
            )
            records = []
            degraded_reason = str(e)

        profile = self.profile_from_records(user_id, records, now=now)
        if self.cache is not None and degraded_reason is None:
            self.cache.set(profile)
        return profile, degraded_reason

    # -------------------------------------------------------------------------
    # Recommendations
    # -------------------------------------------------------------------------

    async def recommend(
        self,
        user_id: str,
        context: Optional[PersonalizationContext] = None,
        limit: Optional[int] = None,
        refresh: bool = False,
    ) -> PersonalizedRecommendations:
        """
        Run the full pipeline for a user.

        Args:
            user_id: User to personalize for
            context: Optional situational context (mood, budget, page, ...)
            limit: Optional cap below the ranker's maximum
            refresh: Ignore any cached profile

        Returns:
            PersonalizedRecommendations, flagged degraded if an upstream failed
        """
        now = self.clock()
        reasons = []

        profile, profile_error = await self._load_profile(user_id, context, now, refresh)
        if profile_error:
            reasons.append(profile_error)

        query = build_recommendation_query(profile, context)
        try:
            candidates = await self.retriever.retrieve(
                query, limit=self.candidate_limit, exclude_user=user_id
            )
        except UpstreamUnavailable as e:
            logger.warning("Candidate retriever unavailable", user_id=user_id, error=str(e))
            candidates = []
            reasons.append(str(e))

        ranked = self.ranker.rank(candidates, profile, now=now, limit=limit)
        confidence = estimate_confidence(profile, ranked)

        logger.info(
            "Generated personalized recommendations",
            user_id=user_id,
            query=query,
            candidates=len(candidates),
            returned=len(ranked),
            confidence=round(confidence, 3),
            degraded=bool(reasons),
        )

        await self._record_event(user_id, query, profile, ranked, confidence, context)

        return PersonalizedRecommendations(
            user_id=user_id,
            recommendations=ranked,
            profile=profile,
            query=query,
            confidence=confidence,
            generated_at=now,
            degraded=bool(reasons),
            degraded_reason="; ".join(reasons) or None,
        )

    async def _record_event(
        self,
        user_id: str,
        query: str,
        profile: UserProfile,
        ranked: List[ScoredRecommendation],
        confidence: float,
        context: Optional[PersonalizationContext],
    ) -> None:
        if self.event_sink is None:
            return
        event = {
            "query": query,
            "recommendations_generated": len(ranked),
            "confidence": confidence,
            "profile_confidence": profile.confidence,
            "primary_category": profile.dominant_characteristics.primary_category,
            "context": context.model_dump(exclude_none=True) if context else {},
        }
        try:
            await self.event_sink.record_recommendation_event(user_id, event)
        except UpstreamUnavailable as e:
            logger.warning("Could not record recommendation event", user_id=user_id, error=str(e))

    # -------------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------------

    async def record_interaction(self, record: InteractionRecord) -> InteractionRecord:
        """
        Append a record to the store and drop the user's cached profile.

        A timestamp ahead of the service clock is stored as "now".

        Returns:
            The record as stored

        Raises:
            UpstreamUnavailable: the store could not be written
        """
        now = self.clock()
        if record.timestamp > now:
            logger.debug("Clamping future interaction timestamp", user_id=record.user_id)
            record = record.model_copy(update={"timestamp": now})

        await self.store.record_interaction(record)
        if self.cache is not None:
            self.cache.invalidate(record.user_id)
        logger.debug("Recorded interaction", user_id=record.user_id, kind=record.kind.value)
        return record
