"""
User Profile Builder.

Summarizes a CategorizedMemorySet + InsightSet into a UserProfile:

    activity_level    = |views| + |searches|
    last_active       = timestamp of the most recent view (or None)
    exploration_score = (distinct categories / n + distinct styles / n) / 2
                        over n views; 0.5 when there are no views
    confidence        = min(1, (n_total / 50) * max_category_weight
                               * min(weeks_of_history / 2, 1))
    dominant          = top category/style when its weight > 0.3,
                        engagement level from mean seconds per view
"""

from typing import Dict, Optional

from core.logging import get_logger
from personalization.config import DEFAULT_CONFIG, MS_PER_WEEK, PersonalizationConfig
from personalization.models import (
    CategorizedMemorySet,
    DominantCharacteristics,
    EngagementLevel,
    EngagementStats,
    InsightSet,
    UserProfile,
)


logger = get_logger(__name__)


class ProfileBuilder:
    """Builds a UserProfile from extracted memories and insights."""

    def __init__(self, config: Optional[PersonalizationConfig] = None):
        self.config = config or DEFAULT_CONFIG

    def build_profile(
        self,
        memories: CategorizedMemorySet,
        insights: InsightSet,
        user_id: str = "",
    ) -> UserProfile:
        views = memories.recent_views

        profile = UserProfile(
            user_id=user_id,
            insights=insights,
            activity_level=len(views) + len(memories.search_history),
            last_active=views[0].timestamp if views else None,
            exploration_score=self._exploration_score(memories),
            confidence=self._profile_confidence(memories, insights),
            dominant_characteristics=self._dominant_characteristics(insights),
            built_at=memories.now,
        )

        logger.debug(
            "Built user profile",
            user_id=user_id,
            activity_level=profile.activity_level,
            exploration_score=round(profile.exploration_score, 3),
            confidence=round(profile.confidence, 3),
        )
        return profile

    # -------------------------------------------------------------------------
    # Components
    # -------------------------------------------------------------------------

    def _exploration_score(self, memories: CategorizedMemorySet) -> float:
        views = memories.recent_views
        if not views:
            return self.config.DEFAULT_EXPLORATION_SCORE

        categories = {v.attributes.category for v in views if v.attributes.category}
        styles = {v.attributes.style for v in views if v.attributes.style}
        n = len(views)
        return (len(categories) / n + len(styles) / n) / 2

    def _profile_confidence(
        self, memories: CategorizedMemorySet, insights: InsightSet
    ) -> float:
        total = (
            len(memories.recent_views)
            + len(memories.search_history)
            + len(memories.interactions)
        )
        strength = max(insights.preferred_categories.values(), default=0.0)

        # Views are sorted newest first, so the last one spans the history
        if memories.recent_views:
            weeks = memories.recent_views[-1].age_ms / MS_PER_WEEK
        else:
            weeks = 0.0
        span = min(weeks / self.config.CONFIDENCE_SPAN_WEEKS, 1.0)

        volume = total / self.config.CONFIDENCE_INTERACTION_SATURATION
        return min(1.0, volume * strength * span)

    def _dominant_characteristics(self, insights: InsightSet) -> DominantCharacteristics:
        return DominantCharacteristics(
            primary_category=self._dominant_key(insights.preferred_categories),
            primary_style=self._dominant_key(insights.preferred_styles),
            engagement_level=self._engagement_level(insights.engagement_by_category),
        )

    def _dominant_key(self, weights: Dict[str, float]) -> Optional[str]:
        if not weights:
            return None
        key, weight = max(weights.items(), key=lambda kv: kv[1])
        return key if weight > self.config.DOMINANCE_THRESHOLD else None

    def _engagement_level(self, engagement: Dict[str, EngagementStats]) -> EngagementLevel:
        averages = [s.average_time for s in engagement.values() if s.view_count]
        mean = sum(averages) / len(averages) if averages else 0.0

        if mean > self.config.HIGH_ENGAGEMENT_SECONDS:
            return EngagementLevel.HIGH
        if mean > self.config.MEDIUM_ENGAGEMENT_SECONDS:
            return EngagementLevel.MEDIUM
        return EngagementLevel.LOW
