"""
Preference Extractor.

Turns time-stamped interaction records into recency-weighted memories and
normalized preference distributions:

1. extract(): partition records by kind and weight each one by
       recency_weight = exp(-age_ms / half_life_ms)      (7 days by default)
   Every bucket is sorted by weight, most recent first.

2. build_insights(): accumulate weights per dimension
   - views: category, style, artist, every dominant colour (+ engagement time)
   - searches: each query category at a discount (x0.8), intent distribution
   then normalize every weight map by its total and drop entries <= 0.05.

Pure functions of their inputs; "now" is injectable for reproducibility.
"""

import math
from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, Iterable, Optional

from core.logging import get_logger
from core.utils import age_ms, ensure_utc, utc_now
from personalization.config import DEFAULT_CONFIG, PersonalizationConfig
from personalization.models import (
    BUCKET_FOR_KIND,
    CategorizedMemorySet,
    EngagementStats,
    InsightSet,
    InteractionRecord,
    WeightedRecord,
)


logger = get_logger(__name__)

UNKNOWN_CATEGORY = "unknown"


# =============================================================================
# Helpers
# =============================================================================

def recency_weight(age: float, half_life_ms: float) -> float:
    """exp(-age / half_life). Ages below zero count as zero."""
    return math.exp(-max(age, 0.0) / half_life_ms)


def normalize_weights(weights: Dict[str, float], floor: float) -> Dict[str, float]:
    """
    Divide every weight by the total and drop entries at or below ``floor``.

    A map whose total is zero is returned unchanged.

    Example:
        {"Abstract": 2.0, "Portrait": 1.0} -> {"Abstract": 0.67, "Portrait": 0.33}
    """
    total = sum(weights.values())
    if total <= 0:
        return dict(weights)
    normalized = {}
    for key, value in weights.items():
        share = value / total
        if share > floor:
            normalized[key] = share
    return normalized


# =============================================================================
# Extractor
# =============================================================================

class PreferenceExtractor:
    """
    Converts interaction records into a CategorizedMemorySet and an InsightSet.

    Usage:
        extractor = PreferenceExtractor()
        memories = extractor.extract(records)
        insights = extractor.build_insights(memories)
    """

    def __init__(
        self,
        config: Optional[PersonalizationConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or DEFAULT_CONFIG
        self.clock = clock or utc_now

    def extract(
        self,
        records: Iterable[InteractionRecord],
        now: Optional[datetime] = None,
    ) -> CategorizedMemorySet:
        """
        Partition records by kind and attach recency weights.

        Args:
            records: Interaction records (any order)
            now: Reference instant; defaults to the injected clock

        Returns:
            CategorizedMemorySet with every bucket sorted by weight, descending
        """
        now = ensure_utc(now) if now is not None else self.clock()
        memories = CategorizedMemorySet(now=now)

        for record in records:
            age = max(age_ms(now, record.timestamp), 0.0)
            weighted = WeightedRecord(
                record=record,
                age_ms=age,
                recency_weight=recency_weight(age, self.config.RECENCY_HALF_LIFE_MS),
            )
            memories.bucket(record.kind).append(weighted)

        # Stable sort: equal weights keep input order
        for name in BUCKET_FOR_KIND.values():
            getattr(memories, name).sort(key=lambda w: w.recency_weight, reverse=True)

        logger.debug("Extracted memories", **memories.counts())
        return memories

    def build_insights(self, memories: CategorizedMemorySet) -> InsightSet:
        """
        Build normalized preference distributions from a memory set.

        Absent attributes contribute nothing. Never raises.
        """
        categories: Dict[str, float] = defaultdict(float)
        styles: Dict[str, float] = defaultdict(float)
        artists: Dict[str, float] = defaultdict(float)
        colors: Dict[str, float] = defaultdict(float)
        intents: Dict[str, float] = defaultdict(float)
        engagement: Dict[str, EngagementStats] = {}

        for view in memories.recent_views:
            attrs = view.attributes
            weight = view.recency_weight

            if attrs.category:
                categories[attrs.category] += weight
            if attrs.style:
                styles[attrs.style] += weight
            if attrs.artist:
                artists[attrs.artist] += weight
            for color in attrs.dominant_colors:
                if color:
                    colors[color] += weight

            if attrs.view_duration_seconds:
                stats = engagement.setdefault(
                    attrs.category or UNKNOWN_CATEGORY, EngagementStats()
                )
                stats.total_time += attrs.view_duration_seconds
                stats.view_count += 1

        for search in memories.search_history:
            attrs = search.attributes
            weight = search.recency_weight

            for category in attrs.query_categories:
                if category:
                    categories[category] += weight * self.config.SEARCH_WEIGHT
            if attrs.query_intent:
                intents[attrs.query_intent] += weight

        floor = self.config.NORMALIZED_FLOOR
        return InsightSet(
            preferred_categories=normalize_weights(categories, floor),
            preferred_styles=normalize_weights(styles, floor),
            preferred_artists=normalize_weights(artists, floor),
            color_preferences=normalize_weights(colors, floor),
            shopping_intent_distribution=normalize_weights(intents, floor),
            engagement_by_category=engagement,
        )
