"""
Recommendation Scorer & Ranker.

Re-ranks retrieved candidates against a UserProfile with a multiplicative
formula:

    score = base_score                                   (0.5 if missing)
    score *= 1 + w_category        if the category is a preferred one
    score *= 0.5 + 0.5 * exp(-age / 30d)                 (missing ts = epoch)
    score *= 1 + 0.3 * (1 - w_category)   if exploration_score > 0.7

Candidates are then stably sorted by score (descending) and capped at 20.
Scores are unbounded and only meaningful for ordering.
"""

import math
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from core.logging import get_logger
from core.utils import EPOCH, age_ms, ensure_utc, utc_now
from personalization.config import DEFAULT_CONFIG, MS_PER_DAY, PersonalizationConfig
from personalization.models import (
    RecommendationCandidate,
    ScoredRecommendation,
    UserProfile,
)


logger = get_logger(__name__)


class RecommendationRanker:
    """
    Scores candidates against a profile and returns the top results.

    Usage:
        ranker = RecommendationRanker()
        ranked = ranker.rank(candidates, profile)
        breakdown = ranker.explain(candidates[0], profile)
    """

    def __init__(
        self,
        config: Optional[PersonalizationConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or DEFAULT_CONFIG
        self.clock = clock or utc_now

    def rank(
        self,
        candidates: Sequence[RecommendationCandidate],
        profile: UserProfile,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[ScoredRecommendation]:
        """
        Score, sort and cap candidates.

        Args:
            candidates: Retrieved candidates (any order, may be empty)
            profile: Profile to personalize against
            now: Reference instant; defaults to the injected clock
            limit: Optional tighter cap (never above MAX_RESULTS)

        Returns:
            Up to MAX_RESULTS scored recommendations, best first. Equal
            scores keep their input order.
        """
        now = ensure_utc(now) if now is not None else self.clock()
        cap = self.config.MAX_RESULTS if limit is None else min(limit, self.config.MAX_RESULTS)

        scored = [
            ScoredRecommendation(candidate=c, final_score=self.score(c, profile, now))
            for c in candidates
        ]
        scored.sort(key=lambda r: r.final_score, reverse=True)

        logger.debug(
            "Ranked candidates",
            user_id=profile.user_id,
            candidates=len(scored),
            returned=min(len(scored), max(cap, 0)),
        )
        return scored[:max(cap, 0)]

    def score(
        self,
        candidate: RecommendationCandidate,
        profile: UserProfile,
        now: datetime,
    ) -> float:
        """Final score for a single candidate."""
        return self.explain(candidate, profile, now)["final_score"]

    def explain(
        self,
        candidate: RecommendationCandidate,
        profile: UserProfile,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Break a candidate's score into its multiplicative factors.

        Returns:
            Dict with base_score, preference_boost, recency_factor,
            diversity_boost and final_score.
        """
        now = ensure_utc(now) if now is not None else self.clock()
        preferred = profile.insights.preferred_categories

        base = candidate.base_score
        if base is None:
            base = self.config.DEFAULT_BASE_SCORE

        category_weight = preferred.get(candidate.category, 0.0) if candidate.category else 0.0
        preference_boost = 1.0 + category_weight if category_weight else 1.0

        timestamp = candidate.timestamp or EPOCH
        age = max(age_ms(now, timestamp), 0.0)
        floor = self.config.RECENCY_FLOOR
        recency_factor = floor + (1.0 - floor) * math.exp(-age / self.config.CANDIDATE_DECAY_MS)

        diversity_boost = 1.0
        if profile.exploration_score > self.config.EXPLORATION_THRESHOLD:
            diversity_boost = 1.0 + self.config.DIVERSITY_BOOST * (1.0 - category_weight)

        final = base * preference_boost * recency_factor * diversity_boost

        return {
            "candidate_id": candidate.id,
            "base_score": base,
            "category": candidate.category,
            "category_weight": category_weight,
            "preference_boost": preference_boost,
            "age_days": age / MS_PER_DAY,
            "recency_factor": recency_factor,
            "exploration_score": profile.exploration_score,
            "diversity_boost": diversity_boost,
            "final_score": final,
        }
