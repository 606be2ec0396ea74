"""
Confidence Estimator.

Blends how much we trust the profile with how strong the ranked list is:

    confidence = clamp((profile.confidence + mean(final_score)) / 2, 0, 1)

The mean is 0 for an empty list.
"""

from typing import Sequence

from personalization.models import ScoredRecommendation, UserProfile


def estimate_confidence(
    profile: UserProfile,
    recommendations: Sequence[ScoredRecommendation],
) -> float:
    if recommendations:
        strength = sum(r.final_score for r in recommendations) / len(recommendations)
    else:
        strength = 0.0
    return min(1.0, max(0.0, (profile.confidence + strength) / 2))
