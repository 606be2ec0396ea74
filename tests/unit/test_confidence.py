"""
Unit tests for the confidence estimator.
"""

import pytest

from personalization.confidence import estimate_confidence
from personalization.models import ScoredRecommendation


def _scored(make_candidate, *scores):
    return [ScoredRecommendation(make_candidate(id=f"i{i}"), s) for i, s in enumerate(scores)]


class TestEstimateConfidence:

    def test_blends_profile_and_mean_score(self, make_profile, make_candidate):
        profile = make_profile(confidence=0.4)

        assert estimate_confidence(profile, _scored(make_candidate, 0.6, 0.8)) == pytest.approx(0.55)

    def test_empty_list_uses_zero_strength(self, make_profile):
        assert estimate_confidence(make_profile(confidence=0.6), []) == pytest.approx(0.3)

    def test_clamped_to_one(self, make_profile, make_candidate):
        # final scores are unbounded
        profile = make_profile(confidence=1.0)

        assert estimate_confidence(profile, _scored(make_candidate, 2.6, 2.0)) == 1.0

    def test_zero_for_cold_start(self, make_profile):
        assert estimate_confidence(make_profile(confidence=0.0), []) == 0.0
