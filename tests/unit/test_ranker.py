"""
Unit tests for the recommendation scorer & ranker.

Tests cover:
1. Per-candidate scoring steps (base, preference, recency, diversity)
2. Ordering, stability and the result cap
3. Degradation on partial / malformed candidates
"""

import math

import pytest


@pytest.fixture
def ranker(clock):
    from personalization.ranker import RecommendationRanker
    return RecommendationRanker(clock=clock)


# =============================================================================
# 1. Scoring steps
# =============================================================================

class TestScoring:

    def test_preferred_category_boost(self, ranker, make_candidate, make_profile, now):
        profile = make_profile(categories={"Abstract": 0.67})
        candidate = make_candidate(base_score=0.8, category="Abstract", days_ago=0)

        score = ranker.score(candidate, profile, now)

        assert score == pytest.approx(0.8 * 1.67)
        assert score == pytest.approx(1.336)

    def test_full_weight_category_doubles_score(self, ranker, make_candidate, make_profile, now):
        profile = make_profile(categories={"Abstract": 1.0})
        candidate = make_candidate(base_score=0.4, category="Abstract")

        assert ranker.score(candidate, profile, now) == pytest.approx(0.8)

    def test_unknown_category_unaffected(self, ranker, make_candidate, make_profile, now):
        profile = make_profile(categories={"Abstract": 0.67})

        assert ranker.score(make_candidate(base_score=0.6, category="Sculpture"), profile, now) == pytest.approx(0.6)
        assert ranker.score(make_candidate(base_score=0.6, category=None), profile, now) == pytest.approx(0.6)

    def test_default_base_score(self, ranker, make_candidate, make_profile, now):
        candidate = make_candidate(base_score=None)

        assert ranker.score(candidate, make_profile(), now) == pytest.approx(0.5)

    def test_recency_decay_thirty_days(self, ranker, make_candidate, make_profile, now):
        candidate = make_candidate(base_score=1.0, days_ago=30)

        assert ranker.score(candidate, make_profile(), now) == pytest.approx(0.5 + 0.5 * math.exp(-1))

    def test_missing_timestamp_is_epoch(self, ranker, make_candidate, make_profile, now):
        candidate = make_candidate(base_score=1.0, days_ago=None)

        # decays to the 0.5 floor
        assert ranker.score(candidate, make_profile(), now) == pytest.approx(0.5)

    def test_diversity_boost_above_threshold(self, ranker, make_candidate, make_profile, now):
        profile = make_profile(categories={"Abstract": 0.6}, exploration_score=0.8)

        novel = ranker.score(make_candidate(base_score=0.5, category="Sculpture"), profile, now)
        known = ranker.score(make_candidate(base_score=0.5, category="Abstract"), profile, now)

        assert novel == pytest.approx(0.5 * 1.3)
        assert known == pytest.approx(0.5 * 1.6 * (1 + 0.3 * 0.4))

    def test_diversity_boost_boundary_excluded(self, ranker, make_candidate, make_profile, now):
        at_threshold = make_profile(categories={"Abstract": 0.6}, exploration_score=0.7)
        below = make_profile(categories={"Abstract": 0.6}, exploration_score=0.1)
        candidate = make_candidate(base_score=0.5, category="Sculpture")

        assert ranker.score(candidate, at_threshold, now) == ranker.score(candidate, below, now)
        assert ranker.explain(candidate, at_threshold, now)["diversity_boost"] == 1.0

    def test_explain_breakdown_multiplies_to_final(self, ranker, make_candidate, make_profile, now):
        profile = make_profile(categories={"Abstract": 0.5}, exploration_score=0.9)
        candidate = make_candidate(id="x", base_score=0.7, category="Abstract", days_ago=10)

        b = ranker.explain(candidate, profile, now)

        assert b["candidate_id"] == "x"
        assert b["preference_boost"] == pytest.approx(1.5)
        assert b["age_days"] == pytest.approx(10)
        assert b["final_score"] == pytest.approx(
            b["base_score"] * b["preference_boost"] * b["recency_factor"] * b["diversity_boost"]
        )


# =============================================================================
# 2. Ordering and cap
# =============================================================================

class TestRank:

    def test_sorted_descending(self, ranker, make_candidate, make_profile):
        candidates = [make_candidate(id=f"i{i}", base_score=s) for i, s in enumerate([0.2, 0.9, 0.5])]

        ranked = ranker.rank(candidates, make_profile())

        assert [r.candidate.id for r in ranked] == ["i1", "i2", "i0"]
        scores = [r.final_score for r in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_ties_keep_input_order(self, ranker, make_candidate, make_profile):
        candidates = [make_candidate(id=f"i{i}", base_score=0.5) for i in range(5)]

        ranked = ranker.rank(candidates, make_profile())

        assert [r.candidate.id for r in ranked] == ["i0", "i1", "i2", "i3", "i4"]

    def test_capped_at_twenty(self, ranker, make_candidate, make_profile):
        candidates = [make_candidate(id=f"i{i}", base_score=i / 100) for i in range(50)]

        ranked = ranker.rank(candidates, make_profile())

        assert len(ranked) == 20
        assert ranked[0].candidate.id == "i49"

    def test_limit_cannot_exceed_cap(self, ranker, make_candidate, make_profile):
        candidates = [make_candidate(id=f"i{i}") for i in range(30)]

        assert len(ranker.rank(candidates, make_profile(), limit=5)) == 5
        assert len(ranker.rank(candidates, make_profile(), limit=100)) == 20

    def test_empty_candidates(self, ranker, make_profile):
        assert ranker.rank([], make_profile()) == []

    def test_preference_reorders(self, ranker, make_candidate, make_profile):
        profile = make_profile(categories={"Abstract": 0.9})
        candidates = [
            make_candidate(id="plain", base_score=0.7, category="Portrait"),
            make_candidate(id="liked", base_score=0.5, category="Abstract"),
        ]

        ranked = ranker.rank(candidates, profile)

        assert [r.candidate.id for r in ranked] == ["liked", "plain"]


# =============================================================================
# 3. Partial data
# =============================================================================

class TestPartialCandidates:

    def test_malformed_fields_degrade_to_defaults(self, ranker, make_profile, now):
        from personalization.models import RecommendationCandidate

        candidate = RecommendationCandidate.model_validate({
            "id": 42,
            "base_score": "not-a-number",
            "timestamp": "yesterday-ish",
        })

        assert candidate.id == "42"
        assert candidate.base_score is None
        assert candidate.timestamp is None
        assert ranker.score(candidate, make_profile(), now) == pytest.approx(0.5 * 0.5)

    def test_nan_score_treated_as_missing(self):
        from personalization.models import RecommendationCandidate

        assert RecommendationCandidate(base_score=float("nan")).base_score is None

    def test_zero_base_score_is_kept(self, ranker, make_candidate, make_profile, now):
        assert ranker.score(make_candidate(base_score=0.0), make_profile(), now) == 0.0
