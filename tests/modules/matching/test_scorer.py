"""Tests for the Composite Scorer."""

import pytest

from src.modules.matching.schemas import ProviderRecordSchema
from src.modules.matching.scorer import (
    CompositeScorer,
    distance_score,
    rating_score,
    reactivity_score,
    workload_score,
)


class TestSubScores:
    """Test suite for individual sub-scores."""

    def test_distance_score_formula(self):
        for tenths in range(0, 101):
            km = tenths / 10
            assert distance_score(km) == pytest.approx(max(0.0, 100 - 10 * km))

    def test_distance_score_non_increasing(self):
        scores = [distance_score(tenths / 10) for tenths in range(0, 151)]
        assert all(a >= b for a, b in zip(scores, scores[1:]))

    def test_distance_score_floored(self):
        assert distance_score(25.0) == 0.0

    def test_rating_score(self):
        assert rating_score(5.0) == 100.0
        assert rating_score(2.5) == 50.0
        assert rating_score(None) == 0.0

    def test_reactivity_unknown_defaults_to_sixty_minutes(self):
        assert reactivity_score(None) == 0.0

    def test_reactivity_zero_minutes_is_real_value(self):
        assert reactivity_score(0) == 100.0

    def test_reactivity_formula(self):
        assert reactivity_score(30) == 40.0
        assert reactivity_score(90) == 0.0

    def test_workload(self):
        assert workload_score(1, 3) == 100.0
        assert workload_score(3, 3) == 30.0
        assert workload_score(None, None) == 100.0
        assert workload_score(3, None) == 30.0

    def test_workload_zero_capacity_uses_default(self):
        assert workload_score(2, 0) == 100.0
        assert workload_score(3, 0) == 30.0


class TestCompositeScorer:
    """Test suite for the composite score."""

    def setup_method(self):
        self.scorer = CompositeScorer()

    def create_provider(self, **overrides):
        values = {
            "id": "P1",
            "category": "Plumbing",
            "available": True,
            "rating": 4.9,
            "average_response_time_minutes": 30,
            "current_active_jobs": 1,
            "max_concurrent_jobs": 3,
        }
        values.update(overrides)
        return ProviderRecordSchema(**values)

    def test_reference_provider(self):
        scored = self.scorer.score(self.create_provider(), 1.8)

        assert scored.sub_scores.distance_score == pytest.approx(82.0)
        assert scored.sub_scores.rating_score == pytest.approx(98.0)
        assert scored.sub_scores.reactivity_score == pytest.approx(40.0)
        assert scored.sub_scores.workload_score == pytest.approx(100.0)
        assert scored.composite_score == 80.2

    def test_composite_rounded_to_one_decimal(self):
        scored = self.scorer.score(self.create_provider(rating=4.37), 1.23)
        assert scored.composite_score == round(scored.composite_score, 1)

    def test_composite_bounds(self):
        best = self.scorer.score(
            self.create_provider(rating=5.0, average_response_time_minutes=0, current_active_jobs=0),
            0.0,
        )
        worst = self.scorer.score(
            self.create_provider(rating=0.0, average_response_time_minutes=None, current_active_jobs=9),
            50.0,
        )

        assert best.composite_score == 100.0
        assert worst.composite_score == 3.0
        assert 0 <= worst.composite_score <= best.composite_score <= 100

    def test_weights_order(self):
        weights = self.scorer.weights
        assert weights["distance"] > weights["rating"] > weights["reactivity"] > weights["workload"]
        assert sum(weights.values()) == pytest.approx(1.0)
