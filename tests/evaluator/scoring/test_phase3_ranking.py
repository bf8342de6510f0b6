"""Tests for Phase 3 composite and global ranking."""

import math

import pytest

from pivot_arena.evaluator.scoring.phases.phase3 import (
    GlobalMetrics,
    HorizonMetrics,
    compute_global_score,
    rank_global,
    rank_horizon,
    rank_per_horizon,
)
from pivot_arena.shared.enums import HORIZONS, Horizon


@pytest.fixture
def cohort():
    """Five models; "t" sits at 0.2 / 0.8 / 0.5 of the winsorized ranges."""
    return [
        HorizonMetrics("m1", 0.40, 0.30, 0.00),
        HorizonMetrics("m2", 0.45, 0.50, 0.10),
        HorizonMetrics("t", 0.52, 0.36, 0.15),
        HorizonMetrics("m3", 0.55, 0.60, 0.30),
        HorizonMetrics("m4", 0.60, 0.70, 0.40),
    ]


class TestRankHorizon:
    """Tests for the per-horizon composite."""

    def test_composite_weights(self, cohort):
        """composite = 0.5 * 0.2 + 0.3 * 0.8 + 0.2 * 0.5."""
        ranked = {r.model_id: r for r in rank_horizon(cohort)}
        t = ranked["t"]
        assert t.log_loss_score == pytest.approx(0.2)
        assert t.best_window_score == pytest.approx(0.8)
        assert t.stability_score == pytest.approx(0.5)
        assert t.composite == pytest.approx(0.44)

    def test_best_first(self, cohort):
        """The model best on every metric ranks first."""
        ranked = rank_horizon(cohort)
        assert ranked[0].model_id == "m1"
        assert ranked[0].composite == pytest.approx(1.0)
        assert [r.composite for r in ranked] == sorted((r.composite for r in ranked), reverse=True)

    def test_outlier_is_clipped(self, cohort):
        """Values past the upper winsorization bound all score 0."""
        ranked = {r.model_id: r for r in rank_horizon(cohort)}
        assert ranked["m3"].log_loss_score == 0.0
        assert ranked["m4"].log_loss_score == 0.0

    def test_empty_cohort(self):
        """No qualified models gives an empty ranking."""
        assert rank_horizon([]) == []
        assert rank_horizon([HorizonMetrics("a", 0.5, 0.5, 0.1, qualified=False)]) == []

    def test_non_finite_dropped(self):
        """Entries with non-finite metrics are not ranked."""
        ranked = rank_horizon([HorizonMetrics("a", 0.5, 0.5, 0.1), HorizonMetrics("b", 0.5, math.nan, 0.1)])
        assert [r.model_id for r in ranked] == ["a"]

    def test_single_model_scores_half(self):
        """A lone model sees a degenerate range on every metric."""
        ranked = rank_horizon([HorizonMetrics("a", 0.5, 0.5, 0.1)])
        assert ranked[0].composite == pytest.approx(0.5)

    def test_arena_size_cap(self):
        """At most eight models are returned."""
        metrics = [HorizonMetrics(f"m{i}", 0.4 + i * 0.01, 0.4, 0.1) for i in range(10)]
        ranked = rank_horizon(metrics)
        assert len(ranked) == 8
        assert ranked[0].model_id == "m0"

    def test_per_horizon(self, cohort):
        """Every horizon is present; empty ones map to []."""
        out = rank_per_horizon({Horizon.H1: cohort})
        assert set(out) == set(HORIZONS)
        assert len(out[Horizon.H1]) == 5
        assert out[Horizon.M15] == []


class TestGlobalRanking:
    """Tests for the single-list ranking."""

    def test_score(self):
        """Weighted blend of percentile, best window, stability and earliness."""
        m = GlobalMetrics("a", avg_percentile=50.0, avg_best_window=0.4, avg_stability=0.1, avg_time_to_pivot_ratio=0.5)
        score = compute_global_score(m, (0.2, 0.6), (0.0, 0.2))
        assert score == pytest.approx(0.4 * 0.5 + 0.3 * 0.5 + 0.2 * 0.5 + 0.1 * 0.5)

    def test_order(self):
        """Higher percentile and lower losses rank first."""
        metrics = [
            GlobalMetrics("weak", 20.0, 0.7, 0.3),
            GlobalMetrics("strong", 90.0, 0.4, 0.1),
            GlobalMetrics("mid", 60.0, 0.5, 0.2),
        ]
        assert [r.model_id for r in rank_global(metrics)] == ["strong", "mid", "weak"]

    def test_empty(self):
        assert rank_global([]) == []
