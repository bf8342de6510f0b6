"""Tests for the Phase 0 sanity filter."""

import pytest

from pivot_arena.evaluator.scoring.metrics.proper_scoring import compute_baseline_log_losses, score_round
from pivot_arena.evaluator.scoring.phases.phase0 import (
    aggregate_phase0,
    beats_trivial_baseline,
    classify_skill,
    evaluate_phase0,
    phase0_horizon_failures,
)
from pivot_arena.shared.enums import Horizon


def _rounds(horizon, preds, labels):
    return [score_round(i, horizon, p, y) for i, (p, y) in enumerate(zip(preds, labels))]


GOOD_PREDS = [0.6, 0.4, 0.7, 0.3, 0.6, 0.4]
GOOD_LABELS = [True, False, True, False, True, False]


class TestAggregate:
    """Tests for per-horizon aggregation."""

    def test_stats(self):
        """Means and extreme error rate are computed per horizon."""
        scores = {Horizon.M15: _rounds(Horizon.M15, [0.9, 0.5], [False, True])}
        agg = aggregate_phase0(scores)
        stats = agg.by_horizon[Horizon.M15]
        assert stats.rounds == 2
        assert stats.extreme_error_rate == 0.5
        assert stats.mean_brier == pytest.approx((0.81 + 0.25) / 2)

    def test_empty_horizons_omitted(self):
        """Horizons without rounds do not appear."""
        agg = aggregate_phase0({Horizon.M15: [], Horizon.H1: _rounds(Horizon.H1, [0.5], [True])})
        assert list(agg.by_horizon) == [Horizon.H1]

    def test_degenerate_is_strict(self):
        """Exactly 0.9 is not degenerate."""
        agg = aggregate_phase0({Horizon.M15: _rounds(Horizon.M15, [0.9, 0.95], [True, True])})
        assert not agg.by_horizon[Horizon.M15].degenerate


class TestElimination:
    """Tests for whole-model elimination."""

    def test_healthy_survives(self):
        """A reasonable model passes on every horizon."""
        scores = {h: _rounds(h, GOOD_PREDS, GOOD_LABELS) for h in (Horizon.M15, Horizon.H1)}
        decision = evaluate_phase0("m1", scores)
        assert not decision.eliminated
        assert decision.reason is None
        assert decision.disqualified_horizons == {}

    def test_too_few_rounds_never_eliminated(self):
        """Below min_rounds nothing is eliminated, however bad."""
        scores = {Horizon.M15: _rounds(Horizon.M15, [0.99] * 5, [False] * 5)}
        assert not evaluate_phase0("m1", scores).eliminated

    def test_degenerate_pattern(self):
        """Pinned high on every horizon is eliminated."""
        scores = {h: _rounds(h, [0.95] * 6, [True] * 6) for h in (Horizon.M15, Horizon.H4)}
        decision = evaluate_phase0("m1", scores)
        assert decision.eliminated
        assert decision.reason == "Degenerate pattern"

    def test_degenerate_on_one_horizon_only(self):
        """Degenerate on one horizon loses that horizon, not the model."""
        scores = {
            Horizon.M15: _rounds(Horizon.M15, [0.95] * 6, [True] * 6),
            Horizon.H1: _rounds(Horizon.H1, GOOD_PREDS, GOOD_LABELS),
        }
        decision = evaluate_phase0("m1", scores)
        assert not decision.eliminated
        assert decision.disqualified_horizons == {Horizon.M15: "degenerate"}

    def test_high_loss_on_two_horizons(self):
        """Losses above ln(2) * 1.1 on two horizons eliminate."""
        bad = [0.3] * 6
        scores = {h: _rounds(h, bad, [True] * 6) for h in (Horizon.M15, Horizon.H1)}
        decision = evaluate_phase0("m1", scores)
        assert decision.eliminated
        assert decision.reason == "High log loss on 15m, 1h"

    def test_high_loss_on_one_horizon(self):
        """One bad horizon survives but is hard-failed."""
        scores = {
            Horizon.M15: _rounds(Horizon.M15, [0.3] * 6, [True] * 6),
            Horizon.H1: _rounds(Horizon.H1, GOOD_PREDS, GOOD_LABELS),
        }
        decision = evaluate_phase0("m1", scores)
        assert not decision.eliminated
        assert decision.disqualified_horizons == {Horizon.M15: "hard_fail"}

    def test_extreme_errors(self):
        """More than 20% confident misses on any horizon eliminates."""
        preds = [0.85, 0.85, 0.6, 0.6, 0.6, 0.6]
        labels = [False, False, True, True, True, True]
        decision = evaluate_phase0("m1", {Horizon.H24: _rounds(Horizon.H24, preds, labels)})
        assert decision.eliminated
        assert decision.reason == "Extreme errors on 24h"


class TestSkill:
    """Tests for skill sanity levels."""

    @pytest.mark.parametrize(
        "ll,level",
        [(0.6, "pass"), (0.762, "pass"), (0.8, "soft_fail"), (0.95, "hard_fail")],
    )
    def test_levels(self, ll, level):
        assert classify_skill(ll) == level

    def test_soft_fail_only_when_requested(self):
        """Soft failures disqualify only with include_soft_fails."""
        preds = [0.45, 0.55] * 3
        labels = [True, False] * 3
        agg = aggregate_phase0({Horizon.M15: _rounds(Horizon.M15, preds, labels)})
        assert phase0_horizon_failures(agg) == {}
        assert phase0_horizon_failures(agg, include_soft_fails=True) == {Horizon.M15: "soft_fail"}

    def test_trivial_baseline_skipped_when_tiny(self):
        """Single-class labels make the trivial baseline near zero; not enforced."""
        baselines = compute_baseline_log_losses([False] * 10)
        assert beats_trivial_baseline(5.0, baselines)

    def test_beats_meaningful_trivial_baseline(self):
        """With both classes present any sensible model beats the constants."""
        baselines = compute_baseline_log_losses([True, False] * 5)
        assert beats_trivial_baseline(0.69, baselines)
