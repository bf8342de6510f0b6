"""Tests for leaderboards and metric separability."""

import math

import pytest

from pivot_arena.evaluator.config.scoring_params import RankabilityParams
from pivot_arena.evaluator.reports.leaderboard import (
    build_leaderboard,
    expected_calibration_error,
    precision,
    win_rate,
)
from pivot_arena.evaluator.reports.separability import (
    ModelProfile,
    analyze_separability,
    compute_separability,
    population_std,
    value_range,
)
from pivot_arena.evaluator.scoring.metrics.proper_scoring import score_round
from pivot_arena.evaluator.scoring.types import ValidationError
from pivot_arena.evaluator.state.model_state import ModelStateManager
from pivot_arena.shared.enums import Horizon


class TestLeaderboardMetrics:
    """Tests for per-model leaderboard statistics."""

    def test_win_rate(self):
        assert win_rate([0.7, 0.3, 0.6, 0.5], [True, False, False, False]) == 0.75

    def test_win_rate_empty(self):
        assert math.isnan(win_rate([], []))

    def test_precision(self):
        """Precision only counts rounds called true."""
        assert precision([0.7, 0.8, 0.2], [True, False, True]) == 0.5

    def test_precision_no_calls(self):
        assert math.isnan(precision([0.2, 0.4], [True, True]))

    def test_length_mismatch(self):
        with pytest.raises(ValidationError):
            win_rate([0.5], [])

    def test_perfect_calibration(self):
        """Predicting each bin's frequency gives zero error."""
        preds = [0.25] * 4 + [0.75] * 4
        labels = [True, False, False, False, True, True, True, False]
        assert expected_calibration_error(preds, labels) == pytest.approx(0.0)

    def test_overconfident(self):
        """Always 0.9 on a coin flip is off by 0.4."""
        assert expected_calibration_error([0.9] * 4, [True, False] * 2) == pytest.approx(0.4)

    def test_one_lands_in_last_bin(self):
        assert expected_calibration_error([1.0], [True]) == pytest.approx(0.0)


class TestBuildLeaderboard:
    """Tests for leaderboard ordering."""

    @pytest.fixture
    def states(self):
        m = ModelStateManager(["worse", "better", "idle"])
        for i in range(20):
            y = i % 2 == 0
            m.add_round_score("worse", score_round(i, Horizon.M15, 0.6 if y else 0.4, y))
            m.add_round_score("better", score_round(i, Horizon.M15, 0.8 if y else 0.2, y))
        return m.all_states()

    def test_sorted_by_log_loss(self, states):
        board = build_leaderboard(Horizon.M15, states)
        assert [e.model_id for e in board] == ["better", "worse", "idle"]
        assert [e.rank for e in board] == [1, 2, 3]
        assert board[0].win_rate == 1.0
        assert board[0].rounds_played == 20

    def test_idle_model_is_nan(self, states):
        idle = build_leaderboard(Horizon.M15, states)[-1]
        assert math.isnan(idle.mean_log_loss)
        assert math.isnan(idle.calibration_error)

    def test_calibration_needs_samples(self, states):
        """Twenty rounds is enough for an ECE value."""
        board = build_leaderboard(Horizon.M15, states, RankabilityParams(calibration_bins=5))
        assert board[0].calibration_error == pytest.approx(0.2)


class TestSeparability:
    """Tests for metric separability."""

    def test_helpers(self):
        assert value_range([0.2, math.nan, 0.5]) == pytest.approx(0.3)
        assert math.isnan(value_range([math.nan]))
        assert math.isnan(population_std([1.0]))

    def test_separates(self):
        s = compute_separability("mean_log_loss", [0.4, 0.55, 0.7], [0.4, 0.55, 0.7])
        assert s.separates is True
        assert s.rank_correlation == pytest.approx(1.0)

    def test_narrow_metric(self):
        s = compute_separability("fp_rate", [0.10, 0.11, 0.12], [0.4, 0.5, 0.6])
        assert s.separates is False
        assert s.rank_correlation == pytest.approx(1.0)

    def test_too_few_models(self):
        s = compute_separability("mean_brier", [0.1, 0.9], [0.4, 0.5])
        assert s.separates is None

    def test_analyze(self):
        profiles = [
            ModelProfile("a", 0.4, 0.15, 0.02, 0.7, 0.1),
            ModelProfile("b", 0.55, 0.2, 0.05, 0.5, 0.3),
            ModelProfile("c", 0.7, 0.25, 0.2, 0.3, 0.5),
        ]
        out = {s.metric: s for s in analyze_separability(profiles)}
        assert set(out) == {"mean_log_loss", "mean_brier", "expected_calibration_error", "tp_rate", "fp_rate"}
        assert out["tp_rate"].rank_correlation == pytest.approx(-1.0)
        assert analyze_separability([]) == []
