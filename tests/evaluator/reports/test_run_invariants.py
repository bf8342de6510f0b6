"""Tests for run invariants and horizon rankability."""

import math

import pytest

from pivot_arena.evaluator.reports.invariants import (
    build_run_invariants,
    compute_horizon_rankability,
    has_insufficient_coverage,
    is_horizon_rankable,
)
from pivot_arena.evaluator.scoring.metrics.proper_scoring import score_round
from pivot_arena.evaluator.scoring.validity import check_model_validity
from pivot_arena.evaluator.state.model_state import ModelStateManager
from pivot_arena.shared.enums import HORIZONS, Horizon


class TestRankability:
    """Tests for horizon rankability."""

    def test_balanced(self):
        assert is_horizon_rankable(10, 10)

    def test_too_few_minority(self):
        """Four examples of a class is below the count floor."""
        assert not is_horizon_rankable(4, 40)

    def test_ratio_floor(self):
        """Five of 60 is under 10%."""
        assert not is_horizon_rankable(5, 55)
        assert is_horizon_rankable(5, 45)

    def test_reason_minority(self):
        r = compute_horizon_rankability(Horizon.M15, 2, 18)
        assert not r.is_rankable
        assert r.reason == "only 2 positive examples (10.0%)"
        assert r.total == 20

    def test_reason_negative(self):
        r = compute_horizon_rankability(Horizon.H1, 19, 1)
        assert r.reason == "only 1 negative examples (5.0%)"

    def test_reason_no_data(self):
        assert compute_horizon_rankability(Horizon.H4, 0, 0).reason == "no data"


class TestCoverage:
    """Tests for the coverage rule."""

    @pytest.mark.parametrize(
        "effective,intended,expected",
        [(9, 9, True), (10, 12, False), (10, 13, True), (10, 0, True)],
    )
    def test_coverage(self, effective, intended, expected):
        assert has_insufficient_coverage(effective, intended) is expected


def _fill(manager, model_id, preds, labels, horizons=HORIZONS):
    for h in horizons:
        for i, (p, y) in enumerate(zip(preds, labels)):
            manager.add_round_score(model_id, score_round(i, h, p, y))


class TestBuildRunInvariants:
    """Tests for derived model sets."""

    @pytest.fixture
    def manager(self):
        labels = [True, False] * 6
        m = ModelStateManager(["good", "mid", "silent"])
        _fill(m, "good", [0.7, 0.3] * 6, labels)
        _fill(m, "mid", [0.6, 0.4] * 6, labels)
        for model_id in ("good", "mid", "silent"):
            for _ in range(12):
                m.begin_round([model_id])
        return m

    def test_sets_narrow(self, manager):
        counts = {h: (6, 6) for h in HORIZONS}
        inv = build_run_invariants(manager, counts)
        assert inv.evaluated == ["good", "mid", "silent"]
        assert inv.effective == ["good", "mid"]
        assert inv.valid == ["good", "mid"]
        assert set(inv.qualified) <= set(inv.valid)
        assert "good" in inv.qualified
        assert inv.arena_eligible == ["good"]
        assert inv.intended_rounds == 12
        assert inv.actual_rounds == 12
        assert inv.rankable_horizons == list(HORIZONS)
        assert inv.prevalence_log_loss[Horizon.M15] == pytest.approx(math.log(2))

    def test_validity_restricts(self, manager):
        """Models invalid everywhere drop out of the valid set."""
        labels = [True, False] * 6
        validities = {
            "good": check_model_validity("good", {Horizon.M15: ([0.7, 0.3] * 6, labels, 0, 12)}),
            "mid": check_model_validity("mid", {Horizon.M15: ([0.5] * 12, labels, 0, 12)}),
        }
        inv = build_run_invariants(manager, {Horizon.M15: (6, 6)}, validities)
        assert inv.valid == ["good"]
        assert inv.by_horizon[Horizon.M15].valid == ["good"]
        assert inv.by_horizon[Horizon.H1].valid == []
        assert not inv.by_horizon[Horizon.H1].rankability.is_rankable
