"""Tests for seeded randomness and snap time selection."""

import math

import pytest

from pivot_arena.evaluator.sampling.random_source import Mulberry32, SystemRandomSource, shuffle
from pivot_arena.evaluator.sampling.snap_times import (
    compute_distance_to_ref_low,
    create_snap_time_candidate,
    enforce_min_separation,
    filter_by_proximity,
    label_distribution,
    sample_balanced,
    select_snap_times,
)
from pivot_arena.shared.enums import Horizon

MINUTE_MS = 60_000
SPACING = 30 * MINUTE_MS


def _pool(positives, negatives, close=101.0):
    """Candidates 30 minutes apart: ``positives`` holds first, then breaks."""
    labels = [True] * positives + [False] * negatives
    return [
        create_snap_time_candidate(i * SPACING, close, 100.0, {Horizon.M15: y})
        for i, y in enumerate(labels)
    ]


class TestMulberry32:
    """Tests for the seeded generator."""

    def test_deterministic(self):
        a, b = Mulberry32(42), Mulberry32(42)
        assert [a.next() for _ in range(5)] == [b.next() for _ in range(5)]

    def test_seeds_differ(self):
        assert Mulberry32(1).next() != Mulberry32(2).next()

    def test_range(self):
        rng = Mulberry32(7)
        values = [rng.next() for _ in range(1000)]
        assert all(0.0 <= v < 1.0 for v in values)
        assert 0.4 < sum(values) / len(values) < 0.6

    def test_negative_seed_wraps(self):
        """Seeds are reduced to 32 bits."""
        assert Mulberry32(-1).next() == Mulberry32(0xFFFFFFFF).next()

    def test_system_source(self):
        assert 0.0 <= SystemRandomSource().next() < 1.0


class TestShuffle:
    """Tests for the Fisher-Yates shuffle."""

    def test_permutation(self):
        items = list(range(20))
        out = shuffle(items, Mulberry32(3))
        assert sorted(out) == items
        assert items == list(range(20))

    def test_reproducible(self):
        assert shuffle(range(10), Mulberry32(9)) == shuffle(range(10), Mulberry32(9))


class TestFilters:
    """Tests for proximity and separation filters."""

    def test_distance(self):
        assert compute_distance_to_ref_low(101.0, 100.0) == pytest.approx(0.01)
        assert compute_distance_to_ref_low(1.0, 0.0) == math.inf

    def test_proximity(self):
        """15m keeps closes within 0.4% of the reference low."""
        near = create_snap_time_candidate(0, 100.3, 100.0)
        far = create_snap_time_candidate(1, 100.5, 100.0)
        assert filter_by_proximity([near, far], Horizon.M15) == [near]

    def test_separation(self):
        """15m instants must be at least 30 minutes apart."""
        candidates = [create_snap_time_candidate(i * 15 * MINUTE_MS, 100.0, 100.0) for i in range(5)]
        kept = enforce_min_separation(list(reversed(candidates)), Horizon.M15)
        assert [c.snap_time // MINUTE_MS for c in kept] == [0, 30, 60]


class TestBalanced:
    """Tests for label-balanced sampling."""

    def test_even_split(self):
        """With deep pools the split is half and half."""
        out = sample_balanced(_pool(20, 20), Horizon.M15, 20, Mulberry32(1))
        counts = label_distribution(out, Horizon.M15)
        assert (counts.true_count, counts.false_count) == (10, 10)
        assert [c.snap_time for c in out] == sorted(c.snap_time for c in out)

    def test_small_positive_pool(self):
        """A short class pool is used in full."""
        out = sample_balanced(_pool(3, 30), Horizon.M15, 20, Mulberry32(1))
        counts = label_distribution(out, Horizon.M15)
        assert (counts.true_count, counts.false_count) == (3, 10)

    def test_minority_top_up(self):
        """The minority class is raised to its floor at the majority's expense."""
        out = sample_balanced(_pool(20, 10), Horizon.M15, 12, Mulberry32(1))
        counts = label_distribution(out, Horizon.M15)
        assert (counts.true_count, counts.false_count) == (8, 4)

    def test_unlabelled_ignored(self):
        pool = [create_snap_time_candidate(0, 100.0, 100.0)]
        assert sample_balanced(pool, Horizon.M15, 5, Mulberry32(1)) == []


class TestSelectSnapTimes:
    """Tests for strategy selection."""

    def test_seeded_reproducible(self):
        pool = _pool(20, 20)
        a = select_snap_times(pool, Horizon.M15, 10, "balanced", seed=5)
        b = select_snap_times(pool, Horizon.M15, 10, "balanced", seed=5)
        assert a.selected_snap_times == b.selected_snap_times

    def test_proximity(self):
        """Proximity keeps near-low instants only."""
        pool = _pool(5, 0, close=100.2) + [create_snap_time_candidate(10 * SPACING, 105.0, 100.0)]
        result = select_snap_times(pool, Horizon.M15, 10, "proximity", seed=1)
        assert result.strategy_used == "proximity"
        assert len(result.selected_snap_times) == 5

    def test_both_falls_back(self):
        """Too few near-low instants switches to balanced."""
        result = select_snap_times(_pool(20, 20, close=110.0), Horizon.M15, 10, "both", seed=1)
        assert result.strategy_used == "balanced"
        counts = result.label_distribution[Horizon.M15]
        assert (counts.true_count, counts.false_count) == (7, 3)

    def test_both_prefers_proximity(self):
        result = select_snap_times(_pool(20, 20, close=100.1), Horizon.M15, 10, "both", seed=1)
        assert result.strategy_used == "proximity"
        assert len(result.selected_snap_times) == 10

    def test_unknown_strategy(self):
        with pytest.raises(ValueError):
            select_snap_times([], Horizon.M15, 1, "random", seed=1)
