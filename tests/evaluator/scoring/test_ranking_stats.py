"""Tests for ranking and robust statistics."""

import math

import numpy as np
import pytest

from pivot_arena.evaluator.scoring.metrics.ranking import (
    inverted_range_score,
    mean,
    median,
    normalize,
    percentile_ranks,
    rank_with_ties,
    spearman_correlation,
    std_or_nan,
    winsorize,
)
from pivot_arena.evaluator.scoring.types import ValidationError


class TestRankWithTies:
    """Tests for average tie ranking."""

    def test_ties_share_average(self):
        """Tied values get the mean of their positions."""
        np.testing.assert_allclose(rank_with_ties([1, 2, 2, 4]), [1, 2.5, 2.5, 4])

    def test_unsorted_input(self):
        """Ranks follow value order, not input order."""
        np.testing.assert_allclose(rank_with_ties([30, 10, 20]), [3, 1, 2])

    def test_empty(self):
        """Empty input gives an empty array."""
        assert rank_with_ties([]).size == 0


class TestSpearman:
    """Tests for Spearman correlation."""

    def test_perfect_positive(self):
        """Monotone increasing pairs correlate at 1."""
        assert spearman_correlation([1, 2, 3, 4], [10, 20, 30, 40]) == pytest.approx(1.0)

    def test_perfect_negative(self):
        """Reversed order correlates at -1."""
        assert spearman_correlation([1, 2, 3, 4], [4, 3, 2, 1]) == pytest.approx(-1.0)

    def test_too_short(self):
        """Fewer than two points give NaN."""
        assert math.isnan(spearman_correlation([1], [2]))

    def test_length_mismatch(self):
        """Different lengths raise ValidationError."""
        with pytest.raises(ValidationError):
            spearman_correlation([1, 2], [1, 2, 3])


class TestMedianMean:
    """Tests for median, mean and std."""

    def test_odd(self):
        """Odd lengths take the middle element."""
        assert median([3, 1, 2]) == 2

    def test_even_averages_middle_pair(self):
        """Even lengths average the two middle elements."""
        assert median([4, 1, 3, 2]) == 2.5

    def test_empty_median(self):
        """The median of nothing is 0."""
        assert median([]) == 0.0

    def test_empty_mean(self):
        """The mean of nothing is 0."""
        assert mean([]) == 0.0

    def test_std_needs_two(self):
        """Dispersion of one value is NaN."""
        assert math.isnan(std_or_nan([1.0]))
        assert std_or_nan([1.0, 3.0]) == pytest.approx(1.0)


class TestWinsorize:
    """Tests for winsorization."""

    def test_clips_outlier(self):
        """A single outlier is clipped to the upper percentile value."""
        values = [1, 2, 3, 4, 5, 6, 7, 8, 9, 100]
        out = winsorize(values)
        assert out.max() == 9
        assert out.min() == 1
        assert len(out) == len(values)

    def test_keeps_order(self):
        """Positions are preserved."""
        out = winsorize([100, 1, 2, 3, 4, 5, 6, 7, 8, 9])
        assert out[0] == 9

    def test_empty(self):
        """Empty input passes through."""
        assert winsorize([]).size == 0


class TestNormalization:
    """Tests for normalize and inverted_range_score."""

    def test_normalize(self):
        """Min-max scaling maps to [0, 1]."""
        np.testing.assert_allclose(normalize([2, 4, 6]), [0, 0.5, 1])

    def test_normalize_degenerate(self):
        """A zero-width range maps to 0.5."""
        np.testing.assert_allclose(normalize([3, 3]), [0.5, 0.5])

    def test_inverted_score(self):
        """Lower is better: the minimum scores 1."""
        assert inverted_range_score(0.2, 0.2, 0.6) == 1.0
        assert inverted_range_score(0.6, 0.2, 0.6) == 0.0
        assert inverted_range_score(0.4, 0.2, 0.6) == pytest.approx(0.5)

    def test_inverted_score_degenerate(self):
        """A degenerate range scores 0.5."""
        assert inverted_range_score(1.0, 1.0, 1.0) == 0.5


class TestPercentileRanks:
    """Tests for percentile ranks."""

    def test_lowest_scores_highest(self):
        """The lowest loss gets 100, the highest 0."""
        np.testing.assert_allclose(percentile_ranks([0.3, 0.5, 0.7]), [100, 50, 0])

    def test_ties(self):
        """Tied losses share a percentile."""
        out = percentile_ranks([0.3, 0.3, 0.7])
        assert out[0] == out[1] == pytest.approx(75.0)

    def test_single_model(self):
        """A lone model is at the 100th percentile."""
        np.testing.assert_allclose(percentile_ranks([0.6]), [100.0])
