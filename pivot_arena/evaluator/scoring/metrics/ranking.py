"""Ranking and robust statistics shared across phases.

Everything here is pure. Degenerate inputs return sentinels instead of
raising: NaN for dispersion of fewer than two values, 0 for the median of
nothing, 0.5 for a normalization range of zero width.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from ..types import ValidationError


def rank_with_ties(values: Sequence[float]) -> NDArray[np.float64]:
    """Rank ascending, giving tied values the average of their positions.

    Uses scipy.stats.rankdata with average tie-breaking, so ranks are
    1-based: [1, 2, 2, 4] -> [1, 2.5, 2.5, 4].
    """
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 0:
        return arr.copy()
    return stats.rankdata(arr, method="average").astype(np.float64)


def spearman_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Spearman rank correlation over tie-averaged ranks.

    rho = 1 - 6 * sum(d^2) / (n * (n^2 - 1))

    Returns NaN for n < 2.

    Raises:
        ValidationError: If the inputs differ in length
    """
    if len(x) != len(y):
        raise ValidationError(f"length mismatch: {len(x)} != {len(y)}")
    n = len(x)
    if n < 2:
        return float("nan")
    d = rank_with_ties(x) - rank_with_ties(y)
    return float(1.0 - 6.0 * np.sum(d * d) / (n * (n * n - 1)))


def median(values: Sequence[float]) -> float:
    """Median; averages the middle pair for even lengths, 0 when empty."""
    if len(values) == 0:
        return 0.0
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2.0
    return float(ordered[mid])


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0 when empty."""
    if len(values) == 0:
        return 0.0
    return float(sum(values) / len(values))


def std_or_nan(values: Sequence[float]) -> float:
    """Population standard deviation, NaN for fewer than two values."""
    if len(values) < 2:
        return float("nan")
    return float(np.std(np.asarray(values, dtype=np.float64)))


def winsorize(
    values: Sequence[float],
    lower: float = 0.05,
    upper: float = 0.95,
) -> NDArray[np.float64]:
    """Clip values to the [lower, upper] empirical percentiles.

    Outliers are clipped, never dropped, so the output keeps the input's
    length and order. Bounds are read from the sorted array at
    ``floor(n * lower)`` and ``max(0, floor(n * upper) - 1)``.

    Args:
        values: Metric values for a cohort
        lower: Lower percentile as a fraction
        upper: Upper percentile as a fraction

    Returns:
        Winsorized array
    """
    arr = np.asarray(values, dtype=np.float64)
    n = arr.size
    if n == 0:
        return arr.copy()
    ordered = np.sort(arr)
    lo = ordered[min(n - 1, math.floor(n * lower))]
    hi = ordered[min(n - 1, max(0, math.floor(n * upper) - 1))]
    if hi < lo:
        hi = lo
    return np.clip(arr, lo, hi)


def normalize(values: Sequence[float]) -> NDArray[np.float64]:
    """Min-max scale to [0, 1]; a zero-width range maps everything to 0.5."""
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 0:
        return arr.copy()
    lo, hi = arr.min(), arr.max()
    if hi == lo:
        return np.full(arr.size, 0.5)
    return (arr - lo) / (hi - lo)


def inverted_range_score(value: float, lo: float, hi: float) -> float:
    """Score a lower-is-better value against a cohort range.

    1 at the minimum, 0 at the maximum, clipped to [0, 1]. A degenerate
    range scores 0.5.
    """
    if hi == lo:
        return 0.5
    return 1.0 - min(1.0, max(0.0, (value - lo) / (hi - lo)))


def percentile_ranks(values: Sequence[float]) -> NDArray[np.float64]:
    """Percentile in [0, 100] where the lowest value scores highest.

    Ties share the average rank. A single value scores 100.
    """
    n = len(values)
    if n == 0:
        return np.array([], dtype=np.float64)
    if n == 1:
        return np.array([100.0])
    ranks = rank_with_ties(values)
    return 100.0 * (n - ranks) / (n - 1)


__all__ = [
    "rank_with_ties",
    "spearman_correlation",
    "median",
    "mean",
    "std_or_nan",
    "winsorize",
    "normalize",
    "inverted_range_score",
    "percentile_ranks",
]
