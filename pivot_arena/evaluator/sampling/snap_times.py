"""Snap time selection for building benchmark round schedules.

Two strategies pick evaluation instants from a candidate pool:

- proximity: instants where the close sits near the reference low, spaced
  at least the horizon's minimum separation apart;
- balanced: instants drawn from positive and negative label pools so the
  dataset is neither all-holds nor all-breaks.

``both`` tries proximity first and falls back to balanced when proximity
cannot fill the target.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Mapping, Optional, Sequence

from pivot_arena.shared.enums import HORIZONS, Horizon

from ..config.scoring_params import SamplingParams, get_arena_params
from .random_source import Mulberry32, RandomSource, SystemRandomSource, shuffle

logger = logging.getLogger(__name__)

Strategy = Literal["proximity", "balanced", "both"]

MINUTE_MS = 60_000


@dataclass(frozen=True)
class SnapTimeCandidate:
    snap_time: int
    close_at_snap: float
    ref_low: float
    distance_to_ref_low: float
    label_by_horizon: Optional[Mapping[Horizon, bool]] = None

    def label(self, horizon: Horizon) -> Optional[bool]:
        if self.label_by_horizon is None:
            return None
        return self.label_by_horizon.get(horizon)


@dataclass(frozen=True)
class LabelCounts:
    true_count: int = 0
    false_count: int = 0


@dataclass
class SamplingResult:
    selected_snap_times: List[int]
    candidate_pool: Sequence[SnapTimeCandidate]
    strategy_used: Literal["proximity", "balanced"]
    label_distribution: Dict[Horizon, LabelCounts] = field(default_factory=dict)


def compute_distance_to_ref_low(close_at_snap: float, ref_low: float) -> float:
    """Relative distance of the close above the reference low; inf if ref <= 0."""
    if ref_low <= 0:
        return math.inf
    return (close_at_snap - ref_low) / ref_low


def create_snap_time_candidate(
    snap_time: int,
    close_at_snap: float,
    ref_low: float,
    label_by_horizon: Optional[Mapping[Horizon, bool]] = None,
) -> SnapTimeCandidate:
    return SnapTimeCandidate(
        snap_time=snap_time,
        close_at_snap=close_at_snap,
        ref_low=ref_low,
        distance_to_ref_low=compute_distance_to_ref_low(close_at_snap, ref_low),
        label_by_horizon=label_by_horizon,
    )


def filter_by_proximity(
    candidates: Sequence[SnapTimeCandidate],
    horizon: Horizon,
    params: SamplingParams | None = None,
) -> List[SnapTimeCandidate]:
    params = params or get_arena_params().sampling
    threshold = params.proximity_threshold[horizon.value]
    return [c for c in candidates if c.distance_to_ref_low <= threshold]


def enforce_min_separation(
    candidates: Sequence[SnapTimeCandidate],
    horizon: Horizon,
    params: SamplingParams | None = None,
) -> List[SnapTimeCandidate]:
    """Greedy chronological scan keeping instants at least the separation apart."""
    params = params or get_arena_params().sampling
    min_sep_ms = params.min_separation_minutes[horizon.value] * MINUTE_MS
    kept: List[SnapTimeCandidate] = []
    last = -math.inf
    for c in sorted(candidates, key=lambda c: c.snap_time):
        if c.snap_time - last >= min_sep_ms:
            kept.append(c)
            last = c.snap_time
    return kept


def sample_balanced(
    candidates: Sequence[SnapTimeCandidate],
    horizon: Horizon,
    target_count: int,
    rng: RandomSource,
    params: SamplingParams | None = None,
) -> List[SnapTimeCandidate]:
    """Draw a label-balanced subset of ``candidates``, sorted by time.

    Positives target ``clamp(target // 2, min_positive, max_positive)`` and
    negatives fill the rest. Either class is topped up to the minority floor
    (``min(min_minority, target // 3)``) when its pool allows, taking the
    slack from the other class. Unlabelled candidates are ignored.
    """
    params = params or get_arena_params().sampling
    positives = [c for c in candidates if c.label(horizon) is True]
    negatives = [c for c in candidates if c.label(horizon) is False]
    positives = shuffle(positives, rng)
    negatives = shuffle(negatives, rng)

    target_pos = min(max(params.min_positive, target_count // 2), params.max_positive)
    target_neg = target_count - target_pos
    min_minority = min(params.min_minority, target_count // 3)

    n_pos = min(target_pos, len(positives))
    n_neg = min(max(0, target_neg), len(negatives))

    if n_pos < min_minority and len(positives) >= min_minority:
        n_pos = min_minority
        n_neg = min(target_count - n_pos, len(negatives))
    if n_neg < min_minority and len(negatives) >= min_minority:
        n_neg = min_minority
        n_pos = min(target_count - n_neg, len(positives))

    selected = positives[:max(0, n_pos)] + negatives[:max(0, n_neg)]
    selected.sort(key=lambda c: c.snap_time)
    return selected


def label_distribution(
    candidates: Sequence[SnapTimeCandidate],
    horizon: Horizon,
) -> LabelCounts:
    t = sum(1 for c in candidates if c.label(horizon) is True)
    f = sum(1 for c in candidates if c.label(horizon) is False)
    return LabelCounts(true_count=t, false_count=f)


def select_snap_times(
    candidate_pool: Sequence[SnapTimeCandidate],
    horizon: Horizon,
    target_count: int,
    strategy: Strategy = "both",
    rng: RandomSource | None = None,
    seed: int | None = None,
    params: SamplingParams | None = None,
) -> SamplingResult:
    """Select evaluation instants for ``horizon``.

    Args:
        candidate_pool: All candidate instants
        horizon: Horizon whose thresholds and labels apply
        target_count: Number of instants wanted
        strategy: "proximity", "balanced" or "both"
        rng: Random source; built from ``seed`` when omitted
        seed: Mulberry32 seed used when ``rng`` is omitted

    Returns:
        SamplingResult with sorted snap times
    """
    params = params or get_arena_params().sampling
    if rng is None:
        rng = Mulberry32(seed) if seed is not None else SystemRandomSource()

    def proximity_pick() -> List[SnapTimeCandidate]:
        near = filter_by_proximity(candidate_pool, horizon, params)
        return enforce_min_separation(near, horizon, params)

    def balanced_pick() -> List[SnapTimeCandidate]:
        separated = enforce_min_separation(candidate_pool, horizon, params)
        return sample_balanced(separated, horizon, target_count, rng, params)

    if strategy == "proximity":
        selected = shuffle(proximity_pick(), rng)[:target_count]
        used: Literal["proximity", "balanced"] = "proximity"
    elif strategy == "balanced":
        selected = balanced_pick()
        used = "balanced"
    elif strategy == "both":
        spaced = proximity_pick()
        if len(spaced) >= target_count:
            selected = shuffle(spaced, rng)[:target_count]
            used = "proximity"
        else:
            logger.info(
                f"Proximity found {len(spaced)}/{target_count} snaps for {horizon}; falling back to balanced"
            )
            selected = balanced_pick()
            used = "balanced"
    else:
        raise ValueError(f"unknown sampling strategy {strategy!r}")

    return SamplingResult(
        selected_snap_times=sorted(c.snap_time for c in selected),
        candidate_pool=candidate_pool,
        strategy_used=used,
        label_distribution={h: label_distribution(selected, h) for h in HORIZONS},
    )


__all__ = [
    "Strategy",
    "SnapTimeCandidate",
    "LabelCounts",
    "SamplingResult",
    "compute_distance_to_ref_low",
    "create_snap_time_candidate",
    "filter_by_proximity",
    "enforce_min_separation",
    "sample_balanced",
    "label_distribution",
    "select_snap_times",
]
