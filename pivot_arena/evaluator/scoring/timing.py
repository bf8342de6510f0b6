"""Early-detection timing metrics.

For rounds where a model correctly called a holding bottom (label true,
p > 0.5), the time-to-pivot ratio says how early in the window the pivot
appeared. Lower means earlier.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Sequence

from pivot_arena.shared.enums import HORIZONS, Horizon

from ..config.timeframes import get_timeframe_config
from .types import RoundScore


@dataclass(frozen=True)
class TimingMetrics:
    correct_rounds: int
    earliest_ratio: Optional[float]
    earliest_correct_ms: Optional[int]
    mean_time_to_detection_ratio: float
    redundant_confirmations: int


def _correct_calls(rounds: Iterable[RoundScore]) -> list[RoundScore]:
    return [r for r in rounds if r.label and r.prediction > 0.5]


def compute_horizon_timing(horizon: Horizon, rounds: Sequence[RoundScore]) -> TimingMetrics:
    correct = _correct_calls(rounds)
    ratios = [r.time_to_pivot_ratio for r in correct if r.time_to_pivot_ratio is not None]
    earliest = min(ratios) if ratios else None
    duration = get_timeframe_config(horizon).window_duration_ms
    return TimingMetrics(
        correct_rounds=len(correct),
        earliest_ratio=earliest,
        earliest_correct_ms=None if earliest is None else int(earliest * duration),
        # no detections counts as detecting at the very end
        mean_time_to_detection_ratio=sum(ratios) / len(ratios) if ratios else 1.0,
        redundant_confirmations=max(0, len(correct) - 1),
    )


def compute_timing_metrics(scores: Mapping[Horizon, Sequence[RoundScore]]) -> Dict[Horizon, TimingMetrics]:
    return {h: compute_horizon_timing(h, scores.get(h, ())) for h in HORIZONS}


def mean_time_to_pivot_ratio(
    scores: Mapping[Horizon, Sequence[RoundScore]],
    horizons: Optional[Iterable[Horizon]] = None,
    default: float = 0.5,
) -> float:
    """Average of per-horizon mean ratios of correct calls.

    Only horizons with at least one timed correct call contribute; a model
    with none gets ``default``.
    """
    per_horizon = []
    for h in (HORIZONS if horizons is None else horizons):
        ratios = [r.time_to_pivot_ratio for r in _correct_calls(scores.get(h, ())) if r.time_to_pivot_ratio is not None]
        if ratios:
            per_horizon.append(sum(ratios) / len(ratios))
    if not per_horizon:
        return default
    return sum(per_horizon) / len(per_horizon)


__all__ = [
    "TimingMetrics",
    "compute_horizon_timing",
    "compute_timing_metrics",
    "mean_time_to_pivot_ratio",
]
