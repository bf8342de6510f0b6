"""Phase 3: composite ranking.

Per horizon, qualified models with finite metrics are scored on three
lower-is-better metrics (mean log-loss, best rolling window, stability).
Each metric range is taken from the winsorized cohort so one outlier
cannot compress everyone else's scores.

    composite = 0.5 * logLossScore + 0.3 * bestWindowScore + 0.2 * stabilityScore

A separate global ranking blends percentile, best window, stability and an
early-detection bonus into a single list.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Sequence

from pivot_arena.shared.enums import HORIZONS, Horizon

from ...config.scoring_params import Phase3Params, get_arena_params
from ..metrics.ranking import inverted_range_score, winsorize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HorizonMetrics:
    """Inputs for one model on one horizon."""

    model_id: str
    log_loss: float
    best_window: float
    stability: float
    qualified: bool = True

    @property
    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.log_loss, self.best_window, self.stability))


@dataclass(frozen=True)
class HorizonRanking:
    model_id: str
    composite: float
    log_loss_score: float
    best_window_score: float
    stability_score: float


@dataclass(frozen=True)
class GlobalMetrics:
    model_id: str
    avg_percentile: float
    avg_best_window: float
    avg_stability: float
    avg_time_to_pivot_ratio: float = 0.5


@dataclass(frozen=True)
class GlobalRanking:
    model_id: str
    score: float


def _range(values: Sequence[float], params: Phase3Params) -> tuple[float, float]:
    w = winsorize(values, params.winsorize_lower, params.winsorize_upper)
    return float(w.min()), float(w.max())


def rank_horizon(
    metrics: Iterable[HorizonMetrics],
    params: Phase3Params | None = None,
) -> List[HorizonRanking]:
    """Composite ranking for one horizon, best first, at most ``arena_size``.

    Unqualified or non-finite entries are dropped before ranges are computed.
    An empty cohort yields an empty ranking.
    """
    params = params or get_arena_params().phase3
    cohort = [m for m in metrics if m.qualified and m.is_finite]
    if not cohort:
        return []

    w = params.composite
    ll_lo, ll_hi = _range([m.log_loss for m in cohort], params)
    bw_lo, bw_hi = _range([m.best_window for m in cohort], params)
    st_lo, st_hi = _range([m.stability for m in cohort], params)

    ranked = []
    for m in cohort:
        ll = inverted_range_score(m.log_loss, ll_lo, ll_hi)
        bw = inverted_range_score(m.best_window, bw_lo, bw_hi)
        st = inverted_range_score(m.stability, st_lo, st_hi)
        ranked.append(
            HorizonRanking(
                model_id=m.model_id,
                composite=w.log_loss * ll + w.best_window * bw + w.stability * st,
                log_loss_score=ll,
                best_window_score=bw,
                stability_score=st,
            )
        )
    # stable sort keeps input order among equal composites
    ranked.sort(key=lambda r: r.composite, reverse=True)
    return ranked[: params.arena_size]


def rank_per_horizon(
    metrics_by_horizon: Mapping[Horizon, Iterable[HorizonMetrics]],
    params: Phase3Params | None = None,
) -> Dict[Horizon, List[HorizonRanking]]:
    """Rank every horizon independently; horizons without entries map to []."""
    out: Dict[Horizon, List[HorizonRanking]] = {}
    for horizon in HORIZONS:
        out[horizon] = rank_horizon(metrics_by_horizon.get(horizon, ()), params)
        if not out[horizon]:
            logger.info(f"Phase 3: no rankable models on {horizon}")
    return out


def compute_global_score(
    m: GlobalMetrics,
    best_window_range: tuple[float, float],
    stability_range: tuple[float, float],
    params: Phase3Params | None = None,
) -> float:
    params = params or get_arena_params().phase3
    w = params.global_weights
    return (
        w.percentile * (m.avg_percentile / 100.0)
        + w.best_window * inverted_range_score(m.avg_best_window, *best_window_range)
        + w.stability * inverted_range_score(m.avg_stability, *stability_range)
        + w.early_bonus * (1.0 - m.avg_time_to_pivot_ratio)
    )


def rank_global(
    metrics: Sequence[GlobalMetrics],
    params: Phase3Params | None = None,
) -> List[GlobalRanking]:
    """Single-list ranking across horizons, best first, at most ``arena_size``."""
    params = params or get_arena_params().phase3
    if not metrics:
        return []
    bw_range = _range([m.avg_best_window for m in metrics], params)
    st_range = _range([m.avg_stability for m in metrics], params)
    scored = [
        GlobalRanking(model_id=m.model_id, score=compute_global_score(m, bw_range, st_range, params))
        for m in metrics
    ]
    scored.sort(key=lambda r: r.score, reverse=True)
    return scored[: params.arena_size]


__all__ = [
    "HorizonMetrics",
    "HorizonRanking",
    "GlobalMetrics",
    "GlobalRanking",
    "rank_horizon",
    "rank_per_horizon",
    "compute_global_score",
    "rank_global",
]
