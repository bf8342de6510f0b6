"""Phase 2: stability and regret.

Rolling means of per-round log-loss (window of 6) summarise how a model
behaves at its best and worst. Regret compares a model's worst window with
the cohort median worst window; stability is the variance across windows.

Elimination: regret > 1.5 on two or more horizons, or variance above twice
the cohort median on three or more horizons.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence

import numpy as np

from pivot_arena.shared.enums import HORIZONS, Horizon

from ...config.scoring_params import Phase2Params, get_arena_params
from ..metrics.ranking import median

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StabilityMetrics:
    best_window: float
    worst_window: float
    variance: float
    windows: int


@dataclass
class Phase2ModelScore:
    model_id: str
    stability: Dict[Horizon, StabilityMetrics] = field(default_factory=dict)
    regret: Dict[Horizon, float] = field(default_factory=dict)


@dataclass
class Phase2Result:
    scores: Dict[str, Phase2ModelScore] = field(default_factory=dict)
    median_variance: Dict[Horizon, float] = field(default_factory=dict)
    median_worst_window: Dict[Horizon, float] = field(default_factory=dict)
    eliminated: Dict[str, str] = field(default_factory=dict)
    disqualified_horizons: Dict[str, Dict[Horizon, str]] = field(default_factory=dict)


def rolling_windows(losses: Sequence[float], window: int = 6) -> List[float]:
    """Means of every contiguous window; empty when fewer than ``window`` losses."""
    if len(losses) < window:
        return []
    arr = np.asarray(losses, dtype=np.float64)
    kernel = np.ones(window) / window
    return np.convolve(arr, kernel, mode="valid").tolist()


def compute_stability_metrics(losses: Sequence[float], window: int = 6) -> StabilityMetrics:
    windows = rolling_windows(losses, window)
    if not windows:
        return StabilityMetrics(best_window=0.0, worst_window=0.0, variance=0.0, windows=0)
    arr = np.asarray(windows)
    return StabilityMetrics(
        best_window=float(arr.min()),
        worst_window=float(arr.max()),
        variance=float(arr.var()),
        windows=len(windows),
    )


def compute_regret(worst_window: float, median_worst: float) -> float:
    if median_worst == 0:
        return 1.0
    return worst_window / median_worst


def _horizons_over(values: Mapping[Horizon, float], limits: Mapping[Horizon, float], factor: float) -> List[Horizon]:
    return [h for h in HORIZONS if h in values and values[h] > factor * limits.get(h, 0.0)]


def should_eliminate_phase2(
    score: Phase2ModelScore,
    median_variance: Mapping[Horizon, float],
    params: Phase2Params | None = None,
) -> bool:
    params = params or get_arena_params().phase2
    high_regret = [h for h in HORIZONS if score.regret.get(h, 0.0) > params.max_regret]
    if len(high_regret) >= params.min_regret_horizons:
        return True
    variance = {h: m.variance for h, m in score.stability.items()}
    unstable = _horizons_over(variance, median_variance, params.stability_multiplier)
    return len(unstable) >= params.min_unstable_horizons


def phase2_reason(
    score: Phase2ModelScore,
    median_variance: Mapping[Horizon, float],
    params: Phase2Params | None = None,
) -> str:
    params = params or get_arena_params().phase2
    high_regret = [h for h in HORIZONS if score.regret.get(h, 0.0) > params.max_regret]
    if len(high_regret) >= params.min_regret_horizons:
        return f"High regret on {', '.join(str(h) for h in high_regret)}"
    variance = {h: m.variance for h, m in score.stability.items()}
    unstable = _horizons_over(variance, median_variance, params.stability_multiplier)
    if len(unstable) >= params.min_unstable_horizons:
        return f"Unstable on {', '.join(str(h) for h in unstable)}"
    return "Failed stability filter"


def run_phase2(
    losses_by_model: Mapping[str, Mapping[Horizon, Sequence[float]]],
    params: Phase2Params | None = None,
) -> Phase2Result:
    """Score the cohort and decide eliminations and per-horizon disqualifications.

    Args:
        losses_by_model: model id -> horizon -> chronological log-losses

    Returns:
        Phase2Result
    """
    params = params or get_arena_params().phase2
    result = Phase2Result()

    for model_id, by_horizon in losses_by_model.items():
        score = Phase2ModelScore(model_id=model_id)
        for horizon in HORIZONS:
            if horizon in by_horizon:
                score.stability[horizon] = compute_stability_metrics(by_horizon[horizon], params.window_size)
        result.scores[model_id] = score

    for horizon in HORIZONS:
        members = [s for s in result.scores.values() if horizon in s.stability]
        med_worst = median([s.stability[horizon].worst_window for s in members])
        result.median_worst_window[horizon] = med_worst
        result.median_variance[horizon] = median([s.stability[horizon].variance for s in members])
        for s in members:
            s.regret[horizon] = compute_regret(s.stability[horizon].worst_window, med_worst)

    for model_id, score in result.scores.items():
        if should_eliminate_phase2(score, result.median_variance, params):
            result.eliminated[model_id] = phase2_reason(score, result.median_variance, params)
            logger.info(f"Phase 2 eliminated {model_id}: {result.eliminated[model_id]}")
            continue
        dq: Dict[Horizon, str] = {}
        for horizon, metrics in score.stability.items():
            if score.regret.get(horizon, 0.0) > params.max_regret:
                dq[horizon] = "high_regret"
            elif metrics.variance > params.stability_multiplier * result.median_variance[horizon]:
                dq[horizon] = "unstable"
        if dq:
            result.disqualified_horizons[model_id] = dq

    return result


__all__ = [
    "StabilityMetrics",
    "Phase2ModelScore",
    "Phase2Result",
    "rolling_windows",
    "compute_stability_metrics",
    "compute_regret",
    "should_eliminate_phase2",
    "phase2_reason",
    "run_phase2",
]
