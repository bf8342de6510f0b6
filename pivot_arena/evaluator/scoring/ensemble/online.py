"""Online ensemble over tournament models.

For round r each model's weight is derived only from its log-losses in
rounds [0, r). Appending history at index >= r never changes the weights
for round r.

    raw_weight = exp(-alpha * rolling_mean_ll) * coverage
    coverage   = min(effective_rounds, window) / window

Raw weights are normalized to sum to 1, falling back to uniform when every
raw weight is zero. A round with fewer than ``min_models`` non-failed
contributors is reported with p = 0.5 and flagged unscoreable.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import AbstractSet, Dict, List, Literal, Optional, Sequence

import numpy as np

from pivot_arena.shared.enums import Horizon

from ...config.scoring_params import EnsembleParams, get_arena_params
from ..metrics.proper_scoring import log_loss_binary
from ..phases.phase2 import rolling_windows

logger = logging.getLogger(__name__)

MembershipMode = Literal["wide", "strict"]


@dataclass
class ModelHistory:
    """Per-round log-loss of one model; None marks a failed or unscored round."""

    model_id: str
    log_loss_by_round: List[Optional[float]] = field(default_factory=list)

    def effective_before(self, round_number: int) -> List[float]:
        """Scored losses strictly before ``round_number``, in order."""
        return [ll for ll in self.log_loss_by_round[:round_number] if ll is not None]


@dataclass(frozen=True)
class ModelRoundPrediction:
    model_id: str
    prediction: float
    failed: bool = False


@dataclass(frozen=True)
class EnsembleRoundResult:
    round: int
    horizon: Horizon
    p_ensemble: float
    is_scoreable: bool
    weights: Dict[str, float]
    contributing_models: int
    weight_entropy: float


@dataclass(frozen=True)
class EnsemblePerformance:
    horizon: Horizon
    mean_log_loss: float
    best_window_log_loss: float
    stability: float
    scored_rounds: int


def rolling_mean_log_loss(losses: Sequence[float], window: int) -> float:
    """Mean of the last ``window`` losses (all of them if fewer); inf when empty."""
    if not losses:
        return math.inf
    tail = losses[-window:]
    return float(sum(tail) / len(tail))


def compute_model_weights(
    histories: Sequence[ModelHistory],
    round_number: int,
    params: EnsembleParams | None = None,
    mode: MembershipMode = "wide",
    valid_models: AbstractSet[str] | None = None,
) -> Dict[str, float]:
    """Normalized weights for ``round_number`` from history strictly before it.

    Args:
        histories: Loss histories of every candidate model
        round_number: Round being predicted; only indices < round_number are read
        params: Ensemble parameters
        mode: "wide" weights every model with history, "strict" only ``valid_models``
        valid_models: Required in strict mode

    Returns:
        model id -> weight, summing to 1 (empty if there are no candidates)
    """
    params = params or get_arena_params().ensemble
    if mode == "strict":
        if valid_models is None:
            raise ValueError("strict membership requires valid_models")
        candidates = [h for h in histories if h.model_id in valid_models]
    else:
        candidates = list(histories)
    if not candidates:
        return {}

    raw: Dict[str, float] = {}
    for history in candidates:
        losses = history.effective_before(round_number)
        if not losses:
            continue
        rolling = rolling_mean_log_loss(losses, params.window_size)
        if not math.isfinite(rolling):
            continue
        coverage = min(len(losses), params.window_size) / params.window_size
        raw[history.model_id] = math.exp(-params.alpha * rolling) * coverage

    total = sum(raw.values())
    if total <= 0:
        uniform = 1.0 / len(candidates)
        return {h.model_id: uniform for h in candidates}
    return {model_id: w / total for model_id, w in raw.items()}


def weight_entropy(weights: Dict[str, float]) -> float:
    """Shannon entropy -sum(w ln w); zero weights contribute nothing."""
    return float(-sum(w * math.log(w) for w in weights.values() if w > 0))


def compute_ensemble_prediction(
    predictions: Sequence[ModelRoundPrediction],
    weights: Dict[str, float],
    params: EnsembleParams | None = None,
    *,
    round_number: int = -1,
    horizon: Horizon = Horizon.M15,
) -> EnsembleRoundResult:
    """Weighted average of non-failed predictions for one round."""
    params = params or get_arena_params().ensemble
    valid = [p for p in predictions if not p.failed]

    if len(valid) < params.min_models:
        return EnsembleRoundResult(
            round=round_number,
            horizon=horizon,
            p_ensemble=0.5,
            is_scoreable=False,
            weights={},
            contributing_models=len(valid),
            weight_entropy=0.0,
        )

    contributing = {p.model_id: weights.get(p.model_id, 0.0) for p in valid}
    contributing = {k: w for k, w in contributing.items() if w > 0}
    total = sum(contributing.values())
    if total == 0:
        contributing = {p.model_id: 1.0 for p in valid}
        total = float(len(valid))
    normalized = {k: w / total for k, w in contributing.items()}

    p_ens = sum(normalized.get(p.model_id, 0.0) * p.prediction for p in valid)
    p_ens = min(1.0, max(0.0, p_ens))

    return EnsembleRoundResult(
        round=round_number,
        horizon=horizon,
        p_ensemble=p_ens,
        is_scoreable=True,
        weights=normalized,
        contributing_models=len(valid),
        weight_entropy=weight_entropy(normalized),
    )


def run_online_ensemble(
    histories: Sequence[ModelHistory],
    predictions_by_round: Sequence[Sequence[ModelRoundPrediction]],
    horizon: Horizon,
    params: EnsembleParams | None = None,
    mode: MembershipMode = "wide",
    valid_models: AbstractSet[str] | None = None,
) -> List[EnsembleRoundResult]:
    """Replay every round, weighting each from strictly-past history."""
    params = params or get_arena_params().ensemble
    results = []
    for r, predictions in enumerate(predictions_by_round):
        weights = compute_model_weights(histories, r, params, mode, valid_models)
        if mode == "strict" and valid_models is not None:
            predictions = [p for p in predictions if p.model_id in valid_models]
        results.append(
            compute_ensemble_prediction(predictions, weights, params, round_number=r, horizon=horizon)
        )
    unscoreable = sum(1 for res in results if not res.is_scoreable)
    if unscoreable:
        logger.info(f"Ensemble {horizon}: {unscoreable}/{len(results)} rounds unscoreable")
    return results


def score_ensemble(
    results: Sequence[EnsembleRoundResult],
    labels: Sequence[Optional[bool]],
    horizon: Horizon,
    window: int = 6,
) -> EnsemblePerformance:
    """Score scoreable rounds against ``labels`` indexed by round number.

    Unscoreable rounds and rounds without a label are skipped. With nothing
    left to score every metric is inf.
    """
    losses = []
    for res in results:
        if not res.is_scoreable or not (0 <= res.round < len(labels)):
            continue
        label = labels[res.round]
        if label is None:
            continue
        losses.append(log_loss_binary(res.p_ensemble, label))

    if not losses:
        return EnsemblePerformance(horizon, math.inf, math.inf, math.inf, 0)

    mean_ll = float(np.mean(losses))
    windows = rolling_windows(losses, window)
    best = min(windows) if windows else mean_ll
    return EnsemblePerformance(
        horizon=horizon,
        mean_log_loss=mean_ll,
        best_window_log_loss=best,
        stability=float(np.std(losses)),
        scored_rounds=len(losses),
    )


__all__ = [
    "MembershipMode",
    "ModelHistory",
    "ModelRoundPrediction",
    "EnsembleRoundResult",
    "EnsemblePerformance",
    "rolling_mean_log_loss",
    "compute_model_weights",
    "weight_entropy",
    "compute_ensemble_prediction",
    "run_online_ensemble",
    "score_ensemble",
]
