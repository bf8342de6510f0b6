"""Statistical validity gates per model and horizon.

Validity is decided BEFORE a model is allowed into relative ranking.
A failing gate is data, not an exception: the tournament keeps running.

Gates:
- coverage: enough scheduled rounds produced a scored prediction
- failure_rate: the prediction source rarely failed
- constant_predictor: predictions actually vary
- extreme_predictions: not nearly always pinned at 0 or 1
- extreme_wrong_rate: not often confidently wrong
"""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Sequence, Tuple

import numpy as np

from pivot_arena.shared.enums import Horizon

from ..config.scoring_params import ArenaParams, get_arena_params
from .types import ModelValidity, ValidationError, ValidityMetrics, ValidityResult

logger = logging.getLogger(__name__)

REASON_COVERAGE = "coverage"
REASON_FAILURE_RATE = "failure_rate"
REASON_CONSTANT = "constant_predictor"
REASON_EXTREME_PREDICTIONS = "extreme_predictions"
REASON_EXTREME_WRONG = "extreme_wrong_rate"

# (predictions, labels, failed_rounds, total_rounds)
HorizonInputs = Tuple[Sequence[float], Sequence[bool], int, int]


class ValidityGateEngine:
    """Compute validity metrics and gate decisions.

    All methods are stateless and deterministic.
    """

    def __init__(self, params: ArenaParams | None = None):
        self.params = params or get_arena_params()
        self.gates = self.params.validity

    def compute_metrics(
        self,
        predictions: Sequence[float],
        labels: Sequence[bool],
        failed_rounds: int,
        total_rounds: int,
    ) -> ValidityMetrics:
        """Compute the raw gate metrics for one model on one horizon.

        Args:
            predictions: Probabilities of scored rounds
            labels: Outcomes aligned with ``predictions``
            failed_rounds: Rounds where the prediction source failed
            total_rounds: Rounds the model was scheduled for

        Returns:
            ValidityMetrics

        Raises:
            ValidationError: If predictions and labels differ in length
        """
        if len(predictions) != len(labels):
            raise ValidationError(
                f"predictions ({len(predictions)}) and labels ({len(labels)}) differ in length"
            )
        g = self.gates
        n = len(predictions)
        p = np.asarray(predictions, dtype=np.float64)
        y = np.asarray(labels, dtype=bool)

        coverage = n / total_rounds if total_rounds > 0 else 0.0
        failure_rate = failed_rounds / total_rounds if total_rounds > 0 else 0.0

        if n == 0:
            return ValidityMetrics(
                coverage=coverage,
                failure_rate=failure_rate,
                unique_p=0,
                p_std_dev=0.0,
                extreme_prediction_rate=0.0,
                confident_wrong_rate=0.0,
            )

        unique_p = int(np.unique(np.round(p, 6)).size)
        p_std = float(p.std())
        extreme = np.count_nonzero((p >= g.extreme_high) | (p <= g.extreme_low)) / n
        wrong = np.count_nonzero(
            ((p > g.confident_high) & ~y) | ((p < g.confident_low) & y)
        ) / n

        return ValidityMetrics(
            coverage=coverage,
            failure_rate=failure_rate,
            unique_p=unique_p,
            p_std_dev=p_std,
            extreme_prediction_rate=float(extreme),
            confident_wrong_rate=float(wrong),
        )

    def failure_reasons(self, metrics: ValidityMetrics, effective_n: int) -> list[str]:
        """Every gate the metrics fail, in gate order."""
        g = self.gates
        reasons = []
        if metrics.coverage < g.min_coverage:
            reasons.append(REASON_COVERAGE)
        if metrics.failure_rate > g.max_failure_rate:
            reasons.append(REASON_FAILURE_RATE)
        # one prediction is trivially constant; do not flag it
        if effective_n > 1 and metrics.unique_p <= g.max_unique_p and metrics.p_std_dev <= g.max_p_std_dev:
            reasons.append(REASON_CONSTANT)
        if metrics.extreme_prediction_rate > g.max_extreme_prediction_rate:
            reasons.append(REASON_EXTREME_PREDICTIONS)
        if metrics.confident_wrong_rate > g.max_confident_wrong_rate:
            reasons.append(REASON_EXTREME_WRONG)
        return reasons

    def check_horizon(
        self,
        horizon: Horizon,
        predictions: Sequence[float],
        labels: Sequence[bool],
        failed_rounds: int,
        total_rounds: int,
    ) -> ValidityResult:
        metrics = self.compute_metrics(predictions, labels, failed_rounds, total_rounds)
        reasons = self.failure_reasons(metrics, len(predictions))
        return ValidityResult(
            horizon=horizon,
            is_valid=not reasons,
            failure_reasons=reasons,
            metrics=metrics,
        )

    def check_model(
        self,
        model_id: str,
        inputs: Mapping[Horizon, HorizonInputs],
    ) -> ModelValidity:
        """Run every gate on every horizon the model was evaluated on."""
        out = ModelValidity(model_id=model_id)
        for horizon, (preds, labels, failed, total) in inputs.items():
            result = self.check_horizon(horizon, preds, labels, failed, total)
            out.results[horizon] = result
            if result.is_valid:
                out.valid_horizons.append(horizon)
            else:
                out.invalid_horizons[horizon] = result.failure_reasons
                logger.debug(f"{model_id} invalid on {horizon}: {', '.join(result.failure_reasons)}")
        return out


def compute_validity_metrics(
    predictions: Sequence[float],
    labels: Sequence[bool],
    failed_rounds: int,
    total_rounds: int,
    params: ArenaParams | None = None,
) -> ValidityMetrics:
    return ValidityGateEngine(params).compute_metrics(predictions, labels, failed_rounds, total_rounds)


def check_horizon_validity(
    horizon: Horizon,
    predictions: Sequence[float],
    labels: Sequence[bool],
    failed_rounds: int,
    total_rounds: int,
    params: ArenaParams | None = None,
) -> ValidityResult:
    return ValidityGateEngine(params).check_horizon(horizon, predictions, labels, failed_rounds, total_rounds)


def check_model_validity(
    model_id: str,
    inputs: Mapping[Horizon, HorizonInputs],
    params: ArenaParams | None = None,
) -> ModelValidity:
    return ValidityGateEngine(params).check_model(model_id, inputs)


def valid_models_by_horizon(validities: Sequence[ModelValidity]) -> Dict[Horizon, set[str]]:
    """Invert model validity into horizon -> set of valid model ids."""
    out: Dict[Horizon, set[str]] = {}
    for v in validities:
        for h in v.valid_horizons:
            out.setdefault(h, set()).add(v.model_id)
    return out


__all__ = [
    "REASON_COVERAGE",
    "REASON_FAILURE_RATE",
    "REASON_CONSTANT",
    "REASON_EXTREME_PREDICTIONS",
    "REASON_EXTREME_WRONG",
    "HorizonInputs",
    "ValidityGateEngine",
    "compute_validity_metrics",
    "check_horizon_validity",
    "check_model_validity",
    "valid_models_by_horizon",
]
