"""Proper scoring rules for binary contracts: log-loss and Brier.

Proper scoring rules reward honest, calibrated probability forecasts.
They are "proper" in the sense that the best expected score is achieved
by reporting your true beliefs.

- Log-loss: negative log-likelihood of the realized outcome (primary metric)
- Brier score: squared error of the probability (Phase 0 sanity only)

Baselines:
1. Random: p = 0.5 everywhere, log-loss ln 2
2. Trivial: always-true or always-false at the clip boundary
3. Prevalence: constant p equal to the observed base rate
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from pivot_arena.shared.enums import Horizon

from ..types import RoundScore, ValidationError


# Small epsilon to prevent log(0)
EPS = 1e-9

# Clip used by the trivial constant baselines
BASELINE_EPS = 1e-15

RANDOM_BASELINE = math.log(2)

# Loss charged when a caller penalises a failed prediction instead of skipping it
INVALID_PREDICTION_LOG_LOSS = -math.log(1e-6)


@dataclass(frozen=True)
class BaselineLogLosses:
    """Log-loss of constant predictors on one label set."""

    random: float
    always_false: float
    always_true: float

    @property
    def trivial_best(self) -> float:
        return min(self.always_false, self.always_true)


def log_loss_binary(p: float, label: bool) -> float:
    """Compute log-loss for a single binary forecast.

    LogLoss = -log(p) if label else -log(1 - p)

    Args:
        p: Probability that the contract resolves true
        label: Realized outcome

    Returns:
        Log-loss (0 = perfect)
    """
    if not math.isfinite(p):
        raise ValidationError(f"probability must be finite, got {p}")
    p_clip = min(max(p, EPS), 1.0 - EPS)
    return -math.log(p_clip) if label else -math.log(1.0 - p_clip)


def brier_binary(p: float, label: bool) -> float:
    """Brier = (p - y)^2; 0 is perfect, 1 is worst."""
    y = 1.0 if label else 0.0
    return (p - y) ** 2


def log_loss_batch(
    probs: NDArray[np.float64],
    labels: NDArray[np.bool_],
) -> NDArray[np.float64]:
    """Compute log-loss for a batch of binary forecasts.

    Args:
        probs: Shape (N,) probabilities
        labels: Shape (N,) boolean outcomes

    Returns:
        Shape (N,) array of log-losses
    """
    p = np.clip(np.asarray(probs, dtype=np.float64), EPS, 1.0 - EPS)
    y = np.asarray(labels, dtype=bool)
    return np.where(y, -np.log(p), -np.log(1.0 - p))


def brier_batch(
    probs: NDArray[np.float64],
    labels: NDArray[np.bool_],
) -> NDArray[np.float64]:
    p = np.asarray(probs, dtype=np.float64)
    y = np.asarray(labels, dtype=np.float64)
    return (p - y) ** 2


def is_extreme_error(p: float, label: bool, threshold: float = 0.8) -> bool:
    """Confident call of 'true' that resolved false."""
    return p > threshold and not label


def score_round(
    round_number: int,
    horizon: Horizon,
    p: float,
    label: bool,
    *,
    extreme_threshold: float = 0.8,
    time_to_pivot_ratio: float | None = None,
) -> RoundScore:
    """Score one model on one horizon for one round.

    Raises:
        ValidationError: If p is not a probability
    """
    if not (0.0 <= p <= 1.0):
        raise ValidationError(f"probability {p} outside [0, 1]")
    return RoundScore(
        round=round_number,
        horizon=horizon,
        prediction=p,
        label=label,
        log_loss=log_loss_binary(p, label),
        brier=brier_binary(p, label),
        is_extreme_error=is_extreme_error(p, label, extreme_threshold),
        time_to_pivot_ratio=time_to_pivot_ratio,
    )


def compute_baseline_log_losses(labels: Sequence[bool]) -> BaselineLogLosses:
    """Mean log-loss of the random and always-true/false predictors.

    The random baseline is ln 2 regardless of labels. Empty label sets
    return NaN for both constant baselines.
    """
    n = len(labels)
    if n == 0:
        nan = float("nan")
        return BaselineLogLosses(random=RANDOM_BASELINE, always_false=nan, always_true=nan)

    n_true = sum(1 for y in labels if y)
    n_false = n - n_true
    confident = -math.log(1.0 - BASELINE_EPS)
    wrong = -math.log(BASELINE_EPS)

    # always_false predicts p = eps for "true"
    always_false = (n_false * confident + n_true * wrong) / n
    always_true = (n_true * confident + n_false * wrong) / n
    return BaselineLogLosses(random=RANDOM_BASELINE, always_false=always_false, always_true=always_true)


def compute_prevalence_log_loss(true_count: int, false_count: int) -> float:
    """Log-loss of the constant predictor p = observed base rate.

    Equals the binary entropy of the base rate. Returns inf when either class
    is absent, so a single-class horizon can never be used as a margin target.
    """
    total = true_count + false_count
    if total == 0 or true_count == 0 or false_count == 0:
        return math.inf
    p = true_count / total
    q = 1.0 - p
    return -(p * math.log(p) + q * math.log(q))


__all__ = [
    "EPS",
    "BASELINE_EPS",
    "RANDOM_BASELINE",
    "INVALID_PREDICTION_LOG_LOSS",
    "BaselineLogLosses",
    "log_loss_binary",
    "brier_binary",
    "log_loss_batch",
    "brier_batch",
    "is_extreme_error",
    "score_round",
    "compute_baseline_log_losses",
    "compute_prevalence_log_loss",
]
