"""Metric separability: does a metric actually tell models apart?

A metric separates the cohort when its spread is wide (range > 0.1) and
not driven by a single outlier (population std > 0.05). Below three models
the question has no answer and ``separates`` is None.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import numpy as np

from ..scoring.metrics.ranking import rank_with_ties, spearman_correlation

MIN_MODELS_FOR_SEPARABILITY = 3
MIN_RANGE = 0.1
MIN_STD = 0.05


@dataclass(frozen=True)
class ModelProfile:
    model_id: str
    mean_log_loss: float
    mean_brier: float
    expected_calibration_error: float
    tp_rate: float
    fp_rate: float


@dataclass(frozen=True)
class MetricSeparability:
    metric: str
    range: float
    std: float
    rank_correlation: float
    separates: Optional[bool]


METRICS: List[tuple[str, Callable[[ModelProfile], float]]] = [
    ("mean_log_loss", lambda p: p.mean_log_loss),
    ("mean_brier", lambda p: p.mean_brier),
    ("expected_calibration_error", lambda p: p.expected_calibration_error),
    ("tp_rate", lambda p: p.tp_rate),
    ("fp_rate", lambda p: p.fp_rate),
]


def value_range(values: Sequence[float]) -> float:
    finite = [v for v in values if not math.isnan(v)]
    if not finite:
        return math.nan
    return max(finite) - min(finite)


def population_std(values: Sequence[float]) -> float:
    finite = [v for v in values if not math.isnan(v)]
    if len(finite) < 2:
        return math.nan
    return float(np.std(finite))


def compute_separability(
    metric: str,
    values: Sequence[float],
    mean_log_losses: Sequence[float],
) -> MetricSeparability:
    """Separability of one metric against the mean log-loss ordering."""
    r = value_range(values)
    s = population_std(values)
    rho = spearman_correlation(rank_with_ties(mean_log_losses), rank_with_ties(values))
    separates = None
    if len(values) >= MIN_MODELS_FOR_SEPARABILITY:
        # NaN comparisons are False
        separates = bool(r > MIN_RANGE and s > MIN_STD)
    return MetricSeparability(metric, r, s, rho, separates)


def analyze_separability(profiles: Sequence[ModelProfile]) -> List[MetricSeparability]:
    if not profiles:
        return []
    reference = [p.mean_log_loss for p in profiles]
    return [
        compute_separability(name, [accessor(p) for p in profiles], reference)
        for name, accessor in METRICS
    ]


__all__ = [
    "ModelProfile",
    "MetricSeparability",
    "METRICS",
    "value_range",
    "population_std",
    "compute_separability",
    "analyze_separability",
]
