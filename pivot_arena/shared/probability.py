"""Prediction conversion shared by ingest and scoring.

Prediction sources answer each contract either with a probability or with a
``{outcome, confidence}`` pair. Scoring only ever sees the probability that
the contract resolves true.

Safe math and bounds:
- probabilities must lie in [0, 1];
- confidence must lie in [0.5, 1];
- NaN and Inf are rejected.
A ValueError is raised for anything else.
"""

from __future__ import annotations

import math
from typing import Mapping, Union

PredictionInput = Union[float, int, Mapping[str, object]]


def _finite(value: object, name: str) -> float:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be numeric, got bool")
    try:
        f = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be numeric, got {type(value).__name__}")
    if not math.isfinite(f):
        raise ValueError(f"{name} must be finite")
    return f


def confidence_to_probability(outcome: bool, confidence: float) -> float:
    """Map an ``{outcome, confidence}`` answer to P(contract is true).

    Raises ValueError if confidence is outside [0.5, 1].
    """
    c = _finite(confidence, "confidence")
    if c < 0.5 or c > 1.0:
        raise ValueError(f"confidence {c} outside [0.5, 1]")
    return c if outcome else 1.0 - c


def to_probability(prediction: PredictionInput) -> float:
    """Convert either prediction form to a probability in [0, 1]."""
    if isinstance(prediction, Mapping):
        if "probability" in prediction:
            return to_probability(prediction["probability"])  # type: ignore[arg-type]
        if "outcome" not in prediction or "confidence" not in prediction:
            raise ValueError("prediction needs 'probability' or 'outcome' and 'confidence'")
        outcome = prediction["outcome"]
        if not isinstance(outcome, bool):
            raise ValueError(f"outcome must be a bool, got {type(outcome).__name__}")
        return confidence_to_probability(
            outcome,
            prediction["confidence"],  # type: ignore[arg-type]
        )
    p = _finite(prediction, "probability")
    if p < 0.0 or p > 1.0:
        raise ValueError(f"probability {p} outside [0, 1]")
    return p


__all__ = ["PredictionInput", "confidence_to_probability", "to_probability"]
