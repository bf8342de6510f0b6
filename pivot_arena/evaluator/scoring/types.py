"""Type definitions and constants for the scoring system."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Generic, List, Optional, TypeVar, Union

from pivot_arena.shared.enums import Horizon


class ValidationError(Exception):
    """Raised when input validation fails."""

    pass


class ScoringError(Exception):
    """Raised when scoring computation fails."""

    pass


class ConfigurationError(ScoringError):
    """Raised when static horizon configuration is inconsistent."""

    pass


class DataError(ScoringError):
    """Raised when data required to resolve a label is absent."""

    pass


# ─────────────────────────────────────────────────────────────────────────────
# Resolution state for per-horizon aggregates
# ─────────────────────────────────────────────────────────────────────────────

T = TypeVar("T")


@dataclass(frozen=True)
class NotYetResolved:
    """Value has not been filled in yet (not an error)."""

    reason: str = ""

    @property
    def is_resolved(self) -> bool:
        return False


@dataclass(frozen=True)
class Resolved(Generic[T]):
    value: T

    @property
    def is_resolved(self) -> bool:
        return True


Resolution = Union[NotYetResolved, Resolved[T]]

NOT_YET_RESOLVED = NotYetResolved()


def is_resolved(item: object) -> bool:
    return isinstance(item, Resolved)


def resolved_value(item: object, default: Optional[T] = None) -> Optional[T]:
    """Return the wrapped value, or ``default`` if not resolved."""
    if isinstance(item, Resolved):
        return item.value
    return default


# ─────────────────────────────────────────────────────────────────────────────
# Market data
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Candle:
    """One closed OHLCV bar; ``timestamp`` is the bar open time in epoch ms."""

    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


@dataclass(frozen=True)
class ReferenceExtreme:
    price: float
    candles_back: int


@dataclass(frozen=True)
class GroundTruthLabel:
    """Resolved label for one (symbol, horizon, instant)."""

    label: bool
    ref_price: float
    ref_candles_back: int
    forward_extreme: float
    first_pivot_at: Optional[int] = None
    time_to_pivot_ratio: Optional[float] = None


# ─────────────────────────────────────────────────────────────────────────────
# Scores
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RoundScore:
    """Score for one model on one horizon in one round."""

    round: int
    horizon: Horizon
    prediction: float
    label: bool
    log_loss: float
    brier: float
    is_extreme_error: bool
    time_to_pivot_ratio: Optional[float] = None


@dataclass(frozen=True)
class ValidityMetrics:
    coverage: float
    failure_rate: float
    unique_p: int
    p_std_dev: float
    extreme_prediction_rate: float
    confident_wrong_rate: float


@dataclass(frozen=True)
class ValidityResult:
    horizon: Horizon
    is_valid: bool
    failure_reasons: List[str]
    metrics: ValidityMetrics


@dataclass
class ModelValidity:
    """Validity of one model across every horizon it was evaluated on."""

    model_id: str
    valid_horizons: List[Horizon] = field(default_factory=list)
    invalid_horizons: Dict[Horizon, List[str]] = field(default_factory=dict)
    results: Dict[Horizon, ValidityResult] = field(default_factory=dict)

    @property
    def is_fully_invalid(self) -> bool:
        return len(self.valid_horizons) == 0


__all__ = [
    "ValidationError",
    "ScoringError",
    "ConfigurationError",
    "DataError",
    "NotYetResolved",
    "Resolved",
    "Resolution",
    "NOT_YET_RESOLVED",
    "is_resolved",
    "resolved_value",
    "Candle",
    "ReferenceExtreme",
    "GroundTruthLabel",
    "RoundScore",
    "ValidityMetrics",
    "ValidityResult",
    "ModelValidity",
]
