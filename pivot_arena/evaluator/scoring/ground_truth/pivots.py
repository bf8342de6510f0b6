"""Pivot-annotation ground truth with the drawdown gate.

A bottom call is correct when a confirmed pivot low appears inside
[predicted_at, closes_at] and price never drew down past the horizon's
threshold from the entry price. Annotations are only trusted if they were
available at ``closes_at``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Literal, Optional, Sequence

from pivot_arena.shared.enums import Horizon

from ...config.timeframes import get_timeframe_config
from ..types import Candle, DataError, GroundTruthLabel, ValidationError
from .drawdown import (
    Trade,
    compute_max_drawdown,
    entry_price_at,
    is_drawdown_valid,
    trades_in_window,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PivotAnnotation:
    """Structural event from the annotation provider.

    ``available_at`` is when the pivot became confirmed; None means the
    provider already filtered by availability.
    """

    pivot_at: int
    price: float
    kind: Literal["low", "high"]
    available_at: Optional[int] = None


@dataclass(frozen=True)
class PivotGroundTruth:
    has_structural_bottom: bool
    max_drawdown: float
    is_valid: bool
    available_at: int
    entry_price: float
    lowest_price: float
    first_pivot_at: Optional[int] = None
    time_to_pivot_ratio: Optional[float] = None

    def to_label(self) -> GroundTruthLabel:
        """Label for scoring; ``is_valid`` is the outcome."""
        return GroundTruthLabel(
            label=self.is_valid,
            ref_price=self.entry_price,
            ref_candles_back=0,
            forward_extreme=self.lowest_price,
            first_pivot_at=self.first_pivot_at,
            time_to_pivot_ratio=self.time_to_pivot_ratio,
        )


def filter_pivot_lows(
    annotations: Iterable[PivotAnnotation],
    start_ms: int,
    end_ms: int,
) -> List[PivotAnnotation]:
    """Pivot lows inside [start_ms, end_ms] that were confirmed by ``end_ms``."""
    out = []
    for a in annotations:
        if a.kind != "low":
            continue
        if not (start_ms <= a.pivot_at <= end_ms):
            continue
        if a.available_at is not None and a.available_at > end_ms:
            continue
        out.append(a)
    return out


def detect_fractal_lows(candles: Sequence[Candle], l: int) -> List[PivotAnnotation]:
    """Fractal pivot lows: a low strictly below ``l`` bars on either side.

    Used to cross-check annotations. A pivot at index i is only confirmed once
    bar i + l exists, so ``available_at`` is that bar's timestamp.
    """
    if l < 1:
        raise ValidationError(f"fractal L must be >= 1, got {l}")
    bars = list(candles)
    out: List[PivotAnnotation] = []
    for i in range(l, len(bars) - l):
        low = bars[i].low
        neighbours = bars[i - l:i] + bars[i + 1:i + l + 1]
        if all(low < c.low for c in neighbours):
            out.append(
                PivotAnnotation(
                    pivot_at=bars[i].timestamp,
                    price=low,
                    kind="low",
                    available_at=bars[i + l].timestamp,
                )
            )
    return out


def resolve_pivot_ground_truth(
    horizon: Horizon,
    predicted_at: int,
    annotations: Iterable[PivotAnnotation],
    trades: Sequence[Trade],
    max_drawdown: Optional[float] = None,
) -> PivotGroundTruth:
    """Resolve a bottom prediction against pivot annotations.

    Args:
        horizon: Prediction horizon
        predicted_at: Prediction time (epoch ms)
        annotations: Pivot annotations (any kind, any time)
        trades: Trades covering the prediction window
        max_drawdown: Override for the horizon's configured threshold

    Returns:
        PivotGroundTruth with ``is_valid`` as the label

    Raises:
        DataError: If no trade at or before ``predicted_at`` gives an entry price
    """
    cfg = get_timeframe_config(horizon)
    duration = cfg.window_duration_ms
    closes = predicted_at + duration
    threshold = cfg.max_drawdown if max_drawdown is None else max_drawdown

    lows = filter_pivot_lows(annotations, predicted_at, closes)
    has_bottom = len(lows) > 0

    entry = entry_price_at(trades, predicted_at)
    if entry is None:
        raise DataError(f"no entry price for {horizon} at {predicted_at}")

    window = trades_in_window(trades, predicted_at, closes)
    drawdown = compute_max_drawdown((t.price for t in window), entry)
    lowest = min((t.price for t in window), default=entry)
    is_valid = has_bottom and is_drawdown_valid(drawdown, threshold)

    first_pivot_at = None
    ratio = None
    if has_bottom:
        first_pivot_at = min(a.pivot_at for a in lows)
        ratio = (first_pivot_at - predicted_at) / duration

    return PivotGroundTruth(
        has_structural_bottom=has_bottom,
        max_drawdown=drawdown,
        is_valid=is_valid,
        available_at=closes,
        entry_price=entry,
        lowest_price=lowest,
        first_pivot_at=first_pivot_at,
        time_to_pivot_ratio=ratio,
    )


def gate_pivot_events(
    horizon: Horizon,
    events: Iterable[PivotAnnotation],
    trades: Sequence[Trade],
    max_drawdown: Optional[float] = None,
) -> List[PivotAnnotation]:
    """Keep pivot lows whose forward drawdown from the pivot price stays in bounds.

    Events with no trades in their forward window cannot be checked and are
    dropped.
    """
    cfg = get_timeframe_config(horizon)
    threshold = cfg.max_drawdown if max_drawdown is None else max_drawdown
    kept = []
    for event in events:
        if event.kind != "low":
            continue
        window = trades_in_window(trades, event.pivot_at, event.pivot_at + cfg.window_duration_ms)
        if not window:
            logger.debug(f"Dropped pivot at {event.pivot_at}: no trades to check drawdown")
            continue
        drawdown = compute_max_drawdown((t.price for t in window), event.price)
        if is_drawdown_valid(drawdown, threshold):
            kept.append(event)
        else:
            logger.debug(f"Dropped pivot at {event.pivot_at}: drawdown {drawdown:.5f} > {threshold}")
    return kept


__all__ = [
    "PivotAnnotation",
    "PivotGroundTruth",
    "filter_pivot_lows",
    "detect_fractal_lows",
    "resolve_pivot_ground_truth",
    "gate_pivot_events",
]
