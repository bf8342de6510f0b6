"""Drawdown gate for pivot-style ground truth.

Drawdown = (entry - lowest) / entry, floored at 0. An event is valid ground
truth only while its drawdown stays at or below the horizon's threshold.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from pivot_arena.shared.enums import Horizon

from ...config.timeframes import get_timeframe_config
from ..types import Candle, DataError, ValidationError


@dataclass(frozen=True)
class Trade:
    """A single print; ``timestamp`` in epoch ms."""

    timestamp: int
    price: float


def compute_max_drawdown(prices: Iterable[float], entry_price: float) -> float:
    """Max adverse move below ``entry_price`` as a positive fraction.

    Returns 0 when there are no prices or price never trades below entry.

    Raises:
        ValidationError: If entry price is not positive
    """
    if entry_price <= 0:
        raise ValidationError(f"entry price must be > 0, got {entry_price}")
    lowest: Optional[float] = None
    for p in prices:
        if lowest is None or p < lowest:
            lowest = p
    if lowest is None:
        return 0.0
    return max(0.0, (entry_price - lowest) / entry_price)


def candle_drawdown(candles: Sequence[Candle], entry_price: float) -> float:
    return compute_max_drawdown((c.low for c in candles), entry_price)


def is_drawdown_valid(drawdown: float, max_drawdown: float) -> bool:
    """Inclusive: a drawdown exactly at the threshold is still valid."""
    return drawdown <= max_drawdown


def entry_price_at(trades: Sequence[Trade], at_ms: int) -> Optional[float]:
    """Price of the last trade at or before ``at_ms``; None if there is none."""
    price: Optional[float] = None
    latest = -1
    for t in trades:
        if t.timestamp <= at_ms and t.timestamp >= latest:
            latest = t.timestamp
            price = t.price
    return price


def trades_in_window(trades: Sequence[Trade], start_ms: int, end_ms: int) -> list[Trade]:
    return [t for t in trades if start_ms <= t.timestamp <= end_ms]


@dataclass(frozen=True)
class DrawdownGateResult:
    drawdown: float
    max_drawdown: float
    is_valid: bool


def resolve_drawdown_gated(
    entry_price: float,
    forward: Sequence[Candle],
    horizon: Horizon,
    max_drawdown: Optional[float] = None,
) -> DrawdownGateResult:
    """Apply the horizon's drawdown threshold to a forward candle window.

    Raises:
        DataError: If the forward window is empty
    """
    if not forward:
        raise DataError("forward window is empty")
    threshold = get_timeframe_config(horizon).max_drawdown if max_drawdown is None else max_drawdown
    drawdown = candle_drawdown(forward, entry_price)
    return DrawdownGateResult(
        drawdown=drawdown,
        max_drawdown=threshold,
        is_valid=is_drawdown_valid(drawdown, threshold),
    )


__all__ = [
    "Trade",
    "compute_max_drawdown",
    "candle_drawdown",
    "is_drawdown_valid",
    "DrawdownGateResult",
    "resolve_drawdown_gated",
    "entry_price_at",
    "trades_in_window",
]
