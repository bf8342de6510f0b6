"""Closed-candle arithmetic.

Candles are indexed by their open timestamp in epoch milliseconds. A candle
is closed at ``snap`` when ``open + duration <= snap``; the forming candle
is never visible to label resolution.
"""

from __future__ import annotations

from typing import List, Sequence

from pivot_arena.shared.enums import Horizon

from ...config.timeframes import get_timeframe_config
from ..types import Candle

MINUTE_MS = 60_000


def last_closed_candle_end(snap_ms: int, duration_ms: int) -> int:
    """End time of the most recent candle fully closed at ``snap_ms``."""
    return (snap_ms // duration_ms) * duration_ms


def candle_end(candle: Candle, duration_ms: int) -> int:
    return candle.timestamp + duration_ms


def is_candle_closed(end_ms: int, snap_ms: int) -> bool:
    return end_ms <= snap_ms


def closed_candles(candles: Sequence[Candle], snap_ms: int, duration_ms: int) -> List[Candle]:
    """Candles closed at ``snap_ms``, ascending by timestamp."""
    out = [c for c in candles if is_candle_closed(candle_end(c, duration_ms), snap_ms)]
    out.sort(key=lambda c: c.timestamp)
    return out


def closes_at(snap_ms: int, horizon: Horizon) -> int:
    """Availability cutoff for a label predicted at ``snap_ms``."""
    return snap_ms + get_timeframe_config(horizon).window_duration_ms


def lookback_window(candles: Sequence[Candle], snap_ms: int, horizon: Horizon) -> List[Candle]:
    """Last ``lookback_bars`` closed candles at ``snap_ms``.

    Index 0 in "candles back" terms is the last element of the returned list.
    """
    cfg = get_timeframe_config(horizon)
    closed = closed_candles(candles, snap_ms, cfg.bar_ms)
    return closed[-cfg.lookback_bars:]


def forward_window(candles: Sequence[Candle], snap_ms: int, horizon: Horizon) -> List[Candle]:
    """Candles that open at or after the last closed boundary and close by the cutoff.

    Anything closing after ``closes_at(snap_ms, horizon)`` is dropped, so
    appending later candles to ``candles`` never changes the result.
    """
    cfg = get_timeframe_config(horizon)
    start = last_closed_candle_end(snap_ms, cfg.bar_ms)
    cutoff = closes_at(snap_ms, horizon)
    out = [
        c for c in candles
        if c.timestamp >= start and candle_end(c, cfg.bar_ms) <= cutoff
    ]
    out.sort(key=lambda c: c.timestamp)
    return out


__all__ = [
    "MINUTE_MS",
    "last_closed_candle_end",
    "candle_end",
    "is_candle_closed",
    "closed_candles",
    "closes_at",
    "lookback_window",
    "forward_window",
]
