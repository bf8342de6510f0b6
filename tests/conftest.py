"""Shared fixtures: synthetic candle series aligned to every bar timeframe."""

from typing import Callable, List, Sequence

import pytest

from pivot_arena.evaluator.scoring.types import Candle

MINUTE_MS = 60_000

# Divisible by every bar duration (5m, 15m, 1h, 4h).
SNAP_MS = 144_000_000_000


def build_candles(start_ms: int, bar_minutes: int, lows: Sequence[float]) -> List[Candle]:
    """One candle per low, opening every ``bar_minutes`` from ``start_ms``."""
    bar_ms = bar_minutes * MINUTE_MS
    return [
        Candle(
            timestamp=start_ms + i * bar_ms,
            open=low + 0.5,
            high=low + 1.0,
            low=low,
            close=low + 0.5,
        )
        for i, low in enumerate(lows)
    ]


@pytest.fixture
def snap_ms() -> int:
    return SNAP_MS


@pytest.fixture
def make_candles() -> Callable[[int, int, Sequence[float]], List[Candle]]:
    return build_candles


@pytest.fixture
def m15_series() -> List[Candle]:
    """5m bars for the 15m horizon: 24 lookback bars then 3 forward bars.

    Reference low is 100 (four bars before the snap); the forward window
    dips to 99.5.
    """
    lookback = [101.0 + (i % 3) for i in range(24)]
    lookback[19] = 100.0
    forward = [100.5, 99.5, 101.0]
    start = SNAP_MS - 24 * 5 * MINUTE_MS
    return build_candles(start, 5, lookback + forward)
