"""Per-horizon timeframe configuration.

Every horizon shares the same symbol and snap instant but differs in bar
size, lookback length and forward window. The table below is static; it is
validated once at startup and a mismatch is fatal.

Invariant: lookback is always exactly 8x the horizon's bar count.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Literal, Optional, Tuple

from pivot_arena.shared.enums import HORIZONS, Horizon

from ..scoring.types import ConfigurationError


LOOKBACK_MULTIPLIER = 8
SNAP_INTERVAL_MINUTES = 15

CandleIndexing = Literal["rightmost_closed_is_zero"]


@dataclass(frozen=True)
class PivotSpec:
    """Pivot detection settings used by the annotation provider.

    ``fractal`` specs carry ``fractal_l`` (bars on each side), ``zigzag``
    specs carry ``deviation_pct`` (minimum reversal as a fraction).
    """

    method: Literal["fractal", "zigzag"]
    bar_timeframe: str
    fractal_l: Optional[int] = None
    deviation_pct: Optional[float] = None


def fractal(bar: str, l: int) -> PivotSpec:
    return PivotSpec("fractal", bar, fractal_l=l)


def zigzag(bar: str, deviation_pct: float) -> PivotSpec:
    return PivotSpec("zigzag", bar, deviation_pct=deviation_pct)


@dataclass(frozen=True)
class TimeframeConfig:
    horizon: Horizon
    bar_timeframe: str
    bar_minutes: int
    horizon_bars: int
    lookback_bars: int
    window_duration_minutes: int
    max_drawdown: float
    pivot_primary: PivotSpec
    pivot_secondary: PivotSpec
    candle_indexing: CandleIndexing = "rightmost_closed_is_zero"
    exclude_forming_candle: bool = True

    @property
    def forward_window_minutes(self) -> int:
        return self.horizon_bars * self.bar_minutes

    @property
    def lookback_minutes(self) -> int:
        return self.lookback_bars * self.bar_minutes

    @property
    def window_duration_ms(self) -> int:
        return self.window_duration_minutes * 60_000

    @property
    def bar_ms(self) -> int:
        return self.bar_minutes * 60_000


def _build(
    horizon: Horizon,
    bar: str,
    bar_minutes: int,
    horizon_bars: int,
    pivots: Tuple[PivotSpec, PivotSpec],
    max_drawdown: float = 0.001,
) -> TimeframeConfig:
    return TimeframeConfig(
        horizon=horizon,
        bar_timeframe=bar,
        bar_minutes=bar_minutes,
        horizon_bars=horizon_bars,
        lookback_bars=LOOKBACK_MULTIPLIER * horizon_bars,
        window_duration_minutes=bar_minutes * horizon_bars,
        max_drawdown=max_drawdown,
        pivot_primary=pivots[0],
        pivot_secondary=pivots[1],
    )


TIMEFRAME_CONFIGS: Dict[Horizon, TimeframeConfig] = {
    Horizon.M15: _build(Horizon.M15, "5m", 5, 3, (fractal("5m", 3), zigzag("5m", 0.005))),
    Horizon.H1: _build(Horizon.H1, "15m", 15, 4, (fractal("15m", 3), zigzag("15m", 0.01))),
    Horizon.H4: _build(Horizon.H4, "1h", 60, 4, (zigzag("1h", 0.015), fractal("1h", 4))),
    Horizon.H24: _build(Horizon.H24, "4h", 240, 6, (zigzag("4h", 0.025), fractal("4h", 5))),
}


def get_timeframe_config(horizon: Horizon | str) -> TimeframeConfig:
    """Look up the configuration for a horizon.

    Raises:
        ConfigurationError: If the horizon is unknown
    """
    try:
        return TIMEFRAME_CONFIGS[Horizon(horizon)]
    except (KeyError, ValueError):
        raise ConfigurationError(f"unknown horizon {horizon!r}")


def get_lookback_bars(horizon: Horizon | str) -> int:
    return get_timeframe_config(horizon).lookback_bars


def get_horizon_bars(horizon: Horizon | str) -> int:
    return get_timeframe_config(horizon).horizon_bars


def get_forward_window_minutes(horizon: Horizon | str) -> int:
    return get_timeframe_config(horizon).forward_window_minutes


def validate_timeframe_config(config: TimeframeConfig) -> None:
    """Check the internal consistency of one horizon's configuration.

    Raises:
        ConfigurationError: If window, lookback ratio or pivot timeframe disagree
    """
    if config.window_duration_minutes != config.forward_window_minutes:
        raise ConfigurationError(
            f"{config.horizon}: window duration {config.window_duration_minutes}m "
            f"!= forward window {config.forward_window_minutes}m"
        )
    if config.lookback_bars != LOOKBACK_MULTIPLIER * config.horizon_bars:
        raise ConfigurationError(
            f"{config.horizon}: lookback {config.lookback_bars} bars "
            f"!= {LOOKBACK_MULTIPLIER} x {config.horizon_bars} horizon bars"
        )
    for pivot in (config.pivot_primary, config.pivot_secondary):
        if pivot.bar_timeframe != config.bar_timeframe:
            raise ConfigurationError(
                f"{config.horizon}: pivot timeframe {pivot.bar_timeframe} "
                f"!= chart timeframe {config.bar_timeframe}"
            )
        if pivot.method == "fractal" and not pivot.fractal_l:
            raise ConfigurationError(f"{config.horizon}: fractal pivot detector needs L >= 1")
        if pivot.method == "zigzag" and not pivot.deviation_pct:
            raise ConfigurationError(f"{config.horizon}: zigzag pivot detector needs a deviation")
    if not 0.0 <= config.max_drawdown < 1.0:
        raise ConfigurationError(f"{config.horizon}: max drawdown {config.max_drawdown} outside [0, 1)")


def validate_all_timeframes() -> None:
    for horizon in HORIZONS:
        validate_timeframe_config(get_timeframe_config(horizon))


__all__ = [
    "LOOKBACK_MULTIPLIER",
    "SNAP_INTERVAL_MINUTES",
    "PivotSpec",
    "fractal",
    "zigzag",
    "TimeframeConfig",
    "TIMEFRAME_CONFIGS",
    "get_timeframe_config",
    "get_lookback_bars",
    "get_horizon_bars",
    "get_forward_window_minutes",
    "validate_timeframe_config",
    "validate_all_timeframes",
]
