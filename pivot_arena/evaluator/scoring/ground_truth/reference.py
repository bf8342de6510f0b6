"""Reference extreme and the no-new-low / no-new-high label.

Label convention: the reference *holds* when the forward extreme does not
break it. Equality counts as held (non-strict comparison).
"""

from __future__ import annotations

import logging
from typing import Literal, Sequence

from pivot_arena.shared.enums import Horizon

from ..types import Candle, DataError, GroundTruthLabel, ReferenceExtreme
from .candles import forward_window, lookback_window

logger = logging.getLogger(__name__)

Direction = Literal["low", "high"]


def compute_reference_extreme(
    lookback: Sequence[Candle],
    direction: Direction = "low",
) -> ReferenceExtreme:
    """Most extreme low (or high) in the lookback window.

    Scans chronologically and only replaces on strict improvement, so the
    earliest of several equal extremes wins. ``candles_back`` counts from the
    most recent closed candle (0).

    Args:
        lookback: Closed candles, ascending by timestamp
        direction: "low" for the minimum low, "high" for the maximum high

    Returns:
        ReferenceExtreme

    Raises:
        DataError: If the lookback window is empty
    """
    if not lookback:
        raise DataError("lookback window is empty")

    best_idx = 0
    best = _extreme_of(lookback[0], direction)
    for idx in range(1, len(lookback)):
        value = _extreme_of(lookback[idx], direction)
        if (value < best) if direction == "low" else (value > best):
            best = value
            best_idx = idx

    return ReferenceExtreme(price=best, candles_back=len(lookback) - 1 - best_idx)


def _extreme_of(candle: Candle, direction: Direction) -> float:
    return candle.low if direction == "low" else candle.high


def forward_extreme(forward: Sequence[Candle], direction: Direction = "low") -> float:
    """Lowest low (or highest high) in the forward window.

    Raises:
        DataError: If the forward window is empty
    """
    if not forward:
        raise DataError("forward window is empty")
    if direction == "low":
        return min(c.low for c in forward)
    return max(c.high for c in forward)


def resolve_label(
    lookback: Sequence[Candle],
    forward: Sequence[Candle],
    direction: Direction = "low",
) -> GroundTruthLabel:
    """Resolve whether the reference extreme held through the forward window.

    The caller guarantees ``forward`` contains only candles known at the
    availability cutoff; this function does not check timestamps.

    Raises:
        DataError: If either window is empty
    """
    ref = compute_reference_extreme(lookback, direction)
    fwd = forward_extreme(forward, direction)
    held = fwd >= ref.price if direction == "low" else fwd <= ref.price
    return GroundTruthLabel(
        label=held,
        ref_price=ref.price,
        ref_candles_back=ref.candles_back,
        forward_extreme=fwd,
    )


def resolve_no_new_low(
    candles: Sequence[Candle],
    snap_ms: int,
    horizon: Horizon,
) -> GroundTruthLabel:
    """Slice lookback and forward windows for ``horizon`` and resolve the label.

    ``candles`` may extend past the availability cutoff; those candles are
    excluded before resolution.
    """
    lookback = lookback_window(candles, snap_ms, horizon)
    forward = forward_window(candles, snap_ms, horizon)
    if not forward:
        logger.warning(f"No forward candles for {horizon} at {snap_ms}")
    return resolve_label(lookback, forward, "low")


__all__ = [
    "Direction",
    "compute_reference_extreme",
    "forward_extreme",
    "resolve_label",
    "resolve_no_new_low",
]
