"""Tests for leakage-safe no-new-low label resolution."""

import math

import pytest

from pivot_arena.evaluator.scoring.ground_truth.candles import (
    closed_candles,
    closes_at,
    forward_window,
    is_candle_closed,
    last_closed_candle_end,
    lookback_window,
)
from pivot_arena.evaluator.scoring.ground_truth.reference import (
    compute_reference_extreme,
    forward_extreme,
    resolve_label,
    resolve_no_new_low,
)
from pivot_arena.evaluator.scoring.metrics.proper_scoring import log_loss_binary
from pivot_arena.evaluator.scoring.types import DataError
from pivot_arena.shared.enums import Horizon

MINUTE_MS = 60_000
FIVE_MIN = 5 * MINUTE_MS


class TestCandleArithmetic:
    """Tests for closed-candle helpers."""

    def test_last_closed_end_on_boundary(self, snap_ms):
        """On a bar boundary the last closed candle ends at the snap."""
        assert last_closed_candle_end(snap_ms, FIVE_MIN) == snap_ms

    def test_last_closed_end_mid_bar(self, snap_ms):
        """Mid-bar, the forming candle is excluded."""
        assert last_closed_candle_end(snap_ms + 2 * MINUTE_MS, FIVE_MIN) == snap_ms

    def test_closed_is_inclusive(self, snap_ms):
        """A candle ending exactly at the snap is closed."""
        assert is_candle_closed(snap_ms, snap_ms)
        assert not is_candle_closed(snap_ms + 1, snap_ms)

    def test_closed_candles_sorted(self, make_candles, snap_ms):
        """Closed candles come back ascending, forming candle dropped."""
        candles = make_candles(snap_ms - 2 * FIVE_MIN, 5, [1, 2, 3])
        out = closed_candles(list(reversed(candles)), snap_ms, FIVE_MIN)
        assert [c.low for c in out] == [1, 2]

    def test_closes_at(self, snap_ms):
        """Labels become available one forward window after the snap."""
        assert closes_at(snap_ms, Horizon.H1) == snap_ms + 60 * MINUTE_MS


class TestWindows:
    """Tests for lookback and forward slicing."""

    def test_lookback_length(self, m15_series, snap_ms):
        """The lookback holds the last 24 closed 5m bars."""
        lookback = lookback_window(m15_series, snap_ms, Horizon.M15)
        assert len(lookback) == 24
        assert lookback[-1].timestamp + FIVE_MIN == snap_ms

    def test_forward_length(self, m15_series, snap_ms):
        """The forward window holds the three bars after the snap."""
        forward = forward_window(m15_series, snap_ms, Horizon.M15)
        assert [c.low for c in forward] == [100.5, 99.5, 101.0]

    def test_no_lookahead(self, m15_series, make_candles, snap_ms):
        """Candles past the availability cutoff never change the forward window."""
        extended = m15_series + make_candles(snap_ms + 3 * FIVE_MIN, 5, [50.0, 40.0])
        assert forward_window(extended, snap_ms, Horizon.M15) == forward_window(m15_series, snap_ms, Horizon.M15)
        assert resolve_no_new_low(extended, snap_ms, Horizon.M15) == resolve_no_new_low(
            m15_series, snap_ms, Horizon.M15
        )


class TestReferenceExtreme:
    """Tests for the reference low and high."""

    def test_reference_low(self, m15_series, snap_ms):
        """The reference low is the lookback minimum, counted back from the last bar."""
        ref = compute_reference_extreme(lookback_window(m15_series, snap_ms, Horizon.M15))
        assert ref.price == 100.0
        assert ref.candles_back == 4

    def test_earliest_tie_wins(self, make_candles, snap_ms):
        """With equal lows the earliest one is the reference."""
        lookback = make_candles(snap_ms - 4 * FIVE_MIN, 5, [5.0, 3.0, 4.0, 3.0])
        assert compute_reference_extreme(lookback).candles_back == 2

    def test_reference_high(self, make_candles, snap_ms):
        """direction='high' picks the maximum high."""
        lookback = make_candles(snap_ms - 3 * FIVE_MIN, 5, [5.0, 9.0, 4.0])
        ref = compute_reference_extreme(lookback, "high")
        assert ref.price == 10.0
        assert ref.candles_back == 1

    def test_empty_lookback(self):
        """An empty lookback is a data error."""
        with pytest.raises(DataError):
            compute_reference_extreme([])

    def test_empty_forward(self):
        """An empty forward window is a data error."""
        with pytest.raises(DataError):
            forward_extreme([])


class TestResolveLabel:
    """Tests for end-to-end label resolution."""

    def test_new_low_breaks_reference(self, m15_series, snap_ms):
        """A forward low of 99.5 under a reference of 100 resolves false."""
        label = resolve_no_new_low(m15_series, snap_ms, Horizon.M15)
        assert label.label is False
        assert label.ref_price == 100.0
        assert label.forward_extreme == 99.5

    def test_scored_against_prediction(self, m15_series, snap_ms):
        """Predicting 0.2 for a false outcome costs -ln(0.8)."""
        label = resolve_no_new_low(m15_series, snap_ms, Horizon.M15)
        assert log_loss_binary(0.2, label.label) == pytest.approx(-math.log(0.8))
        assert log_loss_binary(0.2, label.label) == pytest.approx(0.2231, abs=1e-4)

    def test_equal_low_holds(self, make_candles, snap_ms):
        """Touching the reference exactly counts as held."""
        lookback = make_candles(snap_ms - 2 * FIVE_MIN, 5, [100.0, 101.0])
        forward = make_candles(snap_ms, 5, [100.0])
        assert resolve_label(lookback, forward).label is True

    def test_no_new_high(self, make_candles, snap_ms):
        """For highs the reference holds when no forward high exceeds it."""
        lookback = make_candles(snap_ms - 2 * FIVE_MIN, 5, [100.0, 101.0])
        forward = make_candles(snap_ms, 5, [100.5])
        # forward high 101.5 vs reference high 102
        assert resolve_label(lookback, forward, "high").label is True

    def test_missing_forward_raises(self, m15_series, snap_ms):
        """Without forward candles no label is invented."""
        lookback_only = [c for c in m15_series if c.timestamp < snap_ms]
        with pytest.raises(DataError):
            resolve_no_new_low(lookback_only, snap_ms, Horizon.M15)
