"""Simulated clock for replayed benchmark runs.

The clock is an immutable value: each round receives the current state and
returns the next one. Nothing global holds "now".
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import NamedTuple

from ..scoring.types import ConfigurationError

ROUND_INTERVAL = timedelta(minutes=15)
PREDICTION_WINDOW = timedelta(hours=1)
CHART_WINDOW = timedelta(hours=4)

START_TIME_ENV = "SIMULATION_START_TIME"


class TimeWindow(NamedTuple):
    start: datetime
    end: datetime


@dataclass(frozen=True)
class ClockState:
    current_time: datetime
    round_number: int
    start_time: datetime

    @classmethod
    def initial(cls, start_time: datetime) -> "ClockState":
        if start_time.tzinfo is None:
            start_time = start_time.replace(tzinfo=timezone.utc)
        return cls(current_time=start_time, round_number=0, start_time=start_time)

    @classmethod
    def from_env(cls) -> "ClockState":
        """Build the initial state from ``SIMULATION_START_TIME`` (ISO 8601).

        Raises:
            ConfigurationError: If the variable is missing or not a valid date
        """
        raw = os.environ.get(START_TIME_ENV, "")
        if not raw:
            raise ConfigurationError(f"{START_TIME_ENV} environment variable is required")
        try:
            start = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            raise ConfigurationError(f"{START_TIME_ENV} must be an ISO 8601 date, got {raw!r}")
        return cls.initial(start)

    @property
    def snap_ms(self) -> int:
        return int(self.current_time.timestamp() * 1000)

    def advance(self, interval: timedelta = ROUND_INTERVAL) -> "ClockState":
        return replace(
            self,
            current_time=self.current_time + interval,
            round_number=self.round_number + 1,
        )

    def prediction_window(self) -> TimeWindow:
        return TimeWindow(self.current_time, self.current_time + PREDICTION_WINDOW)

    def chart_window(self) -> TimeWindow:
        return TimeWindow(self.current_time - CHART_WINDOW, self.current_time)


def reset_clock_state(start_time: datetime) -> ClockState:
    """Fresh round-zero state; tests use this instead of sharing one clock."""
    return ClockState.initial(start_time)


__all__ = [
    "ROUND_INTERVAL",
    "TimeWindow",
    "ClockState",
    "reset_clock_state",
]
