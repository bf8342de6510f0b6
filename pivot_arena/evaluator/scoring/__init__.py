"""Scoring system for evaluating sequential probabilistic forecasts.

This package contains the tournament's computational core:
- Ground truth resolution from closed candles (no lookahead)
- Per-round metrics (log-loss, Brier) and baselines
- Validity gates per model and horizon
- Phase 0 to 3 elimination and ranking
- Online ensemble weighting over strictly-past history
"""

from __future__ import annotations

__all__: list[str] = []
