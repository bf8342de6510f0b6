"""Per-horizon leaderboards.

Rows are sorted by mean log-loss (lower is better); models with no scored
rounds sort last.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Sequence

import numpy as np

from pivot_arena.shared.enums import HORIZONS, Horizon

from ..config.scoring_params import RankabilityParams, get_arena_params
from ..scoring.types import ValidationError
from ..state.model_state import ModelState

ECE_BINS = 10
# below this ECE is noise
MIN_SAMPLES_FOR_CALIBRATION = 20


@dataclass(frozen=True)
class LeaderboardEntry:
    model_id: str
    rank: int
    mean_log_loss: float
    mean_brier: float
    win_rate: float
    precision: float
    calibration_error: float
    rounds_played: int


def _check_lengths(predictions: Sequence[float], labels: Sequence[bool]) -> None:
    if len(predictions) != len(labels):
        raise ValidationError(f"length mismatch: {len(predictions)} predictions vs {len(labels)} labels")


def win_rate(predictions: Sequence[float], labels: Sequence[bool]) -> float:
    """Share of rounds where (p > 0.5) matched the label. NaN when empty."""
    _check_lengths(predictions, labels)
    if not predictions:
        return math.nan
    return sum((p > 0.5) == bool(y) for p, y in zip(predictions, labels)) / len(predictions)


def precision(predictions: Sequence[float], labels: Sequence[bool]) -> float:
    """TP / (TP + FP) over rounds predicted true. NaN with no positive calls."""
    _check_lengths(predictions, labels)
    called = [bool(y) for p, y in zip(predictions, labels) if p > 0.5]
    if not called:
        return math.nan
    return sum(called) / len(called)


def expected_calibration_error(
    predictions: Sequence[float],
    labels: Sequence[bool],
    bins: int = ECE_BINS,
) -> float:
    """Weighted mean |mean predicted - observed frequency| over equal-width bins.

    p = 1.0 falls in the last bin.
    """
    _check_lengths(predictions, labels)
    if not predictions:
        return math.nan
    p = np.asarray(predictions, dtype=np.float64)
    y = np.asarray(labels, dtype=np.float64)
    idx = np.minimum((p * bins).astype(int), bins - 1)
    ece = 0.0
    for b in range(bins):
        mask = idx == b
        count = int(mask.sum())
        if count == 0:
            continue
        ece += (count / len(p)) * abs(float(p[mask].mean()) - float(y[mask].mean()))
    return ece


def _sort_key(entry: LeaderboardEntry) -> tuple:
    nan = math.isnan(entry.mean_log_loss)
    return (nan, 0.0 if nan else entry.mean_log_loss)


def build_leaderboard(
    horizon: Horizon,
    states: Iterable[ModelState],
    params: RankabilityParams | None = None,
) -> List[LeaderboardEntry]:
    params = params or get_arena_params().rankability
    rows = []
    for state in states:
        preds = state.predictions(horizon)
        labels = state.labels(horizon)
        losses = state.losses(horizon)
        briers = [s.brier for s in state.scores[horizon]]
        rows.append(LeaderboardEntry(
            model_id=state.model_id,
            rank=0,
            mean_log_loss=sum(losses) / len(losses) if losses else math.nan,
            mean_brier=sum(briers) / len(briers) if briers else math.nan,
            win_rate=win_rate(preds, labels),
            precision=precision(preds, labels),
            calibration_error=(
                expected_calibration_error(preds, labels, params.calibration_bins)
                if len(preds) >= MIN_SAMPLES_FOR_CALIBRATION
                else math.nan
            ),
            rounds_played=len(preds),
        ))
    rows.sort(key=_sort_key)
    return [replace(r, rank=i + 1) for i, r in enumerate(rows)]


def build_leaderboards(
    states: Iterable[ModelState],
    params: RankabilityParams | None = None,
) -> Dict[Horizon, List[LeaderboardEntry]]:
    states = list(states)
    return {h: build_leaderboard(h, states, params) for h in HORIZONS}


__all__ = [
    "ECE_BINS",
    "LeaderboardEntry",
    "win_rate",
    "precision",
    "expected_calibration_error",
    "build_leaderboard",
    "build_leaderboards",
]
