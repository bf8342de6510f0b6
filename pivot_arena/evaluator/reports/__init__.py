"""Run-level reports: invariants, leaderboards and metric separability."""

from .invariants import (
    HorizonInvariants,
    HorizonRankability,
    RunInvariants,
    build_run_invariants,
    compute_horizon_rankability,
    has_insufficient_coverage,
    is_horizon_rankable,
)
from .leaderboard import (
    LeaderboardEntry,
    build_leaderboard,
    build_leaderboards,
    expected_calibration_error,
    precision,
    win_rate,
)
from .separability import MetricSeparability, ModelProfile, analyze_separability, compute_separability

__all__ = [
    "HorizonInvariants",
    "HorizonRankability",
    "RunInvariants",
    "build_run_invariants",
    "compute_horizon_rankability",
    "has_insufficient_coverage",
    "is_horizon_rankable",
    "LeaderboardEntry",
    "build_leaderboard",
    "build_leaderboards",
    "expected_calibration_error",
    "precision",
    "win_rate",
    "MetricSeparability",
    "ModelProfile",
    "analyze_separability",
    "compute_separability",
]
