"""Scoring hyperparameters and configuration.

All tournament-related configuration lives here to ensure:
1. Single source of truth for thresholds and weights
2. Reproducibility across runs (same params = same decisions)
3. Easy tuning and experimentation

IMPORTANT: Changes to these parameters change elimination outcomes.
Record the parameter set alongside any published leaderboard.
"""

from __future__ import annotations

import math
from typing import Dict, Literal

from pydantic import BaseModel, Field, model_validator


class ValidityGateParams(BaseModel):
    """Thresholds for per-model, per-horizon validity gates."""

    min_coverage: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Minimum fraction of scheduled rounds that produced a scored prediction.",
    )
    max_failure_rate: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Maximum fraction of rounds where the prediction source failed.",
    )
    max_unique_p: int = Field(
        default=2,
        ge=1,
        description="Constant predictor gate: at most this many distinct probabilities.",
    )
    max_p_std_dev: float = Field(
        default=0.02,
        ge=0.0,
        le=0.5,
        description="Constant predictor gate: population std-dev at or below this value.",
    )
    extreme_high: float = Field(
        default=0.9,
        ge=0.5,
        le=1.0,
        description="Predictions at or above this value count as extreme.",
    )
    extreme_low: float = Field(
        default=0.1,
        ge=0.0,
        le=0.5,
        description="Predictions at or below this value count as extreme.",
    )
    max_extreme_prediction_rate: float = Field(
        default=0.9,
        ge=0.0,
        le=1.0,
        description="Fail when more than this fraction of predictions is extreme.",
    )
    confident_high: float = Field(
        default=0.8,
        ge=0.5,
        le=1.0,
        description="A prediction above this value that resolves false is confidently wrong.",
    )
    confident_low: float = Field(
        default=0.2,
        ge=0.0,
        le=0.5,
        description="A prediction below this value that resolves true is confidently wrong.",
    )
    max_confident_wrong_rate: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Fail when more than this fraction of rounds is confidently wrong.",
    )


class Phase0Params(BaseModel):
    """Sanity filter thresholds."""

    min_rounds: int = Field(default=6, ge=1, description="Rounds required before Phase 0 may eliminate.")
    log_loss_multiplier: float = Field(
        default=1.1,
        ge=1.0,
        le=2.0,
        description="Mean log-loss above ln(2) times this multiplier is a bad horizon.",
    )
    max_bad_horizons: int = Field(
        default=1,
        ge=0,
        description="Eliminate when more than this many horizons exceed the log-loss threshold.",
    )
    extreme_error_threshold: float = Field(
        default=0.8,
        ge=0.5,
        le=1.0,
        description="p above this with a false label is an extreme error.",
    )
    max_extreme_error_rate: float = Field(default=0.2, ge=0.0, le=1.0)
    degenerate_high: float = Field(default=0.9, ge=0.5, le=1.0)
    degenerate_low: float = Field(default=0.1, ge=0.0, le=0.5)
    soft_fail_log_loss: float = Field(
        default=0.762,
        gt=0.0,
        description="Skill sanity soft failure boundary (about 10% worse than random).",
    )
    hard_fail_log_loss: float = Field(default=0.90, gt=0.0, description="Skill sanity hard failure boundary.")
    skill_margin: float = Field(
        default=0.1,
        ge=0.0,
        description="Required improvement over the best trivial baseline.",
    )
    min_trivial_baseline: float = Field(
        default=0.1,
        ge=0.0,
        description="Only require beating trivial baselines when the best one is at least this large.",
    )

    @property
    def log_loss_threshold(self) -> float:
        return math.log(2) * self.log_loss_multiplier


class Phase1Params(BaseModel):
    """Relative performance qualification."""

    mode: Literal["percentile", "prevalence_margin", "top_percent"] = Field(
        default="percentile",
        description="How qualification is decided per horizon.",
    )
    min_percentile: float = Field(default=30.0, ge=0.0, le=100.0)
    prevalence_margin: float = Field(default=0.1, ge=0.0, le=1.0)
    top_percent: float = Field(default=0.7, gt=0.0, le=1.0)
    # Whole-model rule kept for reporting
    weak_percentile: float = Field(default=25.0, ge=0.0, le=100.0)
    strong_percentile: float = Field(default=75.0, ge=0.0, le=100.0)
    max_weak_horizons: int = Field(default=1, ge=0)


class Phase2Params(BaseModel):
    """Stability and regret elimination."""

    window_size: int = Field(default=6, ge=1, le=100, description="Rolling window length in rounds.")
    max_regret: float = Field(default=1.5, gt=0.0)
    min_regret_horizons: int = Field(default=2, ge=1)
    stability_multiplier: float = Field(default=2.0, gt=0.0)
    min_unstable_horizons: int = Field(default=3, ge=1)


class CompositeWeights(BaseModel):
    """Weights for the per-horizon composite score."""

    log_loss: float = Field(default=0.5, ge=0.0, le=1.0)
    best_window: float = Field(default=0.3, ge=0.0, le=1.0)
    stability: float = Field(default=0.2, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _sum_to_one(self) -> "CompositeWeights":
        total = self.log_loss + self.best_window + self.stability
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"composite weights must sum to 1, got {total}")
        return self


class GlobalRankingWeights(BaseModel):
    """Weights for the single-list global ranking."""

    percentile: float = Field(default=0.4, ge=0.0, le=1.0)
    best_window: float = Field(default=0.3, ge=0.0, le=1.0)
    stability: float = Field(default=0.2, ge=0.0, le=1.0)
    early_bonus: float = Field(default=0.1, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _sum_to_one(self) -> "GlobalRankingWeights":
        total = self.percentile + self.best_window + self.stability + self.early_bonus
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"global ranking weights must sum to 1, got {total}")
        return self


class Phase3Params(BaseModel):
    """Final ranking."""

    arena_size: int = Field(default=8, ge=1, description="Maximum models returned per ranking.")
    winsorize_lower: float = Field(default=0.05, ge=0.0, lt=0.5)
    winsorize_upper: float = Field(default=0.95, gt=0.5, le=1.0)
    composite: CompositeWeights = Field(default_factory=CompositeWeights)
    global_weights: GlobalRankingWeights = Field(default_factory=GlobalRankingWeights)


class EnsembleParams(BaseModel):
    """Online ensemble weighting."""

    window_size: int = Field(default=6, ge=1, le=100)
    alpha: float = Field(default=4.0, ge=0.0, le=100.0, description="Softmax temperature on rolling log-loss.")
    min_models: int = Field(default=3, ge=1, description="Contributors required for a scoreable round.")


class SamplingParams(BaseModel):
    """Snap time selection."""

    proximity_threshold: Dict[str, float] = Field(
        default_factory=lambda: {"15m": 0.004, "1h": 0.008, "4h": 0.015, "24h": 0.03},
        description="Max relative distance of close to reference low, per horizon.",
    )
    min_separation_minutes: Dict[str, int] = Field(
        default_factory=lambda: {"15m": 30, "1h": 120, "4h": 360, "24h": 1440},
    )
    min_positive: int = Field(default=10, ge=0)
    max_positive: int = Field(default=14, ge=0)
    min_minority: int = Field(default=8, ge=0)

    @model_validator(mode="after")
    def _positive_bounds(self) -> "SamplingParams":
        if self.min_positive > self.max_positive:
            raise ValueError("min_positive must not exceed max_positive")
        return self


class RankabilityParams(BaseModel):
    """Label diversity and coverage needed before a horizon or model is ranked."""

    min_class_count: int = Field(default=5, ge=0)
    min_class_ratio: float = Field(default=0.1, ge=0.0, le=0.5)
    min_effective_rounds: int = Field(default=10, ge=0)
    min_coverage_ratio: float = Field(default=0.8, ge=0.0, le=1.0)
    calibration_bins: int = Field(default=10, ge=1, le=100)


class ArenaParams(BaseModel):
    """Master configuration for the tournament."""

    validity: ValidityGateParams = Field(default_factory=ValidityGateParams)
    phase0: Phase0Params = Field(default_factory=Phase0Params)
    phase1: Phase1Params = Field(default_factory=Phase1Params)
    phase2: Phase2Params = Field(default_factory=Phase2Params)
    phase3: Phase3Params = Field(default_factory=Phase3Params)
    ensemble: EnsembleParams = Field(default_factory=EnsembleParams)
    sampling: SamplingParams = Field(default_factory=SamplingParams)
    rankability: RankabilityParams = Field(default_factory=RankabilityParams)


DEFAULT_ARENA_PARAMS = ArenaParams()


def get_arena_params() -> ArenaParams:
    """Return the active parameter set."""
    return DEFAULT_ARENA_PARAMS


__all__ = [
    "ValidityGateParams",
    "Phase0Params",
    "Phase1Params",
    "Phase2Params",
    "CompositeWeights",
    "GlobalRankingWeights",
    "Phase3Params",
    "EnsembleParams",
    "SamplingParams",
    "RankabilityParams",
    "ArenaParams",
    "DEFAULT_ARENA_PARAMS",
    "get_arena_params",
]
