"""Phase 0: sanity filter.

Coarse, fail-fast gate that removes obviously broken predictors before
the relative phases run. A model is eliminated if any of:
- mean log-loss above ln(2) * 1.1 on two or more horizons
- degenerate predictions (all > 0.9 or all < 0.1) on every horizon
- extreme error rate (p > 0.8 that resolved false) above 0.2 on any horizon

Per-horizon disqualification and the skill-sanity levels are reported
alongside so a surviving model can still lose individual horizons.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Mapping, Optional, Sequence

from pivot_arena.shared.enums import HORIZONS, Horizon

from ...config.scoring_params import ArenaParams, Phase0Params, get_arena_params
from ..metrics.proper_scoring import BaselineLogLosses, compute_baseline_log_losses
from ..metrics.ranking import mean
from ..types import RoundScore

logger = logging.getLogger(__name__)

SkillLevel = Literal["pass", "soft_fail", "hard_fail"]


@dataclass(frozen=True)
class HorizonPhase0Stats:
    rounds: int
    mean_log_loss: float
    mean_brier: float
    extreme_error_rate: float
    degenerate: bool


@dataclass
class Phase0Aggregate:
    by_horizon: Dict[Horizon, HorizonPhase0Stats] = field(default_factory=dict)

    @property
    def rounds(self) -> int:
        """Rounds available on the best-covered horizon."""
        return max((s.rounds for s in self.by_horizon.values()), default=0)

    @property
    def degenerate_pattern(self) -> bool:
        return bool(self.by_horizon) and all(s.degenerate for s in self.by_horizon.values())


@dataclass
class Phase0Decision:
    model_id: str
    eliminated: bool
    reason: Optional[str]
    aggregate: Phase0Aggregate
    disqualified_horizons: Dict[Horizon, str] = field(default_factory=dict)
    skill: Dict[Horizon, SkillLevel] = field(default_factory=dict)


def _is_degenerate(predictions: Sequence[float], params: Phase0Params) -> bool:
    if not predictions:
        return False
    return all(p > params.degenerate_high for p in predictions) or all(
        p < params.degenerate_low for p in predictions
    )


def aggregate_phase0(
    scores: Mapping[Horizon, Sequence[RoundScore]],
    params: Phase0Params | None = None,
) -> Phase0Aggregate:
    """Aggregate per-round scores into per-horizon Phase 0 statistics.

    Horizons with no rounds are omitted.
    """
    params = params or get_arena_params().phase0
    agg = Phase0Aggregate()
    for horizon in HORIZONS:
        rounds = scores.get(horizon, ())
        if not rounds:
            continue
        n = len(rounds)
        extreme = sum(
            1 for r in rounds if r.prediction > params.extreme_error_threshold and not r.label
        )
        agg.by_horizon[horizon] = HorizonPhase0Stats(
            rounds=n,
            mean_log_loss=mean([r.log_loss for r in rounds]),
            mean_brier=mean([r.brier for r in rounds]),
            extreme_error_rate=extreme / n,
            degenerate=_is_degenerate([r.prediction for r in rounds], params),
        )
    return agg


def _high_loss_horizons(agg: Phase0Aggregate, params: Phase0Params) -> List[Horizon]:
    threshold = params.log_loss_threshold
    return [h for h, s in agg.by_horizon.items() if s.mean_log_loss > threshold]


def _extreme_horizons(agg: Phase0Aggregate, params: Phase0Params) -> List[Horizon]:
    return [h for h, s in agg.by_horizon.items() if s.extreme_error_rate > params.max_extreme_error_rate]


def should_eliminate_phase0(agg: Phase0Aggregate, params: Phase0Params | None = None) -> bool:
    params = params or get_arena_params().phase0
    if agg.degenerate_pattern:
        return True
    if len(_high_loss_horizons(agg, params)) > params.max_bad_horizons:
        return True
    return len(_extreme_horizons(agg, params)) > 0


def phase0_reason(agg: Phase0Aggregate, params: Phase0Params | None = None) -> str:
    """Human-readable elimination reason, most severe first."""
    params = params or get_arena_params().phase0
    if agg.degenerate_pattern:
        return "Degenerate pattern"
    bad = _high_loss_horizons(agg, params)
    if len(bad) > params.max_bad_horizons:
        return f"High log loss on {', '.join(str(h) for h in bad)}"
    extreme = _extreme_horizons(agg, params)
    if extreme:
        return f"Extreme errors on {', '.join(str(h) for h in extreme)}"
    return "Failed sanity check"


def classify_skill(mean_log_loss: float, params: Phase0Params | None = None) -> SkillLevel:
    """pass / soft_fail (> 0.762) / hard_fail (> 0.90)."""
    params = params or get_arena_params().phase0
    if mean_log_loss > params.hard_fail_log_loss:
        return "hard_fail"
    if mean_log_loss > params.soft_fail_log_loss:
        return "soft_fail"
    return "pass"


def beats_trivial_baseline(
    mean_log_loss: float,
    baselines: BaselineLogLosses,
    params: Phase0Params | None = None,
) -> bool:
    """Whether the model clears the best constant strategy by the skill margin.

    Only enforced when the trivial baseline itself is meaningful
    (``trivial_best >= min_trivial_baseline``).
    """
    params = params or get_arena_params().phase0
    trivial = baselines.trivial_best
    if not trivial >= params.min_trivial_baseline:
        return True
    return mean_log_loss < trivial + params.skill_margin


def phase0_horizon_failures(
    agg: Phase0Aggregate,
    params: Phase0Params | None = None,
    baselines: Mapping[Horizon, BaselineLogLosses] | None = None,
    include_soft_fails: bool = False,
) -> Dict[Horizon, str]:
    """Horizons a model should lose even if it survives Phase 0 overall."""
    params = params or get_arena_params().phase0
    out: Dict[Horizon, str] = {}
    for horizon, stats in agg.by_horizon.items():
        level = classify_skill(stats.mean_log_loss, params)
        if stats.degenerate:
            out[horizon] = "degenerate"
        elif stats.extreme_error_rate > params.max_extreme_error_rate:
            out[horizon] = "extreme_errors"
        elif level == "hard_fail":
            out[horizon] = "hard_fail"
        elif include_soft_fails and level == "soft_fail":
            out[horizon] = "soft_fail"
        elif baselines is not None and horizon in baselines and not beats_trivial_baseline(
            stats.mean_log_loss, baselines[horizon], params
        ):
            out[horizon] = "no_skill_over_trivial"
    return out


def evaluate_phase0(
    model_id: str,
    scores: Mapping[Horizon, Sequence[RoundScore]],
    params: ArenaParams | None = None,
) -> Phase0Decision:
    """Run the sanity filter for one model.

    Models with fewer than ``min_rounds`` rounds are never eliminated.
    """
    p0 = (params or get_arena_params()).phase0
    agg = aggregate_phase0(scores, p0)
    skill = {h: classify_skill(s.mean_log_loss, p0) for h, s in agg.by_horizon.items()}

    if agg.rounds < p0.min_rounds:
        return Phase0Decision(model_id=model_id, eliminated=False, reason=None, aggregate=agg, skill=skill)

    labels_by_horizon = {h: [r.label for r in scores.get(h, ())] for h in agg.by_horizon}
    baselines = {h: compute_baseline_log_losses(labels) for h, labels in labels_by_horizon.items()}

    eliminated = should_eliminate_phase0(agg, p0)
    reason = phase0_reason(agg, p0) if eliminated else None
    if eliminated:
        logger.info(f"Phase 0 eliminated {model_id}: {reason}")

    return Phase0Decision(
        model_id=model_id,
        eliminated=eliminated,
        reason=reason,
        aggregate=agg,
        disqualified_horizons=phase0_horizon_failures(agg, p0, baselines),
        skill=skill,
    )


__all__ = [
    "SkillLevel",
    "HorizonPhase0Stats",
    "Phase0Aggregate",
    "Phase0Decision",
    "aggregate_phase0",
    "should_eliminate_phase0",
    "phase0_reason",
    "classify_skill",
    "beats_trivial_baseline",
    "phase0_horizon_failures",
    "evaluate_phase0",
]
