"""Run invariants: the single place derived run-level sets are computed.

A horizon is rankable only when both label classes are well represented.
Model sets narrow monotonically: evaluated -> effective -> valid -> qualified.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from pivot_arena.shared.enums import HORIZONS, Horizon

from ..config.scoring_params import ArenaParams, RankabilityParams, get_arena_params
from ..scoring.metrics.proper_scoring import RANDOM_BASELINE, compute_prevalence_log_loss
from ..scoring.metrics.ranking import mean
from ..scoring.phases.phase1 import ModelQualificationInput, qualify_models
from ..scoring.types import ModelValidity
from ..state.model_state import ModelStateManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HorizonRankability:
    horizon: Horizon
    true_count: int
    false_count: int
    is_rankable: bool
    reason: Optional[str] = None

    @property
    def total(self) -> int:
        return self.true_count + self.false_count


@dataclass
class HorizonInvariants:
    rankability: HorizonRankability
    random_log_loss: float
    prevalence_log_loss: float
    valid: List[str] = field(default_factory=list)
    qualified: List[str] = field(default_factory=list)
    arena_eligible: List[str] = field(default_factory=list)


@dataclass
class RunInvariants:
    intended_rounds: int
    actual_rounds: int
    by_horizon: Dict[Horizon, HorizonInvariants]
    evaluated: List[str]
    effective: List[str]
    valid: List[str]
    qualified: List[str]
    arena_eligible: List[str]

    @property
    def rankable_horizons(self) -> List[Horizon]:
        return [h for h in HORIZONS if self.by_horizon[h].rankability.is_rankable]

    @property
    def prevalence_log_loss(self) -> Dict[Horizon, float]:
        return {h: inv.prevalence_log_loss for h, inv in self.by_horizon.items()}


def is_horizon_rankable(
    true_count: int,
    false_count: int,
    min_class_count: int = 5,
    min_class_ratio: float = 0.1,
) -> bool:
    minority = min(true_count, false_count)
    total = true_count + false_count
    ratio = minority / total if total > 0 else 0.0
    return minority >= min_class_count and ratio >= min_class_ratio


def compute_horizon_rankability(
    horizon: Horizon,
    true_count: int,
    false_count: int,
    params: RankabilityParams | None = None,
) -> HorizonRankability:
    """Decide rankability and explain a failure in words."""
    params = params or get_arena_params().rankability
    if is_horizon_rankable(true_count, false_count, params.min_class_count, params.min_class_ratio):
        return HorizonRankability(horizon, true_count, false_count, True)

    total = true_count + false_count
    if total == 0:
        reason = "no data"
    else:
        minority = min(true_count, false_count)
        label = "positive" if true_count < false_count else "negative"
        reason = f"only {minority} {label} examples ({minority / total * 100:.1f}%)"
    return HorizonRankability(horizon, true_count, false_count, False, reason)


def has_insufficient_coverage(
    effective_rounds: int,
    intended_rounds: int,
    params: RankabilityParams | None = None,
) -> bool:
    params = params or get_arena_params().rankability
    if effective_rounds < params.min_effective_rounds:
        return True
    if intended_rounds <= 0:
        return True
    return effective_rounds / intended_rounds < params.min_coverage_ratio


def build_run_invariants(
    manager: ModelStateManager,
    label_counts: Mapping[Horizon, tuple[int, int]],
    validities: Optional[Mapping[str, ModelValidity]] = None,
    params: ArenaParams | None = None,
) -> RunInvariants:
    """Compute every derived set for a finished (or in-progress) run.

    Args:
        manager: Model state with all recorded round scores
        label_counts: ``(true_count, false_count)`` per horizon
        validities: Validity results per model; when absent every effective
            model counts as valid on every horizon
        params: Arena parameters (defaults to the global ones)

    Returns:
        RunInvariants with per-horizon and run-level model sets
    """
    params = params or get_arena_params()
    states = manager.all_states()

    evaluated = [s.model_id for s in states]
    effective = [s.model_id for s in states if any(s.effective_rounds(h) for h in HORIZONS)]
    if validities is None:
        valid = list(effective)
    else:
        valid = [m for m in evaluated if m in validities and not validities[m].is_fully_invalid]

    by_horizon: Dict[Horizon, HorizonInvariants] = {}
    for h in HORIZONS:
        t, f = label_counts.get(h, (0, 0))
        by_horizon[h] = HorizonInvariants(
            rankability=compute_horizon_rankability(h, t, f, params.rankability),
            random_log_loss=RANDOM_BASELINE,
            prevalence_log_loss=compute_prevalence_log_loss(t, f),
        )

    inputs = []
    for model_id in valid:
        state = manager.get(model_id)
        means = {h: mean(state.losses(h)) if state.losses(h) else math.nan for h in HORIZONS}
        valid_horizons = frozenset(validities[model_id].valid_horizons) if validities else frozenset(HORIZONS)
        inputs.append(ModelQualificationInput(model_id, means, valid_horizons))

    qualification = qualify_models(
        inputs,
        {h: inv.prevalence_log_loss for h, inv in by_horizon.items()},
        params.phase1,
    )
    qualified = [m for m, hs in qualification.qualified_by_model.items() if hs]

    min_rounds = params.rankability.min_effective_rounds
    for h in HORIZONS:
        inv = by_horizon[h]
        inv.valid = [i.model_id for i in inputs if h in i.valid_horizons]
        inv.qualified = list(qualification.by_horizon[h].qualified)
        inv.arena_eligible = [m for m in inv.qualified if manager.get(m).effective_rounds(h) >= min_rounds]

    arena_eligible = [
        m for m in qualified
        if all(manager.get(m).effective_rounds(h) >= min_rounds for h in HORIZONS)
    ]
    actual_rounds = max((len({s.round for h in HORIZONS for s in st.scores[h]}) for st in states), default=0)
    intended_rounds = max((st.intended_rounds for st in states), default=0)

    logger.info(
        f"Run invariants: {len(evaluated)} evaluated, {len(effective)} effective, "
        f"{len(valid)} valid, {len(qualified)} qualified, {len(arena_eligible)} arena-eligible"
    )
    return RunInvariants(
        intended_rounds=intended_rounds,
        actual_rounds=actual_rounds,
        by_horizon=by_horizon,
        evaluated=evaluated,
        effective=effective,
        valid=valid,
        qualified=qualified,
        arena_eligible=arena_eligible,
    )


__all__ = [
    "HorizonRankability",
    "HorizonInvariants",
    "RunInvariants",
    "is_horizon_rankable",
    "compute_horizon_rankability",
    "has_insufficient_coverage",
    "build_run_invariants",
]
