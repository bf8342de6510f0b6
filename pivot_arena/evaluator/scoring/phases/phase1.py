"""Phase 1: relative performance and per-horizon qualification.

Qualification is per horizon, never a single pass/fail for the model.
Only models valid on a horizon (validity gates) compete on it.

Modes:
- percentile: tie-averaged percentile of mean log-loss >= 30
- prevalence_margin: mean log-loss <= prevalence log-loss + margin
- top_percent: best ceil(n * top_percent) models by mean log-loss
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from pivot_arena.shared.enums import HORIZONS, Horizon

from ...config.scoring_params import Phase1Params, get_arena_params
from ..metrics.ranking import percentile_ranks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelQualificationInput:
    model_id: str
    mean_log_loss: Mapping[Horizon, float]
    valid_horizons: frozenset = frozenset(HORIZONS)


@dataclass
class HorizonQualification:
    horizon: Horizon
    qualified: List[str] = field(default_factory=list)
    disqualified: List[str] = field(default_factory=list)
    percentiles: Dict[str, float] = field(default_factory=dict)
    threshold: float = math.nan
    prevalence_log_loss: float = math.inf


@dataclass
class QualificationResult:
    by_horizon: Dict[Horizon, HorizonQualification] = field(default_factory=dict)
    qualified_by_model: Dict[str, List[Horizon]] = field(default_factory=dict)

    def is_qualified(self, model_id: str, horizon: Horizon) -> bool:
        return horizon in self.qualified_by_model.get(model_id, ())


def compute_percentile_ranks(
    models: Sequence[ModelQualificationInput],
    horizon: Horizon,
) -> Dict[str, float]:
    """Percentile of each valid, finite model on ``horizon`` (lower loss is better)."""
    eligible = [
        m for m in models
        if horizon in m.valid_horizons and math.isfinite(m.mean_log_loss.get(horizon, math.nan))
    ]
    pct = percentile_ranks([m.mean_log_loss[horizon] for m in eligible])
    return {m.model_id: float(p) for m, p in zip(eligible, pct)}


def qualify_horizon(
    models: Sequence[ModelQualificationInput],
    horizon: Horizon,
    prevalence_log_loss: float = math.inf,
    params: Phase1Params | None = None,
) -> HorizonQualification:
    params = params or get_arena_params().phase1
    valid = [m for m in models if horizon in m.valid_horizons]
    result = HorizonQualification(horizon=horizon, prevalence_log_loss=prevalence_log_loss)
    result.percentiles = compute_percentile_ranks(valid, horizon)

    finite = [m for m in valid if m.model_id in result.percentiles]
    qualified: Set[str] = set()

    if params.mode == "percentile":
        result.threshold = params.min_percentile
        qualified = {mid for mid, p in result.percentiles.items() if p >= params.min_percentile}
    elif params.mode == "prevalence_margin":
        result.threshold = prevalence_log_loss + params.prevalence_margin
        qualified = {m.model_id for m in finite if m.mean_log_loss[horizon] <= result.threshold}
    else:
        ordered = sorted(finite, key=lambda m: m.mean_log_loss[horizon])
        keep = math.ceil(len(ordered) * params.top_percent)
        if keep > 0:
            result.threshold = ordered[keep - 1].mean_log_loss[horizon]
            qualified = {m.model_id for m in ordered[:keep]}
        else:
            result.threshold = prevalence_log_loss

    for m in valid:
        (result.qualified if m.model_id in qualified else result.disqualified).append(m.model_id)
    return result


def qualify_models(
    models: Sequence[ModelQualificationInput],
    prevalence_log_loss: Mapping[Horizon, float] | None = None,
    params: Phase1Params | None = None,
    horizons: Iterable[Horizon] = HORIZONS,
) -> QualificationResult:
    """Qualify every model on every horizon."""
    params = params or get_arena_params().phase1
    prevalence_log_loss = prevalence_log_loss or {}
    out = QualificationResult(qualified_by_model={m.model_id: [] for m in models})

    for horizon in horizons:
        hq = qualify_horizon(models, horizon, prevalence_log_loss.get(horizon, math.inf), params)
        out.by_horizon[horizon] = hq
        for model_id in hq.qualified:
            out.qualified_by_model[model_id].append(horizon)
        logger.debug(f"Phase 1 {horizon}: {len(hq.qualified)} qualified, {len(hq.disqualified)} not")
    return out


def should_eliminate_phase1(
    percentiles: Mapping[Horizon, float],
    params: Phase1Params | None = None,
) -> bool:
    """Whole-model rule: weak on too many horizons, or strong on none."""
    params = params or get_arena_params().phase1
    weak = [h for h, p in percentiles.items() if p < params.weak_percentile]
    if len(weak) > params.max_weak_horizons:
        return True
    return not any(p >= params.strong_percentile for p in percentiles.values())


def phase1_reason(percentiles: Mapping[Horizon, float], params: Phase1Params | None = None) -> str:
    params = params or get_arena_params().phase1
    weak = [h for h, p in percentiles.items() if p < params.weak_percentile]
    if len(weak) > params.max_weak_horizons:
        return f"Bottom quartile on {', '.join(str(h) for h in weak)}"
    if not any(p >= params.strong_percentile for p in percentiles.values()):
        return "No horizon strength"
    return "Failed competence filter"


def percentiles_by_model(result: QualificationResult) -> Dict[str, Dict[Horizon, float]]:
    out: Dict[str, Dict[Horizon, float]] = {}
    for horizon, hq in result.by_horizon.items():
        for model_id, p in hq.percentiles.items():
            out.setdefault(model_id, {})[horizon] = p
    return out


def mean_percentile(percentiles: Mapping[Horizon, float]) -> Optional[float]:
    if not percentiles:
        return None
    return sum(percentiles.values()) / len(percentiles)


__all__ = [
    "ModelQualificationInput",
    "HorizonQualification",
    "QualificationResult",
    "compute_percentile_ranks",
    "qualify_horizon",
    "qualify_models",
    "should_eliminate_phase1",
    "phase1_reason",
    "percentiles_by_model",
    "mean_percentile",
]
