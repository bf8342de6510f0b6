"""Mutable per-model tournament state.

``ModelStateManager`` is the only long-lived mutable object in a run. It is
mutated once per round by the driving loop. Eliminated models keep their
history for reporting and are never reactivated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from pivot_arena.shared.enums import HORIZONS, Horizon

from ..scoring.types import RoundScore

logger = logging.getLogger(__name__)

MAX_PHASE = 3


@dataclass(frozen=True)
class HorizonDisqualification:
    phase: int
    reason: str


@dataclass
class ModelState:
    model_id: str
    is_active: bool = True
    eliminated_in_phase: Optional[int] = None
    elimination_reason: Optional[str] = None
    scores: Dict[Horizon, List[RoundScore]] = field(default_factory=lambda: {h: [] for h in HORIZONS})
    failed_rounds: Dict[Horizon, List[int]] = field(default_factory=lambda: {h: [] for h in HORIZONS})
    intended_rounds: int = 0
    qualified_horizons: Set[Horizon] = field(default_factory=lambda: set(HORIZONS))
    disqualified_horizons: Dict[Horizon, HorizonDisqualification] = field(default_factory=dict)

    @property
    def eliminated(self) -> bool:
        return not self.is_active

    def losses(self, horizon: Horizon) -> List[float]:
        return [s.log_loss for s in self.scores[horizon]]

    def predictions(self, horizon: Horizon) -> List[float]:
        return [s.prediction for s in self.scores[horizon]]

    def labels(self, horizon: Horizon) -> List[bool]:
        return [s.label for s in self.scores[horizon]]

    def effective_rounds(self, horizon: Horizon) -> int:
        return len(self.scores[horizon])

    def loss_by_round(self, horizon: Horizon, total_rounds: int) -> List[Optional[float]]:
        """Losses indexed by round number; None where the model has no score."""
        out: List[Optional[float]] = [None] * total_rounds
        for s in self.scores[horizon]:
            if 0 <= s.round < total_rounds:
                out[s.round] = s.log_loss
        return out


class ModelStateManager:
    """Track activity, scores and per-horizon qualification for every model."""

    def __init__(self, model_ids: Iterable[str]):
        self._models: Dict[str, ModelState] = {}
        self.current_phase = 0
        for model_id in model_ids:
            self.add_model(model_id)

    def add_model(self, model_id: str) -> ModelState:
        if model_id in self._models:
            raise ValueError(f"model {model_id!r} already registered")
        state = ModelState(model_id=model_id)
        self._models[model_id] = state
        return state

    def advance_phase(self) -> int:
        if self.current_phase < MAX_PHASE:
            self.current_phase += 1
        return self.current_phase

    def get(self, model_id: str) -> ModelState:
        return self._models[model_id]

    def all_states(self) -> List[ModelState]:
        return list(self._models.values())

    def get_active_models(self) -> List[str]:
        return [m.model_id for m in self._models.values() if m.is_active]

    def get_eliminated_models(self) -> List[ModelState]:
        return [m for m in self._models.values() if not m.is_active]

    def is_eliminated(self, model_id: str) -> bool:
        state = self._models.get(model_id)
        return state is not None and state.eliminated

    def has_qualified_horizons(self, model_id: str) -> bool:
        state = self._models.get(model_id)
        return state is not None and bool(state.qualified_horizons)

    def eliminate_model(self, model_id: str, phase: int, reason: str) -> None:
        """Deactivate a model. The first elimination wins; later calls are ignored."""
        state = self._models[model_id]
        if not state.is_active:
            return
        state.is_active = False
        state.eliminated_in_phase = phase
        state.elimination_reason = reason
        logger.info(f"Eliminated {model_id} in phase {phase}: {reason}")

    def begin_round(self, model_ids: Iterable[str] | None = None) -> None:
        """Count one scheduled round for every active model (or the given ones)."""
        for model_id in (model_ids if model_ids is not None else self.get_active_models()):
            self._models[model_id].intended_rounds += 1

    def add_round_score(self, model_id: str, score: RoundScore) -> None:
        self._models[model_id].scores[score.horizon].append(score)

    def record_failure(self, model_id: str, horizon: Horizon, round_number: int) -> None:
        self._models[model_id].failed_rounds[horizon].append(round_number)

    def get_models_for_horizon(self, horizon: Horizon) -> List[str]:
        return [
            m.model_id for m in self._models.values()
            if m.is_active and horizon in m.qualified_horizons
        ]

    def is_qualified_for_horizon(self, model_id: str, horizon: Horizon) -> bool:
        state = self._models.get(model_id)
        return state is not None and horizon in state.qualified_horizons

    def disqualify_from_horizon(self, model_id: str, horizon: Horizon, phase: int, reason: str) -> None:
        state = self._models[model_id]
        state.qualified_horizons.discard(horizon)
        # keep the earliest reason
        state.disqualified_horizons.setdefault(horizon, HorizonDisqualification(phase, reason))

    def qualify_for_horizon(self, model_id: str, horizon: Horizon) -> None:
        """Restore a horizon; no effect on eliminated models."""
        state = self._models[model_id]
        if not state.is_active:
            return
        state.qualified_horizons.add(horizon)
        state.disqualified_horizons.pop(horizon, None)


__all__ = [
    "HorizonDisqualification",
    "ModelState",
    "ModelStateManager",
]
