"""Structured audit logging for tournament decisions.

Every elimination, disqualification and phase boundary is logged as a dict
event so a run can be reconstructed from its log.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pivot_arena.shared.enums import Horizon


class ArenaAuditLogger:
    """Structured logger for the tournament audit trail."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """Initialize the audit logger.

        Args:
            logger: Optional logger instance (creates one if not provided)
        """
        self.logger = logger or logging.getLogger("arena.audit")

    def _emit(self, event: str, level: int = logging.INFO, **fields: Any) -> None:
        payload: Dict[str, Any] = {"event": event, **fields}
        payload["timestamp"] = datetime.now(timezone.utc).isoformat()
        self.logger.log(level, payload)

    def log_round_scored(self, round_number: int, models: int, failures: int, record_hash: str = "") -> None:
        self._emit(
            "round_scored",
            round=round_number,
            models=models,
            failures=failures,
            record_hash=record_hash[:16] + "..." if record_hash else None,
        )

    def log_model_eliminated(self, model_id: str, phase: int, reason: str) -> None:
        self._emit("model_eliminated", model_id=model_id, phase=phase, reason=reason)

    def log_horizon_disqualified(self, model_id: str, horizon: Horizon, phase: int, reason: str) -> None:
        self._emit(
            "horizon_disqualified",
            model_id=model_id,
            horizon=horizon.value,
            phase=phase,
            reason=reason,
        )

    def log_phase_complete(self, phase: int, active: List[str], eliminated: List[str]) -> None:
        self._emit(
            "phase_complete",
            phase=phase,
            active_count=len(active),
            eliminated=sorted(eliminated),
        )

    def log_ensemble_round(
        self,
        horizon: Horizon,
        round_number: int,
        p_ensemble: float,
        is_scoreable: bool,
        weight_entropy: float,
    ) -> None:
        self._emit(
            "ensemble_round",
            level=logging.DEBUG,
            horizon=horizon.value,
            round=round_number,
            p_ensemble=round(p_ensemble, 6),
            is_scoreable=is_scoreable,
            weight_entropy=round(weight_entropy, 6),
        )

    def log_error(self, context: str, error: Exception, details: Optional[Dict[str, Any]] = None) -> None:
        """Log an error with context; does not swallow it for the caller."""
        self.logger.error({
            "event": "error",
            "context": context,
            "error_type": type(error).__name__,
            "error_message": str(error),
            "details": details or {},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })


__all__ = ["ArenaAuditLogger"]
