"""Append-only per-round audit records.

One record per model per horizon per round. Records are never rewritten;
``append_jsonl`` only ever appends lines.
"""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from ..metrics.proper_scoring import RANDOM_BASELINE
from ..types import RoundScore
from .hashing import _serialize_value, compute_hash


def build_round_record(
    model_id: str,
    score: RoundScore,
    *,
    symbol_id: str,
    snap_ms: int,
    prevalence_log_loss: Optional[float] = None,
) -> Dict[str, Any]:
    """Build the audit record for one scored round.

    ``record_hash`` covers every other field.
    """
    record: Dict[str, Any] = {
        "model_id": model_id,
        "symbol_id": symbol_id,
        "round": score.round,
        "horizon": score.horizon.value,
        "snap_ms": snap_ms,
        "prediction": score.prediction,
        "label": score.label,
        "log_loss": score.log_loss,
        "brier": score.brier,
        "is_extreme_error": score.is_extreme_error,
        "delta_vs_random": score.log_loss - RANDOM_BASELINE,
        "delta_vs_prevalence": (
            score.log_loss - prevalence_log_loss
            if prevalence_log_loss is not None and math.isfinite(prevalence_log_loss)
            else None
        ),
    }
    record["record_hash"] = compute_hash(record)
    return record


def append_jsonl(path: Path | str, records: Iterable[Dict[str, Any]]) -> int:
    """Append records as JSON lines; returns the number written."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    written = 0
    with p.open("a", encoding="utf-8") as f:
        for record in records:
            f.write(json.dumps(_serialize_value(record), sort_keys=True) + "\n")
            written += 1
    return written


__all__ = ["build_round_record", "append_jsonl"]
