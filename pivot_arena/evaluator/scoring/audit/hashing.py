"""Deterministic hashing for audit records.

Two runs over identical inputs must produce identical record hashes, so
records are hashed from a canonical JSON form.
"""

from __future__ import annotations

import hashlib
import json
import math
from datetime import datetime
from enum import Enum
from typing import Any, Dict


def _serialize_value(val: Any) -> Any:
    """Serialize a value for deterministic hashing."""
    if val is None:
        return None
    elif isinstance(val, Enum):
        return val.value
    elif isinstance(val, datetime):
        return val.isoformat()
    elif isinstance(val, dict):
        return {str(_serialize_value(k)): _serialize_value(v) for k, v in sorted(val.items(), key=lambda kv: str(kv[0]))}
    elif isinstance(val, (list, tuple)):
        return [_serialize_value(v) for v in val]
    elif isinstance(val, float):
        # JSON has no NaN/Infinity
        return val if math.isfinite(val) else str(val)
    elif isinstance(val, (int, str, bool)):
        return val
    else:
        return str(val)


def canonical_json(data: Dict[str, Any]) -> str:
    return json.dumps(_serialize_value(data), sort_keys=True, separators=(",", ":"))


def compute_hash(data: Dict[str, Any]) -> str:
    """Compute deterministic SHA256 hash of a dictionary.

    Args:
        data: Dictionary to hash

    Returns:
        Hex-encoded SHA256 hash (64 characters)
    """
    return hashlib.sha256(canonical_json(data).encode("utf-8")).hexdigest()


__all__ = ["canonical_json", "compute_hash"]
