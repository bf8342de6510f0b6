"""Audit trail: structured decision logs and hashed per-round records."""

from .hashing import compute_hash
from .logging import ArenaAuditLogger
from .records import append_jsonl, build_round_record

__all__ = ["compute_hash", "ArenaAuditLogger", "append_jsonl", "build_round_record"]
