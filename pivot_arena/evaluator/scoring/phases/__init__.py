"""Elimination and ranking phases, in the order they run: 0, 1, 2, 3."""

from __future__ import annotations

__all__: list[str] = []
