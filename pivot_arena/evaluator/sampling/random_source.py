"""Injectable random sources for reproducible sampling.

Every sampler takes a ``RandomSource`` rather than seeding its own
generator, so tests can pin the sequence and benchmark datasets can be
rebuilt bit-for-bit from a seed.
"""

from __future__ import annotations

import math
import random
from typing import List, Protocol, Sequence, TypeVar

T = TypeVar("T")

_MASK32 = 0xFFFFFFFF
_TWO_32 = 4_294_967_296


class RandomSource(Protocol):
    def next(self) -> float:
        """Return a float in [0, 1)."""
        ...


class Mulberry32:
    """32-bit Mulberry32 generator.

    Arithmetic is carried out on unsigned 32-bit patterns, which makes the
    output identical to the common JavaScript implementation for the same
    integer seed.
    """

    def __init__(self, seed: int):
        self._state = seed & _MASK32

    def next(self) -> float:
        self._state = (self._state + 0x6D2B79F5) & _MASK32
        s = self._state
        t = ((s ^ (s >> 15)) * (1 | s)) & _MASK32
        t = ((t + (((t ^ (t >> 7)) * (61 | t)) & _MASK32)) & _MASK32) ^ t
        return ((t ^ (t >> 14)) & _MASK32) / _TWO_32


class SystemRandomSource:
    """Unseeded source for ad-hoc runs where reproducibility is not needed."""

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.Random()

    def next(self) -> float:
        return self._rng.random()


def shuffle(items: Sequence[T], rng: RandomSource) -> List[T]:
    """Fisher-Yates shuffle returning a new list; ``items`` is untouched."""
    out = list(items)
    for i in range(len(out) - 1, 0, -1):
        j = math.floor(rng.next() * (i + 1))
        out[i], out[j] = out[j], out[i]
    return out


__all__ = ["RandomSource", "Mulberry32", "SystemRandomSource", "shuffle"]
