"""Deterministic pseudo-random utilities.

Chord selection must be reproducible across runs and platforms, so it does
not use ``random``.  ``HashPRNG`` iterates Robert Jenkins' 32-bit integer
hash over its own state; every step is masked to 32 bits, so a given seed
yields the same stream everywhere.
"""
from __future__ import annotations

from typing import MutableSequence, TypeVar

T = TypeVar("T")

DEFAULT_SEED = 0x2F6E2B1
_MASK32 = 0xFFFFFFFF


class HashPRNG:
    """Seedable generator of floats in ``[0, 1)`` with 28 bits of resolution."""

    def __init__(self, seed: int | None = None) -> None:
        self.seed = DEFAULT_SEED if seed is None else seed & _MASK32
        self._state = self.seed

    def next_uint32(self) -> int:
        s = self._state
        s = ((s + 0x7ED55D16) + (s << 12)) & _MASK32
        s = ((s ^ 0xC761C23C) ^ (s >> 19)) & _MASK32
        s = ((s + 0x165667B1) + (s << 5)) & _MASK32
        s = ((s + 0xD3A2646C) ^ (s << 9)) & _MASK32
        s = ((s + 0xFD7046C5) + (s << 3)) & _MASK32
        s = ((s ^ 0xB55A4F09) ^ (s >> 16)) & _MASK32
        self._state = s
        return s

    def random(self) -> float:
        return (self.next_uint32() & 0xFFFFFFF) / 0x10000000

    def __call__(self) -> float:
        return self.random()


def shuffle(items: MutableSequence[T], rng: HashPRNG) -> MutableSequence[T]:
    """Fisher-Yates shuffle of ``items`` in place, driven by ``rng``.

    Walks from the last slot down to index 1 and swaps each slot with a
    uniformly chosen slot at or below it.  Returns ``items``.
    """
    i = len(items) - 1
    while i > 0:
        j = int(rng.random() * (i + 1))
        items[i], items[j] = items[j], items[i]
        i -= 1
    return items
