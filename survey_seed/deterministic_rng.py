"""
Deterministic RNG — Seeded random wrapper for demo data.

All randomness in demo seeding passes through a single DeterministicRNG
instance. Identical (seed) → identical call sequence → identical scores.
"""

from __future__ import annotations

import random
from typing import List, Sequence, TypeVar

T = TypeVar("T")


class DeterministicRNG:
    """Local seeded RNG. No global random state touched."""

    def __init__(self, seed: int) -> None:
        self._rng = random.Random(seed)

    def shuffled(self, seq: Sequence[T]) -> List[T]:
        """Deterministically shuffled copy; the input is left untouched."""
        out = list(seq)
        self._rng.shuffle(out)
        return out

    def zero_sum_offsets(self, count: int) -> List[int]:
        """
        count integer offsets in {-1, 0, +1} summing to zero, in random order.

        Adding them to a base score spreads individual answers without
        moving the mean.
        """
        pairs = count // 2
        offsets = [1, -1] * pairs + [0] * (count - 2 * pairs)
        return self.shuffled(offsets)
