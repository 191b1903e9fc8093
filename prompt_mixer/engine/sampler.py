"""Weighted sampling without replacement."""

import random
from typing import Iterable, Optional

from prompt_mixer.schemas import Library

# (value, weight) pairs
Pool = list[tuple[str, float]]


def build_pool(library: Library, values: Optional[Iterable[str]] = None) -> Pool:
    """Pair each distinct value with its weight (missing weights count as 1).

    Duplicate value text collapses into a single candidate.
    """
    if values is None:
        values = library.values
    pool = []
    seen = set()
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        pool.append((value, library.weight_of(value)))
    return pool


class WeightedSampler:
    """Draws distinct values with probability proportional to weight.

    Each draw picks one remaining candidate by weight, removes it and
    renormalizes over what is left. All randomness comes from ``rng``.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng if rng is not None else random.Random()

    def sample(self, pool: Iterable[tuple[str, float]], count: int) -> list[str]:
        candidates: Pool = []
        seen = set()
        for value, weight in pool:
            if weight > 0 and value not in seen:
                seen.add(value)
                candidates.append((value, weight))

        if count <= 0 or not candidates:
            return []
        if count >= len(candidates):
            return [value for value, _ in candidates]

        chosen = []
        while len(chosen) < count:
            total = sum(weight for _, weight in candidates)
            point = self.rng.random() * total
            index = len(candidates) - 1
            cumulative = 0.0
            for position, (_, weight) in enumerate(candidates):
                cumulative += weight
                if point < cumulative:
                    index = position
                    break
            chosen.append(candidates.pop(index)[0])
        return chosen

    def choice(self, pool: Iterable[tuple[str, float]]) -> Optional[str]:
        """Draw a single value, or None from an empty pool."""
        picked = self.sample(pool, 1)
        return picked[0] if picked else None
