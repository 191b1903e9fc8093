"""Combination generation: weighted sampling, category linking, both modes."""

from prompt_mixer.engine.category import CategoryLinker
from prompt_mixer.engine.combination import (
    CartesianDraw,
    Combination,
    CombinationEngine,
    CombinationItem,
)
from prompt_mixer.engine.sampler import WeightedSampler, build_pool

__all__ = [
    "CartesianDraw",
    "CategoryLinker",
    "Combination",
    "CombinationEngine",
    "CombinationItem",
    "WeightedSampler",
    "build_pool",
]
