from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np


def weighted_index(probabilities: Sequence[float], rng: np.random.Generator) -> int:
    """
    Picks an index by scanning cumulative probabilities against one uniform draw.

    Probabilities are expected to sum to ~1; any leftover mass (rounding, or
    a table that sums below 1) lands on the last index.
    """
    if not probabilities:
        raise ValueError("Cannot sample from an empty distribution.")
    draw = rng.random()
    cumulative = 0.0
    for idx, probability in enumerate(probabilities):
        cumulative += probability
        if draw <= cumulative:
            return idx
    return len(probabilities) - 1


@dataclass(frozen=True)
class DiscreteDistribution:
    """Fixed set of values with selection probabilities."""

    values: Sequence[float]
    probabilities: Sequence[float]

    def __post_init__(self) -> None:
        if len(self.values) != len(self.probabilities):
            raise ValueError("values and probabilities must have the same length")
        if not self.values:
            raise ValueError("distribution needs at least one value")
        if any(p < 0 for p in self.probabilities):
            raise ValueError("probabilities must be non-negative")

    def sample(self, rng: np.random.Generator) -> float:
        return float(self.values[weighted_index(self.probabilities, rng)])
