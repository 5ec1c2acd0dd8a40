from __future__ import annotations

from typing import Optional, Protocol, Sequence, Union

import numpy as np


class RandomSource(Protocol):
    def random(self) -> float:
        """Uniform draw in [0, 1)."""

    def uniform(self, low: float, high: float) -> float:
        """Uniform draw in [low, high)."""


class NumpyRandomSource:
    """
    Seedable random source backed by numpy's default Generator.
    Equal seeds reproduce equal draw sequences.
    """
    def __init__(self, seed: Optional[Union[int, Sequence[int]]] = None) -> None:
        self._rng = np.random.default_rng(seed)

    def random(self) -> float:
        return float(self._rng.random())

    def uniform(self, low: float, high: float) -> float:
        return float(self._rng.uniform(low, high))


def run_random_source(seed: int, scenario_index: int, merchant_index: int) -> NumpyRandomSource:
    """Independent, reproducible stream for one (scenario, merchant) run."""
    return NumpyRandomSource([seed, scenario_index, merchant_index])
