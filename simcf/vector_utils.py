"""Small numeric helpers shared by the similarity measures and engines."""

from __future__ import annotations

from typing import Iterable

import numpy as np


def euclidean_norm(vector: Iterable[float] | np.ndarray) -> float:
    """L2 norm of a vector (any iterable of numbers, including dict values)."""
    arr = np.fromiter(vector, dtype=np.float64) if not isinstance(vector, np.ndarray) else vector
    if arr.size == 0:
        return 0.0
    return float(np.linalg.norm(arr.astype(np.float64, copy=False)))


def init_normal(vector: np.ndarray, mean: float, stdev: float, rng: np.random.Generator) -> np.ndarray:
    """Fill `vector` in place with N(mean, stdev) draws from `rng` and return it."""
    vector[...] = rng.normal(loc=float(mean), scale=float(stdev), size=vector.shape)
    return vector
