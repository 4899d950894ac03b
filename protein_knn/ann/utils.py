from __future__ import annotations

import math
from typing import Iterable, Tuple

import numpy as np

from ..corpus import ReferenceEntry


def ensure_float32_2d(x: np.ndarray) -> np.ndarray:
    arr = np.asarray(x, dtype=np.float32)
    if arr.ndim != 2:
        raise ValueError("Expected 2D array (n, d)")
    return arr


def ensure_float32_1d(x: np.ndarray) -> np.ndarray:
    arr = np.asarray(x, dtype=np.float32)
    if arr.ndim != 1:
        raise ValueError("Expected 1D array (d,)")
    return arr


def l2_sq_to_many(q: np.ndarray, X: np.ndarray) -> np.ndarray:
    """Squared L2 distances from q to each row of X (float32, for index building)."""
    q = ensure_float32_1d(q)
    X = ensure_float32_2d(X)
    diff = X - q[None, :]
    return np.einsum("ij,ij->i", diff, diff).astype(np.float32, copy=False)


def nearest_rows(dist_sq: np.ndarray, k: int) -> np.ndarray:
    """Indices of the k smallest distances, closest first."""
    if k <= 0:
        raise ValueError("k must be positive")
    n = int(dist_sq.shape[0])
    if n == 0:
        return np.empty((0,), dtype=np.int32)
    k_eff = min(k, n)
    part = np.argpartition(dist_sq, k_eff - 1)[:k_eff]
    order = np.argsort(dist_sq[part], kind="stable")
    return part[order].astype(np.int32, copy=False)


def window_bounds(length: int, low: float, high: float) -> Tuple[int, int]:
    """[floor(low*length), ceil(high*length)] around a query length."""
    if length < 0:
        raise ValueError("length must be non-negative")
    if not 0.0 < low <= 1.0 <= high:
        raise ValueError("window factors must satisfy 0 < low <= 1 <= high")
    return int(math.floor(length * low)), int(math.ceil(length * high))


def stack_entries(entries: Iterable[ReferenceEntry]) -> Tuple[list[ReferenceEntry], np.ndarray]:
    """Materialize entries and their feature rows as an (n, d) float32 matrix."""
    kept = list(entries)
    if not kept:
        return kept, np.empty((0, 0), dtype=np.float32)
    X = np.stack([e.features for e in kept]).astype(np.float32, copy=False)
    return kept, X
