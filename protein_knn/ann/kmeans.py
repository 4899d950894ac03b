from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .utils import ensure_float32_2d


@dataclass
class KMeansParams:
    k: int
    max_iter: int = 30
    tol: float = 1e-4
    seed: int = 1


@dataclass(frozen=True)
class KMeansResult:
    centroids: np.ndarray  # (k, d), float32
    labels: np.ndarray  # (n,), int32
    n_iter: int


def kmeans_fit(X: np.ndarray, params: KMeansParams) -> KMeansResult:
    """Lloyd's algorithm with k-means++ seeding."""
    X = ensure_float32_2d(X)
    n = X.shape[0]
    if n == 0:
        raise ValueError("Empty dataset")
    if params.k <= 0:
        raise ValueError("k must be positive")
    if params.k > n:
        raise ValueError("k cannot exceed number of points")

    rng = np.random.default_rng(params.seed)
    C = _seed_plus_plus(X, params.k, rng)
    labels = assign_labels(X, C)

    it = 0
    for it in range(1, params.max_iter + 1):
        prev = C
        C = _update_centroids(X, labels, prev, rng)
        labels = assign_labels(X, C)
        if float(np.max(np.linalg.norm(C - prev, axis=1))) <= params.tol:
            break

    return KMeansResult(centroids=C, labels=labels, n_iter=it)


def assign_labels(X: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """Index of the nearest centroid (L2) for each row of X."""
    X = ensure_float32_2d(X)
    C = ensure_float32_2d(centroids)
    # ||x - c||^2 = ||x||^2 + ||c||^2 - 2 x.c ; ||x||^2 is constant per row.
    cross = X @ C.T
    c_sq = np.einsum("ij,ij->i", C, C)
    return np.argmin(c_sq[None, :] - 2.0 * cross, axis=1).astype(np.int32, copy=False)


def _seed_plus_plus(X: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
    n = X.shape[0]
    C = np.empty((k, X.shape[1]), dtype=np.float32)
    C[0] = X[int(rng.integers(0, n))]
    closest = np.einsum("ij,ij->i", X - C[0], X - C[0]).astype(np.float64)
    for i in range(1, k):
        total = float(closest.sum())
        if total <= 0.0:
            # Remaining points coincide with chosen centroids.
            C[i] = X[int(rng.integers(0, n))]
            continue
        pick = int(rng.choice(n, p=closest / total))
        C[i] = X[pick]
        closest = np.minimum(closest, np.einsum("ij,ij->i", X - C[i], X - C[i]))
    return C


def _update_centroids(
    X: np.ndarray,
    labels: np.ndarray,
    prev: np.ndarray,
    rng: np.random.Generator,
) -> np.ndarray:
    k = prev.shape[0]
    counts = np.bincount(labels, minlength=k)
    sums = np.zeros_like(prev, dtype=np.float64)
    np.add.at(sums, labels, X)

    C = prev.copy()
    filled = counts > 0
    C[filled] = (sums[filled] / counts[filled][:, None]).astype(np.float32)
    for j in np.flatnonzero(~filled).tolist():
        # Empty cluster: restart it at a random point.
        C[j] = X[int(rng.integers(0, X.shape[0]))]
    return C
