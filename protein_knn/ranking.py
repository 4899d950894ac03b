"""
ranking.py
==========
Distance scoring and top-N selection, shared by every candidate source.

Distances are Euclidean in the scaled feature space. All candidate distances
are materialized and fully sorted (stable, so ties keep retrieval order).
Candidate counts are bounded by the source's scan limit.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from itertools import islice
from typing import Iterable, Iterator

import numpy as np

from .corpus import ReferenceEntry
from .errors import SearchError, SearchTimeoutError
from .features import FEATURE_DIM

logger = logging.getLogger(__name__)

# Characteristic distance of the scaled feature space: a distance of this size
# maps to 0% similarity. Empirical; treat as a calibration constant.
DEFAULT_SIMILARITY_SCALE = 10.0


@dataclass(frozen=True)
class SearchResult:
    rank: int  # 1 = closest
    entry_id: str
    name: str
    organism: str
    description: str
    sequence: str
    distance: float
    similarity: float  # display heuristic in [0, 100], not a probability


def euclidean_distance(a: np.ndarray, b: np.ndarray) -> float:
    """L2 distance between two vectors of equal length."""
    x = np.asarray(a, dtype=np.float64)
    y = np.asarray(b, dtype=np.float64)
    if x.ndim != 1 or x.shape != y.shape:
        raise SearchError(f"Cannot compare vectors of shapes {x.shape} and {y.shape}")
    diff = x - y
    d = float(np.sqrt(np.dot(diff, diff)))
    if not np.isfinite(d):
        raise SearchError("Distance is not finite")
    return d


def similarity_from_distance(distance: float, scale: float = DEFAULT_SIMILARITY_SCALE) -> float:
    """max(0, 100 * (1 - distance / scale)), clamped to [0, 100]."""
    if scale <= 0:
        raise ValueError("scale must be positive")
    if distance < 0 or not np.isfinite(distance):
        raise SearchError(f"Invalid distance: {distance!r}")
    return min(100.0, max(0.0, 100.0 * (1.0 - distance / scale)))


def _chunks(it: Iterable[ReferenceEntry], size: int) -> Iterator[list[ReferenceEntry]]:
    it = iter(it)
    while True:
        chunk = list(islice(it, size))
        if not chunk:
            return
        yield chunk


def _candidate_matrix(chunk: list[ReferenceEntry], dim: int) -> np.ndarray:
    rows = np.empty((len(chunk), dim), dtype=np.float64)
    for i, e in enumerate(chunk):
        v = np.asarray(e.features, dtype=np.float64)
        if v.shape != (dim,):
            raise SearchError(f"Entry {e.id!r} has feature shape {v.shape}, expected ({dim},)")
        rows[i] = v
    if not np.all(np.isfinite(rows)):
        bad = int(np.flatnonzero(~np.all(np.isfinite(rows), axis=1))[0])
        raise SearchError(f"Entry {chunk[bad].id!r} has non-finite features")
    return rows


class Ranker:
    """Scores a candidate stream against a query and keeps the closest top_n."""

    def __init__(self, similarity_scale: float = DEFAULT_SIMILARITY_SCALE, chunk_size: int = 4096) -> None:
        if similarity_scale <= 0:
            raise ValueError("similarity_scale must be positive")
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.similarity_scale = float(similarity_scale)
        self.chunk_size = int(chunk_size)

    def score(
        self,
        query: np.ndarray,
        candidates: Iterable[ReferenceEntry],
        deadline: float | None = None,
    ) -> tuple[list[ReferenceEntry], np.ndarray]:
        """Distance of every candidate to `query`, in retrieval order.

        `deadline` is an absolute time.perf_counter() value, checked between chunks.
        """
        q = np.asarray(query, dtype=np.float64)
        if q.shape != (FEATURE_DIM,):
            raise SearchError(f"Query vector has shape {q.shape}, expected ({FEATURE_DIM},)")
        if not np.all(np.isfinite(q)):
            raise SearchError("Query vector contains non-finite values")

        entries: list[ReferenceEntry] = []
        parts: list[np.ndarray] = []
        for chunk in _chunks(candidates, self.chunk_size):
            if deadline is not None and time.perf_counter() > deadline:
                raise SearchTimeoutError(f"Search deadline exceeded after {len(entries)} candidates")
            diff = _candidate_matrix(chunk, FEATURE_DIM) - q[None, :]
            parts.append(np.sqrt(np.einsum("ij,ij->i", diff, diff)))
            entries.extend(chunk)

        if not parts:
            return entries, np.empty((0,), dtype=np.float64)
        return entries, np.concatenate(parts)

    def select(self, entries: list[ReferenceEntry], distances: np.ndarray, top_n: int) -> list[SearchResult]:
        """Stable ascending sort by distance, truncated to top_n, shaped as results."""
        if top_n <= 0:
            raise ValueError("top_n must be positive")
        if len(entries) != int(distances.shape[0]):
            raise ValueError("entries and distances must have the same length")
        order = np.argsort(distances, kind="stable")[:top_n]

        results: list[SearchResult] = []
        for rank, i in enumerate(order.tolist(), start=1):
            e = entries[i]
            d = float(distances[i])
            results.append(
                SearchResult(
                    rank=rank,
                    entry_id=e.id,
                    name=e.name,
                    organism=e.organism,
                    description=e.description,
                    sequence=e.sequence,
                    distance=d,
                    similarity=similarity_from_distance(d, self.similarity_scale),
                )
            )
        return results

    def rank(
        self,
        query: np.ndarray,
        candidates: Iterable[ReferenceEntry],
        top_n: int,
        deadline: float | None = None,
    ) -> list[SearchResult]:
        if top_n <= 0:
            raise ValueError("top_n must be positive")
        entries, distances = self.score(query, candidates, deadline=deadline)
        logger.debug("Scored %d candidates", len(entries))
        return self.select(entries, distances, top_n)

    # Name used by callers that think of this as the nearest-neighbour search.
    search = rank


NearestNeighborSearch = Ranker
