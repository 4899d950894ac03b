from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator

import numpy as np

from ..corpus import CandidateStore, ReferenceEntry
from .base import IndexedSource
from .utils import ensure_float32_1d, stack_entries

_PRIME = 4294967291


@dataclass
class LshParams:
    k: int = 4
    L: int = 5
    w: float = 4.0
    seed: int = 1
    limit: int = 500_000  # how many corpus entries to index


class LshCandidateSource(IndexedSource):
    """Euclidean LSH bucketing over the scaled corpus vectors.

    Candidates are the union of the query's bucket in each of the L tables,
    de-duplicated, in the order they are first seen.
    """

    name = "lsh"

    def __init__(self, store: CandidateStore, params: LshParams | None = None) -> None:
        self.store = store
        self.params = params or LshParams()
        p = self.params
        if p.k <= 0 or p.L <= 0:
            raise ValueError("k and L must be positive")
        if p.w <= 0:
            raise ValueError("w must be positive")
        if p.limit <= 0:
            raise ValueError("limit must be positive")
        self._rng = np.random.default_rng(p.seed)

        self._entries: list[ReferenceEntry] | None = None
        self._A: np.ndarray | None = None  # (L, k, d)
        self._B: np.ndarray | None = None  # (L, k)
        self._tables: list[Dict[int, np.ndarray]] | None = None

    @property
    def is_built(self) -> bool:
        return self._tables is not None

    def build(self) -> None:
        entries, X = stack_entries(self.store.scan_all(self.params.limit))
        if not entries:
            raise ValueError("Cannot build an LSH index over an empty corpus")
        n, d = X.shape
        p = self.params

        A = self._rng.standard_normal(size=(p.L, p.k, d), dtype=np.float32)
        B = self._rng.random(size=(p.L, p.k), dtype=np.float32) * float(p.w)

        tables: list[Dict[int, np.ndarray]] = []
        for l in range(p.L):
            h = np.floor((X @ A[l].T + B[l]) / float(p.w)).astype(np.int64)  # (n, k)
            bucket: Dict[int, list[int]] = {}
            for idx, row in enumerate(h.tolist()):
                bucket.setdefault(_combine(row), []).append(idx)
            tables.append({key: np.asarray(v, dtype=np.int32) for key, v in bucket.items()})

        self._entries = entries
        self._A = A
        self._B = B
        self._tables = tables

    def candidates(self, query: np.ndarray, query_length: int) -> Iterator[ReferenceEntry]:
        if self._entries is None or self._A is None or self._B is None or self._tables is None:
            raise RuntimeError("Index is not built")
        qv = ensure_float32_1d(query)
        p = self.params

        seen: set[int] = set()
        order: list[int] = []
        for l in range(p.L):
            h = np.floor((self._A[l] @ qv + self._B[l]) / float(p.w)).astype(np.int64)
            bucket = self._tables[l].get(_combine(h.tolist()))
            if bucket is None:
                continue
            for idx in bucket.tolist():
                if idx not in seen:
                    seen.add(idx)
                    order.append(idx)

        # Corpus order keeps tie-breaking consistent with the scan-based sources.
        order.sort()
        entries = self._entries
        return (entries[i] for i in order)

    def describe(self, query_length: int) -> dict[str, object]:
        p = self.params
        return {"source": self.name, "k": p.k, "L": p.L, "w": p.w}


def _combine(h: list[int]) -> int:
    # Python ints avoid NumPy int64 overflow warnings.
    key = 0
    for v in h:
        key = (key * _PRIME + int(v)) % _PRIME
    return key
