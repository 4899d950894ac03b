from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

import numpy as np

from ..corpus import CandidateStore, ReferenceEntry
from .base import IndexedSource
from .kmeans import KMeansParams, assign_labels, kmeans_fit
from .utils import ensure_float32_1d, l2_sq_to_many, nearest_rows, stack_entries


@dataclass
class IvfParams:
    kclusters: int = 50
    nprobe: int = 5
    max_iter: int = 30
    seed: int = 1
    train_size: int | None = None  # if set, sample this many points to train KMeans
    limit: int = 500_000


class IvfCandidateSource(IndexedSource):
    """IVF coarse quantizer: candidates are the members of the nprobe closest clusters."""

    name = "ivf"

    def __init__(self, store: CandidateStore, params: IvfParams | None = None) -> None:
        self.store = store
        self.params = params or IvfParams()
        p = self.params
        if p.kclusters <= 0:
            raise ValueError("kclusters must be positive")
        if p.nprobe <= 0:
            raise ValueError("nprobe must be positive")
        if p.limit <= 0:
            raise ValueError("limit must be positive")
        self._rng = np.random.default_rng(p.seed)
        self._entries: list[ReferenceEntry] | None = None
        self._centroids: np.ndarray | None = None  # (kclusters, d)
        self._lists: list[np.ndarray] | None = None  # inverted lists (arrays of indices)

    @property
    def is_built(self) -> bool:
        return self._lists is not None

    def build(self) -> None:
        entries, X = stack_entries(self.store.scan_all(self.params.limit))
        n = len(entries)
        p = self.params
        if p.kclusters > n:
            raise ValueError("kclusters cannot exceed number of points")

        train = X
        if p.train_size is not None and p.train_size < n:
            idx = self._rng.choice(n, size=int(p.train_size), replace=False)
            train = X[np.sort(idx)]

        km = kmeans_fit(train, KMeansParams(k=p.kclusters, max_iter=p.max_iter, seed=p.seed))
        labels = assign_labels(X, km.centroids)

        # Stable argsort keeps corpus order inside every list.
        order = np.argsort(labels, kind="stable")
        bounds = np.searchsorted(labels[order], np.arange(p.kclusters + 1))
        self._lists = [order[bounds[c] : bounds[c + 1]].astype(np.int32) for c in range(p.kclusters)]
        self._centroids = km.centroids
        self._entries = entries

    def candidates(self, query: np.ndarray, query_length: int) -> Iterator[ReferenceEntry]:
        if self._entries is None or self._centroids is None or self._lists is None:
            raise RuntimeError("Index is not built")
        qv = ensure_float32_1d(query)
        p = self.params

        probed = nearest_rows(l2_sq_to_many(qv, self._centroids), min(p.nprobe, p.kclusters))
        members = [self._lists[int(c)] for c in probed.tolist()]
        if not members:
            return iter(())
        idx = np.sort(np.concatenate(members))
        entries = self._entries
        return (entries[i] for i in idx.tolist())

    def describe(self, query_length: int) -> dict[str, object]:
        p = self.params
        return {"source": self.name, "kclusters": p.kclusters, "nprobe": p.nprobe}
