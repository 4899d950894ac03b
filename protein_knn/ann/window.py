"""Store-backed candidate sources: the length window (fast) and the full scan (exhaustive).

The length window relies on homologous proteins tending to have similar
lengths. It shrinks the candidate set by roughly an order of magnitude but
misses homologs whose length falls outside the window: it is an
approximation, not an exact k-NN.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

import numpy as np

from ..corpus import CandidateStore, ReferenceEntry
from .base import CandidateSource
from .utils import window_bounds


@dataclass
class LengthWindowParams:
    low: float = 0.8
    high: float = 1.2
    limit: int = 100_000


class LengthWindowSource(CandidateSource):
    """Entries whose length lies in [floor(low*len), ceil(high*len)]."""

    name = "length-window"

    def __init__(self, store: CandidateStore, params: LengthWindowParams | None = None) -> None:
        self.store = store
        self.params = params or LengthWindowParams()
        if self.params.limit <= 0:
            raise ValueError("limit must be positive")
        # Validates the factors up front.
        window_bounds(1, self.params.low, self.params.high)

    def bounds(self, query_length: int) -> tuple[int, int]:
        return window_bounds(query_length, self.params.low, self.params.high)

    def candidates(self, query: np.ndarray, query_length: int) -> Iterator[ReferenceEntry]:
        lo, hi = self.bounds(query_length)
        return self.store.scan_by_length_window(lo, hi, self.params.limit)

    def describe(self, query_length: int) -> dict[str, object]:
        lo, hi = self.bounds(query_length)
        return {"source": self.name, "min_len": lo, "max_len": hi, "limit": self.params.limit}


class FullScanSource(CandidateSource):
    """The first `limit` entries in storage order, unfiltered."""

    name = "full-scan"

    def __init__(self, store: CandidateStore, limit: int = 50_000) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        self.store = store
        self.limit = int(limit)

    def candidates(self, query: np.ndarray, query_length: int) -> Iterator[ReferenceEntry]:
        return self.store.scan_all(self.limit)

    def describe(self, query_length: int) -> dict[str, object]:
        return {"source": self.name, "limit": self.limit}
