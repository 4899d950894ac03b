from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator

import numpy as np

from ..corpus import ReferenceEntry


class CandidateSource(ABC):
    """Candidate generation strategy: narrows the corpus before ranking."""

    name: str = "source"

    @abstractmethod
    def candidates(self, query: np.ndarray, query_length: int) -> Iterator[ReferenceEntry]:
        """Lazily yield reference entries worth scoring against `query`."""

    def describe(self, query_length: int) -> dict[str, object]:
        """Selection parameters for a query of this length (logs, error messages)."""
        return {"source": self.name}


class IndexedSource(CandidateSource):
    """A source that must be built from the corpus before it can be queried."""

    @abstractmethod
    def build(self) -> None:
        """Build the in-memory index from the store."""

    @property
    @abstractmethod
    def is_built(self) -> bool:
        """True once build() has completed."""
