"""
corpus.py
=========
Read-only access to the reference corpus.

Each reference protein carries its precomputed *scaled* feature vector, so a
query only has to be scaled once and then compared directly. Stores hand
entries out lazily, in storage order, and never write.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Sequence

import numpy as np

from .errors import InitializationError, SearchError
from .features import FEATURE_DIM

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceEntry:
    """One corpus record."""

    id: str
    name: str
    sequence: str
    organism: str
    description: str
    sequence_length: int
    features: np.ndarray  # scaled, shape (27,)


class CandidateStore(ABC):
    """Read-only corpus with a bounded full scan and a length-windowed scan."""

    @abstractmethod
    def scan_all(self, limit: int) -> Iterator[ReferenceEntry]:
        """Up to `limit` entries in storage order."""

    @abstractmethod
    def scan_by_length_window(self, min_len: int, max_len: int, limit: int) -> Iterator[ReferenceEntry]:
        """Up to `limit` entries with min_len <= sequence_length <= max_len."""

    @abstractmethod
    def count(self) -> int:
        """Number of entries in the corpus."""

    def close(self) -> None:
        """Release the underlying handle."""

    def __enter__(self) -> "CandidateStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def _check_limit(limit: int) -> int:
    if limit <= 0:
        raise ValueError("limit must be positive")
    return int(limit)


def parse_features(raw: object, entry_id: str) -> np.ndarray:
    """Decode a stored feature payload (JSON text or a float list) to (27,) float64."""
    try:
        values = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        vec = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise SearchError(f"Malformed feature vector for entry {entry_id!r}: {e}") from e
    if vec.shape != (FEATURE_DIM,):
        raise SearchError(
            f"Feature vector for entry {entry_id!r} has shape {vec.shape}, expected ({FEATURE_DIM},)"
        )
    if not np.all(np.isfinite(vec)):
        raise SearchError(f"Feature vector for entry {entry_id!r} contains non-finite values")
    return vec


class MemoryCandidateStore(CandidateStore):
    """Corpus held in a Python list (synthetic corpora, tests, small indexes)."""

    def __init__(self, entries: Iterable[ReferenceEntry]) -> None:
        self._entries: list[ReferenceEntry] = list(entries)

    def scan_all(self, limit: int) -> Iterator[ReferenceEntry]:
        limit = _check_limit(limit)
        return iter(self._entries[:limit])

    def scan_by_length_window(self, min_len: int, max_len: int, limit: int) -> Iterator[ReferenceEntry]:
        limit = _check_limit(limit)
        return self._windowed(int(min_len), int(max_len), limit)

    def _windowed(self, min_len: int, max_len: int, limit: int) -> Iterator[ReferenceEntry]:
        n = 0
        for e in self._entries:
            if n >= limit:
                return
            if min_len <= e.sequence_length <= max_len:
                n += 1
                yield e

    def count(self) -> int:
        return len(self._entries)


# Physical schema of the corpus database built by the indexing tooling.
_TABLE = "proteins"
_COLUMNS = "id, protein_name, sequence, organism, description, seq_length, features"


class SqliteCandidateStore(CandidateStore):
    """Read-only SQLite corpus (table `proteins`, features stored as JSON arrays)."""

    def __init__(self, path: str | Path, fetch_size: int = 2048) -> None:
        p = Path(path)
        if not p.exists():
            raise InitializationError(f"Corpus database not found: {p}")
        if fetch_size <= 0:
            raise ValueError("fetch_size must be positive")
        self.path = p
        self.fetch_size = int(fetch_size)

        try:
            # check_same_thread=False: the handle is shared read-only by worker threads.
            conn = sqlite3.connect(f"{p.resolve().as_uri()}?mode=ro", uri=True, check_same_thread=False)
        except sqlite3.Error as e:
            raise InitializationError(f"Cannot open corpus {p}: {e}") from e

        try:
            conn.execute("PRAGMA cache_size = -64000")
            conn.execute("PRAGMA temp_store = memory")
            row = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (_TABLE,)
            ).fetchone()
            if row is None:
                raise InitializationError(f"Corpus {p} has no '{_TABLE}' table")
            (n,) = conn.execute(f"SELECT COUNT(*) FROM {_TABLE}").fetchone()
        except sqlite3.Error as e:
            conn.close()
            raise InitializationError(f"Corpus {p} is unreadable: {e}") from e
        except InitializationError:
            conn.close()
            raise

        self._conn: sqlite3.Connection | None = conn
        self._count = int(n)
        logger.info("Opened corpus %s: %s proteins", p, f"{self._count:,}")

    def _query(self, sql: str, params: Sequence[object]) -> Iterator[ReferenceEntry]:
        if self._conn is None:
            raise SearchError("Corpus handle is closed")
        try:
            cur = self._conn.execute(sql, tuple(params))
            while True:
                rows = cur.fetchmany(self.fetch_size)
                if not rows:
                    break
                for r in rows:
                    yield _row_to_entry(r)
        except sqlite3.Error as e:
            raise SearchError(f"Corpus scan failed: {e}") from e

    def scan_all(self, limit: int) -> Iterator[ReferenceEntry]:
        limit = _check_limit(limit)
        return self._query(f"SELECT {_COLUMNS} FROM {_TABLE} LIMIT ?", (limit,))

    def scan_by_length_window(self, min_len: int, max_len: int, limit: int) -> Iterator[ReferenceEntry]:
        limit = _check_limit(limit)
        return self._query(
            f"SELECT {_COLUMNS} FROM {_TABLE} WHERE seq_length BETWEEN ? AND ? LIMIT ?",
            (int(min_len), int(max_len), limit),
        )

    def count(self) -> int:
        return self._count

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Closed corpus %s", self.path)


def _row_to_entry(row: Sequence[object]) -> ReferenceEntry:
    pid, name, seq, organism, description, seq_len, features = row
    entry_id = str(pid)
    try:
        length = int(seq_len)
    except (TypeError, ValueError) as e:
        raise SearchError(f"Malformed sequence length for entry {entry_id!r}: {seq_len!r}") from e
    return ReferenceEntry(
        id=entry_id,
        name=str(name or ""),
        sequence=str(seq or ""),
        organism=str(organism or ""),
        description=str(description or ""),
        sequence_length=length,
        features=parse_features(features, entry_id),
    )
