"""Shared fixtures: a deterministic synthetic corpus, as entries and as SQLite."""

import json
import sqlite3

import numpy as np
import pytest

from protein_knn.corpus import MemoryCandidateStore, ReferenceEntry
from protein_knn.features import AMINO_ACIDS, FEATURE_DIM, extract_features
from protein_knn.scaling import AffineScaler


def make_scaler() -> AffineScaler:
    mean = np.full(FEATURE_DIM, 0.05)
    scale = np.full(FEATURE_DIM, 0.02)
    mean[0], scale[0] = 5.0, 1.0
    return AffineScaler(mean, scale)


def make_entry(pid, features, length=100, sequence=None, name=None):
    seq = sequence if sequence is not None else "A" * length
    return ReferenceEntry(
        id=str(pid),
        name=name or f"PROT_{pid}",
        sequence=seq,
        organism="Synthetic organism",
        description=f"Synthetic protein {pid}",
        sequence_length=length,
        features=np.asarray(features, dtype=np.float64),
    )


def random_sequence(rng, length):
    return "".join(rng.choice(list(AMINO_ACIDS), size=length).tolist())


def build_entries(n=300, seed=7):
    rng = np.random.default_rng(seed)
    scaler = make_scaler()
    entries = []
    for i in range(n):
        length = int(rng.integers(30, 400))
        seq = random_sequence(rng, length)
        entries.append(
            make_entry(
                f"P{i:05d}",
                scaler.transform(extract_features(seq)),
                length=length,
                sequence=seq,
            )
        )
    return entries


def write_sqlite_corpus(path, entries):
    conn = sqlite3.connect(path)
    conn.execute(
        "CREATE TABLE proteins ("
        " id TEXT PRIMARY KEY, protein_name TEXT, sequence TEXT, organism TEXT,"
        " description TEXT, seq_length INTEGER, features TEXT)"
    )
    conn.executemany(
        "INSERT INTO proteins VALUES (?, ?, ?, ?, ?, ?, ?)",
        [
            (
                e.id,
                e.name,
                e.sequence,
                e.organism,
                e.description,
                e.sequence_length,
                json.dumps([float(x) for x in e.features]),
            )
            for e in entries
        ],
    )
    conn.execute("CREATE INDEX idx_seq_length ON proteins(seq_length)")
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def scaler():
    return make_scaler()


@pytest.fixture(scope="session")
def entries():
    return build_entries()


@pytest.fixture
def memory_store(entries):
    return MemoryCandidateStore(entries)


@pytest.fixture
def sqlite_path(tmp_path, entries):
    return write_sqlite_corpus(tmp_path / "protein_index.db", entries)


@pytest.fixture
def scaler_path(tmp_path, scaler):
    return scaler.save(tmp_path / "scaler.npz")
