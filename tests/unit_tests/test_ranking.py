"""Unit tests for distance scoring and top-N ranking."""

import time

import numpy as np
import pytest

from conftest import make_entry
from protein_knn.errors import SearchError, SearchTimeoutError
from protein_knn.features import FEATURE_DIM
from protein_knn.ranking import NearestNeighborSearch, Ranker, euclidean_distance, similarity_from_distance


def unit(i, scale=1.0):
    v = np.zeros(FEATURE_DIM)
    v[i] = scale
    return v


class TestDistance:
    """Metric properties of the Euclidean distance."""

    def test_identity(self):
        v = np.linspace(-3, 3, FEATURE_DIM)
        assert euclidean_distance(v, v) == 0.0

    def test_symmetry_and_non_negativity(self):
        rng = np.random.default_rng(0)
        for _ in range(20):
            a, b = rng.normal(size=FEATURE_DIM), rng.normal(size=FEATURE_DIM)
            assert euclidean_distance(a, b) == pytest.approx(euclidean_distance(b, a))
            assert euclidean_distance(a, b) >= 0.0

    def test_known_value(self):
        assert euclidean_distance(unit(0, 3.0), unit(1, 4.0)) == pytest.approx(5.0)

    def test_shape_mismatch(self):
        with pytest.raises(SearchError):
            euclidean_distance(np.zeros(3), np.zeros(4))

    def test_non_finite(self):
        with pytest.raises(SearchError):
            euclidean_distance(np.array([np.inf]), np.array([0.0]))


class TestSimilarity:
    """Distance-to-percentage display mapping."""

    def test_values(self):
        assert similarity_from_distance(0.0) == 100.0
        assert similarity_from_distance(2.5) == pytest.approx(75.0)
        assert similarity_from_distance(10.0) == 0.0
        assert similarity_from_distance(25.0) == 0.0

    def test_monotonic_and_clamped(self):
        ds = np.linspace(0, 30, 301)
        sims = [similarity_from_distance(float(d)) for d in ds]
        assert all(0.0 <= s <= 100.0 for s in sims)
        assert all(a >= b for a, b in zip(sims, sims[1:]))

    def test_custom_scale(self):
        assert similarity_from_distance(2.0, scale=4.0) == pytest.approx(50.0)

    def test_invalid(self):
        with pytest.raises(ValueError):
            similarity_from_distance(1.0, scale=0.0)
        with pytest.raises(SearchError):
            similarity_from_distance(-1.0)


class TestRanker:
    """Top-N selection over a candidate stream."""

    def test_three_entry_corpus(self):
        """Query at the origin; entries at distances 3, 1, 2."""
        corpus = [
            make_entry("far", unit(0, 3.0)),
            make_entry("near", unit(1, 1.0)),
            make_entry("mid", unit(2, 2.0)),
        ]
        results = Ranker().search(np.zeros(FEATURE_DIM), iter(corpus), top_n=2)
        assert [r.entry_id for r in results] == ["near", "mid"]
        assert [r.rank for r in results] == [1, 2]
        assert results[0].distance == pytest.approx(1.0)
        assert results[1].distance == pytest.approx(2.0)
        assert results[0].similarity == pytest.approx(90.0)
        assert results[1].similarity == pytest.approx(80.0)

    def test_sorted_and_bounded(self, entries):
        query = entries[17].features + 0.1
        results = Ranker(chunk_size=32).rank(query, iter(entries), top_n=25)
        assert len(results) == 25
        d = [r.distance for r in results]
        assert d == sorted(d)
        assert results[0].entry_id == entries[17].id

    def test_top_n_larger_than_candidates(self):
        corpus = [make_entry("a", unit(0)), make_entry("b", unit(1))]
        results = Ranker().rank(np.zeros(FEATURE_DIM), corpus, top_n=10)
        assert len(results) == 2

    def test_ties_keep_retrieval_order(self):
        corpus = [make_entry(f"t{i}", unit(i % FEATURE_DIM)) for i in range(10)]
        results = Ranker(chunk_size=3).rank(np.zeros(FEATURE_DIM), corpus, top_n=10)
        assert [r.entry_id for r in results] == [f"t{i}" for i in range(10)]

    def test_chunking_does_not_change_result(self, entries):
        query = entries[3].features
        a = Ranker(chunk_size=1).rank(query, entries, top_n=10)
        b = Ranker(chunk_size=10_000).rank(query, entries, top_n=10)
        assert [r.entry_id for r in a] == [r.entry_id for r in b]
        assert [r.distance for r in a] == pytest.approx([r.distance for r in b])

    def test_empty_candidates(self):
        assert Ranker().rank(np.zeros(FEATURE_DIM), [], top_n=5) == []

    def test_invalid_top_n(self):
        with pytest.raises(ValueError):
            Ranker().rank(np.zeros(FEATURE_DIM), [], top_n=0)

    def test_malformed_candidate(self):
        corpus = [make_entry("good", unit(0)), make_entry("short", np.zeros(5))]
        with pytest.raises(SearchError, match="short"):
            Ranker().rank(np.zeros(FEATURE_DIM), corpus, top_n=1)

    def test_non_finite_candidate(self):
        bad = unit(0)
        bad[4] = np.nan
        with pytest.raises(SearchError, match="nan_entry"):
            Ranker().rank(np.zeros(FEATURE_DIM), [make_entry("ok", unit(1)), make_entry("nan_entry", bad)], top_n=1)

    def test_malformed_query(self):
        with pytest.raises(SearchError):
            Ranker().rank(np.zeros(FEATURE_DIM - 1), [make_entry("a", unit(0))], top_n=1)

    def test_deadline(self, entries):
        with pytest.raises(SearchTimeoutError):
            Ranker(chunk_size=10).rank(entries[0].features, entries, top_n=1, deadline=time.perf_counter() - 1.0)

    def test_alias(self):
        assert NearestNeighborSearch is Ranker
