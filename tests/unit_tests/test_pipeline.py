"""Unit tests for the prediction pipeline."""

import numpy as np
import pytest

from conftest import make_entry
from protein_knn.ann import LshCandidateSource, LshParams
from protein_knn.config import PipelineConfig
from protein_knn.corpus import MemoryCandidateStore, SqliteCandidateStore
from protein_knn.errors import DegenerateInputError, NoCandidatesError, ScalingError, SearchTimeoutError
from protein_knn.features import FEATURE_DIM
from protein_knn.pipeline import PredictionPipeline, SearchMode, preview
from protein_knn.scaling import ScalingService


class ExplodingScaler(ScalingService):
    def transform(self, raw):
        raise RuntimeError("boom")


class CountingStore(MemoryCandidateStore):
    def __init__(self, entries):
        super().__init__(entries)
        self.calls = []

    def scan_all(self, limit):
        self.calls.append(("all", limit))
        return super().scan_all(limit)

    def scan_by_length_window(self, min_len, max_len, limit):
        self.calls.append(("window", min_len, max_len, limit))
        return super().scan_by_length_window(min_len, max_len, limit)


class TestPredict:
    """End-to-end prediction over a synthetic corpus."""

    def test_fast_mode_finds_exact_match(self, scaler, memory_store, entries):
        target = entries[42]
        pred = PredictionPipeline(scaler, memory_store).predict(target.sequence, top_n=3)
        assert pred.mode is SearchMode.FAST
        assert pred.results[0].entry_id == target.id
        assert pred.results[0].distance == pytest.approx(0.0, abs=1e-9)
        assert pred.results[0].similarity == pytest.approx(100.0)
        assert len(pred.results) <= 3
        assert [r.rank for r in pred.results] == list(range(1, len(pred.results) + 1))

    def test_results_sorted(self, scaler, memory_store, entries):
        pred = PredictionPipeline(scaler, memory_store).predict(entries[5].sequence, top_n=20, mode="exhaustive")
        d = [r.distance for r in pred.results]
        assert d == sorted(d)
        assert len(pred.results) == 20

    def test_timing_is_pipeline_level(self, scaler, memory_store, entries):
        pred = PredictionPipeline(scaler, memory_store).predict(entries[0].sequence)
        assert pred.timing.total_ms >= pred.timing.search_ms >= 0.0
        assert not hasattr(pred.results[0], "search_time")

    def test_metadata(self, scaler, memory_store):
        seq = "ACDEFGHIKLMNPQRSTVWY" * 6
        pred = PredictionPipeline(scaler, memory_store).predict(seq, mode=SearchMode.EXHAUSTIVE)
        assert pred.input_length == 120
        assert pred.input_preview == seq[:100] + "..."
        assert pred.candidates_scanned == memory_store.count()

    def test_default_top_n(self, scaler, memory_store, entries):
        pred = PredictionPipeline(scaler, memory_store).predict(entries[1].sequence, mode="exhaustive")
        assert len(pred.results) == PipelineConfig().default_top_n

    @pytest.mark.parametrize("top_n", [0, -1, 101])
    def test_invalid_top_n(self, scaler, memory_store, top_n):
        with pytest.raises(ValueError):
            PredictionPipeline(scaler, memory_store).predict("ACDEFGHIKL", top_n=top_n)

    def test_unknown_mode(self, scaler, memory_store):
        with pytest.raises(ValueError):
            PredictionPipeline(scaler, memory_store).predict("ACDEFGHIKL", mode="turbo")


class TestCandidateSelection:
    """Which store scan each mode uses."""

    def test_fast_uses_length_window(self, scaler, entries):
        store = CountingStore(entries)
        PredictionPipeline(scaler, store).predict("A" * 50 + "C" * 50)
        assert store.calls == [("window", 80, 120, 100_000)]

    def test_exhaustive_uses_full_scan(self, scaler, entries):
        store = CountingStore(entries)
        PredictionPipeline(scaler, store).predict("A" * 50 + "C" * 50, mode="exhaustive")
        assert store.calls == [("all", 50_000)]

    def test_config_limits(self, scaler, entries):
        store = CountingStore(entries)
        cfg = PipelineConfig(window_low=0.5, window_high=2.0, fast_scan_limit=10, exhaustive_scan_limit=7)
        pipe = PredictionPipeline(scaler, store, cfg)
        pipe.predict("A" * 100)
        pipe.predict("A" * 100, mode="exhaustive")
        assert store.calls == [("window", 50, 200, 10), ("all", 7)]

    def test_window_recall_matches_exhaustive(self, scaler, memory_store, entries):
        """Top-1 agrees whenever the true nearest neighbour lies inside the window."""
        pipe = PredictionPipeline(scaler, memory_store)
        for target in entries[::25]:
            seq = target.sequence
            ex = pipe.predict(seq, top_n=1, mode="exhaustive").results[0]
            lo, hi = int(np.floor(0.8 * len(seq))), int(np.ceil(1.2 * len(seq)))
            nn_len = next(e.sequence_length for e in entries if e.id == ex.entry_id)
            if lo <= nn_len <= hi:
                assert pipe.predict(seq, top_n=1, mode="fast").results[0].entry_id == ex.entry_id

    def test_custom_fast_source(self, scaler, memory_store, entries):
        lsh = LshCandidateSource(memory_store, LshParams(k=2, L=6, w=8.0))
        pipe = PredictionPipeline(scaler, memory_store, sources={"fast": lsh})
        assert lsh.is_built
        pred = pipe.predict(entries[10].sequence, top_n=1)
        assert pred.results[0].entry_id == entries[10].id


class TestFailures:
    """Typed errors short-circuit the pipeline."""

    def test_empty_sequence(self, scaler, memory_store):
        with pytest.raises(DegenerateInputError):
            PredictionPipeline(scaler, memory_store).predict("")

    def test_scaler_failure_is_scaling_error(self, memory_store):
        store = CountingStore(memory_store.scan_all(10))
        with pytest.raises(ScalingError):
            PredictionPipeline(ExplodingScaler(), store).predict("ACDEFGHIKL")
        assert store.calls == []

    def test_no_candidates_in_window(self, scaler):
        store = MemoryCandidateStore([make_entry("tiny", np.zeros(FEATURE_DIM), length=5)])
        with pytest.raises(NoCandidatesError) as exc:
            PredictionPipeline(scaler, store).predict("A" * 100)
        assert exc.value.mode == "fast"
        assert exc.value.window == (80, 120)

    def test_no_candidates_in_empty_corpus(self, scaler):
        with pytest.raises(NoCandidatesError) as exc:
            PredictionPipeline(scaler, MemoryCandidateStore([])).predict("A" * 100, mode="exhaustive")
        assert exc.value.window is None

    def test_deadline(self, scaler, memory_store, monkeypatch, entries):
        import protein_knn.ranking as ranking

        clock = iter(range(0, 10_000, 100))
        monkeypatch.setattr(ranking.time, "perf_counter", lambda: float(next(clock)))
        pipe = PredictionPipeline(scaler, memory_store, PipelineConfig(deadline_s=1.0, chunk_size=10))
        with pytest.raises(SearchTimeoutError):
            pipe.predict(entries[0].sequence, mode="exhaustive")


class TestConcurrency:
    """Independent predictions on a thread pool."""

    def test_predict_many_keeps_order(self, scaler, memory_store, entries):
        pipe = PredictionPipeline(scaler, memory_store)
        targets = entries[:12]
        preds = pipe.predict_many([e.sequence for e in targets], top_n=1, mode="exhaustive", max_workers=4)
        assert [p.results[0].entry_id for p in preds] == [e.id for e in targets]

    def test_predict_many_over_shared_sqlite_handle(self, scaler, sqlite_path, entries):
        with SqliteCandidateStore(sqlite_path, fetch_size=7) as store:
            pipe = PredictionPipeline(scaler, store)
            targets = [entries[i % 40] for i in range(200)]
            preds = pipe.predict_many([e.sequence for e in targets], top_n=1, mode="exhaustive", max_workers=8)
        assert [p.results[0].entry_id for p in preds] == [e.id for e in targets]
        assert all(p.candidates_scanned == len(entries) for p in preds)

    def test_predict_many_propagates_failure(self, scaler, memory_store, entries):
        pipe = PredictionPipeline(scaler, memory_store)
        with pytest.raises(DegenerateInputError):
            pipe.predict_many([entries[0].sequence, ""], top_n=1)


def test_preview():
    assert preview("A" * 100) == "A" * 100
    assert preview("A" * 101) == "A" * 100 + "..."
