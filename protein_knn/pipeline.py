"""
pipeline.py
===========
One prediction = extract features -> scale -> pick candidates -> rank -> shape.

The pipeline holds no per-call state. The scaler and the store it is given are
shared read-only between calls, so predictions can run on worker threads.
"""

from __future__ import annotations

import enum
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Mapping, Sequence

import numpy as np

from .ann import CandidateSource, FullScanSource, IndexedSource, LengthWindowParams, LengthWindowSource
from .config import PipelineConfig
from .corpus import CandidateStore
from .errors import NoCandidatesError, ProteinKnnError, ScalingError
from .features import FeatureExtractor
from .ranking import Ranker, SearchResult
from .scaling import ScalingService

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100


class SearchMode(str, enum.Enum):
    FAST = "fast"  # length-windowed, approximate
    EXHAUSTIVE = "exhaustive"  # bounded full scan

    @classmethod
    def parse(cls, value: "SearchMode | str") -> "SearchMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unknown search mode: {value!r} (expected 'fast' or 'exhaustive')") from None


@dataclass(frozen=True)
class Timing:
    total_ms: float
    search_ms: float  # candidate retrieval + scoring + ranking


@dataclass(frozen=True)
class Prediction:
    results: list[SearchResult]
    timing: Timing
    mode: SearchMode
    candidates_scanned: int
    input_length: int
    input_preview: str


def preview(sequence: str, n: int = PREVIEW_LENGTH) -> str:
    return sequence[:n] + ("..." if len(sequence) > n else "")


class PredictionPipeline:
    """Feature-based nearest-neighbour search over a reference corpus."""

    def __init__(
        self,
        scaler: ScalingService,
        store: CandidateStore,
        config: PipelineConfig | None = None,
        extractor: FeatureExtractor | None = None,
        sources: Mapping[SearchMode | str, CandidateSource] | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.scaler = scaler
        self.store = store
        self.extractor = extractor or FeatureExtractor()
        self.ranker = Ranker(similarity_scale=self.config.similarity_scale, chunk_size=self.config.chunk_size)

        cfg = self.config
        self.sources: dict[SearchMode, CandidateSource] = {
            SearchMode.FAST: LengthWindowSource(
                store,
                LengthWindowParams(low=cfg.window_low, high=cfg.window_high, limit=cfg.fast_scan_limit),
            ),
            SearchMode.EXHAUSTIVE: FullScanSource(store, limit=cfg.exhaustive_scan_limit),
        }
        for mode, src in (sources or {}).items():
            self.sources[SearchMode.parse(mode)] = src

        for mode, src in self.sources.items():
            if isinstance(src, IndexedSource) and not src.is_built:
                t0 = time.perf_counter()
                src.build()
                logger.info("Built %s index for %s mode in %.1f s", src.name, mode.value, time.perf_counter() - t0)

    def _scale(self, raw: np.ndarray) -> np.ndarray:
        try:
            return self.scaler.transform(raw)
        except ProteinKnnError:
            raise
        except (TypeError, ValueError, RuntimeError) as e:
            raise ScalingError(f"Scaler failed: {e}") from e

    def predict(self, sequence: str, top_n: int | None = None, mode: SearchMode | str = SearchMode.FAST) -> Prediction:
        """Top-N most similar corpus entries for an already-cleaned sequence."""
        t_start = time.perf_counter()
        m = SearchMode.parse(mode)
        n = self.config.default_top_n if top_n is None else int(top_n)
        if not 0 < n <= self.config.max_top_n:
            raise ValueError(f"top_n must be in [1, {self.config.max_top_n}], got {n}")

        raw = self.extractor.extract(sequence)
        scaled = self._scale(raw)

        source = self.sources[m]
        t_search = time.perf_counter()
        deadline = None if self.config.deadline_s is None else t_search + self.config.deadline_s
        entries, distances = self.ranker.score(
            scaled, source.candidates(scaled, len(sequence)), deadline=deadline
        )
        if not entries:
            window = source.bounds(len(sequence)) if isinstance(source, LengthWindowSource) else None
            raise NoCandidatesError(m.value, window)
        results = self.ranker.select(entries, distances, n)
        t_end = time.perf_counter()

        logger.debug(
            "mode=%s len=%d candidates=%d %s",
            m.value,
            len(sequence),
            len(entries),
            source.describe(len(sequence)),
        )
        return Prediction(
            results=results,
            timing=Timing(total_ms=(t_end - t_start) * 1000.0, search_ms=(t_end - t_search) * 1000.0),
            mode=m,
            candidates_scanned=len(entries),
            input_length=len(sequence),
            input_preview=preview(sequence),
        )

    def predict_many(
        self,
        sequences: Sequence[str],
        top_n: int | None = None,
        mode: SearchMode | str = SearchMode.FAST,
        max_workers: int = 4,
    ) -> list[Prediction]:
        """Independent predictions on a thread pool, returned in input order."""
        if max_workers <= 0:
            raise ValueError("max_workers must be positive")
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(lambda s: self.predict(s, top_n=top_n, mode=mode), sequences))
