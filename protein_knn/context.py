"""Lifecycle of the two shared resources: the loaded scaler and the open corpus."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from .config import PipelineConfig, default_paths
from .corpus import CandidateStore, SqliteCandidateStore
from .errors import InitializationError
from .pipeline import PredictionPipeline
from .scaling import ScalingService, load_scaler

logger = logging.getLogger(__name__)


class SearchContext:
    """Acquires the scaler and the store once, releases both on close.

    If opening the store fails, the already-loaded scaler is released before
    the InitializationError propagates.

        with SearchContext("models/scaler.onnx", "models/protein_index.db") as ctx:
            prediction = ctx.pipeline().predict(sequence)
    """

    def __init__(
        self,
        scaler_path: str | Path,
        corpus_path: str | Path,
        config: PipelineConfig | None = None,
        scaler_loader: Callable[[Path], ScalingService] = load_scaler,
        store_opener: Callable[[Path], CandidateStore] = SqliteCandidateStore,
    ) -> None:
        self.scaler_path = Path(scaler_path)
        self.corpus_path = Path(corpus_path)
        self.config = config or PipelineConfig()
        self._scaler_loader = scaler_loader
        self._store_opener = store_opener
        self.scaler: ScalingService | None = None
        self.store: CandidateStore | None = None
        self._pipeline: PredictionPipeline | None = None

    @classmethod
    def from_env(cls) -> "SearchContext":
        scaler, corpus = default_paths()
        return cls(scaler, corpus, PipelineConfig.from_env())

    @property
    def is_open(self) -> bool:
        return self.scaler is not None and self.store is not None

    def open(self) -> "SearchContext":
        if self.is_open:
            return self
        try:
            self.scaler = self._scaler_loader(self.scaler_path)
            self.store = self._store_opener(self.corpus_path)
        except InitializationError:
            self.close()
            raise
        except (OSError, ValueError) as e:
            self.close()
            raise InitializationError(f"Initialization failed: {e}") from e
        except BaseException:
            self.close()
            raise
        logger.info("Search context ready (scaler=%s, corpus=%s)", self.scaler_path, self.corpus_path)
        return self

    def close(self) -> None:
        store, scaler = self.store, self.scaler
        self.store = None
        self.scaler = None
        self._pipeline = None
        try:
            if store is not None:
                store.close()
        finally:
            if scaler is not None:
                scaler.close()

    def pipeline(self) -> PredictionPipeline:
        if self.scaler is None or self.store is None:
            raise InitializationError("Search context is not open")
        if self._pipeline is None:
            self._pipeline = PredictionPipeline(self.scaler, self.store, self.config)
        return self._pipeline

    def __enter__(self) -> "SearchContext":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()
