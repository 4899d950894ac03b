"""Runtime configuration, with overrides from PROTEIN_KNN_* environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .ranking import DEFAULT_SIMILARITY_SCALE

DEFAULT_SCALER_PATH = Path("models") / "scaler.onnx"
DEFAULT_CORPUS_PATH = Path("models") / "protein_index.db"


@dataclass(frozen=True)
class PipelineConfig:
    window_low: float = 0.8
    window_high: float = 1.2
    fast_scan_limit: int = 100_000
    exhaustive_scan_limit: int = 50_000
    similarity_scale: float = DEFAULT_SIMILARITY_SCALE
    default_top_n: int = 5
    max_top_n: int = 100
    deadline_s: float | None = None  # per-query budget for scan-and-score
    chunk_size: int = 4096

    def __post_init__(self) -> None:
        if not 0.0 < self.window_low <= 1.0 <= self.window_high:
            raise ValueError("window factors must satisfy 0 < window_low <= 1 <= window_high")
        if self.fast_scan_limit <= 0 or self.exhaustive_scan_limit <= 0:
            raise ValueError("scan limits must be positive")
        if self.similarity_scale <= 0:
            raise ValueError("similarity_scale must be positive")
        if not 0 < self.default_top_n <= self.max_top_n:
            raise ValueError("default_top_n must be in (0, max_top_n]")
        if self.deadline_s is not None and self.deadline_s <= 0:
            raise ValueError("deadline_s must be positive")
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        deadline = os.getenv("PROTEIN_KNN_DEADLINE_S")
        return cls(
            window_low=float(os.getenv("PROTEIN_KNN_WINDOW_LOW", "0.8")),
            window_high=float(os.getenv("PROTEIN_KNN_WINDOW_HIGH", "1.2")),
            fast_scan_limit=int(os.getenv("PROTEIN_KNN_FAST_SCAN_LIMIT", "100000")),
            exhaustive_scan_limit=int(os.getenv("PROTEIN_KNN_EXHAUSTIVE_SCAN_LIMIT", "50000")),
            similarity_scale=float(os.getenv("PROTEIN_KNN_SIMILARITY_SCALE", str(DEFAULT_SIMILARITY_SCALE))),
            default_top_n=int(os.getenv("PROTEIN_KNN_DEFAULT_TOP_N", "5")),
            max_top_n=int(os.getenv("PROTEIN_KNN_MAX_TOP_N", "100")),
            deadline_s=float(deadline) if deadline else None,
            chunk_size=int(os.getenv("PROTEIN_KNN_CHUNK_SIZE", "4096")),
        )


def default_paths() -> tuple[Path, Path]:
    """(scaler artifact, corpus database) from the environment or the defaults."""
    scaler = Path(os.getenv("PROTEIN_KNN_SCALER", str(DEFAULT_SCALER_PATH)))
    corpus = Path(os.getenv("PROTEIN_KNN_CORPUS", str(DEFAULT_CORPUS_PATH)))
    return scaler, corpus
