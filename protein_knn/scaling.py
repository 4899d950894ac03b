"""
scaling.py
==========
Standardization of raw feature vectors before any distance is computed.

The scaler is a pretrained affine map (per-dimension mean/scale) produced by
external tooling. Two artifact formats are supported:
- `.onnx`: the exported scaler model, run with onnxruntime
- `.npz`:  plain arrays `mean` and `scale`
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path

import numpy as np

from .errors import InitializationError, ScalingError
from .features import FEATURE_DIM

logger = logging.getLogger(__name__)


class ScalingService(ABC):
    """Narrow capability: raw (27,) vector -> scaled (27,) vector."""

    dim: int = FEATURE_DIM

    @abstractmethod
    def transform(self, raw: np.ndarray) -> np.ndarray:
        """Return the scaled vector, or raise ScalingError."""

    def close(self) -> None:
        """Release any runtime resources held by the scaler."""


def _check_input(raw: np.ndarray, dim: int) -> np.ndarray:
    try:
        x = np.asarray(raw, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ScalingError(f"Feature vector is not numeric: {e}") from e
    if x.shape != (dim,):
        raise ScalingError(f"Expected feature vector of shape ({dim},), got {x.shape}")
    if not np.all(np.isfinite(x)):
        raise ScalingError("Feature vector contains non-finite values")
    return x


def _check_output(out: np.ndarray, dim: int) -> np.ndarray:
    y = np.asarray(out, dtype=np.float64).reshape(-1)
    if y.shape != (dim,):
        raise ScalingError(f"Scaler returned shape {y.shape}, expected ({dim},)")
    if not np.all(np.isfinite(y)):
        raise ScalingError("Scaler returned non-finite values")
    return y


class AffineScaler(ScalingService):
    """(x - mean) / scale, per dimension."""

    def __init__(self, mean: np.ndarray, scale: np.ndarray) -> None:
        m = np.asarray(mean, dtype=np.float64).reshape(-1)
        s = np.asarray(scale, dtype=np.float64).reshape(-1)
        if m.shape != s.shape:
            raise ValueError("mean and scale must have the same length")
        if not (np.all(np.isfinite(m)) and np.all(np.isfinite(s))):
            raise ValueError("mean and scale must be finite")
        # Constant features are left unscaled, as sklearn's StandardScaler does.
        s = np.where(s == 0.0, 1.0, s)
        self.mean = m
        self.scale = s
        self.dim = int(m.shape[0])

    @classmethod
    def identity(cls, dim: int = FEATURE_DIM) -> "AffineScaler":
        return cls(np.zeros(dim), np.ones(dim))

    @classmethod
    def load(cls, path: str | Path) -> "AffineScaler":
        p = Path(path)
        if not p.exists():
            raise InitializationError(f"Scaler artifact not found: {p}")
        try:
            with np.load(p, allow_pickle=False) as data:
                if "mean" not in data.files or "scale" not in data.files:
                    raise InitializationError(f"NPZ scaler missing 'mean'/'scale': {p}")
                scaler = cls(data["mean"], data["scale"])
        except (OSError, ValueError) as e:
            raise InitializationError(f"Failed to load scaler {p}: {e}") from e
        if scaler.dim != FEATURE_DIM:
            raise InitializationError(f"Scaler has {scaler.dim} dimensions, expected {FEATURE_DIM}")
        return scaler

    def save(self, path: str | Path) -> Path:
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        with p.open("wb") as f:
            np.savez(f, mean=self.mean, scale=self.scale)
        return p

    def transform(self, raw: np.ndarray) -> np.ndarray:
        x = _check_input(raw, self.dim)
        return _check_output((x - self.mean) / self.scale, self.dim)


class OnnxScaler(ScalingService):
    """Pretrained scaler exported to ONNX, evaluated on CPU."""

    def __init__(self, path: str | Path) -> None:
        p = Path(path)
        try:
            import onnxruntime as ort
        except ImportError as e:
            raise InitializationError(f"onnxruntime is required to load {p}: {e}") from e

        if not p.exists():
            raise InitializationError(f"Scaler artifact not found: {p}")
        try:
            self._session = ort.InferenceSession(str(p), providers=["CPUExecutionProvider"])
        except Exception as e:  # onnxruntime raises its own untyped errors
            raise InitializationError(f"Failed to load ONNX scaler {p}: {e}") from e
        self._input_name = self._session.get_inputs()[0].name
        self._output_name = self._session.get_outputs()[0].name
        self.path = p

    def transform(self, raw: np.ndarray) -> np.ndarray:
        if self._session is None:
            raise ScalingError("Scaler session is closed")
        x = _check_input(raw, self.dim)
        feeds = {self._input_name: x.astype(np.float32).reshape(1, self.dim)}
        try:
            (out,) = self._session.run([self._output_name], feeds)
        except Exception as e:
            raise ScalingError(f"ONNX scaler failed: {e}") from e
        return _check_output(out, self.dim)

    def close(self) -> None:
        self._session = None


def load_scaler(path: str | Path) -> ScalingService:
    """Load a scaler artifact, choosing the backend by file extension."""
    p = Path(path)
    suffix = p.suffix.lower()
    if suffix == ".onnx":
        scaler: ScalingService = OnnxScaler(p)
    elif suffix == ".npz":
        scaler = AffineScaler.load(p)
    else:
        raise InitializationError(f"Unsupported scaler artifact: {p} (expected .onnx or .npz)")
    logger.info("Loaded scaler %s (%s)", p, type(scaler).__name__)
    return scaler
