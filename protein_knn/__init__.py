"""Protein similarity search over composition features.

This package contains reusable modules for:
- Feature extraction (length + amino-acid and physicochemical composition)
- Scaling with a pretrained affine artifact (ONNX or NPZ)
- Read-only reference corpus access (SQLite, in-memory)
- Candidate sources (length window, full scan, LSH, IVF-Flat)
- Ranking (Euclidean distance, similarity score, top-N)
- The prediction pipeline and its resource lifecycle
- Metrics (Recall@N vs exhaustive, QPS)
"""

from .config import PipelineConfig
from .context import SearchContext
from .errors import (
    DegenerateInputError,
    InitializationError,
    NoCandidatesError,
    ProteinKnnError,
    ScalingError,
    SearchError,
    SearchTimeoutError,
)
from .features import FEATURE_DIM, FeatureExtractor, extract_features
from .pipeline import Prediction, PredictionPipeline, SearchMode, Timing
from .ranking import NearestNeighborSearch, Ranker, SearchResult, euclidean_distance, similarity_from_distance

__all__ = [
    "DegenerateInputError",
    "FEATURE_DIM",
    "FeatureExtractor",
    "InitializationError",
    "NearestNeighborSearch",
    "NoCandidatesError",
    "Prediction",
    "PredictionPipeline",
    "PipelineConfig",
    "ProteinKnnError",
    "Ranker",
    "ScalingError",
    "SearchContext",
    "SearchError",
    "SearchMode",
    "SearchResult",
    "SearchTimeoutError",
    "Timing",
    "euclidean_distance",
    "extract_features",
    "similarity_from_distance",
]
