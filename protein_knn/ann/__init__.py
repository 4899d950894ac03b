"""
protein_knn/ann/__init__.py
===========================
Candidate generation strategies. Each one narrows the corpus to the entries
worth scoring; ranking itself lives in protein_knn.ranking and is shared.

    from protein_knn.ann import LengthWindowSource, FullScanSource, LshCandidateSource, ...
"""

from .base import CandidateSource, IndexedSource
from .ivf_flat import IvfCandidateSource, IvfParams
from .lsh import LshCandidateSource, LshParams
from .window import FullScanSource, LengthWindowParams, LengthWindowSource

__all__ = [
    "CandidateSource",
    "FullScanSource",
    "IndexedSource",
    "IvfCandidateSource",
    "IvfParams",
    "LengthWindowParams",
    "LengthWindowSource",
    "LshCandidateSource",
    "LshParams",
]
