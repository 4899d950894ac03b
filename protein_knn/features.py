"""
features.py
===========
Composition features for a protein sequence.

The 27 values are laid out as:
- ln(1 + length)
- fraction of each of the 20 standard amino acids (alphabetical one-letter order)
- fraction of residues in six physicochemical groups (groups overlap)

The scaler artifact is keyed by position, so this order must never change.
"""

from __future__ import annotations

import math

import numpy as np

from .errors import DegenerateInputError

AMINO_ACIDS = "ACDEFGHIKLMNPQRSTVWY"

PHYSICOCHEMICAL_GROUPS: tuple[tuple[str, str], ...] = (
    ("hydrophobic", "AILMFVPWG"),
    ("positive", "KRH"),
    ("negative", "DE"),
    ("polar", "STNQ"),
    ("aromatic", "FWY"),
    ("small", "AGSV"),
)

FEATURE_DIM = 1 + len(AMINO_ACIDS) + len(PHYSICOCHEMICAL_GROUPS)  # 27

FEATURE_NAMES: tuple[str, ...] = (
    ("log1p_length",)
    + tuple(f"frac_{aa}" for aa in AMINO_ACIDS)
    + tuple(f"group_{name}" for name, _members in PHYSICOCHEMICAL_GROUPS)
)

_AA_INDEX = {aa: i for i, aa in enumerate(AMINO_ACIDS)}


def extract_features(sequence: str) -> np.ndarray:
    """Return the (27,) float64 feature vector for `sequence`.

    Symbols outside the alphabet are not counted, but still count toward the
    length (callers are expected to pass cleaned sequences).
    """
    n = len(sequence)
    if n == 0:
        raise DegenerateInputError("Cannot extract features from an empty sequence")

    counts = [0] * len(AMINO_ACIDS)
    for aa in sequence:
        i = _AA_INDEX.get(aa)
        if i is not None:
            counts[i] += 1

    if sum(counts) == 0:
        raise DegenerateInputError("Sequence contains no standard amino acids")

    out = np.empty((FEATURE_DIM,), dtype=np.float64)
    out[0] = math.log1p(n)
    for i, c in enumerate(counts):
        out[1 + i] = c / n

    base = 1 + len(AMINO_ACIDS)
    for j, (_name, members) in enumerate(PHYSICOCHEMICAL_GROUPS):
        in_group = sum(counts[_AA_INDEX[aa]] for aa in members)
        out[base + j] = in_group / n
    return out


class FeatureExtractor:
    """Callable wrapper so the pipeline can take an extractor as a collaborator."""

    dim = FEATURE_DIM

    def extract(self, sequence: str) -> np.ndarray:
        return extract_features(sequence)

    __call__ = extract
