"""
metrics.py
==========
How well an approximate candidate source keeps up with the exhaustive scan:
- recall_at_n: share of the exhaustive top-N that the method also returned
- mean: average of a series (e.g. time per query)
MethodSummary holds the per-method numbers printed in reports.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence


@dataclass(frozen=True)
class MethodSummary:
    method: str
    time_per_query_s: float
    qps: float
    recall_at_n: float  # against the exhaustive scan
    mean_candidates: float  # entries scored per query


def recall_at_n(method_ids: Sequence[str], reference_ids: Sequence[str], n: int) -> float:
    """|top-N(method) ∩ top-N(reference)| / N.

    When the reference returned fewer than N ids, the denominator is the
    number it did return, so a perfect method still scores 1.0.
    """
    if n <= 0:
        raise ValueError("n must be positive")

    ref = set(reference_ids[:n])
    if not ref:
        return 1.0
    found = set(method_ids[:n])
    return len(found & ref) / float(len(ref))


def mean(values: Iterable[float]) -> float:
    vals = list(values)
    if not vals:
        return 0.0
    return sum(vals) / float(len(vals))


def summarize(method: str, times_s: Sequence[float], recalls: Sequence[float], candidates: Sequence[int]) -> MethodSummary:
    """Aggregate per-query measurements into one MethodSummary."""
    t = mean(times_s)
    return MethodSummary(
        method=method,
        time_per_query_s=t,
        qps=(1.0 / t) if t > 0.0 else 0.0,
        recall_at_n=mean(recalls),
        mean_candidates=mean(float(c) for c in candidates),
    )
