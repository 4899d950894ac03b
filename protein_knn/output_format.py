"""
output_format.py
================
Plain-text report of a search run (results.txt):
- a header per query (id, length, preview)
- a summary table per method: time/query, QPS, Recall@N vs exhaustive, candidates
- the top neighbours per method: rank, id, name, organism, similarity, distance
"""

from __future__ import annotations

from typing import Iterable, TextIO

from .metrics import MethodSummary
from .pipeline import Prediction
from .ranking import SearchResult


def format_similarity(similarity: float) -> str:
    return f"{similarity:.2f}%"


def format_distance(distance: float) -> str:
    return f"{distance:.4f}"


def result_to_dict(r: SearchResult) -> dict[str, object]:
    """Display shape of one result, as served to clients."""
    return {
        "rank": r.rank,
        "id": r.entry_id,
        "protein": r.name,
        "organism": r.organism,
        "description": r.description,
        "similarity": format_similarity(r.similarity),
        "distance": format_distance(r.distance),
        "sequence": r.sequence,
    }


def prediction_to_dict(p: Prediction) -> dict[str, object]:
    return {
        "results": [result_to_dict(r) for r in p.results],
        "time": round(p.timing.total_ms, 3),
        "searchTime": round(p.timing.search_ms, 3),
        "mode": p.mode.value,
        "candidatesScanned": p.candidates_scanned,
        "inputSequence": p.input_preview,
        "inputLength": p.input_length,
    }


def write_query_header(out: TextIO, query_id: str, length: int, preview: str, recall_n: int) -> None:
    out.write(f"Query Protein: <{query_id}> ({length} aa)\n")
    out.write(f"{preview}\n")
    out.write(f"N = {recall_n} (Top-N list size for Recall@N)\n\n")


def write_summary_table(out: TextIO, rows: Iterable[MethodSummary]) -> None:
    out.write("[1] Method summary\n")
    out.write("Method\t|\tTime/query (s)\t|\tQPS\t|\tRecall@N vs exhaustive\t|\tCandidates\n")
    for r in rows:
        out.write(
            f"{r.method}\t|\t{r.time_per_query_s:.3f}\t|\t{r.qps:.3g}\t|\t"
            f"{r.recall_at_n:.2f}\t|\t{r.mean_candidates:.0f}\n"
        )
    out.write("\n\n")


def write_neighbors_section_header(out: TextIO, print_topk: int) -> None:
    out.write(f"[2] Top-{print_topk} neighbours per method\n\n")


def write_method_neighbors(out: TextIO, method: str, results: Iterable[SearchResult]) -> None:
    out.write(f"Method: {method}\n\n")
    out.write("Rank\t|\tID\t|\tProtein\t|\tOrganism\t|\tSimilarity\t|\tL2 Dist\n")
    for r in results:
        organism = r.organism.strip() or "--"
        out.write(
            f"{r.rank}\t|\t<{r.entry_id}>\t|\t{r.name}\t|\t{organism}\t|\t"
            f"{format_similarity(r.similarity)}\t|\t{format_distance(r.distance)}\n"
        )
    out.write("\n\n")
