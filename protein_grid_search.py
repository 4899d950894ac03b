#!/usr/bin/env python3
from __future__ import annotations

import argparse
import csv
import itertools
import sys
import time
from pathlib import Path

_THIS_DIR = Path(__file__).resolve().parent
if str(_THIS_DIR) not in sys.path:
    sys.path.insert(0, str(_THIS_DIR))

from protein_knn.ann import CandidateSource, IvfCandidateSource, IvfParams, LengthWindowParams, LengthWindowSource
from protein_knn.ann import LshCandidateSource, LshParams
from protein_knn.cli import add_artifact_args, add_common_io_args, add_seed_arg, check_result_count, configure_logging
from protein_knn.context import SearchContext
from protein_knn.errors import NoCandidatesError
from protein_knn.fasta import prepare_query, read_fasta
from protein_knn.metrics import recall_at_n, summarize
from protein_knn.pipeline import PredictionPipeline, SearchMode


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Grid search over candidate-source parameters (Recall@N vs exhaustive, QPS)."
    )
    p.add_argument("-q", "--queries", dest="queries_fasta", required=True)
    p.add_argument("-o", "--output", dest="output_csv", required=True)
    p.add_argument(
        "--method",
        choices=["window", "lsh", "ivf"],
        required=True,
        help="Candidate source to grid-search",
    )
    p.add_argument("--recall-n", type=int, default=10)

    # Grids (comma-separated)
    p.add_argument("--window-low-grid", default="0.7,0.8,0.9")
    p.add_argument("--window-high-grid", default="1.1,1.2,1.3")
    p.add_argument("--window-limit", type=int, default=100_000)

    p.add_argument("--lsh-k-grid", default="4")
    p.add_argument("--lsh-L-grid", default="5,10")
    p.add_argument("--lsh-w-grid", default="4.0")

    p.add_argument("--ivf-kclusters-grid", default="50,100")
    p.add_argument("--ivf-nprobe-grid", default="5,10")

    add_artifact_args(p)
    add_seed_arg(p)
    add_common_io_args(p)
    args = p.parse_args(argv)
    check_result_count(p, "--recall-n", args.recall_n)
    return args


def _parse_int_grid(s: str) -> list[int]:
    return [int(x.strip()) for x in s.split(",") if x.strip()]


def _parse_float_grid(s: str) -> list[float]:
    return [float(x.strip()) for x in s.split(",") if x.strip()]


def main() -> None:
    args = parse_args()
    configure_logging(args.verbose)
    n = int(args.recall_n)

    queries: list[str] = []
    for rec in read_fasta(args.queries_fasta):
        try:
            queries.append(prepare_query(rec.sequence))
        except ValueError as e:
            print(f"[grid] Skipping {rec.id}: {e}")
    if not queries:
        raise ValueError("No valid queries")

    out_path = Path(args.output_csv)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    rows: list[dict[str, object]] = []
    with SearchContext(args.scaler, args.corpus) as ctx:
        base = ctx.pipeline()
        store = ctx.store
        reference = [
            [r.entry_id for r in base.predict(q, top_n=n, mode=SearchMode.EXHAUSTIVE).results] for q in queries
        ]

        if args.method == "window":
            grid = itertools.product(
                _parse_float_grid(args.window_low_grid),
                _parse_float_grid(args.window_high_grid),
            )
            for low, high in grid:
                src = LengthWindowSource(store, LengthWindowParams(low=low, high=high, limit=args.window_limit))
                rows.append(_eval_source(ctx, src, "Length window", queries, reference, n, {"low": low, "high": high}))

        elif args.method == "lsh":
            grid = itertools.product(
                _parse_int_grid(args.lsh_k_grid),
                _parse_int_grid(args.lsh_L_grid),
                _parse_float_grid(args.lsh_w_grid),
            )
            for k, L, w in grid:
                src = LshCandidateSource(store, LshParams(k=k, L=L, w=w, seed=args.seed))
                rows.append(_eval_source(ctx, src, "Euclidean LSH", queries, reference, n, {"k": k, "L": L, "w": w}))

        elif args.method == "ivf":
            grid = itertools.product(
                _parse_int_grid(args.ivf_kclusters_grid),
                _parse_int_grid(args.ivf_nprobe_grid),
            )
            for kclusters, nprobe in grid:
                src = IvfCandidateSource(store, IvfParams(kclusters=kclusters, nprobe=nprobe, seed=args.seed))
                rows.append(
                    _eval_source(ctx, src, "IVF-Flat", queries, reference, n, {"kclusters": kclusters, "nprobe": nprobe})
                )

    if not rows:
        raise RuntimeError("No grid rows produced")

    fieldnames = sorted(rows[0].keys())
    with out_path.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=fieldnames)
        w.writeheader()
        for row in rows:
            w.writerow(row)

    print(f"[grid] Wrote {len(rows)} rows to: {out_path}")


def _eval_source(
    ctx: SearchContext,
    source: CandidateSource,
    method_name: str,
    queries: list[str],
    reference: list[list[str]],
    recall_n: int,
    params_dict: dict[str, object],
) -> dict[str, object]:
    # Index building (if any) happens in the pipeline constructor.
    t0 = time.perf_counter()
    pipe = PredictionPipeline(ctx.scaler, ctx.store, ctx.config, sources={SearchMode.FAST: source})
    build_s = time.perf_counter() - t0

    times: list[float] = []
    recalls: list[float] = []
    cands: list[int] = []
    for q, ref_ids in zip(queries, reference):
        s0 = time.perf_counter()
        try:
            pred = pipe.predict(q, top_n=recall_n, mode=SearchMode.FAST)
            ids = [r.entry_id for r in pred.results]
            cands.append(pred.candidates_scanned)
        except NoCandidatesError:
            ids = []
            cands.append(0)
        times.append(time.perf_counter() - s0)
        recalls.append(recall_at_n(ids, ref_ids, recall_n))

    s = summarize(method_name, times, recalls, cands)
    row: dict[str, object] = {
        "method": s.method,
        "recall_n": recall_n,
        "avg_recall": s.recall_at_n,
        "avg_time_per_query_s": s.time_per_query_s,
        "qps": s.qps,
        "avg_candidates": s.mean_candidates,
        "build_time_s": float(build_s),
    }
    for k, v in params_dict.items():
        row[f"param_{k}"] = v
    return row


if __name__ == "__main__":
    main()
