#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path

_THIS_DIR = Path(__file__).resolve().parent
if str(_THIS_DIR) not in sys.path:
    sys.path.insert(0, str(_THIS_DIR))

from protein_knn.ann import IvfCandidateSource, IvfParams, LshCandidateSource, LshParams
from protein_knn.cli import (
    add_artifact_args,
    add_common_io_args,
    add_config_args,
    add_seed_arg,
    check_result_count,
    config_from_args,
    configure_logging,
)
from protein_knn.context import SearchContext
from protein_knn.errors import NoCandidatesError, ProteinKnnError
from protein_knn.fasta import FastaRecord, parse_fasta_text, prepare_query, read_fasta
from protein_knn.metrics import MethodSummary, recall_at_n, summarize
from protein_knn.output_format import (
    prediction_to_dict,
    write_method_neighbors,
    write_neighbors_section_header,
    write_query_header,
    write_summary_table,
)
from protein_knn.pipeline import PredictionPipeline, SearchMode

log = logging.getLogger("protein_search")

# Example query from the demo: human hemoglobin alpha chain (expected match P69905).
EXAMPLE_SEQUENCE = (
    "MVLSPADKTNVKAAWGKVGAHAGEYGAEALERMFLSFPTTKTYFPHFDLSHGSAQVKGHGKKVADALTNAVAHVDDMPNALSALSDLHAHKLRVDPVNFK"
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Find the reference proteins most similar to each query sequence."
    )
    src = parser.add_mutually_exclusive_group()
    src.add_argument(
        "-q",
        "--queries",
        dest="queries_fasta",
        help="Query proteins FASTA file ('-' for stdin)",
    )
    src.add_argument(
        "-s",
        "--sequence",
        help="A single query sequence (raw or FASTA text)",
    )
    parser.add_argument(
        "-o",
        "--output",
        dest="output_path",
        help="Write a results report here (default: print results to stdout)",
    )
    parser.add_argument(
        "-method",
        "--method",
        dest="method",
        default="fast",
        choices=["all", "fast", "exhaustive", "lsh", "ivf"],
        help="Candidate strategy to run (default: fast)",
    )
    parser.add_argument("--top-n", type=int, default=5, help="Results per query (default: 5)")
    parser.add_argument(
        "--recall-n",
        type=int,
        default=10,
        help="N for Recall@N vs the exhaustive scan in reports (default: 10)",
    )
    parser.add_argument("--json", action="store_true", help="Print results as JSON instead of text")

    parser.add_argument("--lsh-k", type=int, default=4)
    parser.add_argument("--lsh-L", type=int, default=8)
    parser.add_argument("--lsh-w", type=float, default=4.0)

    parser.add_argument("--ivf-kclusters", type=int, default=100)
    parser.add_argument("--ivf-nprobe", type=int, default=5)

    add_artifact_args(parser)
    add_config_args(parser)
    add_seed_arg(parser)
    add_common_io_args(parser)
    args = parser.parse_args(argv)
    check_result_count(parser, "--top-n", args.top_n)
    check_result_count(parser, "--recall-n", args.recall_n)
    return args


def load_queries(args: argparse.Namespace) -> list[FastaRecord]:
    if args.sequence:
        records = parse_fasta_text(args.sequence)
    elif args.queries_fasta:
        records = list(read_fasta(args.queries_fasta))
    else:
        records = [FastaRecord(id="HBA_HUMAN_example", sequence=EXAMPLE_SEQUENCE)]

    queries: list[FastaRecord] = []
    for rec in records:
        try:
            queries.append(FastaRecord(id=rec.id, sequence=prepare_query(rec.sequence), description=rec.description))
        except ValueError as e:
            log.warning("Skipping query %s: %s", rec.id, e)
    return queries


def build_methods(args: argparse.Namespace, ctx: SearchContext) -> list[tuple[str, PredictionPipeline, SearchMode]]:
    base = ctx.pipeline()

    methods: list[tuple[str, PredictionPipeline, SearchMode]] = []
    if args.method in {"all", "fast"}:
        methods.append(("Length window", base, SearchMode.FAST))
    if args.method in {"all", "lsh"}:
        print("[protein_search] Building index: Euclidean LSH ...")
        lsh = LshCandidateSource(ctx.store, LshParams(k=args.lsh_k, L=args.lsh_L, w=args.lsh_w, seed=args.seed))
        methods.append(("Euclidean LSH", PredictionPipeline(ctx.scaler, ctx.store, ctx.config, sources={"fast": lsh}), SearchMode.FAST))
    if args.method in {"all", "ivf"}:
        print("[protein_search] Building index: IVF-Flat ...")
        ivf = IvfCandidateSource(
            ctx.store, IvfParams(kclusters=args.ivf_kclusters, nprobe=args.ivf_nprobe, seed=args.seed)
        )
        methods.append(("IVF-Flat", PredictionPipeline(ctx.scaler, ctx.store, ctx.config, sources={"fast": ivf}), SearchMode.FAST))
    if args.method in {"all", "exhaustive"}:
        methods.append(("Exhaustive", base, SearchMode.EXHAUSTIVE))
    return methods


def print_results(query: FastaRecord, method: str, prediction) -> None:
    print(f"\n{query.id} [{method}] {prediction.timing.total_ms:.1f} ms "
          f"(search {prediction.timing.search_ms:.1f} ms, {prediction.candidates_scanned} candidates)")
    for r in prediction.results:
        print(f"  #{r.rank} {r.name} ({r.organism})  similarity={r.similarity:.2f}%  distance={r.distance:.4f}")
        print(f"      {r.description[:60]}")


def main() -> None:
    args = parse_args()
    configure_logging(args.verbose)

    queries = load_queries(args)
    if not queries:
        raise ValueError("No valid queries")

    with SearchContext(args.scaler, args.corpus, config_from_args(args)) as ctx:
        methods = build_methods(args, ctx)
        reference = ctx.pipeline()

        if args.json:
            payload: dict[str, dict[str, object]] = {}
            for q in queries:
                payload[q.id] = {}
                for name, pipe, mode in methods:
                    try:
                        payload[q.id][name] = prediction_to_dict(pipe.predict(q.sequence, top_n=args.top_n, mode=mode))
                    except NoCandidatesError as e:
                        payload[q.id][name] = {"error": str(e)}
            print(json.dumps(payload, indent=2))
            return

        if not args.output_path:
            for q in queries:
                for name, pipe, mode in methods:
                    try:
                        print_results(q, name, pipe.predict(q.sequence, top_n=args.top_n, mode=mode))
                    except NoCandidatesError as e:
                        print(f"\n{q.id} [{name}] {e}")
            return

        out_path = Path(args.output_path)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        n = int(args.recall_n)
        with out_path.open("w", encoding="utf-8", newline="\n") as out:
            for q in queries:
                ref = reference.predict(q.sequence, top_n=n, mode=SearchMode.EXHAUSTIVE)
                ref_ids = [r.entry_id for r in ref.results]

                summary: list[MethodSummary] = []
                printed = {}
                for name, pipe, mode in methods:
                    t0 = time.perf_counter()
                    try:
                        pred = pipe.predict(q.sequence, top_n=n, mode=mode)
                    except NoCandidatesError as e:
                        log.warning("%s: %s", q.id, e)
                        summary.append(summarize(name, [time.perf_counter() - t0], [0.0], [0]))
                        printed[name] = []
                        continue
                    dt = time.perf_counter() - t0
                    ids = [r.entry_id for r in pred.results]
                    summary.append(summarize(name, [dt], [recall_at_n(ids, ref_ids, n)], [pred.candidates_scanned]))
                    printed[name] = pred.results[: args.top_n]

                write_query_header(out, q.id, len(q.sequence), ref.input_preview, n)
                write_summary_table(out, summary)
                write_neighbors_section_header(out, args.top_n)
                for name, _pipe, _mode in methods:
                    write_method_neighbors(out, name, printed[name])
                out.write("\n")

    print(f"[protein_search] Wrote results to: {out_path}")


if __name__ == "__main__":
    try:
        main()
    except ProteinKnnError as e:
        log.error("%s", e)
        sys.exit(1)
