from __future__ import annotations

import argparse
import logging

from .config import PipelineConfig, default_paths


def add_common_io_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose logging",
    )


def add_seed_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--seed",
        type=int,
        default=1,
        help="Random seed (default: 1)",
    )


def add_artifact_args(parser: argparse.ArgumentParser) -> None:
    scaler, corpus = default_paths()
    parser.add_argument(
        "--scaler",
        default=str(scaler),
        help=f"Scaler artifact, .onnx or .npz (default: {scaler})",
    )
    parser.add_argument(
        "--corpus",
        default=str(corpus),
        help=f"Reference corpus SQLite database (default: {corpus})",
    )


def add_config_args(parser: argparse.ArgumentParser) -> None:
    """Search tuning flags; defaults come from PROTEIN_KNN_* env vars."""
    env = PipelineConfig.from_env()
    parser.add_argument("--window-low", type=float, default=env.window_low)
    parser.add_argument("--window-high", type=float, default=env.window_high)
    parser.add_argument("--fast-limit", type=int, default=env.fast_scan_limit)
    parser.add_argument("--exhaustive-limit", type=int, default=env.exhaustive_scan_limit)
    parser.add_argument(
        "--similarity-scale",
        type=float,
        default=env.similarity_scale,
        help=f"Distance that maps to 0%% similarity (default: {env.similarity_scale})",
    )
    parser.add_argument(
        "--deadline",
        type=float,
        default=env.deadline_s,
        help="Per-query time budget in seconds for scan-and-score (default: none)",
    )


def config_from_args(args: argparse.Namespace) -> PipelineConfig:
    return PipelineConfig(
        window_low=args.window_low,
        window_high=args.window_high,
        fast_scan_limit=args.fast_limit,
        exhaustive_scan_limit=args.exhaustive_limit,
        similarity_scale=args.similarity_scale,
        deadline_s=args.deadline,
    )


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def check_result_count(parser: argparse.ArgumentParser, flag: str, value: int) -> None:
    """Reject a results-per-query flag outside [1, PipelineConfig.max_top_n]."""
    limit = PipelineConfig.max_top_n
    if not 0 < value <= limit:
        parser.error(f"{flag} must be in [1, {limit}], got {value}")
