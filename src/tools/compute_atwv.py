"""Score keyword search output: ATWV, STWV, MTWV and OTWV.

Usage:
    kws-compute-atwv 36000 ref.txt hyp.txt
    kws-compute-atwv 36000 ref.txt hyp.txt alignment.csv --config babel
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config.loader import FullConfig, get_default_loader, load_full_config
from src.evaluation.twv import TwvMetrics
from src.kws.aligner import KwsTermsAligner
from src.kws.alignment import KwsAlignment
from src.kws.errors import ConfigError, KwsError
from src.kws.term_io import read_terms

console = Console()
logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for kws-compute-atwv."""
    parser = argparse.ArgumentParser(
        prog="kws-compute-atwv",
        description="""
Computes the Term-Weighted Value family of keyword search metrics.

Term lists hold one occurrence per line:
    <kw_id> <utt_id> <start_frame> <end_frame> [<score>]
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("audio_duration", type=float, help="Total duration of the scored audio in seconds")
    parser.add_argument("ref_file", type=str, help="Reference term list")
    parser.add_argument("hyp_file", type=str, help="Hypothesis term list (with scores)")
    parser.add_argument("alignment_csv", type=str, nargs="?", default=None, help="Optional path for the alignment CSV")
    parser.add_argument(
        "--config",
        type=str,
        default="default",
        help="Config preset name or path to config file (default: default)",
    )
    parser.add_argument("--override", type=str, default=None, help="Override config file (optional)")
    parser.add_argument("--max-distance", type=int, default=None, help="Max ref/hyp center distance in frames (default: from config)")
    parser.add_argument("--frames-per-sec", type=float, default=None, help="Frame rate for the CSV times (default: from config)")
    parser.add_argument("--cost-fa", type=float, default=None, help="Cost of a false alarm (default: from config)")
    parser.add_argument("--value-corr", type=float, default=None, help="Value of a correct detection (default: from config)")
    parser.add_argument("--prior-probability", type=float, default=None, help="Prior probability of a keyword (default: from config)")
    parser.add_argument("--score-threshold", type=float, default=None, help="Decision threshold for ATWV (default: from config)")
    parser.add_argument("--sweep-step", type=float, default=None, help="Bin size of the oracle sweep (default: from config)")
    parser.add_argument("--json", action="store_true", help="Print metrics as JSON instead of a table")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def load_scoring_config(args: argparse.Namespace) -> FullConfig:
    """Load the preset or YAML file and apply command-line overrides.

    Raises:
        FileNotFoundError: If a config file doesn't exist
        ConfigError: If the resulting configuration is invalid
    """
    config = load_full_config(args.config, args.override)

    config.twv.audio_duration = args.audio_duration
    overrides = {
        "cost_fa": args.cost_fa,
        "value_corr": args.value_corr,
        "prior_probability": args.prior_probability,
        "score_threshold": args.score_threshold,
        "sweep_step": args.sweep_step,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(config.twv, name, value)
    if args.max_distance is not None:
        config.aligner.max_distance = args.max_distance
    if args.frames_per_sec is not None:
        config.output.frames_per_sec = args.frames_per_sec

    issues = get_default_loader().validate(dataclasses.asdict(config))
    if issues:
        raise ConfigError("Invalid command-line options: " + "; ".join(issues))
    return config


def score(config: FullConfig, ref_file: str, hyp_file: str) -> tuple[KwsAlignment, dict[str, Any]]:
    """Align the two term lists and compute all TWV metrics."""
    aligner = KwsTermsAligner(config.aligner.to_options())
    for ref in read_terms(ref_file):
        aligner.add_ref(ref)
    for hyp in read_terms(hyp_file):
        aligner.add_hyp(hyp)
    logger.info(f"Read {aligner.nof_refs} reference and {aligner.nof_hyps} hypothesis terms")

    alignment = aligner.align_terms()

    twv = TwvMetrics(config.twv.to_options())
    twv.add_alignment(alignment)
    return alignment, twv.compute_all()


def write_alignment_csv(alignment: KwsAlignment, csv_path: Path, config: FullConfig) -> int:
    csv_path.parent.mkdir(parents=True, exist_ok=True)
    with open(csv_path, "w", newline="") as f:
        return alignment.write_csv(f, config.output.frames_per_sec, config.decision_threshold)


def print_metrics(metrics: dict[str, Any], config: FullConfig) -> None:
    """Print a formatted metrics report."""
    table = Table(title="Term-Weighted Value", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("ATWV", f"{metrics['atwv']:.4f}")
    table.add_row("STWV", f"{metrics['stwv']:.4f}")
    table.add_row("MTWV", f"{metrics['mtwv']:.4f}")
    table.add_row("MTWV threshold", f"{metrics['mtwv_threshold']:.4f}")
    table.add_row("OTWV", f"{metrics['otwv']:.4f}")
    console.print(table)

    twv = config.twv
    console.print(
        Panel.fit(
            f"keywords={metrics['num_keywords']}  refs={metrics['num_refs']}  "
            f"hits={metrics['num_hits']}  false alarms={metrics['num_false_alarms']}\n"
            f"[dim]duration={twv.audio_duration}s  threshold={twv.score_threshold}  "
            f"beta={twv.to_options().beta:.1f}  sweep step={twv.sweep_step}[/dim]",
            title="Counts",
            border_style="cyan",
        )
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(message)s",
        handlers=[logging.StreamHandler()],
    )

    try:
        config = load_scoring_config(args)
        alignment, metrics = score(config, args.ref_file, args.hyp_file)
        if args.alignment_csv is not None:
            rows = write_alignment_csv(alignment, Path(args.alignment_csv), config)
            logger.info(f"Wrote {rows} alignment rows to {args.alignment_csv}")
    except (KwsError, FileNotFoundError, yaml.YAMLError) as e:
        console.print(f"[red]{e}[/red]")
        return 1

    if args.json:
        print(json.dumps(metrics, indent=2))
    else:
        print_metrics(metrics, config)
    return 0


if __name__ == "__main__":
    sys.exit(main())
