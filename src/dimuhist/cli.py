"""Command-line interface: fill stores from events, merge stores, report results."""

from __future__ import annotations
__author__ = "dimuhist developers"

import argparse
import logging
from dataclasses import replace

from .analysis import AnalysisConfig, PairAnalysis
from .finalize import Projector
from .io import (
    load_analysis_config_json,
    load_events_json,
    load_store,
    save_store,
    write_projection_table,
)
from .store import merge_stores

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Define and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="dimu-hist",
        description="Classify track pairs and accumulate them into mergeable multi-axis histograms.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    fill = sub.add_parser("fill", help="Process an events JSON into a pickled store.")
    fill.add_argument("--events", required=True, help="Input JSON with key 'events'.")
    fill.add_argument("--config", default=None, help="Optional analysis configuration JSON.")
    fill.add_argument(
        "--tracklet-dist-cuts",
        type=str,
        default=None,
        help="Comma-separated tracklet distance cuts (overrides the config file).",
    )
    fill.add_argument(
        "--selected-pair-types",
        type=str,
        default=None,
        help="Comma-separated pair-type whitelist (overrides the config file).",
    )
    fill.add_argument("--out", required=True, help="Output pickle for the filled store.")
    fill.add_argument("--name", default="PairAnalysis", help="Name of the output store.")

    merge = sub.add_parser("merge", help="Merge several pickled stores into one.")
    merge.add_argument("inputs", nargs="+", help="Stores written by 'fill' or 'merge'.")
    merge.add_argument("--out", required=True, help="Output pickle for the merged store.")

    report = sub.add_parser("report", help="Project a store and print efficiencies.")
    report.add_argument("--store", required=True, help="Pickled store.")
    report.add_argument("--config", default=None, help="Optional analysis configuration JSON.")
    report.add_argument(
        "--table",
        default=None,
        help="Optional output table for projections and efficiencies (.parquet, .csv, .pkl).",
    )
    return parser


def _load_config(args: argparse.Namespace) -> AnalysisConfig:
    config = load_analysis_config_json(args.config) if args.config else AnalysisConfig()
    overrides = {}
    if getattr(args, "tracklet_dist_cuts", None):
        overrides["tracklet_dist_cuts"] = tuple(
            float(x) for x in args.tracklet_dist_cuts.split(",") if x.strip()
        )
    if getattr(args, "selected_pair_types", None):
        overrides["selected_pair_types"] = args.selected_pair_types
    return replace(config, **overrides) if overrides else config


def run_fill(args: argparse.Namespace) -> int:
    config = _load_config(args)
    analysis = PairAnalysis(config=config, name=args.name)
    analysis.initialize()
    events = load_events_json(args.events)
    store = analysis.process_events(events)
    save_store(args.out, store)
    logger.info("Processed %d events into %d leaves, wrote %s", len(events), len(store), args.out)
    return 0


def run_merge(args: argparse.Namespace) -> int:
    merged = merge_stores((load_store(path) for path in args.inputs), name="merged")
    save_store(args.out, merged)
    logger.info("Merged %d stores into %d leaves, wrote %s", len(args.inputs), len(merged), args.out)
    return 0


def run_report(args: argparse.Namespace) -> int:
    config = _load_config(args)
    store = load_store(args.store)
    output = Projector.from_config(config).finalize(store)
    for line in output.report_lines():
        print(line)
    if args.table:
        write_projection_table(args.table, output)
        logger.info("Wrote %s", args.table)
    return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )
    handlers = {"fill": run_fill, "merge": run_merge, "report": run_report}
    return handlers[args.command](args)


if __name__ == "__main__":
    raise SystemExit(main())
