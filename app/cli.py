"""
Command line entry point.

    decision-sim run config.json [--csv metrics.csv] [--tornado] [--workers 4]

Prints the per-option metrics table and the recommendation, optionally
writes the metrics CSV and runs a tornado sweep on the recommended option.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

import pandas as pd

from core.errors import ConfigValidationError
from engine.runner import run_simulation
from engine.sensitivity import DEFAULT_STEP_PERCENT, MAX_STEP_PERCENT, MIN_STEP_PERCENT, run_tornado
from inputs.loader import load_config
from risk.decisions import generate_decision_report
from risk.export import write_metrics_csv

logger = logging.getLogger(__name__)


def _step_percent(text: str) -> float:
    try:
        value = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {text!r}") from None
    if not (MIN_STEP_PERCENT <= value <= MAX_STEP_PERCENT):
        raise argparse.ArgumentTypeError(
            f"must be within [{MIN_STEP_PERCENT:g}, {MAX_STEP_PERCENT:g}], got {value:g}"
        )
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="decision-sim",
        description="Monte Carlo risk/return simulation for competing decision options.",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v info, -vv debug")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="simulate a config file")
    run.add_argument("config", help="path to a JSON simulation config")
    run.add_argument("--csv", dest="csv_path", help="write the metrics CSV here")
    run.add_argument("--tornado", action="store_true", help="run a sensitivity sweep")
    run.add_argument("--step", type=_step_percent, default=DEFAULT_STEP_PERCENT,
                     help="tornado step in percent (default: %(default)s)")
    run.add_argument("--workers", type=int, default=None, help="thread pool size")
    return parser


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def cmd_run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    run = run_simulation(config, max_workers=args.workers)

    with pd.option_context("display.width", 160, "display.max_columns", None):
        print(f"Run {run.run_id}")
        print(run.to_dataframe().to_string(index=False))
        if run.diagnostics.copula is not None:
            diag = run.diagnostics
            print(f"\nCopula fit: froErr={diag.copula_fro_err:.6f}"
                  + (f", achieved Spearman={diag.achieved_spearman:.4f}"
                     if diag.achieved_spearman is not None else ""))

        report = generate_decision_report(run.results, config.utility_params)
        print(f"\nRecommendation ({report.basis}): {report.recommended_label or 'none'}")
        print(report.to_dataframe().to_string(index=False))

        if args.csv_path:
            write_metrics_csv(run, args.csv_path)
            print(f"\nMetrics written to {args.csv_path}")

        if args.tornado:
            tornado = run_tornado(
                config,
                step_percent=args.step,
                baseline=run,
                max_workers=args.workers,
            )
            print(f"\nTornado: {tornado.option_label} ({tornado.metric}, ±{tornado.step_percent:g}%)")
            print(tornado.to_dataframe().to_string(index=False))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    try:
        if args.command == "run":
            return cmd_run(args)
    except ConfigValidationError as exc:
        print("Invalid configuration:", file=sys.stderr)
        for err in exc.errors:
            print(f"  ✗ {err}", file=sys.stderr)
        return 2
    except FileNotFoundError as exc:
        print(f"Config not found: {exc.filename}", file=sys.stderr)
        return 2
    return 1


if __name__ == "__main__":
    sys.exit(main())
