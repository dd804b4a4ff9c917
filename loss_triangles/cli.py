"""Command-line entry point: ``loss-triangles``.

Examples:
    Paid triangle from a folder of yearly extracts::

        loss-triangles --source-dir data/ --pattern "claims_*.xlsx" --metric paid

    Everything from a config file, with charts::

        loss-triangles --config triangle.yaml --plot
"""

import argparse
from pathlib import Path
import sys
from typing import Any, Dict, List, Optional

import pandas as pd
from pydantic import ValidationError
import yaml

from .config import Config, setup_logging
from .exceptions import TriangleError
from .pipeline import run_pipeline
from .reporting import format_triangle


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="loss-triangles",
        description="Aggregate yearly claims extracts into a development triangle",
    )
    parser.add_argument("--config", type=Path, help="YAML configuration file")
    parser.add_argument("--source-dir", type=Path, help="Directory of source spreadsheets")
    parser.add_argument("--pattern", help="Glob pattern for source files (default: *.xlsx)")
    parser.add_argument("--metric", help="Metric column to aggregate (default: paid)")
    parser.add_argument("--output-dir", help="Directory for exports and charts")
    parser.add_argument("--format", choices=["csv", "xlsx"], help="Export format")
    parser.add_argument("--no-export", action="store_true", help="Do not write the triangle")
    parser.add_argument("--plot", action="store_true", help="Save development charts")
    parser.add_argument(
        "--reject-negative",
        action="store_true",
        help="Fail on records evaluated before their origin period",
    )
    parser.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level"
    )
    return parser


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Dict[str, Any]] = {
        "ingestion": {},
        "triangle": {},
        "output": {},
        "logging": {},
    }
    if args.source_dir is not None:
        overrides["ingestion"]["source_directory"] = args.source_dir
    if args.pattern:
        overrides["ingestion"]["file_pattern"] = args.pattern
    if args.metric:
        overrides["triangle"]["metric_column"] = args.metric
    if args.reject_negative:
        overrides["triangle"]["negative_maturity_policy"] = "reject"
    if args.output_dir:
        overrides["output"]["output_directory"] = args.output_dir
    if args.format:
        overrides["output"]["file_format"] = args.format
    if args.no_export:
        overrides["output"]["export"] = False
    if args.plot:
        overrides["output"]["save_plots"] = True
    if args.log_level:
        overrides["logging"]["level"] = args.log_level
    return {k: v for k, v in overrides.items() if v}


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI.

    Returns:
        Process exit code: 0 on success, 1 on a data or configuration error.
    """
    args = build_parser().parse_args(argv)

    try:
        base = Config.from_yaml(args.config) if args.config else Config()
        config = Config.from_dict(_overrides(args), base)
    except (FileNotFoundError, ValidationError, ValueError, yaml.YAMLError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(config.logging)

    try:
        result = run_pipeline(config)
    except TriangleError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    with pd.option_context("display.max_columns", None, "display.width", 200):
        print(format_triangle(result.triangle).to_string())
    if result.exported_path:
        print(f"\nTriangle written to {result.exported_path}")
    for path in result.figure_paths:
        print(f"Chart written to {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
