"""
Build the Bronx ZIP / tract / NTA crosswalk from CLI.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path

from crosswalk.config import get_pipeline_settings, load_env_files
from crosswalk.logging_utils import configure_logging
from crosswalk.services.pipeline import CrosswalkPipeline, format_status_lines

EXIT_OK = 0
EXIT_PHASE_FAILED = 1
EXIT_INVALID_REPORT = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the Bronx crosswalk pipeline.")
    parser.add_argument(
        "--cache-dir",
        dest="cache_dir",
        type=Path,
        default=None,
        help="Directory for downloaded source files.",
    )
    parser.add_argument(
        "--output-dir",
        dest="output_dir",
        type=Path,
        default=None,
        help="Directory for generated outputs.",
    )
    parser.add_argument(
        "--no-cache",
        dest="no_cache",
        action="store_true",
        help="Always download sources, ignoring cached copies.",
    )
    parser.add_argument(
        "--tolerate-fetch-errors",
        dest="tolerate_fetch_errors",
        action="store_true",
        help="Fall back to stale cached sources when a download fails.",
    )
    parser.add_argument(
        "--strict",
        dest="strict",
        action="store_true",
        help="Exit with status 2 when the validation report has errors.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    load_env_files()
    configure_logging()

    settings = get_pipeline_settings()
    overrides: dict[str, object] = {}
    if args.cache_dir is not None:
        overrides["cache_dir"] = args.cache_dir
    if args.output_dir is not None:
        overrides["output_dir"] = args.output_dir
    if args.no_cache:
        overrides["use_cache"] = False
    if args.tolerate_fetch_errors:
        overrides["fail_on_fetch_error"] = False
    if overrides:
        settings = replace(settings, **overrides)

    result = CrosswalkPipeline(settings).run()
    for line in format_status_lines(result):
        print(line)

    if not result.succeeded:
        failed = result.failed_phase
        if failed is not None:
            print(f"Pipeline failed in phase {failed.phase} ({failed.name}): {failed.error}")
        return EXIT_PHASE_FAILED
    if args.strict and result.report is not None and not result.report.is_valid:
        print(f"Validation failed with {len(result.report.errors)} error(s).")
        return EXIT_INVALID_REPORT
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
