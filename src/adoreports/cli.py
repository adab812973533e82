"""Command-line argument parsing for the ADO build report generator."""

from __future__ import annotations

import argparse
from datetime import datetime, timezone
from typing import Optional, Sequence

from .reports import BUILD_STATUSES

MAX_RECENT_COUNT = 100


def _positive_int(value: str) -> int:
    """Parse and validate a positive integer CLI value.

    Args:
        value: Raw command-line argument value.

    Returns:
        The validated positive integer.

    Raises:
        argparse.ArgumentTypeError: If value is not a positive integer.
    """
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be an integer") from exc

    if parsed <= 0:
        raise argparse.ArgumentTypeError("must be greater than 0")

    return parsed


def _recent_count(value: str) -> int:
    parsed = _positive_int(value)
    if parsed > MAX_RECENT_COUNT:
        raise argparse.ArgumentTypeError(f"must be between 1 and {MAX_RECENT_COUNT}")
    return parsed


def _utc_datetime(value: str) -> datetime:
    """Parse an ISO-8601 date or datetime; values without an offset are UTC."""
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be an ISO-8601 date, e.g. 2026-01-31") from exc

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def _add_project(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--project",
        required=True,
        help="Azure DevOps project name.",
    )


def _add_output(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--output",
        default=None,
        help="Optional path of a JSON file to export the result to.",
    )


def _add_pull_request(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--repo",
        required=True,
        help="Azure DevOps repository name or ID.",
    )
    parser.add_argument(
        "--pr-id",
        type=_positive_int,
        required=True,
        help="Pull request ID.",
    )


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with one subcommand per report type."""
    parser = argparse.ArgumentParser(
        prog="ado-build-reports",
        description=(
            "Generate Azure DevOps build reports (test outcomes, recent builds, "
            "window summaries) and post pull request review comments."
        ),
    )

    parser.add_argument(
        "--org",
        required=True,
        help="Azure DevOps organization name.",
    )
    parser.add_argument(
        "--workers",
        type=_positive_int,
        default=1,
        help="Number of batch items processed concurrently (default: 1).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    report = subparsers.add_parser("report", help="Report on one or more builds by ID.")
    _add_project(report)
    report.add_argument(
        "--build-id",
        type=_positive_int,
        action="append",
        required=True,
        help="Build ID (repeatable).",
    )
    _add_output(report)

    recent = subparsers.add_parser("recent", help="Report on the most recent builds of a pipeline.")
    _add_project(recent)
    recent.add_argument(
        "--definition-id",
        type=_positive_int,
        required=True,
        help="Pipeline definition ID.",
    )
    recent.add_argument(
        "--count",
        type=_recent_count,
        default=10,
        help=f"Number of recent builds to report (1-{MAX_RECENT_COUNT}, default: 10).",
    )
    recent.add_argument(
        "--status",
        choices=BUILD_STATUSES,
        default=None,
        help="Optional build status filter.",
    )
    _add_output(recent)

    summary = subparsers.add_parser("summary", help="Summarize builds finished in a date window.")
    _add_project(summary)
    summary.add_argument(
        "--from",
        dest="from_date",
        type=_utc_datetime,
        required=True,
        help="Window start (inclusive), ISO-8601.",
    )
    summary.add_argument(
        "--to",
        dest="to_date",
        type=_utc_datetime,
        required=True,
        help="Window end (exclusive), ISO-8601.",
    )
    summary.add_argument(
        "--definition-id",
        type=_positive_int,
        default=None,
        help="Optional pipeline definition ID filter.",
    )
    _add_output(summary)

    pr_builds = subparsers.add_parser("pr-builds", help="Show the builds of a pull request.")
    _add_project(pr_builds)
    _add_pull_request(pr_builds)
    pr_builds.add_argument(
        "--max-builds",
        type=_positive_int,
        default=10,
        help="Maximum number of builds to list (default: 10).",
    )
    _add_output(pr_builds)

    comment = subparsers.add_parser("comment", help="Post review comments from a JSON file.")
    _add_project(comment)
    _add_pull_request(comment)
    comment.add_argument(
        "--file",
        required=True,
        help=(
            "JSON file with a list of comments: objects with 'text' and optionally "
            "'file_path', 'line_number', 'is_right_side' or 'parent_comment_id'."
        ),
    )

    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed CLI arguments; ``command`` names the selected subcommand.
    """
    return build_parser().parse_args(argv)
