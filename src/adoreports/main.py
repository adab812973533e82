"""Entry point for the ADO build report generator."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .ado_client import AdoClient
from .cli import parse_args
from .comments import add_comments
from .config import load_config
from .errors import (
    ApiError,
    AuthenticationError,
    BatchCancelledError,
    ConfigurationError,
    RetrievalError,
    ValidationError,
)
from .export import export_build_reports, export_builds, export_summary_report
from .pr_builds import get_pull_request_builds, summarize_build
from .reports import get_build_reports, get_recent_build_reports
from .stats import render_build_reports, render_pull_request_build, render_summary_report
from .summary import get_build_summary_report

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_INVALID_INPUT = 2
EXIT_AUTHENTICATION = 3
EXIT_API = 4


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _run_report(ado_client: AdoClient, args: argparse.Namespace, max_workers: int) -> int:
    reports = get_build_reports(ado_client, args.project, args.build_id, max_workers=max_workers)
    print(render_build_reports(reports, requested=len(args.build_id)))
    if args.output:
        export_build_reports(reports, args.output)
    return EXIT_OK


def _run_recent(ado_client: AdoClient, args: argparse.Namespace, max_workers: int) -> int:
    reports = get_recent_build_reports(
        ado_client,
        args.project,
        args.definition_id,
        count=args.count,
        status=args.status,
        max_workers=max_workers,
    )
    print(render_build_reports(reports))
    if args.output:
        export_build_reports(reports, args.output)
    return EXIT_OK


def _run_summary(ado_client: AdoClient, args: argparse.Namespace, max_workers: int) -> int:
    summary = get_build_summary_report(
        ado_client,
        args.project,
        args.from_date,
        args.to_date,
        pipeline_definition_id=args.definition_id,
    )
    print(render_summary_report(summary))
    if args.output:
        export_summary_report(summary, args.output)
    return EXIT_OK


def _run_pr_builds(ado_client: AdoClient, args: argparse.Namespace, max_workers: int) -> int:
    builds = get_pull_request_builds(
        ado_client,
        args.project,
        args.repo,
        args.pr_id,
        max_builds=args.max_builds,
    )
    print(f"Found {len(builds)} build(s) for pull request {args.pr_id}.")
    latest = summarize_build(builds[0]) if builds else None
    print(render_pull_request_build(latest, args.pr_id))
    if args.output:
        export_builds(builds, args.output)
    return EXIT_OK


def _run_comment(ado_client: AdoClient, args: argparse.Namespace, max_workers: int) -> int:
    try:
        payload = json.loads(Path(args.file).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ValidationError(f"Could not read comments file '{args.file}': {exc}") from exc
    if not isinstance(payload, list):
        raise ValidationError(f"Comments file '{args.file}' must contain a JSON array.")

    threads = add_comments(
        ado_client,
        args.project,
        args.repo,
        args.pr_id,
        payload,
        max_workers=max_workers,
    )
    print(f"Posted {len(threads)} of {len(payload)} comment(s) to pull request {args.pr_id}.")
    return EXIT_OK


_COMMANDS = {
    "report": _run_report,
    "recent": _run_recent,
    "summary": _run_summary,
    "pr-builds": _run_pr_builds,
    "comment": _run_comment,
}


def orchestrate_report_generation(argv: Optional[Sequence[str]] = None) -> int:
    """Parse arguments, run the selected command and map failures to exit codes.

    Exit codes: ``0`` success, ``1`` unexpected error, ``2`` invalid input or
    configuration, ``3`` missing credentials, ``4`` Azure DevOps failure.
    """
    try:
        args = parse_args(argv)
        configure_logging(args.verbose)

        config = load_config(organization=args.org, max_workers=args.workers)
        ado_client = AdoClient(config=config)

        return _COMMANDS[args.command](ado_client, args, config.max_workers)
    except (ValidationError, ConfigurationError) as exc:
        logger.error("Invalid input: %s", exc)
        return EXIT_INVALID_INPUT
    except AuthenticationError as exc:
        logger.error("Authentication error: %s", exc)
        return EXIT_AUTHENTICATION
    except (ApiError, RetrievalError, BatchCancelledError) as exc:
        logger.error("Azure DevOps error: %s", exc)
        return EXIT_API
    except Exception:
        logger.exception("Unexpected error during report generation")
        return EXIT_UNEXPECTED


def main(argv: Optional[Sequence[str]] = None) -> int:
    return orchestrate_report_generation(argv)


if __name__ == "__main__":
    raise SystemExit(main())
