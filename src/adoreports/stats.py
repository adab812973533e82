"""Formatting helpers for console build reporting.

This module provides utilities for:
- Formatting durations as ``HH:MM:SS``.
- Building human-readable text for single build reports, report lists and
  window summaries.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Union

from .models import BuildReport, PullRequestBuildSummary, SummaryReport


def format_duration(duration: Optional[Union[timedelta, float]]) -> str:
    """Format a duration as ``HH:MM:SS``.

    Args:
        duration: A ``timedelta`` or a number of seconds.

    Returns:
        ``"n/a"`` when ``duration`` is ``None``; otherwise a rounded
        ``HH:MM:SS`` string. Hours are not wrapped at 24.
    """
    if duration is None:
        return "n/a"

    seconds = duration.total_seconds() if isinstance(duration, timedelta) else duration
    total_seconds = int(round(seconds))
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    remaining_seconds = total_seconds % 60
    return f"{hours:02d}:{minutes:02d}:{remaining_seconds:02d}"


def _format_time(value: Optional[datetime]) -> str:
    if value is None:
        return "n/a"
    return value.isoformat(timespec="seconds")


def render_build_report(report: BuildReport) -> str:
    """Render one build report as a multi-line text block."""
    tests = report.test_results
    lines = [
        f"Build {report.build_number or report.build_id} (ID {report.build_id}) - {report.project_name}",
        f"   Definition: {report.definition_name or 'n/a'}",
        f"   Status: {report.status or 'n/a'} | Result: {report.result or 'n/a'}",
        f"   Branch: {report.source_branch or 'n/a'} @ {report.source_version or 'n/a'}",
        f"   Requested by: {report.requested_by or 'n/a'} for {report.requested_for or 'n/a'}",
        f"   Started: {_format_time(report.start_time)} | Finished: {_format_time(report.finish_time)}",
        f"   Duration: {format_duration(report.duration)}",
        (
            f"   Tests: {tests.total} total, {tests.passed} passed, {tests.failed} failed, "
            f"{tests.skipped} skipped ({tests.pass_rate:.1f}% pass rate)"
        ),
    ]
    if report.web_url:
        lines.append(f"   URL: {report.web_url}")
    return "\n".join(lines)


def render_build_reports(reports: Sequence[BuildReport], requested: Optional[int] = None) -> str:
    """Render several reports, noting how many requested builds were omitted."""
    lines: List[str] = [f"Build Reports: {len(reports)}"]
    if requested is not None and requested > len(reports):
        lines.append(f"   ({requested - len(reports)} of {requested} builds could not be retrieved)")

    for report in reports:
        lines.append("")
        lines.append(render_build_report(report))

    return "\n".join(lines)


def render_summary_report(summary: SummaryReport) -> str:
    """Render a window summary as a multi-line text block."""
    definition = summary.pipeline_definition_id if summary.pipeline_definition_id is not None else "all"
    lines = [
        f"Project: {summary.project_name}",
        "Build Summary Report",
        f"   Window: {_format_time(summary.from_date)} to {_format_time(summary.to_date)}",
        f"   Pipeline definition: {definition}",
        "",
        f"   Total builds: {summary.total_builds}",
        f"   Succeeded: {summary.successful_builds}",
        f"   Partially succeeded: {summary.partially_succeeded_builds}",
        f"   Failed: {summary.failed_builds}",
        f"   Canceled: {summary.canceled_builds}",
        f"   Success rate: {summary.success_rate:.1f}%",
        f"   Average duration: {format_duration(summary.average_build_duration)}",
        f"   Distinct definitions: {summary.unique_definitions}",
        f"   Generated: {_format_time(summary.generated_on)}",
    ]
    return "\n".join(lines)


def render_pull_request_build(summary: Optional[PullRequestBuildSummary], pull_request_id: int) -> str:
    """Render the latest build of a pull request."""
    if summary is None:
        return f"Pull request {pull_request_id}: no builds found"

    duration = None
    if summary.start_time is not None and summary.finish_time is not None:
        duration = summary.finish_time - summary.start_time

    return "\n".join(
        [
            f"Pull request {pull_request_id}: latest build {summary.build_number or summary.build_id}",
            f"   Definition: {summary.definition or 'n/a'}",
            f"   Status: {summary.status or 'n/a'} | Result: {summary.result or 'n/a'}",
            f"   Branch: {summary.source_branch or 'n/a'} @ {summary.source_version or 'n/a'}",
            f"   Duration: {format_duration(duration)}",
        ]
    )
