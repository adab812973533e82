"""Aggregate build statistics over a finish-time window.

This module provides:
- :func:`compute_build_summary`, a pure fold over the already-fetched builds
  that finished in ``[from_date, to_date)``.
- :func:`get_build_summary_report`, which queries one capped page of builds
  finished in ``[from_date, to_date)`` and summarizes it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from .ado_client import AdoClient
from .errors import RetrievalError
from .models import Build, SummaryReport
from .validation import as_utc, require_positive, require_text, require_window

logger = logging.getLogger(__name__)

# Hard upper bound on builds fetched per summary; narrow the window past this.
SUMMARY_PAGE_CAP = 1000

RESULT_SUCCEEDED = "succeeded"
RESULT_FAILED = "failed"
RESULT_CANCELED = "canceled"
RESULT_PARTIALLY_SUCCEEDED = "partiallysucceeded"


def _count_result(builds: Sequence[Build], result: str) -> int:
    return sum(1 for build in builds if (build.result or "").lower() == result)


def average_duration(builds: Sequence[Build]) -> timedelta:
    """Average ``finish - start`` over builds that recorded both timestamps.

    Builds still running (or never started) are left out of the average.
    Returns ``timedelta(0)`` when no build qualifies.
    """
    durations = [build.duration for build in builds if build.duration is not None]
    if not durations:
        return timedelta(0)
    return sum(durations, timedelta(0)) / len(durations)


def count_unique_definitions(builds: Sequence[Build]) -> int:
    """Count distinct definition names, ignoring builds without a definition."""
    return len(
        {
            build.definition.name
            for build in builds
            if build.definition is not None and build.definition.name is not None
        }
    )


def builds_in_window(builds: Sequence[Build], from_date: datetime, to_date: datetime) -> List[Build]:
    """Keep builds that finished in ``[from_date, to_date)`` or have not finished yet."""
    start, end = as_utc(from_date), as_utc(to_date)
    return [
        build
        for build in builds
        if build.finish_time is None or start <= as_utc(build.finish_time) < end
    ]


def compute_build_summary(
    builds: Sequence[Build],
    project: str,
    from_date: datetime,
    to_date: datetime,
    pipeline_definition_id: Optional[int] = None,
    generated_on: Optional[datetime] = None,
) -> SummaryReport:
    """Fold a window of builds into a :class:`SummaryReport`.

    Builds that finished outside ``[from_date, to_date)`` are ignored.
    ``success_rate`` is ``succeeded / total * 100`` and ``0.0`` for an empty window.
    """
    builds = builds_in_window(builds, from_date, to_date)
    total = len(builds)
    successful = _count_result(builds, RESULT_SUCCEEDED)

    return SummaryReport(
        project_name=project,
        from_date=from_date,
        to_date=to_date,
        generated_on=generated_on or datetime.now(timezone.utc),
        pipeline_definition_id=pipeline_definition_id,
        total_builds=total,
        successful_builds=successful,
        failed_builds=_count_result(builds, RESULT_FAILED),
        canceled_builds=_count_result(builds, RESULT_CANCELED),
        partially_succeeded_builds=_count_result(builds, RESULT_PARTIALLY_SUCCEEDED),
        success_rate=successful / total * 100 if total else 0.0,
        average_build_duration=average_duration(builds),
        unique_definitions=count_unique_definitions(builds),
    )


def get_build_summary_report(
    ado_client: AdoClient,
    project: str,
    from_date: datetime,
    to_date: datetime,
    pipeline_definition_id: Optional[int] = None,
) -> SummaryReport:
    """Summarize the builds of a project that finished in ``[from_date, to_date)``.

    Naive datetimes are treated as UTC. At most ``SUMMARY_PAGE_CAP`` builds are
    fetched; hitting the cap is logged so the caller can narrow the window.

    Raises:
        ValidationError: If ``project`` is blank, the window is empty or inverted,
            or ``pipeline_definition_id`` is given but not positive.
        RetrievalError: If the build listing fails.
    """
    require_text(project, "Project name")
    start, end = require_window(from_date, to_date)
    if pipeline_definition_id is not None:
        require_positive(pipeline_definition_id, "Pipeline definition ID")

    try:
        builds: List[Build] = ado_client.list_builds(
            project,
            definitions=[pipeline_definition_id] if pipeline_definition_id is not None else None,
            min_time=start,
            max_time=end,
            top=SUMMARY_PAGE_CAP,
            query_order="finishTimeDescending",
        )
    except Exception as exc:
        raise RetrievalError(
            f"Failed to retrieve build summary report for project {project}: {exc}"
        ) from exc

    if len(builds) >= SUMMARY_PAGE_CAP:
        logger.warning(
            "Build summary reached the page cap of %s builds; narrow the date window for complete results",
            SUMMARY_PAGE_CAP,
            extra={"project": project, "from_date": start.isoformat(), "to_date": end.isoformat()},
        )

    report = compute_build_summary(
        builds,
        project=project,
        from_date=start,
        to_date=end,
        pipeline_definition_id=pipeline_definition_id,
    )
    logger.info(
        "Computed build summary",
        extra={
            "project": project,
            "total_builds": report.total_builds,
            "success_rate": report.success_rate,
        },
    )
    return report
