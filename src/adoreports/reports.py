"""Build report assembly for single builds, build batches and recent builds."""

from __future__ import annotations

import logging
import threading
from typing import Iterable, List, Optional

from .ado_client import AdoClient
from .batch import best_effort, process_batch
from .errors import RetrievalError, ValidationError
from .models import Build, BuildReport, TestSummary
from .outcomes import summarize_build_tests
from .validation import require_positive, require_text

logger = logging.getLogger(__name__)

BUILD_STATUSES = (
    "all",
    "cancelling",
    "completed",
    "inProgress",
    "none",
    "notStarted",
    "postponed",
)

RECENT_ORDER = "finishTimeDescending"


def get_build_report(ado_client: AdoClient, project: str, build_id: int) -> BuildReport:
    """Assemble a report for one build.

    Business logic:
    - Build metadata is mandatory; any failure fetching it raises
      :class:`RetrievalError` naming the build and project.
    - Timeline and artifacts are fetched best-effort and do not appear in the report.
    - The test summary comes from :func:`summarize_build_tests`, which never fails.
    - ``duration`` is ``finish_time - start_time`` when both are recorded.

    Raises:
        ValidationError: If ``project`` is blank or ``build_id`` is not positive.
        RetrievalError: If the build metadata cannot be fetched.
    """
    require_text(project, "Project name")
    require_positive(build_id, "Build ID")

    try:
        build = ado_client.get_build(project, build_id)
    except Exception as exc:
        raise RetrievalError(
            f"Failed to retrieve build report for build {build_id} in project {project}: {exc}"
        ) from exc

    timeline = best_effort(
        lambda: ado_client.get_build_timeline(project, build_id),
        [],
        f"timeline for build {build_id}",
    )
    artifacts = best_effort(
        lambda: ado_client.get_build_artifacts(project, build_id),
        [],
        f"artifacts for build {build_id}",
    )
    logger.debug(
        "Fetched optional build details",
        extra={
            "build_id": build_id,
            "timeline_tasks": sum(1 for record in timeline if record.record_type == "Task"),
            "artifacts": len(artifacts),
        },
    )

    test_results = summarize_build_tests(ado_client, project, build_id)
    return _to_report(project, build, test_results)


def _to_report(project: str, build: Build, test_results: TestSummary) -> BuildReport:
    definition = build.definition
    return BuildReport(
        build_id=build.id,
        project_name=project,
        build_number=build.build_number,
        definition_name=definition.name if definition else None,
        definition_id=definition.id if definition else None,
        status=build.status,
        result=build.result,
        queue_time=build.queue_time,
        start_time=build.start_time,
        finish_time=build.finish_time,
        duration=build.duration,
        source_branch=build.source_branch,
        source_version=build.source_version,
        requested_by=build.requested_by,
        requested_for=build.requested_for,
        reason=build.reason,
        repository=build.repository_name,
        repository_type=build.repository_type,
        web_url=build.web_url,
        test_results=test_results,
    )


def get_build_reports(
    ado_client: AdoClient,
    project: str,
    build_ids: Iterable[int],
    max_workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
) -> List[BuildReport]:
    """Assemble reports for several builds, skipping builds that fail.

    Reports are returned in the order of ``build_ids``. A failed build is logged
    and omitted, so the result can be shorter than the input.

    Raises:
        ValidationError: If ``project`` is blank or ``build_ids`` is empty.
        BatchCancelledError: If ``cancel_event`` is set while the batch runs.
    """
    require_text(project, "Project name")

    return process_batch(
        build_ids,
        lambda build_id: get_build_report(ado_client, project, build_id),
        describe=lambda build_id: f"build {build_id}",
        max_workers=max_workers,
        cancel_event=cancel_event,
        name="Build IDs",
    )


def get_recent_build_reports(
    ado_client: AdoClient,
    project: str,
    pipeline_definition_id: int,
    count: int = 10,
    status: Optional[str] = None,
    max_workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
) -> List[BuildReport]:
    """Assemble reports for the most recently finished builds of a pipeline.

    Up to ``count`` builds are resolved, newest finish time first. Fewer (or no)
    builds simply yield a shorter (or empty) list.

    Raises:
        ValidationError: On a blank project, non-positive definition ID or count,
            or an unknown ``status``.
        RetrievalError: If the build listing fails.
    """
    require_text(project, "Project name")
    require_positive(pipeline_definition_id, "Pipeline definition ID")
    require_positive(count, "Count")
    if status is not None and status not in BUILD_STATUSES:
        raise ValidationError(f"Unknown build status filter '{status}'. Expected one of {BUILD_STATUSES}.")

    try:
        builds = ado_client.list_builds(
            project,
            definitions=[pipeline_definition_id],
            top=count,
            query_order=RECENT_ORDER,
            status_filter=status,
        )
    except Exception as exc:
        raise RetrievalError(
            "Failed to retrieve recent build reports for definition "
            f"{pipeline_definition_id} in project {project}: {exc}"
        ) from exc

    build_ids = [build.id for build in builds[:count]]
    logger.info(
        "Resolved recent builds",
        extra={
            "project": project,
            "definition_id": pipeline_definition_id,
            "requested": count,
            "resolved": len(build_ids),
        },
    )
    if not build_ids:
        return []

    return get_build_reports(
        ado_client,
        project,
        build_ids,
        max_workers=max_workers,
        cancel_event=cancel_event,
    )
