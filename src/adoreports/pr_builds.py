"""Locate the builds that ran for a pull request's source branch."""

from __future__ import annotations

import logging
from typing import List, Optional

from .ado_client import AdoClient
from .errors import RetrievalError
from .models import Build, PullRequestBuildSummary
from .validation import require_positive, require_text

logger = logging.getLogger(__name__)


def get_pull_request_builds(
    ado_client: AdoClient,
    project: str,
    repository_id: str,
    pull_request_id: int,
    max_builds: int = 10,
) -> List[Build]:
    """List the newest builds of a pull request's source branch.

    The pull request lookup is mandatory: when it fails, no build search is
    attempted. Builds are ordered by finish time, newest first.

    Raises:
        ValidationError: On blank project/repository or non-positive IDs/limits.
        RetrievalError: If the pull request or build listing cannot be fetched.
    """
    require_text(project, "Project name")
    require_text(repository_id, "Repository ID")
    require_positive(pull_request_id, "Pull request ID")
    require_positive(max_builds, "Max builds")

    try:
        pull_request = ado_client.get_pull_request(project, repository_id, pull_request_id)
        builds = ado_client.list_builds(
            project,
            repository_id=repository_id,
            branch_name=pull_request.source_ref_name,
            top=max_builds,
            query_order="finishTimeDescending",
        )
    except Exception as exc:
        raise RetrievalError(
            f"Failed to get builds for pull request {pull_request_id} in repository {repository_id}: {exc}"
        ) from exc

    logger.debug(
        "Found pull request builds",
        extra={
            "pull_request_id": pull_request_id,
            "source_branch": pull_request.source_ref_name,
            "builds": len(builds),
        },
    )
    return builds[:max_builds]


def get_latest_build(
    ado_client: AdoClient,
    project: str,
    repository_id: str,
    pull_request_id: int,
) -> Optional[Build]:
    """Return the most recently finished build for a pull request, if any."""
    builds = get_pull_request_builds(ado_client, project, repository_id, pull_request_id, max_builds=1)
    return builds[0] if builds else None


def get_latest_build_summary(
    ado_client: AdoClient,
    project: str,
    repository_id: str,
    pull_request_id: int,
) -> Optional[PullRequestBuildSummary]:
    """Condense the latest pull request build, or ``None`` when it has no builds."""
    build = get_latest_build(ado_client, project, repository_id, pull_request_id)
    if build is None:
        return None
    return summarize_build(build)


def summarize_build(build: Build) -> PullRequestBuildSummary:
    return PullRequestBuildSummary(
        build_id=build.id,
        build_number=build.build_number,
        status=build.status,
        result=build.result,
        start_time=build.start_time,
        finish_time=build.finish_time,
        queue_time=build.queue_time,
        source_branch=build.source_branch,
        source_version=build.source_version,
        requested_by=build.requested_by,
        definition=build.definition.name if build.definition else None,
        uri=build.uri,
    )
