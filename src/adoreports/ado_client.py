"""Azure DevOps REST API client for build, test and pull request data."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import requests
from requests.auth import HTTPBasicAuth

from .config import Config
from .errors import ApiError, DataValidationError
from .models import (
    Build,
    BuildArtifact,
    CommentThread,
    DefinitionRef,
    PullRequest,
    TestCaseResult,
    TestRun,
    ThreadComment,
    TimelineRecord,
)


class AdoClient:
    """Small, typed client for the Azure DevOps build, test and Git APIs."""

    _API_VERSION = "7.1"
    _TEST_RESULT_PAGE_SIZE = 1000
    _MAX_RETRIES = 5
    _MAX_BACKOFF_SECONDS = 30

    def __init__(self, config: Config) -> None:
        """Initialize an authenticated Azure DevOps API client.

        Args:
            config: Validated runtime configuration including organization and PAT.
        """
        self._config = config
        self._timeout_seconds = config.timeout_seconds
        self._base_url = f"https://dev.azure.com/{config.organization}"
        self._local = threading.local()

    @property
    def _session(self) -> requests.Session:
        """Return the calling thread's ``requests.Session``, created on first use."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.auth = HTTPBasicAuth("", self._config.pat)
            session.headers.update({"Accept": "application/json"})
            self._local.session = session
        return session

    def _build_url(self, project: str, path: str) -> str:
        """Build a fully qualified API URL from a path below ``{project}/_apis``."""
        return f"{self._base_url}/{project}/_apis/{path.lstrip('/')}"

    def _format_datetime(self, value: datetime) -> str:
        """Format a datetime as UTC ISO8601 suitable for Azure DevOps query params."""
        utc_value = value.astimezone(timezone.utc)
        return utc_value.isoformat().replace("+00:00", "Z")

    def _parse_datetime(self, value: Optional[str]) -> Optional[datetime]:
        """Parse Azure DevOps ISO8601 timestamps into timezone-aware datetimes."""
        if not value:
            return None

        normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
        # Azure DevOps emits up to 7 fractional digits; fromisoformat accepts at most 6.
        if "." in normalized:
            head, _, tail = normalized.partition(".")
            digits = len(tail) - len(tail.lstrip("0123456789"))
            if digits > 6:
                normalized = f"{head}.{tail[:6]}{tail[digits:]}"
        parsed = datetime.fromisoformat(normalized)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed

    def _extract_backoff_seconds(self, response: requests.Response, attempt: int) -> int:
        """Compute exponential backoff seconds, honoring Retry-After when available."""
        retry_after_header = response.headers.get("Retry-After")
        if retry_after_header:
            try:
                retry_after_seconds = int(retry_after_header)
                return min(self._MAX_BACKOFF_SECONDS, max(1, retry_after_seconds))
            except ValueError:
                pass

        return min(self._MAX_BACKOFF_SECONDS, 2 ** (attempt - 1))

    def _request_json(
        self,
        method: str,
        project: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Execute a request with retry logic for 429 and, except for POST, 5xx responses.

        POST requests create comments and threads, so only throttled (429) responses
        are retried for them.

        Raises:
            ApiError: If the request repeatedly fails, returns HTTP >= 400,
                or does not return a JSON object.
        """
        url = self._build_url(project, path)
        query = dict(params or {})
        query["api-version"] = self._API_VERSION
        retry_server_errors = method != "POST"

        last_error: Optional[Exception] = None

        for attempt in range(1, self._MAX_RETRIES + 1):
            try:
                response = self._session.request(
                    method,
                    url,
                    params=query,
                    json=body,
                    timeout=self._timeout_seconds,
                )
            except requests.RequestException as exc:
                last_error = exc
                if attempt == self._MAX_RETRIES or not retry_server_errors:
                    raise ApiError(f"Azure DevOps request failed: {method} {url}") from exc
                time.sleep(min(self._MAX_BACKOFF_SECONDS, 2 ** (attempt - 1)))
                continue

            status_code = response.status_code
            is_retryable = status_code == 429 or (retry_server_errors and 500 <= status_code <= 599)

            if is_retryable and attempt < self._MAX_RETRIES:
                time.sleep(self._extract_backoff_seconds(response, attempt))
                continue

            if status_code >= 400:
                raise ApiError(
                    "Azure DevOps API request failed: "
                    f"{method} {url} returned {status_code} - {response.text}"
                )

            try:
                payload = response.json()
            except ValueError as exc:
                raise ApiError(f"Azure DevOps API returned invalid JSON: {method} {url}") from exc

            if not isinstance(payload, dict):
                raise ApiError(f"Azure DevOps API returned unexpected payload shape: {method} {url}")

            return payload

        raise ApiError(f"Azure DevOps request failed after retries: {method} {url}") from last_error

    def _get_json(self, project: str, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._request_json("GET", project, path, params=params)

    # Builds

    def _parse_build(self, item: Dict[str, Any]) -> Build:
        build_id = item.get("id")
        if build_id is None:
            raise DataValidationError(f"Azure DevOps build payload is missing 'id': payload={item}")

        definition_item = item.get("definition")
        definition = None
        if definition_item:
            definition = DefinitionRef(id=definition_item.get("id"), name=definition_item.get("name"))

        repository = item.get("repository") or {}
        links = item.get("_links") or {}

        return Build(
            id=int(build_id),
            build_number=item.get("buildNumber"),
            status=item.get("status"),
            result=item.get("result"),
            queue_time=self._parse_datetime(item.get("queueTime")),
            start_time=self._parse_datetime(item.get("startTime")),
            finish_time=self._parse_datetime(item.get("finishTime")),
            source_branch=item.get("sourceBranch"),
            source_version=item.get("sourceVersion"),
            requested_by=(item.get("requestedBy") or {}).get("displayName"),
            requested_for=(item.get("requestedFor") or {}).get("displayName"),
            reason=item.get("reason"),
            definition=definition,
            repository_name=repository.get("name"),
            repository_type=repository.get("type"),
            uri=item.get("uri"),
            web_url=(links.get("web") or {}).get("href"),
        )

    def get_build(self, project: str, build_id: int) -> Build:
        """Fetch metadata for a single build."""
        payload = self._get_json(project, f"build/builds/{build_id}")
        return self._parse_build(payload)

    def list_builds(
        self,
        project: str,
        definitions: Optional[Iterable[int]] = None,
        branch_name: Optional[str] = None,
        repository_id: Optional[str] = None,
        min_time: Optional[datetime] = None,
        max_time: Optional[datetime] = None,
        top: Optional[int] = None,
        query_order: Optional[str] = None,
        status_filter: Optional[str] = None,
    ) -> List[Build]:
        """List builds matching the given filters.

        ``min_time``/``max_time`` are interpreted by Azure DevOps according to
        ``query_order`` (finish time for ``finishTimeDescending``).
        """
        params: Dict[str, Any] = {}
        if definitions:
            params["definitions"] = ",".join(str(definition) for definition in definitions)
        if branch_name:
            params["branchName"] = branch_name
        if repository_id:
            params["repositoryId"] = repository_id
            params["repositoryType"] = "TfsGit"
        if min_time is not None:
            params["minTime"] = self._format_datetime(min_time)
        if max_time is not None:
            params["maxTime"] = self._format_datetime(max_time)
        if top is not None:
            params["$top"] = top
        if query_order:
            params["queryOrder"] = query_order
        if status_filter:
            params["statusFilter"] = status_filter

        payload = self._get_json(project, "build/builds", params=params)
        return [self._parse_build(item) for item in payload.get("value", [])]

    def get_build_timeline(self, project: str, build_id: int) -> List[TimelineRecord]:
        """Fetch the task/step records of a build timeline."""
        payload = self._get_json(project, f"build/builds/{build_id}/timeline")
        records: List[TimelineRecord] = []

        for item in payload.get("records") or []:
            records.append(
                TimelineRecord(
                    id=item.get("id"),
                    name=item.get("name"),
                    record_type=item.get("type"),
                    state=item.get("state"),
                    result=item.get("result"),
                    start_time=self._parse_datetime(item.get("startTime")),
                    finish_time=self._parse_datetime(item.get("finishTime")),
                    order=item.get("order"),
                    error_count=int(item.get("errorCount") or 0),
                    warning_count=int(item.get("warningCount") or 0),
                )
            )

        return records

    def get_build_artifacts(self, project: str, build_id: int) -> List[BuildArtifact]:
        """List artifacts published by a build."""
        payload = self._get_json(project, f"build/builds/{build_id}/artifacts")
        artifacts: List[BuildArtifact] = []

        for item in payload.get("value", []):
            name = item.get("name")
            if not name:
                continue
            resource = item.get("resource") or {}
            artifacts.append(
                BuildArtifact(
                    name=str(name),
                    type=resource.get("type"),
                    download_url=resource.get("downloadUrl"),
                )
            )

        return artifacts

    # Tests

    def list_test_runs(self, project: str, build_id: int) -> List[TestRun]:
        """List test runs associated with a build."""
        payload = self._get_json(
            project,
            "test/runs",
            params={"buildUri": f"vstfs:///Build/Build/{build_id}"},
        )
        runs: List[TestRun] = []

        for item in payload.get("value", []):
            run_id = item.get("id")
            if run_id is None:
                continue
            runs.append(TestRun(id=int(run_id), name=item.get("name"), state=item.get("state")))

        return runs

    def list_test_results(self, project: str, run_id: int) -> List[TestCaseResult]:
        """List all results of a test run using ``$top``/``$skip`` pagination."""
        results: List[TestCaseResult] = []
        skip = 0

        while True:
            payload = self._get_json(
                project,
                f"test/runs/{run_id}/results",
                params={"$top": self._TEST_RESULT_PAGE_SIZE, "$skip": skip},
            )

            page_items = payload.get("value", [])
            for item in page_items:
                result_id = item.get("id")
                if result_id is None:
                    raise DataValidationError(
                        f"Azure DevOps test result payload is missing 'id': run_id={run_id}, payload={item}"
                    )
                results.append(
                    TestCaseResult(
                        id=int(result_id),
                        outcome=item.get("outcome"),
                        test_case_title=item.get("testCaseTitle"),
                    )
                )

            if len(page_items) < self._TEST_RESULT_PAGE_SIZE:
                break

            skip += self._TEST_RESULT_PAGE_SIZE

        return results

    def get_pull_request(self, project: str, repository_id: str, pull_request_id: int) -> PullRequest:
        """Fetch a pull request."""
        item = self._get_json(project, f"git/repositories/{repository_id}/pullrequests/{pull_request_id}")

        pr_id = item.get("pullRequestId")
        source_ref_name = item.get("sourceRefName")
        status = item.get("status")
        if pr_id is None or not source_ref_name or not status:
            raise DataValidationError(
                "Azure DevOps pull request payload is missing required fields: "
                f"repository_id={repository_id}, payload={item}"
            )

        return PullRequest(
            pull_request_id=int(pr_id),
            status=str(status),
            source_ref_name=str(source_ref_name),
            target_ref_name=item.get("targetRefName"),
            title=item.get("title"),
            created_by=(item.get("createdBy") or {}).get("displayName"),
            creation_date=self._parse_datetime(item.get("creationDate")),
        )

    def _parse_comment(self, item: Dict[str, Any]) -> ThreadComment:
        return ThreadComment(
            id=int(item.get("id") or 0),
            content=item.get("content"),
            author=(item.get("author") or {}).get("displayName"),
            parent_comment_id=item.get("parentCommentId") or None,
            published_date=self._parse_datetime(item.get("publishedDate")),
            last_updated_date=self._parse_datetime(item.get("lastUpdatedDate")),
        )

    def _parse_thread(self, item: Dict[str, Any]) -> CommentThread:
        thread_id = item.get("id")
        if thread_id is None:
            raise DataValidationError(f"Azure DevOps thread payload is missing 'id': payload={item}")

        context = item.get("threadContext") or {}
        position = context.get("rightFileStart") or context.get("leftFileStart") or {}

        return CommentThread(
            id=int(thread_id),
            status=item.get("status"),
            file_path=context.get("filePath"),
            line_number=position.get("line"),
            published_date=self._parse_datetime(item.get("publishedDate")),
            last_updated_date=self._parse_datetime(item.get("lastUpdatedDate")),
            comments=tuple(self._parse_comment(comment) for comment in item.get("comments") or []),
        )

    def _threads_path(self, repository_id: str, pull_request_id: int) -> str:
        return f"git/repositories/{repository_id}/pullRequests/{pull_request_id}/threads"

    def list_comment_threads(self, project: str, repository_id: str, pull_request_id: int) -> List[CommentThread]:
        """List discussion threads for a pull request."""
        payload = self._get_json(project, self._threads_path(repository_id, pull_request_id))
        return [self._parse_thread(item) for item in payload.get("value", [])]

    def create_comment_thread(
        self,
        project: str,
        repository_id: str,
        pull_request_id: int,
        thread: Dict[str, Any],
    ) -> CommentThread:
        """Create a comment thread from a ``GitPullRequestCommentThread`` payload."""
        payload = self._request_json(
            "POST",
            project,
            self._threads_path(repository_id, pull_request_id),
            body=thread,
        )
        return self._parse_thread(payload)

    def update_comment_thread_status(
        self,
        project: str,
        repository_id: str,
        pull_request_id: int,
        thread_id: int,
        status: str,
    ) -> CommentThread:
        """Change the status of an existing comment thread."""
        payload = self._request_json(
            "PATCH",
            project,
            f"{self._threads_path(repository_id, pull_request_id)}/{thread_id}",
            body={"status": status},
        )
        return self._parse_thread(payload)

    def create_comment_reply(
        self,
        project: str,
        repository_id: str,
        pull_request_id: int,
        thread_id: int,
        text: str,
    ) -> ThreadComment:
        """Append a text comment to an existing thread."""
        payload = self._request_json(
            "POST",
            project,
            f"{self._threads_path(repository_id, pull_request_id)}/{thread_id}/comments",
            body={"content": text, "commentType": "text", "parentCommentId": 1},
        )
        return self._parse_comment(payload)
