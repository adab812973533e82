"""Tests for build report assembly, build batches and recent-build resolution."""

import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from adoreports.errors import ApiError, RetrievalError, ValidationError
from adoreports.models import Build, DefinitionRef, TestCaseResult, TestRun, TestSummary
from adoreports.reports import get_build_report, get_build_reports, get_recent_build_reports


def _utc(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, 2, hour, minute, tzinfo=timezone.utc)


def _build(build_id: int, start=None, finish=None, result="succeeded") -> Build:
    return Build(
        id=build_id,
        build_number=f"2026.3.{build_id}",
        status="completed",
        result=result,
        queue_time=_utc(8, 55),
        start_time=start,
        finish_time=finish,
        source_branch="refs/heads/main",
        source_version="abc123",
        requested_by="Build Service",
        requested_for="Dana Reviewer",
        reason="individualCI",
        definition=DefinitionRef(id=7, name="ci-main"),
        repository_name="service",
        repository_type="TfsGit",
        web_url=f"https://dev.azure.com/org/proj/_build/results?buildId={build_id}",
    )


def _client() -> Mock:
    client = Mock()
    client.get_build.side_effect = lambda project, build_id: _build(build_id, _utc(9), _utc(9, 30))
    client.get_build_timeline.return_value = []
    client.get_build_artifacts.return_value = []
    client.list_test_runs.return_value = []
    return client


def test_get_build_report_maps_metadata_and_duration():
    """Verify the report carries build metadata and finish - start as duration."""
    client = _client()

    report = get_build_report(client, "proj", 101)

    assert report.build_id == 101
    assert report.project_name == "proj"
    assert report.build_number == "2026.3.101"
    assert report.definition_name == "ci-main"
    assert report.definition_id == 7
    assert report.requested_for == "Dana Reviewer"
    assert report.repository == "service"
    assert report.duration == timedelta(minutes=30)
    assert report.test_results == TestSummary.empty()
    assert report.identity.build_id == 101


def test_get_build_report_duration_absent_while_running():
    """Verify duration stays empty when the build has not finished."""
    client = _client()
    client.get_build.side_effect = None
    client.get_build.return_value = _build(5, start=_utc(9), finish=None)

    report = get_build_report(client, "proj", 5)

    assert report.finish_time is None
    assert report.duration is None


def test_get_build_report_embeds_test_summary():
    """Verify test results are aggregated into the report."""
    client = _client()
    client.list_test_runs.return_value = [TestRun(id=3)]
    client.list_test_results.return_value = [
        TestCaseResult(id=1, outcome="Passed"),
        TestCaseResult(id=2, outcome="Skipped"),
    ]

    report = get_build_report(client, "proj", 101)

    assert report.test_results == TestSummary(total=2, passed=1, failed=0, skipped=1)
    assert report.test_results.pass_rate == pytest.approx(50.0)


def test_get_build_report_metadata_failure_names_build_and_project():
    """Verify a failed mandatory metadata fetch raises with build and project context."""
    client = _client()
    client.get_build.side_effect = ApiError("404 not found")

    with pytest.raises(RetrievalError) as exc_info:
        get_build_report(client, "proj", 77)

    message = str(exc_info.value)
    assert "77" in message
    assert "proj" in message
    assert isinstance(exc_info.value.__cause__, ApiError)


def test_get_build_report_survives_optional_fetch_failures():
    """Verify timeline, artifact and test-run failures do not fail the report."""
    client = _client()
    client.get_build_timeline.side_effect = ApiError("timeline")
    client.get_build_artifacts.side_effect = ApiError("artifacts")
    client.list_test_runs.side_effect = ApiError("test runs")

    report = get_build_report(client, "proj", 12)

    assert report.build_id == 12
    assert report.test_results == TestSummary(total=0, passed=0, failed=0, skipped=0)


@pytest.mark.parametrize("project, build_id", [("", 1), ("   ", 1), ("proj", 0), ("proj", -3)])
def test_get_build_report_validates_before_remote_calls(project, build_id):
    """Verify invalid input fails before the provider is contacted."""
    client = _client()

    with pytest.raises(ValidationError):
        get_build_report(client, project, build_id)

    client.get_build.assert_not_called()


def test_get_build_reports_skips_failed_builds(caplog):
    """Verify one failing build is logged and omitted while the others are returned in order."""
    client = _client()

    def _get_build(project, build_id):
        if build_id == 2:
            raise ApiError("build 2 is gone")
        return _build(build_id, _utc(9), _utc(10))

    client.get_build.side_effect = _get_build

    with caplog.at_level(logging.WARNING):
        reports = get_build_reports(client, "proj", [3, 2, 1])

    assert [report.build_id for report in reports] == [3, 1]
    assert "build 2" in caplog.text


def test_get_build_reports_all_failures_return_empty_list():
    """Verify the batch itself does not raise when every build fails."""
    client = _client()
    client.get_build.side_effect = ApiError("unavailable")

    assert get_build_reports(client, "proj", [1, 2]) == []


def test_get_build_reports_rejects_empty_ids():
    """Verify an empty build ID collection is rejected."""
    with pytest.raises(ValidationError):
        get_build_reports(_client(), "proj", [])


def test_get_build_reports_invalid_id_is_isolated():
    """Verify a non-positive ID fails only its own item."""
    client = _client()

    reports = get_build_reports(client, "proj", [1, 0, 2])

    assert [report.build_id for report in reports] == [1, 2]


def test_get_recent_build_reports_returns_available_builds():
    """Verify asking for 10 builds of a definition with 3 returns 3 reports."""
    client = _client()
    client.list_builds.return_value = [_build(30), _build(20), _build(10)]

    reports = get_recent_build_reports(client, "proj", 7, count=10)

    assert [report.build_id for report in reports] == [30, 20, 10]
    client.list_builds.assert_called_once_with(
        "proj",
        definitions=[7],
        top=10,
        query_order="finishTimeDescending",
        status_filter=None,
    )


def test_get_recent_build_reports_passes_status_filter():
    """Verify the optional status filter is forwarded to the build listing."""
    client = _client()
    client.list_builds.return_value = [_build(1)]

    get_recent_build_reports(client, "proj", 7, count=1, status="completed")

    assert client.list_builds.call_args.kwargs["status_filter"] == "completed"


def test_get_recent_build_reports_without_builds_returns_empty_list():
    """Verify a definition with no builds yields an empty list rather than an error."""
    client = _client()
    client.list_builds.return_value = []

    assert get_recent_build_reports(client, "proj", 7) == []
    client.get_build.assert_not_called()


def test_get_recent_build_reports_listing_failure_is_wrapped():
    """Verify a failed build listing names the definition and project."""
    client = _client()
    client.list_builds.side_effect = ApiError("boom")

    with pytest.raises(RetrievalError, match="definition 7 in project proj"):
        get_recent_build_reports(client, "proj", 7)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"pipeline_definition_id": 0},
        {"pipeline_definition_id": 7, "count": 0},
        {"pipeline_definition_id": 7, "status": "bogus"},
    ],
)
def test_get_recent_build_reports_validates_input(kwargs):
    """Verify invalid definition, count and status values are rejected up front."""
    client = _client()

    with pytest.raises(ValidationError):
        get_recent_build_reports(client, "proj", **kwargs)

    client.list_builds.assert_not_called()
