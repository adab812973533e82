"""Tests for JSON export and re-import of reports."""

import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from adoreports.errors import DataValidationError, ValidationError
from adoreports.export import (
    export_build_report,
    export_build_reports,
    export_builds,
    export_comment_threads,
    export_summary_report,
    load_build_report,
    load_build_reports,
)
from adoreports.models import (
    Build,
    BuildReport,
    CommentThread,
    DefinitionRef,
    SummaryReport,
    TestSummary,
    ThreadComment,
)


def _report(build_id: int = 1, finished: bool = True) -> BuildReport:
    start = datetime(2026, 3, 2, 9, 0, 0, 123456, tzinfo=timezone.utc)
    finish = start + timedelta(minutes=12, seconds=3) if finished else None
    return BuildReport(
        build_id=build_id,
        project_name="proj",
        build_number="20260302.1",
        definition_name="ci-main",
        definition_id=7,
        status="completed" if finished else "inProgress",
        result="succeeded" if finished else None,
        queue_time=start - timedelta(seconds=30),
        start_time=start,
        finish_time=finish,
        duration=finish - start if finished else None,
        source_branch="refs/heads/main",
        source_version="abc123",
        requested_by="Build Service",
        requested_for="Zoë Developer",
        reason="manual",
        repository="service",
        repository_type="TfsGit",
        test_results=TestSummary(total=4, passed=2, failed=1, skipped=1),
    )


def test_build_report_round_trip(tmp_path):
    """Verify an exported report re-parses to an equal value."""
    report = _report()
    path = export_build_report(report, tmp_path / "nested" / "dir" / "report.json")

    assert path.exists()
    assert load_build_report(path) == report


def test_build_reports_round_trip_preserves_order_and_missing_values(tmp_path):
    """Verify lists round-trip, including running builds without finish time or duration."""
    reports = [_report(2), _report(1, finished=False)]
    path = export_build_reports(reports, tmp_path / "reports.json")

    assert load_build_reports(path) == reports


def test_export_writes_indented_utf8_with_pass_rate(tmp_path):
    """Verify the file is indented UTF-8 JSON and includes the derived pass rate."""
    path = export_build_report(_report(), tmp_path / "report.json")
    text = path.read_text(encoding="utf-8")
    data = json.loads(text)

    assert "\n  " in text
    assert "Zoë Developer" in text
    assert data["duration"] == pytest.approx(723.0)
    assert data["test_results"]["pass_rate"] == pytest.approx(50.0)


def test_export_summary_report(tmp_path):
    """Verify summary reports serialize durations as seconds."""
    summary = SummaryReport(
        project_name="proj",
        from_date=datetime(2026, 2, 1, tzinfo=timezone.utc),
        to_date=datetime(2026, 3, 1, tzinfo=timezone.utc),
        generated_on=datetime(2026, 3, 1, 8, tzinfo=timezone.utc),
        total_builds=4,
        successful_builds=2,
        success_rate=50.0,
        average_build_duration=timedelta(minutes=2),
    )

    data = json.loads(export_summary_report(summary, tmp_path / "summary.json").read_text(encoding="utf-8"))

    assert data["average_build_duration"] == 120.0
    assert data["from_date"] == "2026-02-01T00:00:00+00:00"
    assert data["pipeline_definition_id"] is None


def test_export_comment_threads(tmp_path):
    """Verify comment threads serialize with their comments."""
    threads = [CommentThread(id=1, status="active", comments=(ThreadComment(id=1, content="hi"),))]

    data = json.loads(export_comment_threads(threads, tmp_path / "threads.json").read_text(encoding="utf-8"))

    assert data[0]["comments"][0]["content"] == "hi"


def test_export_rejects_blank_path():
    """Verify an empty export path is a validation error."""
    with pytest.raises(ValidationError):
        export_build_report(_report(), "  ")


def test_load_build_reports_rejects_non_list(tmp_path):
    """Verify a JSON object cannot be loaded as a report list."""
    path = tmp_path / "report.json"
    path.write_text('{"build_id": 1}', encoding="utf-8")

    with pytest.raises(DataValidationError):
        load_build_reports(path)


def test_load_build_report_rejects_unknown_fields(tmp_path):
    """Verify foreign JSON objects are reported as invalid report data."""
    path = tmp_path / "report.json"
    path.write_text('{"build_id": 1, "project_name": "p", "colour": "blue"}', encoding="utf-8")

    with pytest.raises(DataValidationError):
        load_build_report(path)


def test_export_builds_writes_nested_definition(tmp_path):
    """Verify raw builds are written with their definition reference as an object."""
    build = Build(
        id=42,
        build_number="20260302.4",
        status="completed",
        result="succeeded",
        finish_time=datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc),
        definition=DefinitionRef(id=7, name="ci-main"),
    )

    path = export_builds([build], tmp_path / "pr" / "builds.json")

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data[0]["id"] == 42
    assert data[0]["definition"] == {"id": 7, "name": "ci-main"}
    assert data[0]["finish_time"] == "2026-03-02T10:00:00+00:00"
    assert data[0]["start_time"] is None
