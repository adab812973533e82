"""Tests for application orchestration in the main module."""

import json
import sys
from argparse import Namespace
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import Mock, patch

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from adoreports.config import Config
from adoreports.errors import ApiError, AuthenticationError, RetrievalError
from adoreports.main import orchestrate_report_generation
from adoreports.models import BuildReport, CommentThread


def _config(max_workers: int = 1) -> Config:
    return Config(organization="org", pat="secret", max_workers=max_workers)


def _args(command: str, **kwargs) -> Namespace:
    values = {"org": "org", "workers": 1, "verbose": False, "command": command, "project": "proj", "output": None}
    values.update(kwargs)
    return Namespace(**values)


def test_orchestrate_report_command_success(capsys):
    """Verify the report command wires configuration, client and batch reporting."""
    args = _args("report", build_id=[1, 2])
    ado_client = Mock()
    reports = [BuildReport(build_id=1, project_name="proj")]

    with patch("adoreports.main.parse_args", return_value=args) as parse_args_mock, patch(
        "adoreports.main.load_config", return_value=_config()
    ) as load_config_mock, patch(
        "adoreports.main.AdoClient", return_value=ado_client
    ) as ado_client_ctor_mock, patch(
        "adoreports.main.get_build_reports", return_value=reports
    ) as reports_mock:
        exit_code = orchestrate_report_generation()

    assert exit_code == 0
    parse_args_mock.assert_called_once_with(None)
    load_config_mock.assert_called_once_with(organization="org", max_workers=1)
    ado_client_ctor_mock.assert_called_once_with(config=load_config_mock.return_value)
    reports_mock.assert_called_once_with(ado_client, "proj", [1, 2], max_workers=1)
    output = capsys.readouterr().out
    assert "Build Reports: 1" in output
    assert "(1 of 2 builds could not be retrieved)" in output


def test_orchestrate_recent_command_exports_output(tmp_path):
    """Verify --output exports the recent build reports."""
    output = tmp_path / "out" / "recent.json"
    args = _args("recent", definition_id=7, count=3, status=None, output=str(output))
    reports = [BuildReport(build_id=5, project_name="proj")]

    with patch("adoreports.main.parse_args", return_value=args), patch(
        "adoreports.main.load_config", return_value=_config(max_workers=2)
    ), patch("adoreports.main.AdoClient", return_value=Mock()), patch(
        "adoreports.main.get_recent_build_reports", return_value=reports
    ) as recent_mock:
        exit_code = orchestrate_report_generation()

    assert exit_code == 0
    assert recent_mock.call_args.kwargs == {"count": 3, "status": None, "max_workers": 2}
    assert json.loads(output.read_text(encoding="utf-8"))[0]["build_id"] == 5


def test_orchestrate_summary_validation_error_returns_input_exit_code():
    """Verify an invalid window maps to the invalid-input exit code."""
    args = _args(
        "summary",
        from_date=datetime(2026, 3, 1, tzinfo=timezone.utc),
        to_date=datetime(2026, 2, 1, tzinfo=timezone.utc),
        definition_id=None,
    )

    with patch("adoreports.main.parse_args", return_value=args), patch(
        "adoreports.main.load_config", return_value=_config()
    ), patch("adoreports.main.AdoClient", return_value=Mock()):
        exit_code = orchestrate_report_generation()

    assert exit_code == 2


def test_orchestrate_comment_command_posts_requests_from_file(tmp_path, capsys):
    """Verify comment file entries are handed to the comment batch as-is."""
    comments_file = tmp_path / "comments.json"
    comments_file.write_text(
        json.dumps([{"text": "General"}, {"text": "Line", "file_path": "/a.py", "line_number": 3}]),
        encoding="utf-8",
    )
    args = _args("comment", repo="service", pr_id=15, file=str(comments_file))

    with patch("adoreports.main.parse_args", return_value=args), patch(
        "adoreports.main.load_config", return_value=_config()
    ), patch("adoreports.main.AdoClient", return_value=Mock()), patch(
        "adoreports.main.add_comments", return_value=[CommentThread(id=1)]
    ) as add_comments_mock:
        exit_code = orchestrate_report_generation()

    assert exit_code == 0
    posted = add_comments_mock.call_args.args[4]
    assert posted == [{"text": "General"}, {"text": "Line", "file_path": "/a.py", "line_number": 3}]
    assert "Posted 1 of 2 comment(s)" in capsys.readouterr().out


def test_orchestrate_comment_command_skips_malformed_entry(tmp_path, capsys):
    """Verify one invalid comment entry is skipped while the others are still posted."""
    comments_file = tmp_path / "comments.json"
    comments_file.write_text(
        json.dumps([{"text": "good one"}, {"text": ""}, {"text": "good two"}]),
        encoding="utf-8",
    )
    args = _args("comment", repo="service", pr_id=15, file=str(comments_file))
    ado_client = Mock()

    with patch("adoreports.main.parse_args", return_value=args), patch(
        "adoreports.main.load_config", return_value=_config()
    ), patch("adoreports.main.AdoClient", return_value=ado_client):
        exit_code = orchestrate_report_generation()

    assert exit_code == 0
    assert ado_client.create_comment_thread.call_count == 2
    posted_texts = [call.args[3]["comments"][0]["content"] for call in ado_client.create_comment_thread.call_args_list]
    assert posted_texts == ["good one", "good two"]
    assert "Posted 2 of 3 comment(s)" in capsys.readouterr().out


def test_orchestrate_missing_pat_returns_auth_error():
    """Verify missing PAT/authentication failures return the authentication exit code."""
    args = _args("report", build_id=[1])

    with patch("adoreports.main.parse_args", return_value=args), patch(
        "adoreports.main.load_config",
        side_effect=AuthenticationError("Missing required Azure DevOps Personal Access Token."),
    ):
        exit_code = orchestrate_report_generation()

    assert exit_code == 3


def test_orchestrate_retrieval_error_returns_api_exit_code():
    """Verify Azure DevOps failures return the API error exit code."""
    args = _args("recent", definition_id=7, count=10, status=None)

    with patch("adoreports.main.parse_args", return_value=args), patch(
        "adoreports.main.load_config", return_value=_config()
    ), patch("adoreports.main.AdoClient", return_value=Mock()), patch(
        "adoreports.main.get_recent_build_reports",
        side_effect=RetrievalError("Failed to retrieve recent build reports"),
    ):
        exit_code = orchestrate_report_generation()

    assert exit_code == 4


def test_orchestrate_pr_builds_api_error_returns_api_exit_code():
    """Verify raw API errors also map to the API exit code."""
    args = _args("pr-builds", repo="service", pr_id=3, max_builds=5)

    with patch("adoreports.main.parse_args", return_value=args), patch(
        "adoreports.main.load_config", return_value=_config()
    ), patch("adoreports.main.AdoClient", return_value=Mock()), patch(
        "adoreports.main.get_pull_request_builds", side_effect=ApiError("Repository not found")
    ):
        exit_code = orchestrate_report_generation()

    assert exit_code == 4


def test_orchestrate_invalid_comments_file_returns_input_exit_code(tmp_path):
    """Verify an unreadable comments file is reported as invalid input."""
    args = _args("comment", repo="service", pr_id=15, file=str(tmp_path / "missing.json"))

    with patch("adoreports.main.parse_args", return_value=args), patch(
        "adoreports.main.load_config", return_value=_config()
    ), patch("adoreports.main.AdoClient", return_value=Mock()):
        exit_code = orchestrate_report_generation()

    assert exit_code == 2


def test_orchestrate_unexpected_error_returns_generic_exit_code():
    """Verify unexpected exceptions are mapped to the generic non-zero exit code."""
    with patch("adoreports.main.parse_args", side_effect=RuntimeError("boom")):
        exit_code = orchestrate_report_generation()

    assert exit_code == 1
