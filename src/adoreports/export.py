"""JSON export of reports and comment threads.

Files are indented UTF-8 JSON. Datetimes are written as ISO-8601 strings and
durations as seconds, which :func:`load_build_report` and
:func:`load_build_reports` parse back into equal :class:`BuildReport` values.
Parent directories of the target path are created as needed.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence, Union

from .errors import DataValidationError, ValidationError
from .models import Build, BuildReport, CommentThread, SummaryReport, TestSummary

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_REPORT_DATETIME_FIELDS = ("queue_time", "start_time", "finish_time")


def to_jsonable(value: Any) -> Any:
    """Convert dataclasses, datetimes, durations and enums into JSON-ready values."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        data = {field.name: to_jsonable(getattr(value, field.name)) for field in dataclasses.fields(value)}
        if isinstance(value, TestSummary):
            data["pass_rate"] = value.pass_rate
        return data
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {str(key): to_jsonable(item) for key, item in value.items()}
    return value


def _write_json(data: Any, file_path: PathLike) -> Path:
    if file_path is None or not str(file_path).strip():
        raise ValidationError("File path cannot be null or empty.")

    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Exported JSON", extra={"path": str(path)})
    return path


def export_build_report(report: BuildReport, file_path: PathLike) -> Path:
    """Write one build report to ``file_path``."""
    if report is None:
        raise ValidationError("Report cannot be null.")
    return _write_json(to_jsonable(report), file_path)


def export_build_reports(reports: Iterable[BuildReport], file_path: PathLike) -> Path:
    """Write a list of build reports to ``file_path``."""
    if reports is None:
        raise ValidationError("Reports cannot be null.")
    return _write_json([to_jsonable(report) for report in reports], file_path)


def export_summary_report(report: SummaryReport, file_path: PathLike) -> Path:
    """Write a summary report to ``file_path``."""
    if report is None:
        raise ValidationError("Summary report cannot be null.")
    return _write_json(to_jsonable(report), file_path)


def export_builds(builds: Sequence[Build], file_path: PathLike) -> Path:
    """Write raw build metadata, e.g. the builds of a pull request, to ``file_path``."""
    if builds is None:
        raise ValidationError("Builds cannot be null.")
    return _write_json([to_jsonable(build) for build in builds], file_path)


def export_comment_threads(threads: Sequence[CommentThread], file_path: PathLike) -> Path:
    """Write pull request comment threads to ``file_path``."""
    if threads is None:
        raise ValidationError("Comment threads cannot be null.")
    return _write_json([to_jsonable(thread) for thread in threads], file_path)


def _parse_datetime(value: Any) -> Any:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def build_report_from_dict(data: Dict[str, Any]) -> BuildReport:
    """Rebuild a :class:`BuildReport` from its exported dictionary.

    Raises:
        DataValidationError: If the dictionary does not describe a build report.
    """
    values = dict(data)
    try:
        for name in _REPORT_DATETIME_FIELDS:
            values[name] = _parse_datetime(values.get(name))

        duration = values.get("duration")
        values["duration"] = timedelta(seconds=duration) if duration is not None else None

        test_values = dict(values.get("test_results") or {})
        test_values.pop("pass_rate", None)
        values["test_results"] = TestSummary(**test_values)

        return BuildReport(**values)
    except (TypeError, ValueError) as exc:
        raise DataValidationError(f"Invalid build report data: {exc}") from exc


def load_build_report(file_path: PathLike) -> BuildReport:
    """Read a build report written by :func:`export_build_report`."""
    data = json.loads(Path(file_path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise DataValidationError(f"Expected a JSON object in {file_path}.")
    return build_report_from_dict(data)


def load_build_reports(file_path: PathLike) -> List[BuildReport]:
    """Read build reports written by :func:`export_build_reports`."""
    data = json.loads(Path(file_path).read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise DataValidationError(f"Expected a JSON array in {file_path}.")
    return [build_report_from_dict(item) for item in data]
