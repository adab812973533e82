"""Domain models for Azure DevOps build reporting and review comments.

Provider records (``Build``, ``TestRun``, ``CommentThread`` ...) model only the
subset of API payload fields the reports need. Report records (``BuildReport``,
``SummaryReport`` ...) are immutable values created once per fetch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Tuple, Union

from .errors import DataValidationError


class Outcome(str, Enum):
    """Normalized test outcome taxonomy."""

    PASSED = "Passed"
    FAILED = "Failed"
    SKIPPED = "Skipped"


@dataclass(frozen=True, slots=True)
class BuildIdentity:
    """Identifies one build within a project."""

    project_name: str
    build_id: int


@dataclass(frozen=True, slots=True)
class DefinitionRef:
    """Reference to the pipeline definition that produced a build."""

    id: Optional[int]
    name: Optional[str]


@dataclass(frozen=True, slots=True)
class Build:
    """Represents build metadata returned by the Azure DevOps build APIs."""

    id: int
    build_number: Optional[str] = None
    status: Optional[str] = None
    result: Optional[str] = None
    queue_time: Optional[datetime] = None
    start_time: Optional[datetime] = None
    finish_time: Optional[datetime] = None
    source_branch: Optional[str] = None
    source_version: Optional[str] = None
    requested_by: Optional[str] = None
    requested_for: Optional[str] = None
    reason: Optional[str] = None
    definition: Optional[DefinitionRef] = None
    repository_name: Optional[str] = None
    repository_type: Optional[str] = None
    uri: Optional[str] = None
    web_url: Optional[str] = None

    @property
    def duration(self) -> Optional[timedelta]:
        if self.start_time is None or self.finish_time is None:
            return None
        return self.finish_time - self.start_time


@dataclass(frozen=True, slots=True)
class TimelineRecord:
    """One task/step execution record from a build timeline."""

    id: Optional[str]
    name: Optional[str]
    record_type: Optional[str]
    state: Optional[str] = None
    result: Optional[str] = None
    start_time: Optional[datetime] = None
    finish_time: Optional[datetime] = None
    order: Optional[int] = None
    error_count: int = 0
    warning_count: int = 0


@dataclass(frozen=True, slots=True)
class BuildArtifact:
    """Artifact published by a build."""

    name: str
    type: Optional[str] = None
    download_url: Optional[str] = None


@dataclass(frozen=True, slots=True)
class TestRun:
    """A named collection of test results associated with one build."""

    __test__ = False

    id: int
    name: Optional[str] = None
    state: Optional[str] = None


@dataclass(frozen=True, slots=True)
class TestCaseResult:
    """One test result carrying the provider's free-form outcome string."""

    __test__ = False

    id: int
    outcome: Optional[str]
    test_case_title: Optional[str] = None


@dataclass(frozen=True, slots=True)
class TestSummary:
    """Aggregated test counts for one build.

    ``total`` always equals ``passed + failed + skipped``.
    """

    __test__ = False

    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0

    def __post_init__(self) -> None:
        counts = (self.total, self.passed, self.failed, self.skipped)
        if any(count < 0 for count in counts):
            raise DataValidationError(f"Test counts must be non-negative: {counts}")
        if self.total != self.passed + self.failed + self.skipped:
            raise DataValidationError(
                "Test total must equal passed + failed + skipped: "
                f"total={self.total}, passed={self.passed}, failed={self.failed}, skipped={self.skipped}"
            )

    @classmethod
    def empty(cls) -> "TestSummary":
        return cls()

    @property
    def pass_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return self.passed / self.total * 100


@dataclass(frozen=True, slots=True)
class BuildReport:
    """Composite report for one build: metadata plus its test summary."""

    build_id: int
    project_name: str
    build_number: Optional[str] = None
    definition_name: Optional[str] = None
    definition_id: Optional[int] = None
    status: Optional[str] = None
    result: Optional[str] = None
    queue_time: Optional[datetime] = None
    start_time: Optional[datetime] = None
    finish_time: Optional[datetime] = None
    duration: Optional[timedelta] = None
    source_branch: Optional[str] = None
    source_version: Optional[str] = None
    requested_by: Optional[str] = None
    requested_for: Optional[str] = None
    reason: Optional[str] = None
    repository: Optional[str] = None
    repository_type: Optional[str] = None
    web_url: Optional[str] = None
    test_results: TestSummary = field(default_factory=TestSummary)

    @property
    def identity(self) -> BuildIdentity:
        return BuildIdentity(project_name=self.project_name, build_id=self.build_id)


@dataclass(frozen=True, slots=True)
class SummaryReport:
    """Aggregate statistics over the builds finished in a date window."""

    project_name: str
    from_date: datetime
    to_date: datetime
    generated_on: datetime
    pipeline_definition_id: Optional[int] = None
    total_builds: int = 0
    successful_builds: int = 0
    failed_builds: int = 0
    canceled_builds: int = 0
    partially_succeeded_builds: int = 0
    success_rate: float = 0.0
    average_build_duration: timedelta = timedelta(0)
    unique_definitions: int = 0


@dataclass(frozen=True, slots=True)
class PullRequestBuildSummary:
    """Condensed view of the latest build for a pull request."""

    build_id: int
    build_number: Optional[str]
    status: Optional[str]
    result: Optional[str]
    start_time: Optional[datetime]
    finish_time: Optional[datetime]
    queue_time: Optional[datetime]
    source_branch: Optional[str]
    source_version: Optional[str]
    requested_by: Optional[str]
    definition: Optional[str]
    uri: Optional[str]


@dataclass(frozen=True, slots=True)
class PullRequest:
    """Represents the pull request fields needed to locate its builds."""

    pull_request_id: int
    status: str
    source_ref_name: str
    target_ref_name: Optional[str] = None
    title: Optional[str] = None
    created_by: Optional[str] = None
    creation_date: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class ThreadComment:
    """Represents one comment inside a pull request thread."""

    id: int
    content: Optional[str]
    author: Optional[str] = None
    parent_comment_id: Optional[int] = None
    published_date: Optional[datetime] = None
    last_updated_date: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class CommentThread:
    """Represents a pull request discussion thread."""

    id: int
    status: Optional[str] = None
    file_path: Optional[str] = None
    line_number: Optional[int] = None
    published_date: Optional[datetime] = None
    last_updated_date: Optional[datetime] = None
    comments: Tuple[ThreadComment, ...] = ()


@dataclass(frozen=True, slots=True)
class CommentThreadSummary:
    """Flattened view of a comment thread for reporting."""

    thread_id: int
    status: Optional[str]
    file_path: Optional[str]
    line_number: Optional[int]
    comment_count: int
    created_date: Optional[datetime]
    last_updated_date: Optional[datetime]
    author: Optional[str]
    first_comment_text: Optional[str]


@dataclass(frozen=True, slots=True)
class GeneralComment:
    """Thread-level pull request comment, optionally replying to a parent comment."""

    text: str
    parent_comment_id: Optional[int] = None


@dataclass(frozen=True, slots=True)
class LineComment:
    """Comment anchored to a file line on the new (right) or original (left) side."""

    text: str
    file_path: str
    line_number: int
    is_right_side: bool = True
    parent_comment_id: Optional[int] = None


CommentRequest = Union[GeneralComment, LineComment]
