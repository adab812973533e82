"""Pull request review comment operations.

Single comments are posted as new threads: thread-level for
:class:`~adoreports.models.GeneralComment`, anchored to a file line for
:class:`~adoreports.models.LineComment`. :func:`add_comments` posts a batch of
either kind with per-comment failure isolation.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from .ado_client import AdoClient
from .batch import process_batch
from .errors import RetrievalError, ValidationError
from .models import (
    CommentRequest,
    CommentThread,
    CommentThreadSummary,
    GeneralComment,
    LineComment,
    ThreadComment,
)
from .validation import require_positive, require_text

logger = logging.getLogger(__name__)

THREAD_STATUSES = ("active", "byDesign", "closed", "fixed", "pending", "wontFix")

_PREVIEW_LENGTH = 40


def _require_pull_request(project: str, repository_id: str, pull_request_id: int) -> None:
    require_text(project, "Project name")
    require_text(repository_id, "Repository ID")
    require_positive(pull_request_id, "Pull request ID")


def _require_parent(parent_comment_id: Optional[int]) -> Optional[int]:
    if parent_comment_id is None:
        return None
    return require_positive(parent_comment_id, "Parent comment ID")


def _text_comment(text: str, parent_comment_id: Optional[int] = None) -> Dict[str, Any]:
    comment: Dict[str, Any] = {"content": text, "commentType": "text"}
    if parent_comment_id is not None:
        comment["parentCommentId"] = parent_comment_id
    return comment


def add_comment(
    ado_client: AdoClient,
    project: str,
    repository_id: str,
    pull_request_id: int,
    text: str,
    parent_comment_id: Optional[int] = None,
) -> CommentThread:
    """Post a thread-level comment on a pull request.

    Raises:
        ValidationError: On blank strings or non-positive IDs.
        RetrievalError: If the thread cannot be created.
    """
    _require_pull_request(project, repository_id, pull_request_id)
    require_text(text, "Comment text")
    _require_parent(parent_comment_id)

    thread = {
        "comments": [_text_comment(text, parent_comment_id)],
        "status": "active",
    }
    try:
        return ado_client.create_comment_thread(project, repository_id, pull_request_id, thread)
    except Exception as exc:
        raise RetrievalError(
            f"Failed to add comment to pull request {pull_request_id} in repository {repository_id}: {exc}"
        ) from exc


def add_line_comment(
    ado_client: AdoClient,
    project: str,
    repository_id: str,
    pull_request_id: int,
    text: str,
    file_path: str,
    line_number: int,
    is_right_side: bool = True,
    parent_comment_id: Optional[int] = None,
) -> CommentThread:
    """Post a comment anchored to ``line_number`` of ``file_path``.

    ``is_right_side`` selects the new file version; ``False`` anchors the
    comment on the original version.
    """
    _require_pull_request(project, repository_id, pull_request_id)
    require_text(text, "Comment text")
    require_text(file_path, "File path")
    require_positive(line_number, "Line number")
    _require_parent(parent_comment_id)

    position = {"line": line_number, "offset": 1}
    thread = {
        "comments": [_text_comment(text, parent_comment_id)],
        "status": "active",
        "threadContext": {
            "filePath": file_path,
            "rightFileStart": position if is_right_side else None,
            "leftFileStart": None if is_right_side else position,
        },
    }
    try:
        return ado_client.create_comment_thread(project, repository_id, pull_request_id, thread)
    except Exception as exc:
        raise RetrievalError(
            f"Failed to add line comment to pull request {pull_request_id} "
            f"at line {line_number} in file {file_path}: {exc}"
        ) from exc


def comment_request_from_dict(data: Dict[str, Any]) -> CommentRequest:
    """Build a comment request from a JSON object.

    Objects carrying both ``file_path`` and ``line_number`` become
    :class:`LineComment`; all others become :class:`GeneralComment`.
    """
    if not isinstance(data, dict):
        raise ValidationError(f"Comment request must be an object, got {type(data).__name__}.")

    text = require_text(data.get("text"), "Comment text")
    parent_comment_id = _require_parent(data.get("parent_comment_id"))
    file_path = data.get("file_path")
    line_number = data.get("line_number")

    if file_path and line_number is not None:
        try:
            line = int(line_number)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Line number must be an integer, got {line_number!r}.") from exc
        return LineComment(
            text=text,
            file_path=str(file_path),
            line_number=line,
            is_right_side=bool(data.get("is_right_side", True)),
            parent_comment_id=parent_comment_id,
        )
    return GeneralComment(text=text, parent_comment_id=parent_comment_id)


def _describe_request(request: Union[CommentRequest, Dict[str, Any]]) -> str:
    if isinstance(request, dict):
        text = str(request.get("text"))
    else:
        text = str(getattr(request, "text", request))
    if len(text) > _PREVIEW_LENGTH:
        text = text[:_PREVIEW_LENGTH] + "..."
    if isinstance(request, LineComment):
        return f"comment '{text}' at {request.file_path}:{request.line_number}"
    return f"comment '{text}'"


def add_comments(
    ado_client: AdoClient,
    project: str,
    repository_id: str,
    pull_request_id: int,
    comments: Iterable[Union[CommentRequest, Dict[str, Any]]],
    max_workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
) -> List[CommentThread]:
    """Post several comments, skipping those that fail.

    Each request is routed by type: :class:`LineComment` becomes a line-anchored
    thread, :class:`GeneralComment` a thread-level comment. JSON objects are
    parsed with :func:`comment_request_from_dict` as part of their own item, so a
    malformed entry is skipped like any other failed comment. Created threads are
    returned in request order.

    Raises:
        ValidationError: On invalid pull request identifiers or an empty ``comments``.
        BatchCancelledError: If ``cancel_event`` is set while the batch runs.
    """
    _require_pull_request(project, repository_id, pull_request_id)

    def _post(request: Union[CommentRequest, Dict[str, Any]]) -> CommentThread:
        if isinstance(request, dict):
            request = comment_request_from_dict(request)
        if isinstance(request, LineComment):
            return add_line_comment(
                ado_client,
                project,
                repository_id,
                pull_request_id,
                request.text,
                request.file_path,
                request.line_number,
                request.is_right_side,
                request.parent_comment_id,
            )
        if isinstance(request, GeneralComment):
            return add_comment(
                ado_client,
                project,
                repository_id,
                pull_request_id,
                request.text,
                request.parent_comment_id,
            )
        raise ValidationError(f"Unsupported comment request type: {type(request).__name__}")

    return process_batch(
        comments,
        _post,
        describe=_describe_request,
        max_workers=max_workers,
        cancel_event=cancel_event,
        name="Comments",
    )


def update_thread_status(
    ado_client: AdoClient,
    project: str,
    repository_id: str,
    pull_request_id: int,
    thread_id: int,
    status: str,
) -> CommentThread:
    """Change a thread's status, e.g. resolve it with ``fixed`` or reopen with ``active``."""
    _require_pull_request(project, repository_id, pull_request_id)
    require_positive(thread_id, "Thread ID")
    if status not in THREAD_STATUSES:
        raise ValidationError(f"Unknown thread status '{status}'. Expected one of {THREAD_STATUSES}.")

    try:
        return ado_client.update_comment_thread_status(
            project, repository_id, pull_request_id, thread_id, status
        )
    except Exception as exc:
        raise RetrievalError(
            f"Failed to update comment thread {thread_id} status in pull request {pull_request_id}: {exc}"
        ) from exc


def reply_to_thread(
    ado_client: AdoClient,
    project: str,
    repository_id: str,
    pull_request_id: int,
    thread_id: int,
    text: str,
) -> ThreadComment:
    """Append a reply to an existing thread."""
    _require_pull_request(project, repository_id, pull_request_id)
    require_positive(thread_id, "Thread ID")
    require_text(text, "Reply text")

    try:
        return ado_client.create_comment_reply(project, repository_id, pull_request_id, thread_id, text)
    except Exception as exc:
        raise RetrievalError(
            f"Failed to reply to comment thread {thread_id} in pull request {pull_request_id}: {exc}"
        ) from exc


def get_comment_threads(
    ado_client: AdoClient,
    project: str,
    repository_id: str,
    pull_request_id: int,
) -> List[CommentThread]:
    """List every comment thread of a pull request."""
    _require_pull_request(project, repository_id, pull_request_id)

    try:
        return ado_client.list_comment_threads(project, repository_id, pull_request_id)
    except Exception as exc:
        raise RetrievalError(
            f"Failed to retrieve comment threads for pull request {pull_request_id} "
            f"in repository {repository_id}: {exc}"
        ) from exc


def summarize_threads(threads: Sequence[CommentThread]) -> List[CommentThreadSummary]:
    """Flatten threads into summaries keyed on their first comment."""
    summaries: List[CommentThreadSummary] = []

    for thread in threads:
        first = thread.comments[0] if thread.comments else None
        summaries.append(
            CommentThreadSummary(
                thread_id=thread.id,
                status=thread.status,
                file_path=thread.file_path,
                line_number=thread.line_number,
                comment_count=len(thread.comments),
                created_date=thread.published_date,
                last_updated_date=thread.last_updated_date,
                author=first.author if first else None,
                first_comment_text=first.content if first else None,
            )
        )

    return summaries
