"""Per-item failure isolation for batches of independent remote operations.

:func:`run_batch` turns every item into an explicit :class:`ItemResult`, and
:func:`process_batch` keeps only the successes. Build report fetching and
pull-request comment posting both go through these helpers so the two share
one failure policy:

- the input is validated before any item runs (empty or ``None`` is rejected);
- each item runs exactly once; its failure is logged and never affects siblings;
- results keep input order, also when items run on a thread pool;
- a set ``cancel_event`` stops items that have not started yet and raises
  :class:`~adoreports.errors.BatchCancelledError`.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Generic, Iterable, List, Optional, TypeVar

from .errors import BatchCancelledError
from .validation import require_items

logger = logging.getLogger(__name__)

T = TypeVar("T")
TIn = TypeVar("TIn")
TOut = TypeVar("TOut")


@dataclass(frozen=True)
class ItemResult(Generic[TIn, TOut]):
    """Outcome of one batch item: either ``value`` or ``error`` is set."""

    item: TIn
    value: Optional[TOut] = None
    error: Optional[BaseException] = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.cancelled


def best_effort(fetch: Callable[[], T], default: T, description: str) -> T:
    """Return ``fetch()``, or ``default`` when the fetch raises.

    Used for optional sub-fetches whose absence must not fail the enclosing
    operation. The failure is logged at debug level with ``description``.
    """
    try:
        return fetch()
    except Exception as exc:
        logger.debug("Optional fetch failed: %s: %s", description, exc, extra={"fetch": description})
        return default


def _run_item(
    item: TIn,
    operation: Callable[[TIn], TOut],
    describe: Callable[[TIn], str],
    cancel_event: Optional[threading.Event],
) -> ItemResult[TIn, TOut]:
    if cancel_event is not None and cancel_event.is_set():
        return ItemResult(item=item, cancelled=True)

    try:
        value = operation(item)
    except Exception as exc:
        logger.warning(
            "Batch item failed: %s: %s",
            describe(item),
            exc,
            extra={"batch_item": describe(item)},
        )
        return ItemResult(item=item, error=exc)

    return ItemResult(item=item, value=value)


def run_batch(
    items: Iterable[TIn],
    operation: Callable[[TIn], TOut],
    describe: Callable[[TIn], str] = str,
    max_workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
    name: str = "Items",
) -> List[ItemResult[TIn, TOut]]:
    """Run ``operation`` once per item and return one :class:`ItemResult` per item.

    Args:
        items: Independent work items; must not be ``None`` or empty.
        operation: Single-item operation; any exception it raises is isolated.
        describe: Produces the label used in diagnostics for a failed item.
        max_workers: ``1`` runs items sequentially; larger values use a bounded
            thread pool.
        cancel_event: When set, items that have not started are skipped and
            :class:`BatchCancelledError` is raised after running items finish.
        name: Collection name used in validation messages.

    Returns:
        Item results in input order.

    Raises:
        ValidationError: If ``items`` is ``None`` or empty.
        BatchCancelledError: If ``cancel_event`` was set before every item started.
    """
    work = require_items(items, name)

    if max_workers <= 1:
        results = [_run_item(item, operation, describe, cancel_event) for item in work]
    else:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(work))) as executor:
            futures = [
                executor.submit(_run_item, item, operation, describe, cancel_event)
                for item in work
            ]
            results = [future.result() for future in futures]

    skipped = sum(1 for result in results if result.cancelled)
    if skipped:
        successes = [result.value for result in results if result.ok]
        raise BatchCancelledError(
            f"Batch cancelled with {skipped} of {len(work)} items not started.",
            results=successes,
            skipped=skipped,
        )

    failures = sum(1 for result in results if not result.ok)
    logger.info(
        "Processed batch",
        extra={"items_total": len(work), "items_failed": failures},
    )
    return results


def process_batch(
    items: Iterable[TIn],
    operation: Callable[[TIn], TOut],
    describe: Callable[[TIn], str] = str,
    max_workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
    name: str = "Items",
) -> List[TOut]:
    """Run a batch and return only the successful values, in input order.

    The returned list is never longer than ``items``; failed items are logged by
    :func:`run_batch` and omitted.
    """
    results = run_batch(
        items,
        operation,
        describe=describe,
        max_workers=max_workers,
        cancel_event=cancel_event,
        name=name,
    )
    return [result.value for result in results if result.ok]
