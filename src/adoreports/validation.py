"""Caller input checks shared by the report, batch and comment operations.

Every helper raises :class:`~adoreports.errors.ValidationError` and returns the
validated value so checks can be chained inline.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Collection, List, Optional, Tuple

from .errors import ValidationError


def require_text(value: Optional[str], name: str) -> str:
    """Return ``value`` if it is a non-blank string."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} cannot be null or empty.")
    return value


def require_positive(value: Optional[int], name: str) -> int:
    """Return ``value`` if it is an integer greater than ``0``."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{name} must be greater than 0.")
    return value


def require_items(items: Optional[Collection[Any]], name: str) -> List[Any]:
    """Return ``items`` as a list, rejecting ``None`` and empty collections."""
    if items is None:
        raise ValidationError(f"{name} collection cannot be null or empty.")
    materialized = list(items)
    if not materialized:
        raise ValidationError(f"{name} collection cannot be null or empty.")
    return materialized


def as_utc(value: datetime) -> datetime:
    """Return a timezone-aware UTC datetime; naive values are assumed to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def require_window(from_date: datetime, to_date: datetime) -> Tuple[datetime, datetime]:
    """Validate a half-open ``[from_date, to_date)`` window and normalize it to UTC."""
    if from_date is None or to_date is None:
        raise ValidationError("Both from date and to date are required.")

    start = as_utc(from_date)
    end = as_utc(to_date)
    if start >= end:
        raise ValidationError("From date must be before to date.")
    return start, end
