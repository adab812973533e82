"""Custom exception types for the ADO build report generator."""

from __future__ import annotations

from typing import Any, List, Optional


class ReportGeneratorError(Exception):
    """Base exception for all recoverable report generator errors."""


class ConfigurationError(ReportGeneratorError):
    """Raised when runtime configuration values are missing or invalid."""


class AuthenticationError(ReportGeneratorError):
    """Raised when Azure DevOps authentication credentials are unavailable or invalid."""


class ApiError(ReportGeneratorError):
    """Raised when an Azure DevOps API request fails or returns an unexpected response."""


class DataValidationError(ReportGeneratorError):
    """Raised when API payloads do not meet expected constraints."""


class ValidationError(ReportGeneratorError, ValueError):
    """Raised when caller input is malformed, before any remote call is made."""


class RetrievalError(ReportGeneratorError):
    """Raised when a mandatory fetch fails.

    The message names the build, pull request or project involved; the original
    failure is chained as ``__cause__``.
    """


class BatchCancelledError(ReportGeneratorError):
    """Raised when a batch is abandoned through its cancel event.

    Attributes:
        results: Successful results produced before cancellation, in input order.
        skipped: Number of items that were never started.
    """

    def __init__(self, message: str, results: Optional[List[Any]] = None, skipped: int = 0) -> None:
        super().__init__(message)
        self.results: List[Any] = list(results or [])
        self.skipped = skipped
