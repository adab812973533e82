"""Configuration parsing and validation for the ADO build report generator."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .errors import AuthenticationError, ConfigurationError

PAT_ENVIRONMENT_VARIABLES = ("ADO_PAT", "AZURE_DEVOPS_PAT")


@dataclass(frozen=True)
class Config:
    """Validated runtime settings used by the report generator."""

    organization: str
    pat: str
    max_workers: int = 1
    timeout_seconds: int = 30


def _read_pat() -> str:
    for name in PAT_ENVIRONMENT_VARIABLES:
        value = os.getenv(name, "").strip()
        if value:
            return value
    return ""


def load_config(organization: str, max_workers: int = 1, timeout_seconds: int = 30) -> Config:
    """Build and validate application configuration.

    Args:
        organization: Azure DevOps organization name.
        max_workers: Number of batch items processed concurrently (``1`` is sequential).
        timeout_seconds: Per-request HTTP timeout in seconds.

    Returns:
        A validated ``Config`` instance.

    Raises:
        ConfigurationError: If the organization is blank or a numeric setting is not
            greater than ``0``.
        AuthenticationError: If neither ``ADO_PAT`` nor ``AZURE_DEVOPS_PAT`` is configured.
    """
    if not organization or not organization.strip():
        raise ConfigurationError("Invalid value for 'organization': expected a non-empty name.")

    if max_workers <= 0:
        raise ConfigurationError("Invalid value for 'max_workers': expected an integer greater than 0.")

    if timeout_seconds <= 0:
        raise ConfigurationError("Invalid value for 'timeout_seconds': expected an integer greater than 0.")

    pat = _read_pat()
    if not pat:
        raise AuthenticationError(
            "Missing required Azure DevOps Personal Access Token. "
            "Set the 'ADO_PAT' environment variable before running the report generator."
        )

    return Config(
        organization=organization.strip(),
        pat=pat,
        max_workers=max_workers,
        timeout_seconds=timeout_seconds,
    )
