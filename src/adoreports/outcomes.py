"""Test outcome normalization and per-build test summary aggregation.

Azure DevOps reports test outcomes as free-form strings whose vocabulary grows
over time. :func:`normalize_outcome` maps every string onto the closed
:class:`~adoreports.models.Outcome` taxonomy; anything it does not recognize
counts as a failure so new outcomes are never silently dropped from a review gate.
"""

from __future__ import annotations

import logging
from typing import Optional

from .ado_client import AdoClient
from .models import Outcome, TestSummary

logger = logging.getLogger(__name__)

SKIPPED_OUTCOMES = frozenset({"skipped", "notexecuted", "inconclusive"})


def normalize_outcome(outcome: Optional[str]) -> Outcome:
    """Map a provider outcome string onto ``Passed``, ``Failed`` or ``Skipped``.

    Matching is case-insensitive. Absent or empty outcomes and unknown values
    such as ``"Aborted"`` or ``"Timeout"`` map to ``Failed``.
    """
    if not outcome:
        return Outcome.FAILED

    normalized = outcome.strip().lower()
    if normalized == "passed":
        return Outcome.PASSED
    if normalized == "failed":
        return Outcome.FAILED
    if normalized in SKIPPED_OUTCOMES:
        return Outcome.SKIPPED
    return Outcome.FAILED


def summarize_build_tests(ado_client: AdoClient, project: str, build_id: int) -> TestSummary:
    """Aggregate the results of every test run associated with a build.

    Business logic:
    - A build without test runs yields the zero summary.
    - Every result of every run increments ``total`` and exactly one of the
      ``passed``/``failed``/``skipped`` counters chosen by :func:`normalize_outcome`.
    - If listing runs or any run's results fails, a warning is logged and the zero
      summary is returned; a missing test summary never fails the build report.
    """
    passed = failed = skipped = 0

    try:
        test_runs = ado_client.list_test_runs(project, build_id)
        if not test_runs:
            return TestSummary.empty()

        for test_run in test_runs:
            for result in ado_client.list_test_results(project, test_run.id):
                outcome = normalize_outcome(result.outcome)
                if outcome is Outcome.PASSED:
                    passed += 1
                elif outcome is Outcome.SKIPPED:
                    skipped += 1
                else:
                    failed += 1
    except Exception as exc:
        logger.warning(
            "Failed to retrieve test results for build %s in project %s: %s",
            build_id,
            project,
            exc,
            extra={"build_id": build_id, "project": project},
        )
        return TestSummary.empty()

    summary = TestSummary(
        total=passed + failed + skipped,
        passed=passed,
        failed=failed,
        skipped=skipped,
    )
    logger.debug(
        "Aggregated test results",
        extra={
            "build_id": build_id,
            "test_runs": len(test_runs),
            "tests_total": summary.total,
            "tests_failed": summary.failed,
        },
    )
    return summary
