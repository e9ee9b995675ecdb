"""Test-coverage review worker that builds on earlier roles' findings."""

import logging
import posixpath

from review_conductor.models.artifact import Artifact
from review_conductor.models.context import WorkerContext
from review_conductor.models.findings import Finding, Severity
from review_conductor.models.roles import ExecutionMode, WorkerRole
from review_conductor.workers.base import ReviewWorker

logger = logging.getLogger(__name__)


def is_test_path(path: str) -> bool:
    """Check whether a path looks like a test module."""
    name = posixpath.basename(path).lower()
    parts = path.lower().split("/")
    return (
        name.startswith("test_")
        or name.endswith(("_test.py", "_test.go"))
        or ".test." in name
        or ".spec." in name
        or "tests" in parts[:-1]
        or "__tests__" in parts[:-1]
    )


def covering_tests(path: str, candidates: list[str]) -> list[str]:
    """Test paths among ``candidates`` that plausibly cover ``path``."""
    stem = posixpath.splitext(posixpath.basename(path))[0].lower()
    matches = []
    for candidate in candidates:
        name = posixpath.basename(candidate).lower()
        if not is_test_path(candidate):
            continue
        if (
            name.startswith(f"test_{stem}.")
            or name.startswith(f"{stem}_test.")
            or name.startswith(f"{stem}.test.")
            or name.startswith(f"{stem}.spec.")
        ):
            matches.append(candidate)
    return matches


class TestingWorker(ReviewWorker):
    """Recommends regression tests for serious issues reported by earlier roles.

    Runs on the sequential path after the security and performance roles and
    reads their findings from the session context.
    """

    __test__ = False  # Not a pytest test class

    ROLE = WorkerRole(
        name="testing",
        depends_on=("security", "performance"),
        mode=ExecutionMode.SEQUENTIAL,
        description="Regression-test recommendations for high-severity findings",
        weight=1.5,
        focus_areas=("testing",),
    )

    async def review(self, artifact: Artifact, context: WorkerContext) -> list[Finding]:
        paths = artifact.paths
        findings = []
        seen: set[tuple[str, str]] = set()

        for prior in context.at_least(Severity.HIGH):
            path = prior.location.file_path
            if is_test_path(path) or covering_tests(path, paths):
                continue
            key = (path, prior.issue_key)
            if key in seen:
                continue
            seen.add(key)
            findings.append(
                self.finding(
                    Severity.MEDIUM,
                    f"No test in this change covers {path}, where {prior.role} "
                    f"reported: {prior.message}",
                    path,
                    prior.location.line_start,
                    line_end=prior.location.line_end,
                    remediation=f"Add a regression test that exercises {prior.location}",
                    category=f"missing-regression-test:{prior.issue_key}",
                    confidence=0.6,
                )
            )

        logger.debug(f"Testing worker saw {len(context.findings)} prior findings")
        return findings
