"""Base classes for review workers."""

import asyncio
import logging
import re
from dataclasses import dataclass

from review_conductor.models.artifact import Artifact
from review_conductor.models.context import WorkerContext
from review_conductor.models.findings import Finding, Location, Severity
from review_conductor.models.roles import WorkerRole

logger = logging.getLogger(__name__)


class ReviewWorker:
    """Base class for all review workers.

    A worker inspects an artifact (and the findings of the roles it depends on)
    and returns its own findings. It never writes to the context store itself;
    the scheduler appends the returned findings under the worker's role.
    """

    # Subclasses should override this
    ROLE: WorkerRole = WorkerRole(name="base")

    def __init__(self, role: WorkerRole | None = None) -> None:
        """Initialize the worker.

        Args:
            role: Optional role override (e.g. configured weight or timeout)
        """
        self.role = role or self.ROLE

    @property
    def name(self) -> str:
        """Role name this worker serves."""
        return self.role.name

    async def review(self, artifact: Artifact, context: WorkerContext) -> list[Finding]:
        """Review an artifact and return findings.

        Args:
            artifact: The artifact under review
            context: Session context with findings visible to this worker

        Returns:
            Findings emitted by this worker
        """
        raise NotImplementedError

    def finding(
        self,
        severity: Severity,
        message: str,
        file_path: str,
        line_start: int,
        line_end: int | None = None,
        remediation: str | None = None,
        category: str | None = None,
        confidence: float = 1.0,
    ) -> Finding:
        """Build a finding attributed to this worker's role."""
        return Finding(
            role=self.name,
            severity=severity,
            message=message,
            location=Location(file_path, line_start, line_end),
            remediation=remediation,
            category=category,
            confidence=confidence,
        )


@dataclass(frozen=True)
class PatternRule:
    """A single line-level detection rule."""

    category: str
    pattern: re.Pattern[str]
    severity: Severity
    message: str
    remediation: str | None = None
    suffixes: tuple[str, ...] = ()  # Empty means all files
    confidence: float = 0.8

    def applies_to(self, path: str) -> bool:
        return not self.suffixes or path.lower().endswith(self.suffixes)


def rule(
    category: str,
    pattern: str,
    severity: Severity,
    message: str,
    remediation: str | None = None,
    suffixes: tuple[str, ...] = (),
    confidence: float = 0.8,
    flags: int = 0,
) -> PatternRule:
    """Shorthand for building a PatternRule from a regex string."""
    return PatternRule(
        category=category,
        pattern=re.compile(pattern, flags),
        severity=severity,
        message=message,
        remediation=remediation,
        suffixes=suffixes,
        confidence=confidence,
    )


PYTHON = (".py",)
JAVASCRIPT = (".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs", ".vue", ".svelte", ".html", ".htm")


class PatternWorker(ReviewWorker):
    """Worker that applies regex rules line by line, plus optional file checks."""

    RULES: list[PatternRule] = []

    async def review(self, artifact: Artifact, context: WorkerContext) -> list[Finding]:
        findings: list[Finding] = []
        for path in artifact.paths:
            lines = artifact.lines(path)
            if not lines:
                continue
            findings.extend(self._apply_rules(path, lines))
            findings.extend(self.check_file(path, lines, artifact))
            # Yield between files so timeouts and cancellation can take effect
            await asyncio.sleep(0)

        logger.debug(f"Worker {self.name} produced {len(findings)} findings")
        return findings

    def _apply_rules(self, path: str, lines: list[tuple[int, str]]) -> list[Finding]:
        findings = []
        rules = [r for r in self.RULES if r.applies_to(path)]
        for line_no, text in lines:
            for pattern_rule in rules:
                if pattern_rule.pattern.search(text):
                    findings.append(
                        self.finding(
                            severity=pattern_rule.severity,
                            message=pattern_rule.message,
                            file_path=path,
                            line_start=line_no,
                            remediation=pattern_rule.remediation,
                            category=pattern_rule.category,
                            confidence=pattern_rule.confidence,
                        )
                    )
        return findings

    def check_file(
        self, path: str, lines: list[tuple[int, str]], artifact: Artifact
    ) -> list[Finding]:
        """Multi-line checks; override in subclasses."""
        return []


def indentation(text: str) -> int:
    """Width of leading whitespace, tabs counted as four spaces."""
    expanded = text.expandtabs(4)
    return len(expanded) - len(expanded.lstrip())
