"""Aggregated report models."""

from dataclasses import dataclass, field
from datetime import datetime

from review_conductor.models.findings import Finding, Location, Severity, normalize_message


@dataclass
class AggregatedFinding:
    """A finding derived from one or more raw findings by the aggregator."""

    id: str
    severity: Severity
    message: str
    location: Location
    category: str | None
    roles: list[str]  # Contributing roles, primary role first
    remediation: str | None
    confidence: float

    # Conflict metadata
    conflicting: bool = False
    conflict_group: str | None = None
    primary: bool = True  # False when another recommendation at this location wins

    # Source tracking
    source_findings: list[Finding] = field(default_factory=list)

    @property
    def role(self) -> str:
        """The role whose recommendation this finding represents."""
        return self.roles[0]

    @property
    def duplicate_count(self) -> int:
        """Number of raw findings merged into this one."""
        return len(self.source_findings)

    @property
    def issue_key(self) -> str:
        if self.category:
            return self.category.strip().lower()
        return normalize_message(self.message)


@dataclass
class AggregatedReport:
    """Deduplicated, conflict-resolved, severity-sorted output of a session."""

    session_id: str
    artifact_id: str
    findings: list[AggregatedFinding]
    summary: str

    # Completeness metadata
    completeness: float  # Completed roles / selected roles
    completed_roles: list[str]
    incomplete_roles: dict[str, str]  # role -> outcome (timed_out, failed, ...)
    raw_finding_count: int

    # Quality gate
    confidence: float = 0.0
    gate_passed: bool = False

    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_empty(self) -> bool:
        return not self.findings

    @property
    def findings_by_severity(self) -> dict[Severity, int]:
        """Count findings by severity level."""
        counts: dict[Severity, int] = dict.fromkeys(Severity, 0)
        for finding in self.findings:
            counts[finding.severity] += 1
        return counts

    @property
    def conflicts(self) -> dict[str, list[AggregatedFinding]]:
        """Conflicting findings grouped by conflict group."""
        groups: dict[str, list[AggregatedFinding]] = {}
        for finding in self.findings:
            if finding.conflicting and finding.conflict_group:
                groups.setdefault(finding.conflict_group, []).append(finding)
        return groups

    @property
    def has_critical_issues(self) -> bool:
        """Check if report has any critical findings."""
        return any(f.severity == Severity.CRITICAL for f in self.findings)

    @property
    def selected_roles(self) -> list[str]:
        return self.completed_roles + list(self.incomplete_roles)
