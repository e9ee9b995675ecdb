"""Finding aggregator: deduplication, conflict resolution and ranking."""

import hashlib
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from difflib import SequenceMatcher
from numbers import Real

from review_conductor.errors import ConfigurationError
from review_conductor.models.findings import Finding, Severity
from review_conductor.models.report import AggregatedFinding, AggregatedReport
from review_conductor.models.roles import WorkerRole
from review_conductor.models.session import RoleResult

logger = logging.getLogger(__name__)

ConflictDetector = Callable[[AggregatedFinding, AggregatedFinding], bool]
PriorityKey = Callable[[AggregatedFinding], tuple]


def default_priority_key(finding: AggregatedFinding) -> tuple:
    """Sort order: severity (desc), file path, line, then id."""
    return (
        -finding.severity.rank,
        finding.location.file_path,
        finding.location.line_start,
        finding.id,
    )


def validate_weights(weights: Mapping[str, object]) -> list[str]:
    """Return error messages for non-numeric or negative role weights."""
    errors = []
    for role, weight in weights.items():
        if isinstance(weight, bool) or not isinstance(weight, Real):
            errors.append(f"Weight for role {role} must be a number, got {weight!r}")
        elif weight < 0:
            errors.append(f"Weight for role {role} must be >= 0, got {weight}")
    return errors


@dataclass
class AggregatorConfig:
    """Configuration for the aggregator."""

    role_weights: dict[str, float] = field(default_factory=dict)
    similarity_threshold: float = 0.85  # Message similarity for uncategorized findings
    line_tolerance: int = 0  # Lines two locations may be apart and still match


class ReviewAggregator:
    """Merges the raw findings of a session into an AggregatedReport."""

    def __init__(
        self,
        config: AggregatorConfig | None = None,
        conflict_detector: ConflictDetector | None = None,
        priority_key: PriorityKey = default_priority_key,
    ) -> None:
        """Initialize the aggregator.

        Args:
            config: Optional configuration
            conflict_detector: Replaces the default competing-remediation rule
            priority_key: Sort key for the final finding list

        Raises:
            ConfigurationError: If role weights are invalid
        """
        self.config = config or AggregatorConfig()
        errors = validate_weights(self.config.role_weights)
        if errors:
            raise ConfigurationError("; ".join(errors))
        if not 0.0 <= self.config.similarity_threshold <= 1.0:
            raise ConfigurationError("similarity_threshold must be between 0 and 1")
        self.conflict_detector = conflict_detector
        self.priority_key = priority_key

    def aggregate(
        self,
        session_id: str,
        artifact_id: str,
        findings: Iterable[Finding],
        results: Mapping[str, RoleResult],
        roles: Iterable[WorkerRole] = (),
    ) -> AggregatedReport:
        """Merge findings from all roles into a single report.

        Algorithm:
        1. Cluster duplicates (same location, same issue)
        2. Merge each cluster, keeping the highest severity and all remediations
        3. Flag competing recommendations at the same location; pick a primary
        4. Sort by priority key

        Args:
            session_id: Session being aggregated
            artifact_id: Artifact the session reviewed
            findings: Raw findings from the context store
            results: Per-role results from the scheduler
            roles: Selected roles (weights and dependencies)

        Returns:
            Aggregated report; empty (not an error) when there are no findings
        """
        raw = list(findings)
        roles = list(roles)
        weights = {role.name: role.weight for role in roles}
        weights.update(self.config.role_weights)
        related = self._related_roles(roles)

        clusters = self._cluster_findings(raw)
        merged = [self._merge_cluster(cluster, weights) for cluster in clusters]
        self._flag_conflicts(merged, weights, related)
        merged.sort(key=self.priority_key)

        completed = [name for name, result in results.items() if result.completed]
        incomplete = {
            name: result.outcome.value for name, result in results.items() if not result.completed
        }
        completeness = len(completed) / len(results) if results else 0.0

        logger.debug(
            f"Session {session_id}: {len(raw)} raw findings merged into {len(merged)} "
            f"({sum(1 for f in merged if f.conflicting)} conflicting)"
        )

        return AggregatedReport(
            session_id=session_id,
            artifact_id=artifact_id,
            findings=merged,
            summary=self._generate_summary(merged, completed, incomplete),
            completeness=completeness,
            completed_roles=completed,
            incomplete_roles=incomplete,
            raw_finding_count=len(raw),
            created_at=datetime.now(),
        )

    # Deduplication

    def _cluster_findings(self, findings: list[Finding]) -> list[list[Finding]]:
        """Group duplicates together, preserving first-seen order."""
        clusters: list[list[Finding]] = []
        for finding in findings:
            for cluster in clusters:
                if self._are_duplicates(cluster[0], finding):
                    cluster.append(finding)
                    break
            else:
                clusters.append([finding])
        return clusters

    def _are_duplicates(self, f1: Finding, f2: Finding) -> bool:
        """Same location and same underlying issue."""
        if not f1.location.overlaps(f2.location, self.config.line_tolerance):
            return False
        if f1.issue_key == f2.issue_key:
            return True
        if f1.category or f2.category:
            return False
        return self._text_similarity(f1.message, f2.message) >= self.config.similarity_threshold

    def _text_similarity(self, text1: str, text2: str) -> float:
        """Compute text similarity using SequenceMatcher."""
        return SequenceMatcher(None, text1.lower(), text2.lower()).ratio()

    def _merge_cluster(
        self, cluster: list[Finding], weights: Mapping[str, float]
    ) -> AggregatedFinding:
        """Merge duplicates: highest severity wins, remediations are combined."""
        ordered = sorted(
            cluster,
            key=lambda f: (-f.severity.rank, -weights.get(f.role, 1.0), f.role, f.id),
        )
        base = ordered[0]

        roles: list[str] = []
        for finding in ordered:
            if finding.role not in roles:
                roles.append(finding.role)

        remediations: list[str] = []
        for finding in ordered:
            if finding.remediation and finding.remediation not in remediations:
                remediations.append(finding.remediation)
        if len(remediations) > 1:
            remediation = remediations[0] + "\n\nAlso suggested:\n" + "\n".join(
                f"- {text}" for text in remediations[1:]
            )
        else:
            remediation = remediations[0] if remediations else None

        sources = ",".join(sorted(f.id for f in cluster))
        digest = hashlib.md5(f"{base.location}:{base.issue_key}:{sources}".encode()).hexdigest()[:8]
        return AggregatedFinding(
            id=f"agg-{digest}",
            severity=base.severity,
            message=base.message,
            location=base.location,
            category=base.category,
            roles=roles,
            remediation=remediation,
            confidence=max(f.confidence for f in cluster),
            source_findings=list(cluster),
        )

    # Conflict resolution

    def _related_roles(self, roles: list[WorkerRole]) -> set[frozenset[str]]:
        """Pairs of roles where one (transitively) depends on the other."""
        depends = {role.name: set(role.depends_on) for role in roles}
        related: set[frozenset[str]] = set()
        for name in depends:
            seen: set[str] = set()
            pending = list(depends[name])
            while pending:
                dep = pending.pop()
                if dep in seen:
                    continue
                seen.add(dep)
                related.add(frozenset((name, dep)))
                pending.extend(depends.get(dep, ()))
        return related

    def _competing_remediations(
        self, a: AggregatedFinding, b: AggregatedFinding, related: set[frozenset[str]]
    ) -> bool:
        """Default conflict rule.

        Two findings at the same location conflict when they describe different
        issues, both prescribe a remediation, the remediations differ, and no
        role in one builds on a role in the other.
        """
        if not a.location.overlaps(b.location, self.config.line_tolerance):
            return False
        if a.issue_key == b.issue_key:
            return False
        if not a.remediation or not b.remediation or a.remediation == b.remediation:
            return False
        if set(a.roles) & set(b.roles):
            return False
        return not any(
            frozenset((ra, rb)) in related for ra in a.roles for rb in b.roles
        )

    def _flag_conflicts(
        self,
        findings: list[AggregatedFinding],
        weights: Mapping[str, float],
        related: set[frozenset[str]],
    ) -> None:
        """Mark conflicting findings and designate one primary per group."""
        # Union-find over conflicting pairs so groups are transitive
        parent = list(range(len(findings)))

        def find(i: int) -> int:
            while parent[i] != i:
                parent[i] = parent[parent[i]]
                i = parent[i]
            return i

        for i in range(len(findings)):
            for j in range(i + 1, len(findings)):
                a, b = findings[i], findings[j]
                if self.conflict_detector is not None:
                    conflicting = self.conflict_detector(a, b)
                else:
                    conflicting = self._competing_remediations(a, b, related)
                if conflicting:
                    parent[find(j)] = find(i)

        groups: dict[int, list[AggregatedFinding]] = {}
        for index, finding in enumerate(findings):
            groups.setdefault(find(index), []).append(finding)

        for members in groups.values():
            if len(members) < 2:
                continue
            primary = min(
                members,
                key=lambda f: (
                    -max(weights.get(role, 1.0) for role in f.roles),
                    -f.severity.rank,
                    f.role,
                    f.id,
                ),
            )
            group_id = "conflict-" + hashlib.md5(
                ",".join(sorted(f.id for f in members)).encode()
            ).hexdigest()[:8]
            for finding in members:
                finding.conflicting = True
                finding.conflict_group = group_id
                finding.primary = finding is primary
            logger.info(
                f"Conflict {group_id} at {primary.location}: primary recommendation "
                f"from {primary.role} over {len(members) - 1} other(s)"
            )

    # Summary

    def _generate_summary(
        self,
        findings: list[AggregatedFinding],
        completed: list[str],
        incomplete: Mapping[str, str],
    ) -> str:
        """Generate a one-line summary of the report."""
        coverage = f"{len(completed)}/{len(completed) + len(incomplete)} roles completed"
        if not findings:
            return f"✅ No issues found ({coverage})."

        by_severity: dict[Severity, int] = {}
        for f in findings:
            by_severity[f.severity] = by_severity.get(f.severity, 0) + 1

        icons = {
            Severity.CRITICAL: "🔴",
            Severity.HIGH: "🟠",
            Severity.MEDIUM: "🟡",
            Severity.LOW: "📝",
        }
        parts = [
            f"{icons[severity]} {by_severity[severity]} {severity.value}"
            for severity in Severity
            if severity in by_severity
        ]
        conflicts = len({f.conflict_group for f in findings if f.conflicting})
        conflict_note = f", {conflicts} conflicting recommendation(s)" if conflicts else ""
        return (
            f"Found {', '.join(parts)} across {len(findings)} unique issues"
            f"{conflict_note} ({coverage})."
        )
