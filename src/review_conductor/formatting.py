"""Report rendering: markdown for humans, plain dicts for JSON."""

from typing import Any

from review_conductor.models.findings import Finding, Severity
from review_conductor.models.report import AggregatedFinding, AggregatedReport
from review_conductor.models.session import RoleResult, SessionSnapshot

SEVERITY_EMOJI = {
    Severity.CRITICAL: "🔴",
    Severity.HIGH: "🟠",
    Severity.MEDIUM: "🟡",
    Severity.LOW: "📝",
}


def format_report_markdown(report: AggregatedReport, title: str = "Review Conductor") -> str:
    """Format an aggregated report as a markdown comment.

    Args:
        report: Report to format
        title: Heading for the comment

    Returns:
        Markdown text
    """
    lines = [f"## {title}", "", report.summary, ""]
    lines.append(
        f"**Confidence:** {report.confidence:.0%} | "
        f"**Completeness:** {report.completeness:.0%} "
        f"({len(report.completed_roles)}/{len(report.selected_roles)} roles)"
    )
    if report.incomplete_roles:
        incomplete = ", ".join(
            f"`{name}` ({outcome})" for name, outcome in report.incomplete_roles.items()
        )
        lines.append(f"**Incomplete roles:** {incomplete}")
    lines.append("")

    if report.is_empty:
        lines.append("✅ No issues found.")
        return "\n".join(lines)

    for severity in Severity:
        group = [f for f in report.findings if f.severity is severity]
        if not group:
            continue
        lines.append(f"### {SEVERITY_EMOJI[severity]} {severity.value.title()} ({len(group)})")
        lines.append("")
        for finding in group:
            lines.extend(_format_finding(finding))
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def _format_finding(finding: AggregatedFinding) -> list[str]:
    roles = ", ".join(finding.roles)
    marker = ""
    if finding.conflicting:
        marker = " ⚖️ primary" if finding.primary else " ⚖️ alternative"
    lines = [f"- **{finding.message}** `{finding.location}` ({roles}){marker}"]
    if finding.duplicate_count > 1:
        lines.append(f"  - Reported {finding.duplicate_count} times")
    if finding.remediation:
        for index, text in enumerate(finding.remediation.splitlines()):
            if text.strip():
                prefix = "💡 " if index == 0 else ""
                lines.append(f"  > {prefix}{text}")
    return lines


def finding_to_dict(finding: Finding) -> dict[str, Any]:
    """Serialize a raw finding."""
    return {
        "id": finding.id,
        "role": finding.role,
        "severity": finding.severity.value,
        "message": finding.message,
        "file_path": finding.location.file_path,
        "line_start": finding.location.line_start,
        "line_end": finding.location.last_line,
        "category": finding.category,
        "remediation": finding.remediation,
        "confidence": finding.confidence,
    }


def aggregated_finding_to_dict(finding: AggregatedFinding) -> dict[str, Any]:
    """Serialize an aggregated finding."""
    return {
        "id": finding.id,
        "severity": finding.severity.value,
        "message": finding.message,
        "file_path": finding.location.file_path,
        "line_start": finding.location.line_start,
        "line_end": finding.location.last_line,
        "category": finding.category,
        "roles": list(finding.roles),
        "remediation": finding.remediation,
        "confidence": finding.confidence,
        "conflicting": finding.conflicting,
        "conflict_group": finding.conflict_group,
        "primary": finding.primary,
        "duplicate_count": finding.duplicate_count,
    }


def role_result_to_dict(result: RoleResult) -> dict[str, Any]:
    return {
        "role": result.role,
        "outcome": result.outcome.value,
        "findings_count": result.findings_count,
        "elapsed_ms": result.elapsed_ms,
        "error": result.error,
    }


def report_to_dict(report: AggregatedReport) -> dict[str, Any]:
    """Serialize an aggregated report for JSON output."""
    return {
        "session_id": report.session_id,
        "artifact_id": report.artifact_id,
        "summary": report.summary,
        "confidence": report.confidence,
        "gate_passed": report.gate_passed,
        "completeness": report.completeness,
        "completed_roles": list(report.completed_roles),
        "incomplete_roles": dict(report.incomplete_roles),
        "raw_finding_count": report.raw_finding_count,
        "findings_by_severity": {
            severity.value: count for severity, count in report.findings_by_severity.items()
        },
        "findings": [aggregated_finding_to_dict(f) for f in report.findings],
        "created_at": report.created_at.isoformat(),
    }


def snapshot_to_dict(snapshot: SessionSnapshot) -> dict[str, Any]:
    """Serialize a status snapshot."""
    return {
        "session_id": snapshot.session_id,
        "status": snapshot.status.value,
        "completion_ratio": snapshot.completion_ratio,
        "confidence": snapshot.confidence,
        "results": {name: role_result_to_dict(r) for name, r in snapshot.results.items()},
        "findings": [finding_to_dict(f) for f in snapshot.findings],
    }
