"""Tests for report formatting."""

from datetime import datetime


def _aggregated(severity, message, roles, line=15, remediation=None, **kwargs):
    from review_conductor.models.findings import Location
    from review_conductor.models.report import AggregatedFinding

    return AggregatedFinding(
        id=f"agg-{line}",
        severity=severity,
        message=message,
        location=Location("auth/login.py", line, line + 3),
        category=None,
        roles=roles,
        remediation=remediation,
        confidence=0.95,
        **kwargs,
    )


def _report(findings, incomplete=None):
    from review_conductor.models.report import AggregatedReport

    incomplete = incomplete or {}
    return AggregatedReport(
        session_id="session-1",
        artifact_id="artifact-1",
        findings=findings,
        summary="Found 1 critical issue",
        completeness=3 / (3 + len(incomplete)),
        completed_roles=["security", "performance", "code-quality"],
        incomplete_roles=incomplete,
        raw_finding_count=len(findings),
        confidence=0.9,
        gate_passed=True,
        created_at=datetime(2026, 1, 2, 3, 4, 5),
    )


class TestMarkdown:
    """Tests for format_report_markdown."""

    def test_formats_critical_findings(self):
        """Test formatting critical findings as markdown."""
        from review_conductor.formatting import format_report_markdown
        from review_conductor.models.findings import Severity

        report = _report(
            [
                _aggregated(
                    Severity.CRITICAL,
                    "SQL Injection",
                    ["security", "code-quality"],
                    remediation="Use parameterized queries\n\nAlso suggested:\n- Validate input",
                )
            ]
        )

        comment = format_report_markdown(report)

        assert comment.startswith("## Review Conductor")
        assert "### 🔴 Critical (1)" in comment
        assert "**SQL Injection** `auth/login.py:15-18` (security, code-quality)" in comment
        assert "> 💡 Use parameterized queries" in comment
        assert "> - Validate input" in comment
        assert "**Confidence:** 90%" in comment
        assert "(3/3 roles)" in comment

    def test_marks_conflicts_and_incomplete_roles(self):
        from review_conductor.formatting import format_report_markdown
        from review_conductor.models.findings import Severity

        report = _report(
            [
                _aggregated(
                    Severity.HIGH, "Do not cache", ["security"], conflicting=True, primary=True
                ),
                _aggregated(
                    Severity.MEDIUM, "Cache it", ["performance"], conflicting=True, primary=False
                ),
            ],
            incomplete={"testing": "timed_out"},
        )

        comment = format_report_markdown(report, title="Review")

        assert comment.startswith("## Review\n")
        assert "(security) ⚖️ primary" in comment
        assert "(performance) ⚖️ alternative" in comment
        assert "**Incomplete roles:** `testing` (timed_out)" in comment

    def test_formats_empty_report(self):
        """Test formatting a report with no findings."""
        from review_conductor.formatting import format_report_markdown

        comment = format_report_markdown(_report([]))

        assert "✅ No issues found." in comment


class TestSerialization:
    """Tests for dict serialization used by JSON output and the HTTP API."""

    def test_report_to_dict(self):
        from review_conductor.formatting import report_to_dict
        from review_conductor.models.findings import Severity

        data = report_to_dict(_report([_aggregated(Severity.HIGH, "Issue", ["security"])]))

        assert data["session_id"] == "session-1"
        assert data["findings_by_severity"] == {"critical": 0, "high": 1, "medium": 0, "low": 0}
        assert data["findings"][0]["line_end"] == 18
        assert data["findings"][0]["roles"] == ["security"]
        assert data["created_at"] == "2026-01-02T03:04:05"

    def test_snapshot_to_dict(self):
        from review_conductor.formatting import snapshot_to_dict
        from review_conductor.models.findings import Finding, Location, Severity
        from review_conductor.models.session import (
            RoleOutcome,
            RoleResult,
            SessionSnapshot,
            SessionStatus,
        )

        snapshot = SessionSnapshot(
            session_id="session-1",
            status=SessionStatus.RUNNING,
            completion_ratio=0.5,
            findings=(Finding("security", Severity.LOW, "Issue", Location("a.py", 3)),),
            results={"security": RoleResult("security", RoleOutcome.COMPLETED, 1, 12)},
        )

        data = snapshot_to_dict(snapshot)

        assert data["status"] == "running"
        assert data["results"]["security"]["outcome"] == "completed"
        assert data["findings"][0]["line_start"] == 3
        assert data["findings"][0]["line_end"] == 3
        assert data["confidence"] is None
