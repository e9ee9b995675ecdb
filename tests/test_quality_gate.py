"""Tests for the quality gate."""

import pytest


def _report(completed=("security",), incomplete=None, raw=0):
    from review_conductor.models.report import AggregatedReport

    return AggregatedReport(
        session_id="s1",
        artifact_id="a1",
        findings=[],
        summary="",
        completeness=len(completed) / (len(completed) + len(incomplete or {})),
        completed_roles=list(completed),
        incomplete_roles=dict(incomplete or {}),
        raw_finding_count=raw,
    )


class TestQualityGate:
    """Tests for QualityGate."""

    def test_full_completeness_passes(self):
        from review_conductor.orchestrator.quality_gate import QualityGate

        decision = QualityGate().evaluate(_report(("security", "performance"), raw=3))

        assert decision.passed
        assert decision.confidence == 1.0
        assert decision.density == 1.5

    def test_incomplete_roles_lower_confidence(self):
        """Half the roles timing out halves confidence and fails the default gate."""
        from review_conductor.orchestrator.quality_gate import QualityGate

        report = _report(("security",), {"performance": "timed_out"})
        decision = QualityGate().evaluate(report)

        assert not decision.passed
        assert decision.confidence == 0.5
        assert "performance (timed_out)" in decision.reason

    def test_lower_threshold_accepts_partial_report(self):
        from review_conductor.orchestrator.quality_gate import QualityGate

        report = _report(("security",), {"performance": "failed"})

        assert QualityGate(min_confidence=0.5).evaluate(report).passed

    def test_density_penalty(self):
        """A flood of findings per role lowers confidence."""
        from review_conductor.orchestrator.quality_gate import QualityGate

        gate = QualityGate(density_ceiling=25.0, density_weight=0.2)

        confidence, density = gate.score(_report(raw=100))

        # 0.8 + 0.2 * (25 / 100)
        assert confidence == 0.85
        assert density == 100.0

    def test_density_failure_reason(self):
        from review_conductor.orchestrator.quality_gate import QualityGate

        gate = QualityGate(min_confidence=0.9, density_ceiling=1.0, density_weight=1.0)
        decision = gate.evaluate(_report(raw=10))

        assert not decision.passed
        assert decision.confidence == 0.1
        assert "findings per role" in decision.reason

    def test_zero_completeness(self):
        from review_conductor.orchestrator.quality_gate import QualityGate

        report = _report((), {"security": "timed_out"})

        assert QualityGate().score(report) == (0.0, 0.0)
        assert not QualityGate(min_confidence=0.1).evaluate(report).passed

    def test_evaluate_records_decision_on_report(self):
        from review_conductor.orchestrator.quality_gate import QualityGate

        report = _report()
        QualityGate().evaluate(report)

        assert report.confidence == 1.0
        assert report.gate_passed is True

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"min_confidence": 1.5},
            {"min_confidence": -0.1},
            {"density_ceiling": 0},
            {"density_weight": 2},
        ],
    )
    def test_invalid_parameters(self, kwargs):
        from review_conductor.errors import ConfigurationError
        from review_conductor.orchestrator.quality_gate import QualityGate

        with pytest.raises(ConfigurationError):
            QualityGate(**kwargs)
