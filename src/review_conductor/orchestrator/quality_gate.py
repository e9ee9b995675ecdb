"""Quality gate: decides whether an aggregated report can be delivered as final."""

import logging
from dataclasses import dataclass

from review_conductor.errors import ConfigurationError
from review_conductor.models.report import AggregatedReport

logger = logging.getLogger(__name__)


@dataclass
class GateDecision:
    """Result of evaluating a report."""

    passed: bool
    confidence: float
    completeness: float
    density: float  # Raw findings per completed role
    reason: str


class QualityGate:
    """Scores a report from role completeness and finding density.

    confidence = completeness * ((1 - density_weight) + density_weight * density_score)

    The density score is 1.0 while the number of raw findings per completed
    role stays within ``density_ceiling`` and decays as ceiling / density
    beyond it, so a flood of findings lowers confidence.
    """

    def __init__(
        self,
        min_confidence: float = 0.6,
        density_ceiling: float = 25.0,
        density_weight: float = 0.2,
    ) -> None:
        """Initialize the gate.

        Args:
            min_confidence: Threshold below which a session needs a re-run (0-1)
            density_ceiling: Findings per completed role considered normal
            density_weight: Share of the score driven by finding density (0-1)

        Raises:
            ConfigurationError: If a parameter is out of range
        """
        if not 0.0 <= min_confidence <= 1.0:
            raise ConfigurationError(
                f"min_confidence must be between 0 and 1, got {min_confidence}"
            )
        if density_ceiling <= 0:
            raise ConfigurationError(f"density_ceiling must be positive, got {density_ceiling}")
        if not 0.0 <= density_weight <= 1.0:
            raise ConfigurationError(
                f"density_weight must be between 0 and 1, got {density_weight}"
            )
        self.min_confidence = min_confidence
        self.density_ceiling = density_ceiling
        self.density_weight = density_weight

    def score(self, report: AggregatedReport) -> tuple[float, float]:
        """Compute (confidence, density) for a report."""
        completeness = report.completeness
        if completeness <= 0 or not report.completed_roles:
            return 0.0, 0.0

        density = report.raw_finding_count / len(report.completed_roles)
        if density <= self.density_ceiling:
            density_score = 1.0
        else:
            density_score = self.density_ceiling / density

        confidence = completeness * (
            (1 - self.density_weight) + self.density_weight * density_score
        )
        return round(confidence, 2), density

    def evaluate(self, report: AggregatedReport) -> GateDecision:
        """Score a report and record the decision on it."""
        confidence, density = self.score(report)
        passed = confidence >= self.min_confidence

        if passed:
            reason = f"confidence {confidence:.2f} >= {self.min_confidence:.2f}"
        elif report.incomplete_roles:
            reason = (
                f"confidence {confidence:.2f} < {self.min_confidence:.2f}; incomplete roles: "
                + ", ".join(f"{name} ({outcome})" for name, outcome in report.incomplete_roles.items())
            )
        else:
            reason = (
                f"confidence {confidence:.2f} < {self.min_confidence:.2f}; "
                f"{density:.1f} findings per role exceeds {self.density_ceiling:g}"
            )

        report.confidence = confidence
        report.gate_passed = passed
        logger.info(f"Quality gate for session {report.session_id}: {'pass' if passed else 'needs re-run'} ({reason})")

        return GateDecision(
            passed=passed,
            confidence=confidence,
            completeness=report.completeness,
            density=density,
            reason=reason,
        )
