"""Data models for Review Conductor."""

from review_conductor.models.artifact import Artifact, ArtifactKind, infer_kind
from review_conductor.models.findings import Finding, Location, Severity
from review_conductor.models.report import AggregatedFinding, AggregatedReport
from review_conductor.models.roles import ExecutionMode, WorkerRole
from review_conductor.models.session import (
    CancellationToken,
    ReviewSession,
    RoleOutcome,
    RoleResult,
    SessionSnapshot,
    SessionStatus,
)

__all__ = [
    "AggregatedFinding",
    "AggregatedReport",
    "Artifact",
    "ArtifactKind",
    "CancellationToken",
    "ExecutionMode",
    "Finding",
    "Location",
    "ReviewSession",
    "RoleOutcome",
    "RoleResult",
    "SessionSnapshot",
    "SessionStatus",
    "Severity",
    "WorkerRole",
    "infer_kind",
]
