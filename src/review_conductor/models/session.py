"""Review session models."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from review_conductor.models.artifact import Artifact
from review_conductor.models.findings import Finding
from review_conductor.models.report import AggregatedReport
from review_conductor.models.roles import WorkerRole


class RoleOutcome(Enum):
    """How a single role's execution ended."""

    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"
    CANCELLED = "cancelled"


class SessionStatus(Enum):
    """Lifecycle states of a review session."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"  # Report cleared the quality gate
    NEEDS_RERUN = "needs_rerun"  # Report produced but rejected by the quality gate
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_finished(self) -> bool:
        return self not in (SessionStatus.PENDING, SessionStatus.RUNNING)


@dataclass
class RoleResult:
    """Outcome of one role's execution within a session."""

    role: str
    outcome: RoleOutcome
    findings_count: int = 0
    elapsed_ms: int = 0
    error: str | None = None

    @property
    def completed(self) -> bool:
        return self.outcome is RoleOutcome.COMPLETED


class CancellationToken:
    """Session-level cancellation signal shared with the scheduler."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class ReviewSession:
    """One artifact's full review lifecycle."""

    id: str
    artifact: Artifact
    roles: list[WorkerRole]
    status: SessionStatus = SessionStatus.PENDING
    results: dict[str, RoleResult] = field(default_factory=dict)
    report: AggregatedReport | None = None
    created_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime | None = None
    error: str | None = None
    token: CancellationToken = field(default_factory=CancellationToken, repr=False)

    @property
    def role_names(self) -> list[str]:
        return [role.name for role in self.roles]

    @property
    def completion_ratio(self) -> float:
        """Fraction of selected roles that have finished (any outcome)."""
        if not self.roles:
            return 0.0
        return len(self.results) / len(self.roles)


@dataclass
class SessionSnapshot:
    """Point-in-time view of a session returned by status queries."""

    session_id: str
    status: SessionStatus
    completion_ratio: float
    findings: tuple[Finding, ...]
    results: dict[str, RoleResult]
    confidence: float | None = None
