"""Review service: the Submit / Status / Report surface over review sessions."""

import asyncio
import logging
import uuid
from collections.abc import Sequence
from datetime import datetime

from review_conductor.errors import (
    ConfigurationError,
    SessionCancelledError,
    SessionNeedsRerunError,
    SessionNotCompleteError,
    SessionNotFoundError,
)
from review_conductor.models.artifact import Artifact
from review_conductor.models.report import AggregatedReport
from review_conductor.models.session import (
    ReviewSession,
    RoleResult,
    SessionSnapshot,
    SessionStatus,
)
from review_conductor.orchestrator.aggregator import ReviewAggregator
from review_conductor.orchestrator.context_store import ContextStore
from review_conductor.orchestrator.quality_gate import QualityGate
from review_conductor.orchestrator.router import TaskRouter
from review_conductor.orchestrator.scheduler import ExecutionScheduler

logger = logging.getLogger(__name__)


class ReviewService:
    """Coordinates router, scheduler, aggregator and quality gate per session."""

    def __init__(
        self,
        router: TaskRouter,
        scheduler: ExecutionScheduler,
        aggregator: ReviewAggregator | None = None,
        quality_gate: QualityGate | None = None,
        max_retained_sessions: int | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            router: Selects roles for submitted artifacts
            scheduler: Executes roles; its store is the session context store
            aggregator: Optional aggregator (default configuration otherwise)
            quality_gate: Optional quality gate (default threshold otherwise)
            max_retained_sessions: Finished sessions kept before the oldest are
                archived (unbounded when None)
        """
        if max_retained_sessions is not None and max_retained_sessions < 1:
            raise ConfigurationError("max_retained_sessions must be at least 1")
        self.router = router
        self.scheduler = scheduler
        self.aggregator = aggregator or ReviewAggregator()
        self.quality_gate = quality_gate or QualityGate()
        self.max_retained_sessions = max_retained_sessions
        self._sessions: dict[str, ReviewSession] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._overrides: dict[str, list[str] | None] = {}
        self._finished: list[str] = []  # Session ids in completion order

    @property
    def store(self) -> ContextStore:
        return self.scheduler.store

    def submit(self, artifact: Artifact, roles: Sequence[str] | None = None) -> str:
        """Start reviewing an artifact. Must be called from a running event loop.

        Args:
            artifact: Artifact to review
            roles: Optional role-selection override

        Returns:
            Session identifier

        Raises:
            ConfigurationError: If routing or scheduling the roles is impossible
        """
        selected = self.router.route(artifact, roles)
        # Validate the plan now so configuration errors surface at submission time
        self.scheduler.plan(selected)

        session_id = f"session-{uuid.uuid4().hex[:12]}"
        session = ReviewSession(id=session_id, artifact=artifact, roles=selected)
        self._sessions[session_id] = session
        self._overrides[session_id] = list(roles) if roles is not None else None
        self.store.open(session_id)

        self._tasks[session_id] = asyncio.create_task(
            self._run_session(session), name=f"review-{session_id}"
        )
        logger.info(
            f"Submitted {session_id} for artifact {artifact.id} with roles "
            f"{', '.join(session.role_names)}"
        )
        return session_id

    async def review(
        self, artifact: Artifact, roles: Sequence[str] | None = None
    ) -> ReviewSession:
        """Submit an artifact and wait for its session to finish."""
        session_id = self.submit(artifact, roles)
        return await self.wait(session_id)

    async def wait(self, session_id: str) -> ReviewSession:
        """Wait until a session finishes (any terminal status)."""
        session = self._get(session_id)
        task = self._tasks.get(session_id)
        if task is not None:
            await asyncio.shield(task)
        return session

    def status(self, session_id: str) -> SessionSnapshot:
        """Current completion ratio and the findings recorded so far."""
        session = self._get(session_id)
        if session.status is SessionStatus.CANCELLED or session_id not in self.store:
            findings: tuple = ()
        else:
            findings = self.store.snapshot(session_id)
        return SessionSnapshot(
            session_id=session_id,
            status=session.status,
            completion_ratio=session.completion_ratio,
            findings=findings,
            results=dict(session.results),
            confidence=session.report.confidence if session.report else None,
        )

    def report(self, session_id: str) -> AggregatedReport:
        """Final report of a session that cleared the quality gate.

        Raises:
            SessionNotFoundError: Unknown session
            SessionCancelledError: Session was cancelled
            SessionNeedsRerunError: Quality gate rejected the report
            SessionNotCompleteError: Session still running (or failed)
        """
        session = self._get(session_id)
        if session.status is SessionStatus.CANCELLED:
            raise SessionCancelledError(session_id)
        if session.status is SessionStatus.NEEDS_RERUN and session.report is not None:
            raise SessionNeedsRerunError(session_id, session.report)
        if session.status is not SessionStatus.COMPLETED or session.report is None:
            raise SessionNotCompleteError(session_id, session.status.value)
        return session.report

    def cancel(self, session_id: str) -> bool:
        """Cancel a session. Its partial findings are discarded.

        Returns:
            True if the session was still running
        """
        session = self._get(session_id)
        if session.status.is_finished:
            return False
        session.token.cancel()
        session.status = SessionStatus.CANCELLED
        session.report = None
        if session_id not in self._tasks:
            self.store.discard(session_id)
        logger.info(f"Cancelled {session_id}")
        return True

    def rerun(self, session_id: str) -> str:
        """Resubmit a session's artifact with the same role selection."""
        session = self._get(session_id)
        return self.submit(session.artifact, self._overrides.get(session_id))

    def close(self, session_id: str) -> None:
        """Archive a session: drop its findings log and bookkeeping.

        A session that is still running is cancelled first.
        """
        session = self._get(session_id)
        if not session.status.is_finished:
            self.cancel(session_id)
        self.store.discard(session_id)
        self._sessions.pop(session_id, None)
        self._tasks.pop(session_id, None)
        self._overrides.pop(session_id, None)
        if session_id in self._finished:
            self._finished.remove(session_id)
        logger.debug(f"Archived {session_id}")

    def sessions(self) -> list[ReviewSession]:
        return list(self._sessions.values())

    async def shutdown(self) -> None:
        """Cancel all running sessions and wait for their tasks to exit."""
        for session in list(self._sessions.values()):
            if not session.status.is_finished:
                self.cancel(session.id)
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _evict_finished(self) -> None:
        """Archive the oldest finished sessions beyond the retention limit."""
        if self.max_retained_sessions is None:
            return
        while len(self._finished) > self.max_retained_sessions:
            oldest = self._finished[0]
            if oldest in self._sessions:
                self.close(oldest)
            else:
                self._finished.pop(0)

    def _get(self, session_id: str) -> ReviewSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def _run_session(self, session: ReviewSession) -> None:
        try:
            await self._execute(session)
        except asyncio.CancelledError:
            # The task itself was cancelled, e.g. at event loop teardown
            session.token.cancel()
            session.status = SessionStatus.CANCELLED
            session.report = None
            self.store.discard(session.id)
            logger.info(f"Session {session.id} task cancelled")
            raise
        finally:
            if session.id in self._sessions:
                self._finished.append(session.id)
                self._evict_finished()

    async def _execute(self, session: ReviewSession) -> None:
        """Run, aggregate and gate one session."""
        if not session.token.cancelled:
            session.status = SessionStatus.RUNNING

        def on_progress(result: RoleResult) -> None:
            session.results[result.role] = result

        try:
            results = await self.scheduler.run(
                session.id,
                session.artifact,
                session.roles,
                token=session.token,
                on_progress=on_progress,
            )
        except SessionCancelledError:
            session.status = SessionStatus.CANCELLED
            return
        except Exception as e:
            if session.token.cancelled:
                session.status = SessionStatus.CANCELLED
                self.store.discard(session.id)
                return
            logger.exception(f"Session {session.id} failed: {e}")
            session.status = SessionStatus.FAILED
            session.error = str(e)
            return

        if session.token.cancelled:
            # Cancelled after the last role finished: never aggregate partial work
            session.status = SessionStatus.CANCELLED
            self.store.discard(session.id)
            return

        session.results = results
        report = self.aggregator.aggregate(
            session.id,
            session.artifact.id,
            self.store.snapshot(session.id),
            results,
            session.roles,
        )
        decision = self.quality_gate.evaluate(report)
        session.report = report
        session.completed_at = datetime.now()
        session.status = SessionStatus.COMPLETED if decision.passed else SessionStatus.NEEDS_RERUN
        logger.info(f"Session {session.id} finished: {session.status.value} - {report.summary}")
