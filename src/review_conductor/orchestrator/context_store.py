"""Append-only, session-scoped store of findings shared between workers."""

import logging
import threading
from collections.abc import Iterable

from review_conductor.errors import SessionNotFoundError
from review_conductor.models.findings import Finding, Severity

logger = logging.getLogger(__name__)


class ContextStore:
    """Thread- and task-safe append-only log of findings keyed by session.

    Findings are never mutated or removed individually. Readers get immutable
    snapshots, so a reader never observes a partially written finding.
    """

    def __init__(self) -> None:
        self._logs: dict[str, list[Finding]] = {}
        self._lock = threading.Lock()

    def open(self, session_id: str) -> None:
        """Create an empty log for a session (no-op if it already exists)."""
        with self._lock:
            self._logs.setdefault(session_id, [])

    def append(self, session_id: str, finding: Finding) -> None:
        """Append a finding to a session's log."""
        with self._lock:
            log = self._logs.get(session_id)
            if log is None:
                raise SessionNotFoundError(session_id)
            log.append(finding)

    def extend(self, session_id: str, findings: Iterable[Finding]) -> int:
        """Append several findings atomically. Returns the number appended."""
        batch = list(findings)
        with self._lock:
            log = self._logs.get(session_id)
            if log is None:
                raise SessionNotFoundError(session_id)
            log.extend(batch)
        return len(batch)

    def snapshot(self, session_id: str) -> tuple[Finding, ...]:
        """Consistent, immutable view of a session's findings."""
        with self._lock:
            log = self._logs.get(session_id)
            if log is None:
                raise SessionNotFoundError(session_id)
            return tuple(log)

    def query(
        self,
        session_id: str,
        role: str | None = None,
        severity: Severity | None = None,
        min_severity: Severity | None = None,
        file_path: str | None = None,
        line: int | None = None,
    ) -> list[Finding]:
        """Filter a session's findings by role, severity and location."""
        results = []
        for finding in self.snapshot(session_id):
            if role is not None and finding.role != role:
                continue
            if severity is not None and finding.severity != severity:
                continue
            if min_severity is not None and finding.severity < min_severity:
                continue
            if file_path is not None and finding.location.file_path != file_path:
                continue
            if line is not None and not (
                finding.location.line_start <= line <= finding.location.last_line
            ):
                continue
            results.append(finding)
        return results

    def count(self, session_id: str) -> int:
        with self._lock:
            log = self._logs.get(session_id)
            if log is None:
                raise SessionNotFoundError(session_id)
            return len(log)

    def discard(self, session_id: str) -> int:
        """Drop a session's log entirely. Returns how many findings were discarded."""
        with self._lock:
            log = self._logs.pop(session_id, None)
        discarded = len(log) if log is not None else 0
        if discarded:
            logger.debug(f"Discarded {discarded} findings for session {session_id}")
        return discarded

    def sessions(self) -> list[str]:
        with self._lock:
            return list(self._logs)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._logs
