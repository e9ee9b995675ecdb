"""Exception types for Review Conductor."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from review_conductor.models.report import AggregatedReport


class ReviewConductorError(Exception):
    """Base class for all Review Conductor errors."""


class ConfigurationError(ReviewConductorError):
    """Raised for invalid configuration (empty role set, bad weights, cycles)."""


class SessionNotFoundError(ReviewConductorError):
    """Raised when a session id is unknown or already closed."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Unknown session: {session_id}")
        self.session_id = session_id


class SessionNotCompleteError(ReviewConductorError):
    """Raised when a report is requested before the session has cleared the gate."""

    def __init__(self, session_id: str, status: str) -> None:
        super().__init__(f"Session {session_id} not complete (status: {status})")
        self.session_id = session_id
        self.status = status


class SessionNeedsRerunError(SessionNotCompleteError):
    """Raised when the quality gate rejected a finished session.

    The rejected report is attached so callers can inspect partial results.
    """

    def __init__(self, session_id: str, report: "AggregatedReport") -> None:
        super().__init__(session_id, "needs_rerun")
        self.report = report


class SessionCancelledError(ReviewConductorError):
    """Raised when a session was cancelled; cancelled sessions have no report."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} was cancelled")
        self.session_id = session_id
