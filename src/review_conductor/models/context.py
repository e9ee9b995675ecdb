"""Worker context models."""

from dataclasses import dataclass, field

from review_conductor.models.artifact import Artifact
from review_conductor.models.findings import Finding, Severity


@dataclass(frozen=True)
class WorkerContext:
    """Context handed to a worker: the artifact plus findings visible so far.

    ``findings`` is the context store snapshot taken once all of the worker's
    dependencies finished.
    """

    session_id: str
    artifact: Artifact
    findings: tuple[Finding, ...] = ()
    dependencies: tuple[str, ...] = field(default=())

    def by_role(self, role: str) -> list[Finding]:
        return [f for f in self.findings if f.role == role]

    def at_least(self, severity: Severity) -> list[Finding]:
        """Findings at or above a severity."""
        return [f for f in self.findings if f.severity >= severity]

    def in_file(self, file_path: str) -> list[Finding]:
        return [f for f in self.findings if f.location.file_path == file_path]

    def describe(self) -> str:
        """Short human-readable summary, useful for worker logging."""
        roles = sorted({f.role for f in self.findings})
        return (
            f"session={self.session_id} artifact={self.artifact.id} "
            f"kind={self.artifact.kind.value} files={len(self.artifact.paths)} "
            f"prior_findings={len(self.findings)} from={', '.join(roles) or 'none'}"
        )
