"""Worker role models."""

from dataclasses import dataclass, field
from enum import Enum


class ExecutionMode(Enum):
    """How a role may be scheduled."""

    PARALLEL = "parallel"  # May run concurrently with any independent role
    SEQUENTIAL = "sequential"  # Runs on the single ordered path of sequential roles


@dataclass(frozen=True)
class WorkerRole:
    """A named review capability invoked by the scheduler."""

    name: str
    depends_on: tuple[str, ...] = ()
    mode: ExecutionMode = ExecutionMode.PARALLEL
    description: str = ""
    timeout_seconds: float | None = None
    weight: float = 1.0  # Priority used for conflict tie-breaks
    focus_areas: tuple[str, ...] = field(default=(), compare=False)

    def __post_init__(self) -> None:
        """Validate role data."""
        if not self.name:
            raise ValueError("Role name must not be empty")
        if self.name in self.depends_on:
            raise ValueError(f"Role {self.name} cannot depend on itself")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError(
                f"timeout_seconds for {self.name} must be positive, got {self.timeout_seconds}"
            )
        object.__setattr__(self, "depends_on", tuple(self.depends_on))
        object.__setattr__(self, "mode", ExecutionMode(self.mode))

    @property
    def is_sequential(self) -> bool:
        return self.mode is ExecutionMode.SEQUENTIAL
