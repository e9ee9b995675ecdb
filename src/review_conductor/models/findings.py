"""Finding models for review results."""

import hashlib
import re
from dataclasses import dataclass, field
from enum import Enum


class Severity(Enum):
    """Severity levels for findings, ordered critical > high > medium > low.

    - CRITICAL: Must fix before release (exploitable security bugs, data loss).
    - HIGH: Should fix; serious correctness, security or reliability problems.
    - MEDIUM: Worth fixing; maintainability or efficiency issues.
    - LOW: Optional polish.
    """

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Numeric rank, higher is more severe."""
        return _SEVERITY_RANK[self]

    @classmethod
    def parse(cls, value: "str | Severity") -> "Severity":
        """Parse a severity name case-insensitively."""
        if isinstance(value, Severity):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown severity: {value!r}") from None

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


@dataclass(frozen=True)
class Location:
    """Where a finding applies inside an artifact."""

    file_path: str
    line_start: int
    line_end: int | None = None

    def __post_init__(self) -> None:
        """Validate line range."""
        if self.line_start < 1:
            raise ValueError(f"line_start must be >= 1, got {self.line_start}")
        if self.line_end is not None and self.line_end < self.line_start:
            raise ValueError(
                f"line_end ({self.line_end}) must be >= line_start ({self.line_start})"
            )

    @property
    def last_line(self) -> int:
        return self.line_end or self.line_start

    def overlaps(self, other: "Location", tolerance: int = 0) -> bool:
        """Check if two locations are in the same file with overlapping lines."""
        if self.file_path != other.file_path:
            return False
        return not (
            self.last_line + tolerance < other.line_start
            or other.last_line + tolerance < self.line_start
        )

    def __str__(self) -> str:
        if self.line_end and self.line_end != self.line_start:
            return f"{self.file_path}:{self.line_start}-{self.line_end}"
        return f"{self.file_path}:{self.line_start}"


_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[^\w\s]")


def normalize_message(message: str) -> str:
    """Lowercase a message and strip punctuation and repeated whitespace."""
    text = _PUNCTUATION.sub(" ", message.lower())
    return _WHITESPACE.sub(" ", text).strip()


@dataclass(frozen=True)
class Finding:
    """A single observation emitted by a worker. Immutable once emitted."""

    role: str
    severity: Severity
    message: str
    location: Location
    remediation: str | None = None
    category: str | None = None  # Issue category used for deduplication
    confidence: float = 1.0  # 0.0 - 1.0
    id: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        """Validate finding data and assign a stable id."""
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be between 0.0 and 1.0, got {self.confidence}")
        if not self.message.strip():
            raise ValueError("Finding message must not be empty")
        if not self.id:
            digest = hashlib.md5(
                f"{self.role}:{self.location}:{self.message}".encode()
            ).hexdigest()[:8]
            object.__setattr__(self, "id", f"finding-{digest}")

    @property
    def issue_key(self) -> str:
        """Key naming the underlying issue: explicit category or normalized message."""
        if self.category:
            return self.category.strip().lower()
        return normalize_message(self.message)
