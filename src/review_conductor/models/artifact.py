"""Artifact models: the input submitted for review."""

import re
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any


class ArtifactKind(Enum):
    """Declared kind of an artifact, used by the router to pick roles."""

    WEB_APPLICATION = "web-application"
    SERVICE = "service"
    LIBRARY = "library"
    CLI = "cli"
    DATA_PIPELINE = "data-pipeline"
    INFRASTRUCTURE = "infrastructure"
    DOCUMENTATION = "documentation"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: "str | ArtifactKind | None") -> "ArtifactKind":
        """Parse a kind name; anything unrecognized maps to UNKNOWN."""
        if isinstance(value, ArtifactKind):
            return value
        if not value:
            return cls.UNKNOWN
        normalized = value.strip().lower().replace("_", "-").replace(" ", "-")
        aliases = {"webapp": "web-application", "web": "web-application", "web-app": "web-application"}
        normalized = aliases.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            return cls.UNKNOWN


_DOC_SUFFIXES = (".md", ".mdx", ".rst", ".txt")
_INFRA_SUFFIXES = (".yml", ".yaml", ".tf", ".tfvars", ".hcl")
_WEB_SUFFIXES = (".html", ".htm", ".js", ".jsx", ".ts", ".tsx", ".vue", ".svelte")


def infer_kind(paths: Iterable[str]) -> ArtifactKind:
    """Guess an artifact kind from changed file paths."""
    paths = list(paths)
    if not paths:
        return ArtifactKind.UNKNOWN
    if all(p.lower().endswith(_DOC_SUFFIXES) for p in paths):
        return ArtifactKind.DOCUMENTATION
    if all(
        p.startswith(".github/")
        or p.lower().endswith(_INFRA_SUFFIXES)
        or p.rsplit("/", 1)[-1] == "Dockerfile"
        for p in paths
    ):
        return ArtifactKind.INFRASTRUCTURE
    if any(p.lower().endswith(_WEB_SUFFIXES) for p in paths):
        return ArtifactKind.WEB_APPLICATION
    return ArtifactKind.UNKNOWN


_DIFF_FILE = re.compile(r"^\+\+\+ (?:b/)?(?P<path>.+)$")
_HUNK = re.compile(r"^@@ -\d+(?:,\d+)? \+(?P<start>\d+)(?:,\d+)? @@")


def parse_diff(diff: str) -> dict[str, dict[int, str]]:
    """Extract added lines from a unified diff.

    Returns:
        Mapping of file path to {new-file line number: line text}
    """
    added: dict[str, dict[int, str]] = {}
    current: dict[int, str] | None = None
    line_no = 0

    for raw in diff.splitlines():
        file_match = _DIFF_FILE.match(raw)
        if file_match:
            path = file_match.group("path").strip()
            if path == "/dev/null":
                current = None
                continue
            current = added.setdefault(path, {})
            continue

        hunk = _HUNK.match(raw)
        if hunk:
            line_no = int(hunk.group("start"))
            continue

        if current is None or raw.startswith("---"):
            continue
        if raw.startswith("+"):
            current[line_no] = raw[1:]
            line_no += 1
        elif raw.startswith("-") or raw.startswith("\\"):
            continue
        else:
            line_no += 1

    return added


@dataclass(frozen=True)
class Artifact:
    """The input under review (file set, diff, or snippet). Immutable once submitted."""

    kind: ArtifactKind = ArtifactKind.UNKNOWN
    files: Mapping[str, str] = field(default_factory=dict)
    diff: str | None = None
    name: str = ""
    metadata: Mapping[str, Any] = field(default_factory=dict)
    id: str = ""
    _added: dict[str, dict[int, str]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        """Freeze mappings and assign an id."""
        object.__setattr__(self, "kind", ArtifactKind.parse(self.kind))
        object.__setattr__(self, "files", MappingProxyType(dict(self.files)))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))
        object.__setattr__(self, "_added", parse_diff(self.diff) if self.diff else {})
        if not self.id:
            object.__setattr__(self, "id", f"artifact-{uuid.uuid4().hex[:8]}")

    @property
    def paths(self) -> list[str]:
        """All paths covered by this artifact, sorted."""
        return sorted(set(self.files) | set(self._added))

    def lines(self, path: str) -> list[tuple[int, str]]:
        """Lines to review for a path as (line number, text) pairs.

        For diff artifacts only the added lines of a file are reviewed;
        otherwise the whole file content is.
        """
        if path in self._added:
            return sorted(self._added[path].items())
        content = self.files.get(path)
        if content is None:
            return []
        return list(enumerate(content.splitlines(), start=1))

    def added_lines(self, path: str) -> dict[int, str]:
        return dict(self._added.get(path, {}))

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Artifact":
        """Build an artifact from a JSON-like mapping."""
        files = raw.get("files") or {}
        if not isinstance(files, Mapping):
            raise ValueError("artifact.files must be a mapping of path to content")
        diff = raw.get("diff")
        if diff is not None and not isinstance(diff, str):
            raise ValueError("artifact.diff must be a string")
        kind = raw.get("kind")
        if kind is not None and not isinstance(kind, (str, ArtifactKind)):
            raise ValueError("artifact.kind must be a string")
        for key in ("name", "id"):
            if not isinstance(raw.get(key, ""), str):
                raise ValueError(f"artifact.{key} must be a string")
        if not isinstance(raw.get("metadata") or {}, Mapping):
            raise ValueError("artifact.metadata must be a mapping")
        if not all(isinstance(k, str) and isinstance(v, str) for k, v in files.items()):
            raise ValueError("artifact.files must map paths to string contents")
        if not kind:
            kind = infer_kind(list(files) + list(parse_diff(diff or "")))
        return cls(
            kind=ArtifactKind.parse(kind),
            files=files,
            diff=diff,
            name=raw.get("name", ""),
            metadata=raw.get("metadata") or {},
            id=raw.get("id", ""),
        )
