"""Pattern, consistency and documentation focused review workers."""

import re

from review_conductor.models.artifact import Artifact
from review_conductor.models.findings import Finding, Severity
from review_conductor.models.roles import ExecutionMode, WorkerRole
from review_conductor.workers.base import (
    JAVASCRIPT,
    PYTHON,
    PatternWorker,
    indentation,
    rule,
)

MAX_FUNCTION_LINES = 60
MAX_LINE_LENGTH = 120

_PY_DEF = re.compile(r"^\s*(async\s+)?def\s+(?P<name>\w+)\s*\(")
_PY_CLASS = re.compile(r"^\s*class\s+(?P<name>\w+)\b")
_DOCSTRING = re.compile(r"^\s*[rRbBuU]?(\"\"\"|''')")


class ArchitectureWorker(PatternWorker):
    """Worker specialized in structural problems: error handling, state, size."""

    ROLE = WorkerRole(
        name="architecture",
        mode=ExecutionMode.PARALLEL,
        description="Layering, error handling patterns, shared state and function size",
        weight=2.5,
        focus_areas=("consistency", "patterns", "architecture", "maintainability"),
    )

    RULES = [
        rule(
            "bare-except",
            r"^\s*except\s*:",
            Severity.MEDIUM,
            "Bare except swallows every exception, including KeyboardInterrupt",
            "Catch the specific exceptions the block can handle",
            suffixes=PYTHON,
        ),
        rule(
            "global-state",
            r"^\s*global\s+\w+",
            Severity.MEDIUM,
            "Module-level mutable state modified through 'global'",
            "Pass state explicitly or encapsulate it in an object",
            suffixes=PYTHON,
            confidence=0.7,
        ),
        rule(
            "wildcard-import",
            r"^\s*from\s+\S+\s+import\s+\*",
            Severity.LOW,
            "Wildcard import hides where names come from",
            "Import the names you use explicitly",
            suffixes=PYTHON,
        ),
    ]

    def check_file(
        self, path: str, lines: list[tuple[int, str]], artifact: Artifact
    ) -> list[Finding]:
        if not path.lower().endswith(PYTHON):
            return []

        findings = []
        open_defs: list[tuple[int, int, str]] = []  # (indent, line number, name)

        def close(start: int, name: str, end: int) -> None:
            length = end - start + 1
            if length > MAX_FUNCTION_LINES:
                findings.append(
                    self.finding(
                        Severity.MEDIUM,
                        f"Function '{name}' is {length} lines long",
                        path,
                        start,
                        line_end=end,
                        remediation="Split it into smaller functions with a single responsibility",
                        category="long-function",
                        confidence=0.7,
                    )
                )

        last_line = 0
        for line_no, text in lines:
            if not text.strip():
                continue
            indent = indentation(text)
            while open_defs and open_defs[-1][0] >= indent:
                _, start, name = open_defs.pop()
                close(start, name, last_line)
            match = _PY_DEF.match(text)
            if match:
                open_defs.append((indent, line_no, match.group("name")))
            last_line = line_no

        while open_defs:
            _, start, name = open_defs.pop()
            close(start, name, last_line)

        return findings


class CodeQualityWorker(PatternWorker):
    """Generic code-quality worker; the fallback role for unclassified artifacts."""

    ROLE = WorkerRole(
        name="code-quality",
        mode=ExecutionMode.PARALLEL,
        description="Readability, leftover debugging and common pitfalls",
        weight=1.0,
        focus_areas=("style", "readability"),
    )

    RULES = [
        rule(
            "todo-marker",
            r"\b(TODO|FIXME|XXX)\b",
            Severity.LOW,
            "Unresolved TODO/FIXME marker",
            "Resolve it or track it in the issue tracker",
            confidence=0.5,
        ),
        rule(
            "debug-print",
            r"^\s*print\(",
            Severity.LOW,
            "print() left in code; use logging",
            "Replace with a logger call at an appropriate level",
            suffixes=PYTHON,
            confidence=0.6,
        ),
        rule(
            "debug-print",
            r"\bconsole\.log\(",
            Severity.LOW,
            "console.log() left in code",
            "Remove it or route through the application logger",
            suffixes=JAVASCRIPT,
            confidence=0.6,
        ),
        rule(
            "mutable-default-argument",
            r"^\s*(async\s+)?def\s+\w+\(.*=\s*(\[\]|\{\}|set\(\))",
            Severity.MEDIUM,
            "Mutable default argument is shared between calls",
            "Default to None and create the object inside the function",
            suffixes=PYTHON,
        ),
    ]

    def check_file(
        self, path: str, lines: list[tuple[int, str]], artifact: Artifact
    ) -> list[Finding]:
        return [
            self.finding(
                Severity.LOW,
                f"Line exceeds {MAX_LINE_LENGTH} characters",
                path,
                line_no,
                remediation="Wrap the line",
                category="long-line",
                confidence=0.9,
            )
            for line_no, text in lines
            if len(text) > MAX_LINE_LENGTH
        ]


class DocumentationWorker(PatternWorker):
    """Worker focused on missing docstrings and broken documentation."""

    ROLE = WorkerRole(
        name="documentation",
        mode=ExecutionMode.PARALLEL,
        description="Docstrings on public APIs and markdown hygiene",
        weight=0.5,
        focus_areas=("documentation",),
    )

    RULES = [
        rule(
            "broken-link",
            r"\[[^\]]+\]\(\s*\)",
            Severity.LOW,
            "Markdown link with an empty target",
            "Point the link at its destination or remove it",
            suffixes=(".md", ".mdx"),
        ),
    ]

    def check_file(
        self, path: str, lines: list[tuple[int, str]], artifact: Artifact
    ) -> list[Finding]:
        if not path.lower().endswith(PYTHON):
            return []

        findings = []
        by_number = dict(lines)
        for line_no, text in lines:
            match = _PY_DEF.match(text) or _PY_CLASS.match(text)
            if not match or match.group("name").startswith("_"):
                continue
            body = self._first_body_line(by_number, line_no)
            if body is None:
                # Body not part of the reviewed lines (e.g. outside the diff)
                continue
            if not _DOCSTRING.match(body):
                kind = "Class" if text.lstrip().startswith("class") else "Function"
                findings.append(
                    self.finding(
                        Severity.LOW,
                        f"{kind} '{match.group('name')}' has no docstring",
                        path,
                        line_no,
                        remediation="Add a docstring describing behavior, arguments and return value",
                        category="missing-docstring",
                        confidence=0.8,
                    )
                )
        return findings

    def _first_body_line(self, by_number: dict[int, str], header_line: int) -> str | None:
        """First non-blank line after a (possibly multi-line) def/class header."""
        line_no = header_line
        # Walk to the line that closes the header
        while line_no in by_number and not by_number[line_no].rstrip().endswith(":"):
            line_no += 1
        line_no += 1
        while line_no in by_number:
            if by_number[line_no].strip():
                return by_number[line_no]
            line_no += 1
        return None
