"""Performance-focused review worker."""

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

_PY_LOOP = re.compile(r"^\s*(async\s+)?(for|while)\s.+:\s*(#.*)?$")
_JS_LOOP = re.compile(r"^\s*(for|while)\s*\(")
_ASYNC_DEF = re.compile(r"^\s*async\s+def\s")
_BLOCKING = re.compile(r"\btime\.sleep\s*\(|\brequests\.(get|post|put|patch|delete|head|request)\s*\(")
_STRING_CONCAT = re.compile(r"^\s*\w+\s*\+=\s*(f?[\"']|str\()")


class PerformanceWorker(PatternWorker):
    """Worker specialized in algorithmic complexity and blocking I/O."""

    ROLE = WorkerRole(
        name="performance",
        mode=ExecutionMode.PARALLEL,
        description="Algorithm complexity, blocking I/O and wasteful allocation",
        weight=2.0,
        focus_areas=("performance", "complexity", "resource_management"),
    )

    RULES = [
        rule(
            "eager-read",
            r"\.readlines\(\)",
            Severity.LOW,
            "readlines() loads the whole file into memory",
            "Iterate over the file object line by line",
            suffixes=PYTHON,
            confidence=0.6,
        ),
    ]

    def check_file(
        self, path: str, lines: list[tuple[int, str]], artifact: Artifact
    ) -> list[Finding]:
        lowered = path.lower()
        if lowered.endswith(PYTHON):
            return self._check_loops(path, lines, _PY_LOOP) + self._check_async(path, lines)
        if lowered.endswith(JAVASCRIPT):
            return self._check_loops(path, lines, _JS_LOOP)
        return []

    def _check_loops(
        self, path: str, lines: list[tuple[int, str]], loop_pattern: re.Pattern[str]
    ) -> list[Finding]:
        """Flag loops nested inside loops, and string building inside loops."""
        findings = []
        open_loops: list[tuple[int, int]] = []  # (indent, line number)
        reported_outer: set[int] = set()

        for line_no, text in lines:
            if not text.strip():
                continue
            indent = indentation(text)
            while open_loops and open_loops[-1][0] >= indent:
                open_loops.pop()

            if open_loops and _STRING_CONCAT.match(text):
                findings.append(
                    self.finding(
                        Severity.LOW,
                        "String built by repeated concatenation inside a loop",
                        path,
                        line_no,
                        remediation="Collect parts in a list and join once",
                        category="string-concat-in-loop",
                        confidence=0.6,
                    )
                )

            if loop_pattern.match(text):
                if open_loops and open_loops[0][1] not in reported_outer:
                    outer_line = open_loops[0][1]
                    reported_outer.add(outer_line)
                    findings.append(
                        self.finding(
                            Severity.MEDIUM,
                            "Nested loops give quadratic (or worse) time complexity",
                            path,
                            outer_line,
                            line_end=line_no,
                            remediation="Index the inner collection (set/dict lookup) to make the pass linear",
                            category="nested-loop",
                            confidence=0.7,
                        )
                    )
                open_loops.append((indent, line_no))

        return findings

    def _check_async(self, path: str, lines: list[tuple[int, str]]) -> list[Finding]:
        """Flag blocking calls made inside ``async def`` bodies."""
        findings = []
        async_indent: int | None = None

        for line_no, text in lines:
            if not text.strip():
                continue
            indent = indentation(text)
            if async_indent is not None and indent <= async_indent:
                async_indent = None
            if _ASYNC_DEF.match(text):
                async_indent = indent
                continue
            if async_indent is not None and _BLOCKING.search(text):
                findings.append(
                    self.finding(
                        Severity.HIGH,
                        "Blocking call inside a coroutine stalls the event loop",
                        path,
                        line_no,
                        remediation="Use asyncio.sleep or an async HTTP client, or run it in a thread",
                        category="blocking-call-in-async",
                    )
                )
        return findings
