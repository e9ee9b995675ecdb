"""Tests for the built-in review workers."""

import pytest


def _context(artifact, findings=()):
    from review_conductor.models.context import WorkerContext

    return WorkerContext(session_id="s1", artifact=artifact, findings=tuple(findings))


def _artifact(files=None, diff=None):
    from review_conductor.models.artifact import Artifact

    return Artifact(files=files or {}, diff=diff)


class TestSecurityWorker:
    """Tests for SecurityWorker."""

    @pytest.mark.asyncio
    async def test_detects_sql_injection(self, sample_vulnerable_diff):
        """Test that an f-string SQL query is flagged as critical."""
        from review_conductor.models.findings import Severity
        from review_conductor.workers import SecurityWorker

        artifact = _artifact(diff=sample_vulnerable_diff)
        findings = await SecurityWorker().review(artifact, _context(artifact))

        assert len(findings) == 1
        finding = findings[0]
        assert finding.severity is Severity.CRITICAL
        assert finding.category == "sql-injection"
        assert finding.role == "security"
        assert str(finding.location) == "auth/login.py:15"
        assert finding.remediation

    @pytest.mark.asyncio
    async def test_secure_code_has_no_findings(self, sample_secure_diff):
        from review_conductor.workers import SecurityWorker

        artifact = _artifact(diff=sample_secure_diff)

        assert await SecurityWorker().review(artifact, _context(artifact)) == []

    @pytest.mark.asyncio
    async def test_python_rules(self):
        from review_conductor.workers import SecurityWorker

        artifact = _artifact(
            {
                "app.py": (
                    "import os, pickle, hashlib, requests\n"
                    "result = eval(user_input)\n"
                    "os.system('rm ' + path)\n"
                    "API_KEY = 'sk-live-1234567890'\n"
                    "digest = hashlib.md5(data)\n"
                    "obj = pickle.loads(blob)\n"
                    "requests.get(url, verify=False)\n"
                )
            }
        )

        findings = await SecurityWorker().review(artifact, _context(artifact))

        assert [(f.location.line_start, f.category) for f in findings] == [
            (2, "code-injection"),
            (3, "command-injection"),
            (4, "hardcoded-secret"),
            (5, "weak-hash"),
            (6, "unsafe-deserialization"),
            (7, "tls-verification-disabled"),
        ]

    @pytest.mark.asyncio
    async def test_xss_rules_only_apply_to_web_files(self):
        from review_conductor.workers import SecurityWorker

        line = "element.innerHTML = userComment;\n"
        artifact = _artifact({"static/app.js": line, "notes/readme.py": "# " + line})

        findings = await SecurityWorker().review(artifact, _context(artifact))

        assert [(f.location.file_path, f.category) for f in findings] == [("static/app.js", "xss")]


class TestPerformanceWorker:
    """Tests for PerformanceWorker."""

    @pytest.mark.asyncio
    async def test_detects_nested_loop(self, sample_performance_diff):
        """Test that nested loops are reported from the outer to the inner loop."""
        from review_conductor.models.findings import Severity
        from review_conductor.workers import PerformanceWorker

        artifact = _artifact(diff=sample_performance_diff)
        findings = await PerformanceWorker().review(artifact, _context(artifact))

        assert len(findings) == 1
        assert findings[0].category == "nested-loop"
        assert findings[0].severity is Severity.MEDIUM
        assert str(findings[0].location) == "utils/processor.py:10-11"

    @pytest.mark.asyncio
    async def test_sibling_loops_are_not_nested(self):
        from review_conductor.workers import PerformanceWorker

        artifact = _artifact(
            {"a.py": "for x in xs:\n    use(x)\nfor y in ys:\n    use(y)\n"}
        )

        assert await PerformanceWorker().review(artifact, _context(artifact)) == []

    @pytest.mark.asyncio
    async def test_blocking_call_in_coroutine(self):
        from review_conductor.models.findings import Severity
        from review_conductor.workers import PerformanceWorker

        artifact = _artifact(
            {
                "svc.py": (
                    "import time\n"
                    "\n"
                    "async def handler():\n"
                    "    time.sleep(1)\n"
                    "    return 1\n"
                    "\n"
                    "def sync_handler():\n"
                    "    time.sleep(1)\n"
                )
            }
        )

        findings = await PerformanceWorker().review(artifact, _context(artifact))

        assert [(f.location.line_start, f.category) for f in findings] == [
            (4, "blocking-call-in-async")
        ]
        assert findings[0].severity is Severity.HIGH

    @pytest.mark.asyncio
    async def test_string_concat_and_readlines(self):
        from review_conductor.workers import PerformanceWorker

        artifact = _artifact(
            {
                "report.py": (
                    "out = ''\n"
                    "for row in open(path).readlines():\n"
                    "    out += f'{row},'\n"
                )
            }
        )

        findings = await PerformanceWorker().review(artifact, _context(artifact))

        assert sorted(f.category for f in findings) == ["eager-read", "string-concat-in-loop"]


class TestArchitectureWorker:
    """Tests for ArchitectureWorker."""

    @pytest.mark.asyncio
    async def test_line_rules(self):
        from review_conductor.workers import ArchitectureWorker

        artifact = _artifact(
            {
                "core.py": (
                    "from helpers import *\n"
                    "def run():\n"
                    "    global counter\n"
                    "    try:\n"
                    "        step()\n"
                    "    except:\n"
                    "        pass\n"
                )
            }
        )

        findings = await ArchitectureWorker().review(artifact, _context(artifact))

        assert [(f.location.line_start, f.category) for f in findings] == [
            (1, "wildcard-import"),
            (3, "global-state"),
            (6, "bare-except"),
        ]

    @pytest.mark.asyncio
    async def test_long_function(self):
        from review_conductor.workers import ArchitectureWorker

        body = "".join("    x = 1\n" for _ in range(61))
        artifact = _artifact({"big.py": "def big():\n" + body + "\ndef small():\n    return 1\n"})

        findings = await ArchitectureWorker().review(artifact, _context(artifact))

        assert len(findings) == 1
        assert findings[0].category == "long-function"
        assert "'big' is 62 lines" in findings[0].message
        assert str(findings[0].location) == "big.py:1-62"


class TestCodeQualityWorker:
    """Tests for CodeQualityWorker."""

    @pytest.mark.asyncio
    async def test_rules(self):
        from review_conductor.workers import CodeQualityWorker

        artifact = _artifact(
            {
                "util.py": (
                    "def collect(items=[]):\n"
                    "    print(items)  # TODO remove\n"
                    "    return 'x' + '" + "a" * 130 + "'\n"
                )
            }
        )

        findings = await CodeQualityWorker().review(artifact, _context(artifact))

        assert sorted((f.location.line_start, f.category) for f in findings) == [
            (1, "mutable-default-argument"),
            (2, "debug-print"),
            (2, "todo-marker"),
            (3, "long-line"),
        ]

    @pytest.mark.asyncio
    async def test_console_log_in_javascript(self):
        from review_conductor.workers import CodeQualityWorker

        artifact = _artifact({"app.ts": "console.log(state);\n"})

        findings = await CodeQualityWorker().review(artifact, _context(artifact))

        assert [f.category for f in findings] == ["debug-print"]


class TestDocumentationWorker:
    """Tests for DocumentationWorker."""

    @pytest.mark.asyncio
    async def test_missing_docstrings(self):
        from review_conductor.workers import DocumentationWorker

        artifact = _artifact(
            {
                "api.py": (
                    "def public(a,\n"
                    "           b):\n"
                    "    return a\n"
                    "\n"
                    "def _private():\n"
                    "    return 2\n"
                    "\n"
                    "class Thing:\n"
                    '    """A documented thing."""\n'
                )
            }
        )

        findings = await DocumentationWorker().review(artifact, _context(artifact))

        assert [(f.location.line_start, f.message) for f in findings] == [
            (1, "Function 'public' has no docstring")
        ]

    @pytest.mark.asyncio
    async def test_body_outside_diff_is_skipped(self):
        from review_conductor.workers import DocumentationWorker

        diff = (
            "--- a/api.py\n"
            "+++ b/api.py\n"
            "@@ -1,2 +1,3 @@\n"
            "+def renamed():\n"
            "-def original():\n"
            "     return 1\n"
        )
        artifact = _artifact(diff=diff)

        assert await DocumentationWorker().review(artifact, _context(artifact)) == []

    @pytest.mark.asyncio
    async def test_broken_markdown_link(self):
        from review_conductor.workers import DocumentationWorker

        artifact = _artifact({"README.md": "See [the guide]() for details.\n"})

        findings = await DocumentationWorker().review(artifact, _context(artifact))

        assert [f.category for f in findings] == ["broken-link"]


class TestTestingWorker:
    """Tests for TestingWorker."""

    def _prior(self, severity, path="auth/login.py", line=15):
        from review_conductor.models.findings import Finding, Location

        return Finding(
            role="security",
            severity=severity,
            message="SQL query built with an f-string",
            location=Location(path, line),
            category="sql-injection",
        )

    @pytest.mark.asyncio
    async def test_recommends_regression_test(self):
        """Serious findings in files without a covering test get a recommendation."""
        from review_conductor.models.findings import Severity
        from review_conductor.workers import TestingWorker

        artifact = _artifact({"auth/login.py": "query = ...\n"})
        context = _context(
            artifact, [self._prior(Severity.CRITICAL), self._prior(Severity.LOW, line=3)]
        )

        findings = await TestingWorker().review(artifact, context)

        assert len(findings) == 1
        finding = findings[0]
        assert finding.role == "testing"
        assert finding.severity is Severity.MEDIUM
        assert finding.category == "missing-regression-test:sql-injection"
        assert str(finding.location) == "auth/login.py:15"
        assert finding.confidence == 0.6

    @pytest.mark.asyncio
    async def test_covering_test_suppresses_recommendation(self):
        from review_conductor.models.findings import Severity
        from review_conductor.workers import TestingWorker

        artifact = _artifact(
            {"auth/login.py": "query = ...\n", "tests/test_login.py": "def test_login(): ...\n"}
        )
        context = _context(artifact, [self._prior(Severity.HIGH)])

        assert await TestingWorker().review(artifact, context) == []

    def test_is_test_path(self):
        from review_conductor.workers.testing import covering_tests, is_test_path

        assert is_test_path("tests/test_login.py")
        assert is_test_path("web/src/login.spec.ts")
        assert not is_test_path("auth/login.py")
        assert covering_tests("auth/login.py", ["tests/test_login.py", "docs/login.md"]) == [
            "tests/test_login.py"
        ]

    def test_role_depends_on_security_and_performance(self):
        from review_conductor.workers import TestingWorker

        role = TestingWorker.ROLE

        assert role.depends_on == ("security", "performance")
        assert role.is_sequential


class TestDefaultWorkers:
    """Tests for the built-in registry."""

    def test_registry_order(self):
        from review_conductor.workers import default_workers

        assert list(default_workers()) == [
            "security",
            "architecture",
            "performance",
            "code-quality",
            "documentation",
            "testing",
        ]

    def test_fresh_instances(self):
        from review_conductor.workers import default_workers

        assert default_workers()["security"] is not default_workers()["security"]
