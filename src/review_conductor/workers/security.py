"""Security-focused review worker."""

import re

from review_conductor.models.findings import Severity
from review_conductor.models.roles import ExecutionMode, WorkerRole
from review_conductor.workers.base import JAVASCRIPT, PYTHON, PatternWorker, rule

_SQL = r"(SELECT\s.+\sFROM|INSERT\s+INTO|UPDATE\s+\w+\s+SET|DELETE\s+FROM)"


class SecurityWorker(PatternWorker):
    """Worker specialized in injection, XSS, secret and crypto misuse detection.

    Covers:
    - Injection (eval/exec, shell commands, SQL built from strings)
    - XSS sinks (innerHTML, document.write, dangerouslySetInnerHTML, v-html)
    - Hardcoded credentials
    - Weak hashing and unsafe deserialization
    - Disabled TLS verification
    """

    ROLE = WorkerRole(
        name="security",
        mode=ExecutionMode.PARALLEL,
        description="Injection, XSS, secrets, cryptography and transport security",
        weight=3.0,
        focus_areas=("security", "authentication", "data_validation", "cryptography"),
    )

    RULES = [
        rule(
            "code-injection",
            r"\beval\s*\(",
            Severity.CRITICAL,
            "Dynamic evaluation of code with eval()",
            "Parse the input explicitly (e.g. ast.literal_eval or JSON) instead of evaluating it",
            suffixes=PYTHON + JAVASCRIPT,
        ),
        rule(
            "code-injection",
            r"\bexec\s*\(",
            Severity.CRITICAL,
            "Dynamic execution of code with exec()",
            "Replace exec() with explicit dispatch over known operations",
            suffixes=PYTHON,
        ),
        rule(
            "command-injection",
            r"\bos\.(system|popen)\s*\(",
            Severity.HIGH,
            "Shell command executed through os.system/os.popen",
            "Use subprocess.run with an argument list and shell=False",
            suffixes=PYTHON,
        ),
        rule(
            "command-injection",
            r"\bsubprocess\.\w+\(.*shell\s*=\s*True",
            Severity.HIGH,
            "subprocess call with shell=True",
            "Pass the command as an argument list and drop shell=True",
            suffixes=PYTHON,
        ),
        rule(
            "sql-injection",
            r"\bf[\"'].*" + _SQL + r".*\{",
            Severity.CRITICAL,
            "SQL query built with an f-string",
            "Use parameterized queries and pass values separately",
            flags=re.IGNORECASE,
        ),
        rule(
            "sql-injection",
            _SQL + r".*[\"']\s*(%\s*[\w(]|\.format\(|\+\s*\w)",
            Severity.CRITICAL,
            "SQL query built with string formatting or concatenation",
            "Use parameterized queries and pass values separately",
            flags=re.IGNORECASE,
        ),
        rule(
            "xss",
            r"\.(innerHTML|outerHTML)\s*\+?=",
            Severity.HIGH,
            "Assignment to innerHTML/outerHTML can inject markup",
            "Use textContent or sanitize the markup (e.g. DOMPurify) before insertion",
            suffixes=JAVASCRIPT,
        ),
        rule(
            "xss",
            r"\bdocument\.write(ln)?\s*\(",
            Severity.HIGH,
            "document.write() with dynamic content enables XSS",
            "Build DOM nodes with createElement/textContent instead",
            suffixes=JAVASCRIPT,
        ),
        rule(
            "xss",
            r"dangerouslySetInnerHTML|\bv-html\s*=",
            Severity.HIGH,
            "Raw HTML rendering bypasses framework escaping",
            "Render text through the framework or sanitize the HTML first",
            suffixes=JAVASCRIPT,
        ),
        rule(
            "hardcoded-secret",
            r"\b(password|passwd|secret|api[_-]?key|access[_-]?token)\b\s*[:=]\s*[\"'][^\"']{6,}[\"']",
            Severity.HIGH,
            "Hardcoded credential in source",
            "Load secrets from the environment or a secret manager",
            flags=re.IGNORECASE,
            confidence=0.7,
        ),
        rule(
            "weak-hash",
            r"\bhashlib\.(md5|sha1)\s*\(",
            Severity.MEDIUM,
            "Weak hash algorithm (MD5/SHA1)",
            "Use hashlib.sha256, or bcrypt/argon2 for passwords",
            suffixes=PYTHON,
            confidence=0.6,
        ),
        rule(
            "unsafe-deserialization",
            r"\bpickle\.loads?\s*\(",
            Severity.HIGH,
            "pickle deserialization of possibly untrusted data",
            "Use a data-only format such as JSON for untrusted input",
            suffixes=PYTHON,
        ),
        rule(
            "unsafe-deserialization",
            r"\byaml\.load\s*\((?!.*SafeLoader)",
            Severity.MEDIUM,
            "yaml.load without a safe loader",
            "Use yaml.safe_load",
            suffixes=PYTHON,
        ),
        rule(
            "tls-verification-disabled",
            r"\bverify\s*=\s*False\b",
            Severity.HIGH,
            "TLS certificate verification disabled",
            "Keep verification on and configure a CA bundle if needed",
            suffixes=PYTHON,
        ),
    ]
