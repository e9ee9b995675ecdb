"""Pytest configuration and shared fixtures."""

import asyncio
import time

import pytest

from review_conductor.models.artifact import Artifact, ArtifactKind
from review_conductor.models.roles import ExecutionMode, WorkerRole
from review_conductor.workers.base import ReviewWorker

# Sample diffs for testing
SAMPLE_SECURE_DIFF = """\
diff --git a/auth/login.py b/auth/login.py
index 1234567..abcdefg 100644
--- a/auth/login.py
+++ b/auth/login.py
@@ -10,6 +10,12 @@ def authenticate(username: str, password: str) -> bool:
     hashed = hash_password(password)
     return db.verify_user(username, hashed)
+
+def get_user(user_id: int) -> dict:
+    \"\"\"Fetch user by ID using parameterized query.\"\"\"
+    query = "SELECT * FROM users WHERE id = %s"
+    return db.execute(query, (user_id,))
"""

SAMPLE_VULNERABLE_DIFF = """\
diff --git a/auth/login.py b/auth/login.py
index 1234567..abcdefg 100644
--- a/auth/login.py
+++ b/auth/login.py
@@ -10,6 +10,12 @@ def authenticate(username: str, password: str) -> bool:
     hashed = hash_password(password)
     return db.verify_user(username, hashed)
+
+def get_user(username: str) -> dict:
+    \"\"\"Fetch user by username.\"\"\"
+    query = f"SELECT * FROM users WHERE username = '{username}'"
+    return db.execute(query)
"""

SAMPLE_PERFORMANCE_DIFF = """\
diff --git a/utils/processor.py b/utils/processor.py
index 1234567..abcdefg 100644
--- a/utils/processor.py
+++ b/utils/processor.py
@@ -5,6 +5,15 @@ def process_items(items: list) -> list:
     return [transform(item) for item in items]
+
+def find_duplicates(items: list) -> list:
+    \"\"\"Find duplicate items in list.\"\"\"
+    duplicates = []
+    for i in range(len(items)):
+        for j in range(len(items)):
+            if i != j and items[i] == items[j] and items[i] not in duplicates:
+                duplicates.append(items[i])
+    return duplicates
"""


class StubWorker(ReviewWorker):
    """Worker with scripted findings, delay and failure, recording what it saw."""

    def __init__(
        self,
        role: WorkerRole,
        findings: list[dict] | None = None,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        super().__init__(role)
        self.scripted = findings or []
        self.delay = delay
        self.error = error
        self.contexts = []
        self.started_at: float | None = None
        self.finished_at: float | None = None

    async def review(self, artifact, context):
        self.contexts.append(context)
        self.started_at = time.monotonic()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.finished_at = time.monotonic()
        return [
            self.finding(**item) if isinstance(item, dict) else item
            for item in self.scripted
        ]


@pytest.fixture
def sample_secure_diff() -> str:
    """A diff with no security issues."""
    return SAMPLE_SECURE_DIFF


@pytest.fixture
def sample_vulnerable_diff() -> str:
    """A diff with SQL injection vulnerability."""
    return SAMPLE_VULNERABLE_DIFF


@pytest.fixture
def sample_performance_diff() -> str:
    """A diff with O(n²) performance issue."""
    return SAMPLE_PERFORMANCE_DIFF


@pytest.fixture
def sample_file_contents() -> dict[str, str]:
    """Sample file contents for whole-file artifacts."""
    return {
        "auth/login.py": """\
import hashlib
from database import db

def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode()).hexdigest()

def authenticate(username: str, password: str) -> bool:
    \"\"\"Authenticate a user.\"\"\"
    hashed = hash_password(password)
    return db.verify_user(username, hashed)
""",
        "utils/processor.py": """\
from typing import Any

def transform(item: Any) -> Any:
    return item

def process_items(items: list) -> list:
    return [transform(item) for item in items]
""",
    }


@pytest.fixture
def artifact() -> Artifact:
    """A small service artifact."""
    return Artifact(
        kind=ArtifactKind.SERVICE,
        files={"app/handlers.py": "def handle(request):\n    return request\n"},
        name="handlers",
    )


@pytest.fixture
def make_role():
    """Factory for worker roles."""

    def _make(
        name: str,
        depends_on: tuple[str, ...] = (),
        sequential: bool = False,
        timeout: float | None = None,
        weight: float = 1.0,
    ) -> WorkerRole:
        return WorkerRole(
            name=name,
            depends_on=depends_on,
            mode=ExecutionMode.SEQUENTIAL if sequential else ExecutionMode.PARALLEL,
            timeout_seconds=timeout,
            weight=weight,
        )

    return _make


@pytest.fixture
def stub_worker(make_role):
    """Factory for scripted workers."""

    def _make(
        name: str,
        findings: list[dict] | None = None,
        delay: float = 0.0,
        error: Exception | None = None,
        **role_kwargs,
    ) -> StubWorker:
        return StubWorker(make_role(name, **role_kwargs), findings, delay, error)

    return _make


@pytest.fixture
def make_service():
    """Factory for a ReviewService over scripted workers; every kind routes to all of them."""
    from review_conductor.orchestrator import (
        ContextStore,
        ExecutionScheduler,
        QualityGate,
        ReviewService,
        SchedulerConfig,
        TaskRouter,
    )

    def _make(
        workers: list[ReviewWorker],
        min_confidence: float = 0.6,
        default_timeout: float = 5.0,
        max_parallel_workers: int = 5,
        max_retained_sessions: int | None = None,
    ) -> ReviewService:
        names = [w.name for w in workers]
        scheduler = ExecutionScheduler(
            {w.name: w for w in workers},
            ContextStore(),
            SchedulerConfig(
                default_timeout_seconds=default_timeout,
                max_parallel_workers=max_parallel_workers,
            ),
        )
        router = TaskRouter(
            [w.role for w in workers],
            routing_table={kind: names for kind in ArtifactKind},
            default_roles=names,
        )
        return ReviewService(
            router,
            scheduler,
            quality_gate=QualityGate(min_confidence),
            max_retained_sessions=max_retained_sessions,
        )

    return _make
