"""Review workers for Review Conductor."""

from review_conductor.workers.base import PatternRule, PatternWorker, ReviewWorker
from review_conductor.workers.patterns import (
    ArchitectureWorker,
    CodeQualityWorker,
    DocumentationWorker,
)
from review_conductor.workers.performance import PerformanceWorker
from review_conductor.workers.security import SecurityWorker
from review_conductor.workers.testing import TestingWorker

BUILTIN_WORKERS: list[type[ReviewWorker]] = [
    SecurityWorker,
    ArchitectureWorker,
    PerformanceWorker,
    CodeQualityWorker,
    DocumentationWorker,
    TestingWorker,
]


def default_workers() -> dict[str, ReviewWorker]:
    """One instance of every built-in worker, keyed by role name, in registry order."""
    workers = [worker_cls() for worker_cls in BUILTIN_WORKERS]
    return {worker.name: worker for worker in workers}


__all__ = [
    "ArchitectureWorker",
    "BUILTIN_WORKERS",
    "CodeQualityWorker",
    "DocumentationWorker",
    "PatternRule",
    "PatternWorker",
    "PerformanceWorker",
    "ReviewWorker",
    "SecurityWorker",
    "TestingWorker",
    "default_workers",
]
