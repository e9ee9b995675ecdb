"""Orchestrator components for Review Conductor."""

from review_conductor.orchestrator.aggregator import AggregatorConfig, ReviewAggregator
from review_conductor.orchestrator.context_store import ContextStore
from review_conductor.orchestrator.quality_gate import GateDecision, QualityGate
from review_conductor.orchestrator.router import TaskRouter
from review_conductor.orchestrator.scheduler import (
    ExecutionPlan,
    ExecutionScheduler,
    SchedulerConfig,
)
from review_conductor.orchestrator.service import ReviewService

__all__ = [
    "AggregatorConfig",
    "ContextStore",
    "ExecutionPlan",
    "ExecutionScheduler",
    "GateDecision",
    "QualityGate",
    "ReviewAggregator",
    "ReviewService",
    "SchedulerConfig",
    "TaskRouter",
]
