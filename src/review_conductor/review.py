"""Review flow: builds the service from configuration and runs reviews.

Building a service applies the configured role overrides (enabled flag,
dependencies, execution mode, timeout and weight) on top of the worker
registry, then wires router, scheduler, aggregator and quality gate around
one shared context store.
"""

import copy
import logging
from collections.abc import Mapping, Sequence
from dataclasses import replace

from review_conductor.config import Config, role_graph, validate_config
from review_conductor.errors import ConfigurationError
from review_conductor.github.client import GitHubClient
from review_conductor.models.artifact import Artifact
from review_conductor.models.roles import WorkerRole
from review_conductor.models.session import ReviewSession
from review_conductor.orchestrator.aggregator import AggregatorConfig, ReviewAggregator
from review_conductor.orchestrator.context_store import ContextStore
from review_conductor.orchestrator.quality_gate import QualityGate
from review_conductor.orchestrator.router import TaskRouter
from review_conductor.orchestrator.scheduler import ExecutionScheduler, SchedulerConfig
from review_conductor.orchestrator.service import ReviewService
from review_conductor.workers import ReviewWorker, default_workers

logger = logging.getLogger(__name__)


def build_roles(
    config: Config, workers: Mapping[str, ReviewWorker] | None = None
) -> list[WorkerRole]:
    """Apply configured overrides to the workers' roles.

    Args:
        config: Loaded configuration
        workers: Worker registry (defaults to the built-in workers)

    Returns:
        Enabled roles in registry order

    Raises:
        ConfigurationError: If an override produces an invalid role
    """
    if workers is None:
        workers = default_workers()
    settings = {role.name: role for role in config.roles}
    graph = role_graph(config, {name: w.role.depends_on for name, w in workers.items()})

    roles = []
    for name, worker in workers.items():
        if name not in graph:
            logger.debug(f"Role {name} disabled by configuration")
            continue
        override = settings.get(name)
        changes: dict = {"depends_on": tuple(graph[name])}
        if override is not None:
            if override.mode is not None:
                changes["mode"] = override.mode
            if override.timeout_seconds is not None:
                changes["timeout_seconds"] = override.timeout_seconds
            if override.weight is not None:
                changes["weight"] = override.weight
        if name in config.role_timeouts:
            changes["timeout_seconds"] = config.role_timeouts[name]
        if name in config.role_weights:
            changes["weight"] = config.role_weights[name]
        try:
            roles.append(replace(worker.role, **changes))
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
    return roles


def build_service(
    config: Config | None = None, workers: Mapping[str, ReviewWorker] | None = None
) -> ReviewService:
    """Create a review service from configuration.

    Args:
        config: Loaded configuration (defaults apply when omitted)
        workers: Worker registry (defaults to the built-in workers)

    Returns:
        Ready-to-use ReviewService

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    config = config or Config()
    if workers is None:
        workers = default_workers()

    errors = validate_config(config, {name: w.role.depends_on for name, w in workers.items()})
    if errors:
        raise ConfigurationError("; ".join(errors))

    roles = build_roles(config, workers)
    bound: dict[str, ReviewWorker] = {}
    for role in roles:
        # Shallow copy so a caller's worker instances keep their own role
        worker = copy.copy(workers[role.name])
        worker.role = role
        bound[role.name] = worker

    store = ContextStore()
    scheduler = ExecutionScheduler(
        bound,
        store,
        SchedulerConfig(
            default_timeout_seconds=config.scheduler.default_timeout_seconds,
            max_parallel_workers=config.scheduler.max_parallel_workers,
        ),
    )
    router = TaskRouter(
        roles,
        routing_table=config.routing.table,
        default_roles=config.routing.default_roles,
    )
    aggregator = ReviewAggregator(
        AggregatorConfig(
            role_weights=dict(config.role_weights),
            similarity_threshold=config.aggregator.similarity_threshold,
            line_tolerance=config.aggregator.line_tolerance,
        )
    )
    quality_gate = QualityGate(
        min_confidence=config.quality_gate.min_confidence,
        density_ceiling=config.quality_gate.density_ceiling,
        density_weight=config.quality_gate.density_weight,
    )
    logger.debug(f"Built service with roles: {', '.join(role.name for role in roles)}")
    return ReviewService(
        router,
        scheduler,
        aggregator,
        quality_gate,
        max_retained_sessions=config.sessions.max_retained,
    )


async def review_artifact(
    artifact: Artifact,
    config: Config | None = None,
    roles: Sequence[str] | None = None,
    service: ReviewService | None = None,
) -> ReviewSession:
    """Review a single artifact and wait for the result.

    Args:
        artifact: Artifact to review
        config: Configuration used to build a service when none is given
        roles: Optional role-selection override
        service: Existing service to submit to

    Returns:
        The finished session (inspect ``status`` and ``report``)
    """
    service = service or build_service(config)
    session = await service.review(artifact, roles)
    logger.info(f"Review of {artifact.id} finished with status {session.status.value}")
    return session


async def review_pull_request(
    repo: str,
    pr_number: int,
    config: Config | None = None,
    roles: Sequence[str] | None = None,
    github_client: GitHubClient | None = None,
    service: ReviewService | None = None,
) -> ReviewSession:
    """Fetch a pull request from GitHub and review it.

    Args:
        repo: Repository in "owner/name" format
        pr_number: Pull request number
        config: Loaded configuration (GitHub token, service settings)
        roles: Optional role-selection override
        github_client: Client to fetch the PR with (built from config otherwise)
        service: Existing service to submit to

    Returns:
        The finished session
    """
    config = config or Config()
    if github_client is None:
        github_client = GitHubClient(config.github.token, config.github.base_url)

    artifact = github_client.load_artifact(repo, pr_number)
    logger.info(f"Reviewing {repo} PR #{pr_number} as {artifact.kind.value} ({len(artifact.paths)} files)")
    return await review_artifact(artifact, config, roles, service)
