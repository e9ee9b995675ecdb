"""Execution scheduler: runs worker roles concurrently or in dependency order."""

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace

from review_conductor.errors import ConfigurationError, SessionCancelledError
from review_conductor.models.artifact import Artifact
from review_conductor.models.context import WorkerContext
from review_conductor.models.findings import Finding
from review_conductor.models.roles import WorkerRole
from review_conductor.models.session import CancellationToken, RoleOutcome, RoleResult
from review_conductor.orchestrator.context_store import ContextStore
from review_conductor.workers.base import ReviewWorker

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[RoleResult], None]


@dataclass
class SchedulerConfig:
    """Configuration for the scheduler."""

    default_timeout_seconds: float = 60.0
    max_parallel_workers: int = 5
    role_timeouts: dict[str, float] = field(default_factory=dict)


@dataclass
class ExecutionPlan:
    """Dependency analysis of a role selection."""

    roles: list[WorkerRole]
    waves: list[list[str]]  # Each wave only depends on earlier waves
    dependencies: dict[str, tuple[str, ...]]  # Effective, incl. the sequential chain

    @property
    def order(self) -> list[str]:
        return [name for wave in self.waves for name in wave]

    @property
    def max_parallelism(self) -> int:
        return max((len(wave) for wave in self.waves), default=0)


def _topological_waves(
    names: list[str], dependencies: Mapping[str, tuple[str, ...]]
) -> list[list[str]]:
    """Kahn's algorithm; waves keep the input order of ``names``."""
    in_degree = {name: 0 for name in names}
    dependents: dict[str, list[str]] = {name: [] for name in names}
    for name in names:
        for dep in dependencies[name]:
            in_degree[name] += 1
            dependents[dep].append(name)

    position = {name: index for index, name in enumerate(names)}
    waves: list[list[str]] = []
    current = [name for name in names if in_degree[name] == 0]
    visited = 0

    while current:
        waves.append(current)
        visited += len(current)
        next_wave = []
        for name in current:
            for dependent in dependents[name]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    next_wave.append(dependent)
        current = sorted(next_wave, key=position.__getitem__)

    if visited != len(names):
        cyclic = sorted(name for name, degree in in_degree.items() if degree > 0)
        raise ConfigurationError(f"Dependency cycle between roles: {', '.join(cyclic)}")
    return waves


class ExecutionScheduler:
    """Runs the workers of a session.

    Every role gets its own task. A role waits until all roles it depends on
    have finished (whatever their outcome), then reads a snapshot of the
    context store and runs under a per-role timeout. Independent roles and
    independent chains run concurrently, bounded by ``max_parallel_workers``.
    """

    def __init__(
        self,
        workers: Mapping[str, ReviewWorker],
        store: ContextStore,
        config: SchedulerConfig | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            workers: Worker instances keyed by role name
            store: Context store shared by all sessions
            config: Optional scheduler configuration
        """
        self.workers = dict(workers)
        self.store = store
        self.config = config or SchedulerConfig()
        if self.config.max_parallel_workers < 1:
            raise ConfigurationError("max_parallel_workers must be at least 1")

    def timeout_for(self, role: WorkerRole) -> float:
        """Per-role timeout: explicit override, then role default, then global default."""
        if role.name in self.config.role_timeouts:
            return self.config.role_timeouts[role.name]
        if role.timeout_seconds is not None:
            return role.timeout_seconds
        return self.config.default_timeout_seconds

    def plan(self, roles: list[WorkerRole]) -> ExecutionPlan:
        """Partition roles into dependency waves.

        Sequential-only roles are additionally chained one after another in
        dependency order, so at most one of them runs at a time.

        Raises:
            ConfigurationError: Missing worker, missing dependency or cycle
        """
        if not roles:
            raise ConfigurationError("Cannot schedule an empty role set")

        names = [role.name for role in roles]
        by_name = {role.name: role for role in roles}
        for role in roles:
            if role.name not in self.workers:
                raise ConfigurationError(f"No worker registered for role {role.name}")
            missing = [dep for dep in role.depends_on if dep not in by_name]
            if missing:
                raise ConfigurationError(
                    f"Role {role.name} depends on roles not selected: {', '.join(missing)}"
                )

        explicit = {role.name: role.depends_on for role in roles}
        explicit_order = [name for wave in _topological_waves(names, explicit) for name in wave]

        effective = {name: tuple(deps) for name, deps in explicit.items()}
        previous_sequential: str | None = None
        for name in explicit_order:
            if not by_name[name].is_sequential:
                continue
            if previous_sequential and previous_sequential not in effective[name]:
                effective[name] = effective[name] + (previous_sequential,)
            previous_sequential = name

        waves = _topological_waves(names, effective)
        return ExecutionPlan(roles=list(roles), waves=waves, dependencies=effective)

    async def run(
        self,
        session_id: str,
        artifact: Artifact,
        roles: list[WorkerRole],
        token: CancellationToken | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> dict[str, RoleResult]:
        """Execute all roles for a session.

        Args:
            session_id: Session whose context store log receives the findings
            artifact: Artifact under review
            roles: Roles selected by the router
            token: Optional cancellation token for the whole session
            on_progress: Called with each role's result as it finishes

        Returns:
            Result per role name (timeouts and failures included)

        Raises:
            SessionCancelledError: If the token fires before completion; the
                session's findings are discarded
        """
        plan = self.plan(roles)
        self.store.open(session_id)
        logger.info(
            f"Session {session_id}: running {len(plan.order)} roles in {len(plan.waves)} waves"
        )

        if token is not None and token.cancelled:
            self.store.discard(session_id)
            raise SessionCancelledError(session_id)

        semaphore = asyncio.Semaphore(self.config.max_parallel_workers)
        finished = {name: asyncio.Event() for name in plan.order}
        results: dict[str, RoleResult] = {}

        async def run_role(role: WorkerRole) -> None:
            dependencies = plan.dependencies[role.name]
            for dep in dependencies:
                await finished[dep].wait()

            async with semaphore:
                # Snapshot after dependencies finished: all of their findings are visible
                context = WorkerContext(
                    session_id=session_id,
                    artifact=artifact,
                    findings=self.store.snapshot(session_id),
                    dependencies=dependencies,
                )
                result = await self._run_worker(session_id, role, artifact, context)

            results[role.name] = result
            finished[role.name].set()
            if on_progress:
                on_progress(result)

        tasks = [
            asyncio.create_task(run_role(role), name=f"{session_id}-{role.name}")
            for role in plan.roles
        ]
        gathered = asyncio.gather(*tasks)

        try:
            if token is None:
                await gathered
            else:
                cancel_wait = asyncio.create_task(token.wait())
                try:
                    await asyncio.wait(
                        {gathered, cancel_wait}, return_when=asyncio.FIRST_COMPLETED
                    )
                finally:
                    cancel_wait.cancel()
                if token.cancelled and not gathered.done():
                    raise SessionCancelledError(session_id)
                await gathered
        except (asyncio.CancelledError, SessionCancelledError):
            gathered.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await gathered
            for name in plan.order:
                if name not in results:
                    results[name] = RoleResult(role=name, outcome=RoleOutcome.CANCELLED)
                    if on_progress:
                        on_progress(results[name])
            discarded = self.store.discard(session_id)
            logger.info(f"Session {session_id} cancelled, discarded {discarded} findings")
            raise

        completed = sum(1 for r in results.values() if r.completed)
        logger.info(f"Session {session_id}: {completed}/{len(results)} roles completed")
        return {name: results[name] for name in plan.order}

    async def _run_worker(
        self,
        session_id: str,
        role: WorkerRole,
        artifact: Artifact,
        context: WorkerContext,
    ) -> RoleResult:
        """Run one worker with its timeout and record its findings.

        Timeouts and worker exceptions are recorded in the result, never raised.
        """
        worker = self.workers[role.name]
        timeout = self.timeout_for(role)
        start = time.monotonic()
        logger.debug(f"Starting role {role.name}: {context.describe()}")

        try:
            findings = await asyncio.wait_for(worker.review(artifact, context), timeout=timeout)
            tagged = [self._attribute(role, finding) for finding in findings]
        except asyncio.TimeoutError:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.warning(f"Role {role.name} timed out after {timeout}s")
            return RoleResult(
                role=role.name,
                outcome=RoleOutcome.TIMED_OUT,
                elapsed_ms=elapsed_ms,
                error=f"timed out after {timeout}s",
            )
        except Exception as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.error(f"Role {role.name} failed: {e}")
            return RoleResult(
                role=role.name,
                outcome=RoleOutcome.FAILED,
                elapsed_ms=elapsed_ms,
                error=f"{type(e).__name__}: {e}",
            )

        self.store.extend(session_id, tagged)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info(f"Role {role.name} completed: {len(tagged)} findings in {elapsed_ms}ms")
        return RoleResult(
            role=role.name,
            outcome=RoleOutcome.COMPLETED,
            findings_count=len(tagged),
            elapsed_ms=elapsed_ms,
        )

    def _attribute(self, role: WorkerRole, finding: Finding) -> Finding:
        """Ensure a finding is attributed to the role that emitted it."""
        if not isinstance(finding, Finding):
            raise TypeError(f"Worker {role.name} returned {type(finding).__name__}, not Finding")
        if finding.role != role.name:
            logger.warning(
                f"Worker {role.name} emitted a finding attributed to {finding.role}; re-attributing"
            )
            return replace(finding, role=role.name, id="")
        return finding
