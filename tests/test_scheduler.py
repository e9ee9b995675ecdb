"""Tests for the execution scheduler."""

import asyncio
import time

import pytest


def _scheduler(workers, **config):
    from review_conductor.orchestrator.context_store import ContextStore
    from review_conductor.orchestrator.scheduler import ExecutionScheduler, SchedulerConfig

    return ExecutionScheduler(
        {w.name: w for w in workers}, ContextStore(), SchedulerConfig(**config)
    )


def _finding_spec(message="Issue", line=1, severity=None):
    from review_conductor.models.findings import Severity

    return {
        "severity": severity or Severity.HIGH,
        "message": message,
        "file_path": "a.py",
        "line_start": line,
    }


class TestExecutionPlan:
    """Tests for ExecutionScheduler.plan."""

    def test_waves(self, stub_worker):
        """Independent roles share a wave; dependents come later."""
        a = stub_worker("a")
        b = stub_worker("b")
        c = stub_worker("c", depends_on=("a",))
        scheduler = _scheduler([a, b, c])

        plan = scheduler.plan([a.role, b.role, c.role])

        assert plan.waves == [["a", "b"], ["c"]]
        assert plan.max_parallelism == 2
        assert plan.order == ["a", "b", "c"]

    def test_sequential_roles_are_chained(self, stub_worker):
        """Sequential-only roles never share a wave."""
        a = stub_worker("a", sequential=True)
        b = stub_worker("b", sequential=True)
        c = stub_worker("c")
        scheduler = _scheduler([a, b, c])

        plan = scheduler.plan([a.role, b.role, c.role])

        assert plan.dependencies["b"] == ("a",)
        assert plan.waves == [["a", "c"], ["b"]]

    def test_cycle_is_rejected(self, stub_worker):
        from review_conductor.errors import ConfigurationError

        a = stub_worker("a", depends_on=("b",))
        b = stub_worker("b", depends_on=("a",))
        scheduler = _scheduler([a, b])

        with pytest.raises(ConfigurationError, match="cycle"):
            scheduler.plan([a.role, b.role])

    def test_unselected_dependency_is_rejected(self, stub_worker):
        from review_conductor.errors import ConfigurationError

        a = stub_worker("a")
        b = stub_worker("b", depends_on=("a",))
        scheduler = _scheduler([a, b])

        with pytest.raises(ConfigurationError, match="not selected"):
            scheduler.plan([b.role])

    def test_missing_worker_and_empty_set(self, stub_worker, make_role):
        from review_conductor.errors import ConfigurationError

        scheduler = _scheduler([stub_worker("a")])

        with pytest.raises(ConfigurationError, match="No worker registered"):
            scheduler.plan([make_role("ghost")])
        with pytest.raises(ConfigurationError, match="empty"):
            scheduler.plan([])

    def test_invalid_parallelism(self, stub_worker):
        from review_conductor.errors import ConfigurationError

        with pytest.raises(ConfigurationError):
            _scheduler([stub_worker("a")], max_parallel_workers=0)

    def test_timeout_precedence(self, stub_worker):
        """Explicit override beats the role default, which beats the global default."""
        a = stub_worker("a", timeout=3.0)
        b = stub_worker("b")
        scheduler = _scheduler([a, b], default_timeout_seconds=10.0, role_timeouts={"b": 1.0})

        assert scheduler.timeout_for(a.role) == 3.0
        assert scheduler.timeout_for(b.role) == 1.0
        assert scheduler.timeout_for(stub_worker("c").role) == 10.0


class TestExecutionScheduler:
    """Tests for ExecutionScheduler.run."""

    @pytest.mark.asyncio
    async def test_parallel_execution(self, stub_worker, artifact):
        """Independent roles run concurrently."""
        workers = [stub_worker(name, delay=0.1) for name in ("a", "b", "c")]
        scheduler = _scheduler(workers)

        start = time.monotonic()
        results = await scheduler.run("s1", artifact, [w.role for w in workers])
        elapsed = time.monotonic() - start

        assert all(r.completed for r in results.values())
        # ~0.1s in parallel, not ~0.3s in sequence
        assert elapsed < 0.25

    @pytest.mark.asyncio
    async def test_parallelism_bound(self, stub_worker, artifact):
        """max_parallel_workers limits how many roles run at once."""
        workers = [stub_worker(name, delay=0.05) for name in ("a", "b", "c")]
        scheduler = _scheduler(workers, max_parallel_workers=1)

        await scheduler.run("s1", artifact, [w.role for w in workers])

        spans = sorted((w.started_at, w.finished_at) for w in workers)
        for (_, end), (next_start, _) in zip(spans, spans[1:]):
            assert next_start >= end

    @pytest.mark.asyncio
    async def test_sequential_visibility(self, stub_worker, artifact):
        """A dependent role sees every finding of the roles it depends on."""
        first = stub_worker("first", findings=[_finding_spec("One"), _finding_spec("Two", 2)])
        second = stub_worker("second", depends_on=("first",))
        scheduler = _scheduler([first, second])

        await scheduler.run("s1", artifact, [first.role, second.role])

        context = second.contexts[0]
        assert [f.message for f in context.findings] == ["One", "Two"]
        assert context.dependencies == ("first",)
        assert second.started_at >= first.finished_at

    @pytest.mark.asyncio
    async def test_findings_recorded_in_store(self, stub_worker, artifact):
        worker = stub_worker("a", findings=[_finding_spec()])
        scheduler = _scheduler([worker])

        results = await scheduler.run("s1", artifact, [worker.role])

        assert results["a"].findings_count == 1
        assert [f.role for f in scheduler.store.snapshot("s1")] == ["a"]

    @pytest.mark.asyncio
    async def test_timeout_recorded(self, stub_worker, artifact):
        """A slow role times out without blocking the others."""
        from review_conductor.models.session import RoleOutcome

        fast = stub_worker("fast", findings=[_finding_spec()])
        slow = stub_worker("slow", delay=10, timeout=0.05, findings=[_finding_spec("Late")])
        scheduler = _scheduler([fast, slow])

        start = time.monotonic()
        results = await scheduler.run("s1", artifact, [fast.role, slow.role])

        assert time.monotonic() - start < 1
        assert results["fast"].outcome is RoleOutcome.COMPLETED
        assert results["slow"].outcome is RoleOutcome.TIMED_OUT
        assert "timed out" in results["slow"].error
        assert [f.message for f in scheduler.store.snapshot("s1")] == ["Issue"]

    @pytest.mark.asyncio
    async def test_crash_recorded(self, stub_worker, artifact):
        """A crashing role is recorded as failed; the session continues."""
        from review_conductor.models.session import RoleOutcome

        ok = stub_worker("ok")
        broken = stub_worker("broken", error=RuntimeError("boom"))
        scheduler = _scheduler([ok, broken])

        results = await scheduler.run("s1", artifact, [ok.role, broken.role])

        assert results["ok"].completed
        assert results["broken"].outcome is RoleOutcome.FAILED
        assert results["broken"].error == "RuntimeError: boom"

    @pytest.mark.asyncio
    async def test_dependent_runs_after_dependency_times_out(self, stub_worker, artifact):
        slow = stub_worker("slow", delay=10, timeout=0.05)
        after = stub_worker("after", depends_on=("slow",))
        scheduler = _scheduler([slow, after])

        results = await scheduler.run("s1", artifact, [slow.role, after.role])

        assert not results["slow"].completed
        assert results["after"].completed
        assert list(results) == ["slow", "after"]

    @pytest.mark.asyncio
    async def test_progress_callback(self, stub_worker, artifact):
        workers = [stub_worker("a"), stub_worker("b", depends_on=("a",))]
        scheduler = _scheduler(workers)
        seen = []

        await scheduler.run(
            "s1", artifact, [w.role for w in workers], on_progress=lambda r: seen.append(r.role)
        )

        assert seen == ["a", "b"]

    @pytest.mark.asyncio
    async def test_misattributed_finding_is_reattributed(self, stub_worker, artifact):
        from review_conductor.models.findings import Finding, Location, Severity

        foreign = Finding("someone-else", Severity.LOW, "Issue", Location("a.py", 1))
        worker = stub_worker("a", findings=[foreign])
        scheduler = _scheduler([worker])

        await scheduler.run("s1", artifact, [worker.role])

        stored = scheduler.store.snapshot("s1")
        assert stored[0].role == "a"
        assert stored[0].id != foreign.id

    @pytest.mark.asyncio
    async def test_invalid_return_is_failure(self, stub_worker, artifact):
        from review_conductor.models.session import RoleOutcome

        worker = stub_worker("a", findings=["not a finding"])
        scheduler = _scheduler([worker])

        results = await scheduler.run("s1", artifact, [worker.role])

        assert results["a"].outcome is RoleOutcome.FAILED
        assert "TypeError" in results["a"].error

    @pytest.mark.asyncio
    async def test_cancellation_discards_findings(self, stub_worker, artifact):
        """Cancelling stops running roles and discards the session's findings."""
        from review_conductor.errors import SessionCancelledError
        from review_conductor.models.session import CancellationToken

        from review_conductor.models.session import RoleOutcome

        fast = stub_worker("fast", findings=[_finding_spec()])
        slow = stub_worker("slow", delay=10)
        scheduler = _scheduler([fast, slow])
        token = CancellationToken()
        seen = {}

        async def cancel_soon():
            await asyncio.sleep(0.05)
            token.cancel()

        canceller = asyncio.create_task(cancel_soon())
        start = time.monotonic()
        with pytest.raises(SessionCancelledError):
            await scheduler.run(
                "s1",
                artifact,
                [fast.role, slow.role],
                token=token,
                on_progress=lambda r: seen.update({r.role: r.outcome}),
            )
        await canceller

        assert time.monotonic() - start < 1
        assert "s1" not in scheduler.store
        assert slow.finished_at is None
        assert seen == {"fast": RoleOutcome.COMPLETED, "slow": RoleOutcome.CANCELLED}

    @pytest.mark.asyncio
    async def test_already_cancelled_token(self, stub_worker, artifact):
        from review_conductor.errors import SessionCancelledError
        from review_conductor.models.session import CancellationToken

        worker = stub_worker("a")
        scheduler = _scheduler([worker])
        token = CancellationToken()
        token.cancel()

        with pytest.raises(SessionCancelledError):
            await scheduler.run("s1", artifact, [worker.role], token=token)

        assert worker.contexts == []
