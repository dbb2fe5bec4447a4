"""Integration tests for EvaluationJob and EvaluationScheduler.

The context fixture wires the scheduler to a ``contains`` matcher and a
static change set provider, so a review's evaluation is fully determined by
the rules created in each test and ``change_sets.changes``.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Iterable, Sequence

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reviewcore.access import Principal
from reviewcore.config import EvaluationConfig
from reviewcore.context import ServiceContext, build_context
from reviewcore.database.models.repository import Repository
from reviewcore.database.models.review import Review, ReviewStatus
from reviewcore.database.models.rule import Rule, RuleCategory, Severity
from reviewcore.orchestrator.recovery import RecoveryManager
from reviewcore.orchestrator.scheduler import EvaluationJob, EvaluationScheduler
from reviewcore.review.state_machine import Outcome
from reviewcore.rules.engine import FileChange, MatcherRegistry, PatternMatch
from reviewcore.rules.store import RuleDraft

SOURCE = "import os\n# TODO: remove\nvalue = eval(data)\n# TODO: tidy\n"


class ExplodingMatcher:
    def match(self, rule: Rule, changes: Sequence[FileChange]) -> Iterable[PatternMatch]:
        raise RuntimeError("matcher crashed")


async def create_rule(
    context: ServiceContext,
    name: str,
    needle: str,
    severity: Severity = Severity.WARNING,
    pattern_type: str = "contains",
) -> Rule:
    return await context.rules.create_rule(
        RuleDraft(
            name=name,
            description=f"Flags {needle}",
            category=RuleCategory.MAINTAINABILITY,
            severity=severity,
            pattern={"type": pattern_type, "needle": needle},
        )
    )


class TestEvaluationJob:
    @pytest.mark.asyncio
    async def test_completes_with_findings(
        self,
        context: ServiceContext,
        repository: Repository,
        alice_principal: Principal,
        change_sets,
    ) -> None:
        await create_rule(context, "no-todo", "TODO")
        await create_rule(context, "no-eval", "eval(", severity=Severity.CRITICAL)
        change_sets.changes = [FileChange(path="app.py", content=SOURCE)]
        review = await context.lifecycle.create(repository.id, "abc", "main", alice_principal)

        status = await context.scheduler.job.run(review.id)

        assert status is ReviewStatus.COMPLETED
        stored = await context.lifecycle.get(review.id, alice_principal)
        assert stored.review_metadata == {"findingCount": 3}
        assert stored.completed_at is not None

        findings = await context.findings.list_by_review(review.id)
        assert [(f.severity, f.line_number) for f in findings] == [
            (Severity.CRITICAL, 3),
            (Severity.WARNING, 2),
            (Severity.WARNING, 4),
        ]
        assert findings[0].message == "Flags eval("
        assert findings[0].snippet == "value = eval(data)"

    @pytest.mark.asyncio
    async def test_disabled_rules_not_applied(
        self,
        context: ServiceContext,
        repository: Repository,
        alice_principal: Principal,
        admin_principal: Principal,
        change_sets,
    ) -> None:
        rule = await create_rule(context, "no-todo", "TODO")
        await context.rules.bulk_set_enabled([rule.id], False, admin_principal)
        change_sets.changes = [FileChange(path="app.py", content=SOURCE)]
        review = await context.lifecycle.create(repository.id, "abc", "main", alice_principal)

        assert await context.scheduler.job.run(review.id) is ReviewStatus.COMPLETED
        assert await context.findings.list_by_review(review.id) == []

    @pytest.mark.asyncio
    async def test_change_set_failure_fails_review(
        self,
        context: ServiceContext,
        repository: Repository,
        alice_principal: Principal,
        change_sets,
    ) -> None:
        change_sets.error = ConnectionError("VCS unreachable")
        review = await context.lifecycle.create(repository.id, "abc", "main", alice_principal)

        status = await context.scheduler.job.run(review.id)

        assert status is ReviewStatus.FAILED
        stored = await context.lifecycle.get(review.id, alice_principal)
        assert stored.review_metadata == {"error": "VCS unreachable"}
        assert stored.completed_at is None

    @pytest.mark.asyncio
    async def test_matcher_failure_fails_review(
        self,
        context: ServiceContext,
        registry: MatcherRegistry,
        repository: Repository,
        alice_principal: Principal,
        change_sets,
    ) -> None:
        registry.register("explode", ExplodingMatcher())
        await create_rule(context, "boom", "x", pattern_type="explode")
        change_sets.changes = [FileChange(path="app.py", content=SOURCE)]
        review = await context.lifecycle.create(repository.id, "abc", "main", alice_principal)

        assert await context.scheduler.job.run(review.id) is ReviewStatus.FAILED
        stored = await context.lifecycle.get(review.id, alice_principal)
        assert stored.review_metadata["error"] == "matcher crashed"

    @pytest.mark.asyncio
    async def test_cancelled_review_is_skipped(
        self,
        context: ServiceContext,
        repository: Repository,
        alice_principal: Principal,
        change_sets,
    ) -> None:
        review = await context.lifecycle.create(repository.id, "abc", "main", alice_principal)
        await context.lifecycle.cancel(review.id, alice_principal)

        assert await context.scheduler.job.run(review.id) is None
        assert change_sets.fetched == []

    @pytest.mark.asyncio
    async def test_result_discarded_when_cancelled_mid_evaluation(
        self,
        context: ServiceContext,
        repository: Repository,
        alice_principal: Principal,
    ) -> None:
        await create_rule(context, "no-todo", "TODO")

        class CancellingChangeSets:
            async def fetch(self, review: Review) -> list[FileChange]:
                await context.lifecycle.cancel(review.id, alice_principal)
                return [FileChange(path="app.py", content=SOURCE)]

        job = EvaluationJob(context.lifecycle, context.engine, context.findings, CancellingChangeSets())
        review = await context.lifecycle.create(repository.id, "abc", "main", alice_principal)

        assert await job.run(review.id) is None

        stored = await context.lifecycle.get(review.id, alice_principal)
        assert stored.status is ReviewStatus.FAILED
        assert "findingCount" not in stored.review_metadata
        assert await context.findings.list_by_review(review.id) == []

    @pytest.mark.asyncio
    async def test_result_discarded_when_deleted_mid_evaluation(
        self,
        context: ServiceContext,
        repository: Repository,
        alice_principal: Principal,
    ) -> None:
        await create_rule(context, "no-todo", "TODO")

        class DeletingChangeSets:
            async def fetch(self, review: Review) -> list[FileChange]:
                await context.lifecycle.delete(review.id, alice_principal)
                return [FileChange(path="app.py", content=SOURCE)]

        job = EvaluationJob(context.lifecycle, context.engine, context.findings, DeletingChangeSets())
        review = await context.lifecycle.create(repository.id, "abc", "main", alice_principal)

        assert await job.run(review.id) is None
        assert await context.lifecycle.current_status(review.id) is None

    @pytest.mark.asyncio
    async def test_cancel_after_evaluation_writes_no_findings(
        self,
        context: ServiceContext,
        repository: Repository,
        alice_principal: Principal,
        change_sets,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        await create_rule(context, "no-todo", "TODO")
        change_sets.changes = [FileChange(path="app.py", content=SOURCE)]
        evaluate = context.engine.evaluate
        produced: list[int] = []

        async def evaluate_then_cancel(review: Review, changes: Sequence[FileChange]):
            drafts = await evaluate(review, changes)
            produced.append(len(drafts))
            await context.lifecycle.cancel(review.id, alice_principal)
            return drafts

        monkeypatch.setattr(context.engine, "evaluate", evaluate_then_cancel)
        review = await context.lifecycle.create(repository.id, "abc", "main", alice_principal)

        assert await context.scheduler.job.run(review.id) is None

        assert produced == [2]
        stored = await context.lifecycle.get(review.id, alice_principal)
        assert stored.status is ReviewStatus.FAILED
        assert "findingCount" not in stored.review_metadata
        assert await context.findings.list_by_review(review.id) == []

    @pytest.mark.asyncio
    async def test_missing_review(self, context: ServiceContext) -> None:
        assert await context.scheduler.job.run(uuid.uuid4()) is None


class RecordingJob:
    """Stand-in job recording the ids it ran, failing for ``crash_on``."""

    def __init__(self, crash_on: uuid.UUID | None = None, delay: float = 0.0) -> None:
        self.crash_on = crash_on
        self.delay = delay
        self.ran: list[uuid.UUID] = []
        self.max_active = 0
        self._active = 0

    async def run(self, review_id: uuid.UUID) -> None:
        self._active += 1
        self.max_active = max(self.max_active, self._active)
        try:
            await asyncio.sleep(self.delay)
            if review_id == self.crash_on:
                raise RuntimeError("job crashed")
            self.ran.append(review_id)
        finally:
            self._active -= 1


class TestEvaluationScheduler:
    @pytest.mark.asyncio
    async def test_processes_created_reviews(
        self,
        context: ServiceContext,
        repository: Repository,
        alice_principal: Principal,
        change_sets,
    ) -> None:
        await create_rule(context, "no-todo", "TODO")
        change_sets.changes = [FileChange(path="app.py", content=SOURCE)]
        reviews = [
            await context.lifecycle.create(repository.id, f"c{i}", "main", alice_principal)
            for i in range(4)
        ]
        assert context.scheduler.pending == 4

        await context.scheduler.start()
        await asyncio.wait_for(context.scheduler.join(), timeout=10)

        for review in reviews:
            stored = await context.lifecycle.get(review.id, alice_principal)
            assert stored.status is ReviewStatus.COMPLETED
            assert stored.review_metadata == {"findingCount": 2}
        assert context.scheduler.pending == 0

    @pytest.mark.asyncio
    async def test_start_twice_rejected(self, context: ServiceContext) -> None:
        await context.scheduler.start()
        assert context.scheduler.is_running

        with pytest.raises(RuntimeError, match="already running"):
            await context.scheduler.start()

    @pytest.mark.asyncio
    async def test_stop_when_not_running_is_noop(self, context: ServiceContext) -> None:
        await context.scheduler.stop()
        assert not context.scheduler.is_running

    @pytest.mark.asyncio
    async def test_worker_count_bounds_concurrency(self) -> None:
        job = RecordingJob(delay=0.02)
        scheduler = EvaluationScheduler(job, EvaluationConfig(max_concurrent_jobs=3))  # type: ignore[arg-type]
        ids = [uuid.uuid4() for _ in range(9)]
        for review_id in ids:
            scheduler.schedule(review_id)

        await scheduler.start()
        await asyncio.wait_for(scheduler.join(), timeout=10)
        await scheduler.stop()

        assert sorted(job.ran) == sorted(ids)
        assert 1 < job.max_active <= 3
        assert scheduler.active_workers == 0

    @pytest.mark.asyncio
    async def test_crashing_job_does_not_stop_worker(self) -> None:
        bad, good = uuid.uuid4(), uuid.uuid4()
        job = RecordingJob(crash_on=bad)
        scheduler = EvaluationScheduler(job, EvaluationConfig(max_concurrent_jobs=1))  # type: ignore[arg-type]

        await scheduler.start()
        scheduler.schedule(bad)
        scheduler.schedule(good)
        await asyncio.wait_for(scheduler.join(), timeout=10)
        await scheduler.stop()

        assert job.ran == [good]

    @pytest.mark.asyncio
    async def test_stop_without_drain_leaves_queue(self) -> None:
        job = RecordingJob(delay=0.5)
        scheduler = EvaluationScheduler(job, EvaluationConfig(max_concurrent_jobs=1))  # type: ignore[arg-type]
        for _ in range(3):
            scheduler.schedule(uuid.uuid4())

        await scheduler.start()
        await asyncio.sleep(0.05)
        await scheduler.stop()

        assert not scheduler.is_running
        assert job.ran == []
        assert scheduler.pending == 2

    @pytest.mark.asyncio
    async def test_stop_with_drain(self) -> None:
        job = RecordingJob(delay=0.01)
        scheduler = EvaluationScheduler(job, EvaluationConfig(max_concurrent_jobs=2))  # type: ignore[arg-type]
        for _ in range(5):
            scheduler.schedule(uuid.uuid4())

        await scheduler.start()
        await asyncio.wait_for(scheduler.stop(drain=True), timeout=10)

        assert len(job.ran) == 5
        assert scheduler.pending == 0


class BlockingChangeSets:
    """Change set provider whose fetch never returns."""

    def __init__(self) -> None:
        self.entered = asyncio.Event()

    async def fetch(self, review: Review) -> list[FileChange]:
        self.entered.set()
        await asyncio.Event().wait()
        return []


class ListTrigger:
    def __init__(self) -> None:
        self.scheduled: list[uuid.UUID] = []

    def schedule(self, review_id: uuid.UUID) -> None:
        self.scheduled.append(review_id)


class TestStartupRecovery:
    @pytest.mark.asyncio
    async def test_pending_reviews_evaluated_after_restart(
        self,
        context: ServiceContext,
        session_factory: async_sessionmaker[AsyncSession],
        registry: MatcherRegistry,
        repository: Repository,
        alice_principal: Principal,
        change_sets,
    ) -> None:
        await create_rule(context, "no-todo", "TODO")
        change_sets.changes = [FileChange(path="app.py", content=SOURCE)]
        review = await context.lifecycle.create(repository.id, "abc", "main", alice_principal)

        restarted = build_context(session_factory, registry=registry, change_sets=change_sets)
        try:
            await restarted.start()
            await asyncio.wait_for(restarted.scheduler.join(), timeout=10)
        finally:
            await restarted.close()

        stored = await context.lifecycle.get(review.id, alice_principal)
        assert stored.status is ReviewStatus.COMPLETED
        assert stored.review_metadata == {"findingCount": 2}

    @pytest.mark.asyncio
    async def test_review_interrupted_by_stop_fails_on_restart(
        self,
        context: ServiceContext,
        session_factory: async_sessionmaker[AsyncSession],
        registry: MatcherRegistry,
        repository: Repository,
        alice_principal: Principal,
        change_sets,
    ) -> None:
        blocking = BlockingChangeSets()
        first = build_context(session_factory, registry=registry, change_sets=blocking)
        review = await first.lifecycle.create(repository.id, "abc", "main", alice_principal)
        await first.scheduler.start()
        await asyncio.wait_for(blocking.entered.wait(), timeout=10)
        await first.close()
        assert await context.lifecycle.current_status(review.id) is ReviewStatus.IN_PROGRESS

        restarted = build_context(session_factory, registry=registry, change_sets=change_sets)
        try:
            await restarted.start()
            await asyncio.wait_for(restarted.scheduler.join(), timeout=10)
        finally:
            await restarted.close()

        stored = await context.lifecycle.get(review.id, alice_principal)
        assert stored.status is ReviewStatus.FAILED
        assert stored.review_metadata == {"error": "interrupted"}
        assert stored.completed_at is None
        assert change_sets.fetched == []

    @pytest.mark.asyncio
    async def test_report_lists_each_review(
        self,
        context: ServiceContext,
        repository: Repository,
        alice_principal: Principal,
    ) -> None:
        pending = await context.lifecycle.create(repository.id, "c1", "main", alice_principal)
        running = await context.lifecycle.create(repository.id, "c2", "main", alice_principal)
        done = await context.lifecycle.create(repository.id, "c3", "main", alice_principal)
        await context.lifecycle.start(running.id)
        await context.lifecycle.finish(done.id, Outcome.SUCCESS)
        trigger = ListTrigger()

        report = await RecoveryManager(context.lifecycle, trigger).run_startup_recovery()

        assert report.requeued == [pending.id]
        assert report.interrupted == [running.id]
        assert report.unrecovered == []
        assert trigger.scheduled == [pending.id]
        assert await context.lifecycle.current_status(done.id) is ReviewStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_nothing_to_recover(self, context: ServiceContext) -> None:
        trigger = ListTrigger()

        report = await RecoveryManager(context.lifecycle, trigger).run_startup_recovery()

        assert report.requeued == []
        assert report.interrupted == []
        assert trigger.scheduled == []
