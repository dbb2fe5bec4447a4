"""Service wiring for reviewcore.

``ServiceContext`` holds one instance of every component, all sharing a
session factory. The web application builds one in its lifespan and the
CLI builds one per command.

The lifecycle manager and the scheduler depend on each other (the manager
schedules new reviews, the scheduler's job drives the manager), so the
manager is built first and the scheduler is attached to it afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from reviewcore.config import EvaluationConfig, ReviewcoreConfig
from reviewcore.database.connection import get_engine, get_session_factory
from reviewcore.orchestrator.recovery import RecoveryManager
from reviewcore.orchestrator.scheduler import EvaluationJob, EvaluationScheduler
from reviewcore.repositories import RepositoryService
from reviewcore.review.findings import FindingAggregator
from reviewcore.review.lifecycle import ReviewLifecycleManager
from reviewcore.review.metrics import MetricsCalculator
from reviewcore.rules.engine import ChangeSetProvider, MatcherRegistry, RuleEngine
from reviewcore.rules.store import RuleStore
from reviewcore.users import UserService


@dataclass
class ServiceContext:
    """Every reviewcore component, wired to one session factory."""

    session_factory: async_sessionmaker[AsyncSession]
    users: UserService
    repositories: RepositoryService
    rules: RuleStore
    engine: RuleEngine
    findings: FindingAggregator
    lifecycle: ReviewLifecycleManager
    metrics: MetricsCalculator
    scheduler: EvaluationScheduler
    recovery: RecoveryManager
    db_engine: AsyncEngine | None = None

    async def start(self) -> None:
        """Recover reviews left over by a previous run, then start background evaluation."""
        await self.recovery.run_startup_recovery()
        await self.scheduler.start()

    async def close(self) -> None:
        """Stop background evaluation and release database connections."""
        await self.scheduler.stop()
        if self.db_engine is not None:
            await self.db_engine.dispose()


def build_context(
    session_factory: async_sessionmaker[AsyncSession],
    evaluation: EvaluationConfig | None = None,
    registry: MatcherRegistry | None = None,
    change_sets: ChangeSetProvider | None = None,
    db_engine: AsyncEngine | None = None,
) -> ServiceContext:
    """Wire all components around an existing session factory.

    Args:
        session_factory: Factory every component opens sessions from.
        evaluation: Worker pool settings for the scheduler.
        registry: Pattern matchers available to the rule engine.
        change_sets: Source of review change sets (empty by default).
        db_engine: Engine to dispose on ``close``, if the context owns it.
    """
    lifecycle = ReviewLifecycleManager(session_factory)
    engine = RuleEngine(session_factory, registry)
    findings = FindingAggregator(session_factory)
    job = EvaluationJob(lifecycle, engine, findings, change_sets)
    scheduler = EvaluationScheduler(job, evaluation)
    lifecycle.attach_trigger(scheduler)

    return ServiceContext(
        session_factory=session_factory,
        users=UserService(session_factory),
        repositories=RepositoryService(session_factory),
        rules=RuleStore(session_factory),
        engine=engine,
        findings=findings,
        lifecycle=lifecycle,
        metrics=MetricsCalculator(session_factory),
        scheduler=scheduler,
        recovery=RecoveryManager(lifecycle, scheduler),
        db_engine=db_engine,
    )


def context_from_config(
    config: ReviewcoreConfig,
    registry: MatcherRegistry | None = None,
    change_sets: ChangeSetProvider | None = None,
) -> ServiceContext:
    """Create the database engine from ``config`` and wire a context around it."""
    db_engine = get_engine(config.database)
    return build_context(
        get_session_factory(db_engine),
        evaluation=config.evaluation,
        registry=registry,
        change_sets=change_sets,
        db_engine=db_engine,
    )
