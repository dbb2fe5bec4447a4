"""Asynchronous review evaluation for reviewcore.

Creating a review only queues it. The ``EvaluationScheduler`` owns an
asyncio queue of review ids and a fixed pool of worker tasks; each worker
pulls an id and runs an ``EvaluationJob`` for it.

A job drives one review to a terminal state:

1. Start the review (PENDING -> IN_PROGRESS). If it has already left
   PENDING, for example because it was cancelled, the job stops.
2. Fetch the change set and evaluate the active rules against it.
3. Complete the review and store its findings in one transaction. If
   the review is no longer IN_PROGRESS (cancelled or deleted meanwhile)
   nothing is written and the result is discarded.

Any failure in steps 2-3 finishes the review with ``error`` and the error
message in its metadata.
"""

from __future__ import annotations

import asyncio
from uuid import UUID

import structlog

from reviewcore.config import EvaluationConfig
from reviewcore.database.models.review import ReviewStatus
from reviewcore.errors import ReviewCoreError
from reviewcore.logging import bind_review_context, clear_review_context
from reviewcore.review.findings import FindingAggregator
from reviewcore.review.lifecycle import ReviewLifecycleManager
from reviewcore.review.state_machine import Outcome
from reviewcore.rules.engine import ChangeSetProvider, EmptyChangeSetProvider, RuleEngine

logger = structlog.get_logger(__name__)


class EvaluationJob:
    """Evaluates a single review from PENDING to a terminal state.

    Attributes:
        lifecycle: Manager used for every status transition.
        engine: Rule engine producing finding drafts.
        findings: Aggregator persisting the drafts.
        change_sets: Source of the files changed by a review.
    """

    def __init__(
        self,
        lifecycle: ReviewLifecycleManager,
        engine: RuleEngine,
        findings: FindingAggregator,
        change_sets: ChangeSetProvider | None = None,
    ) -> None:
        self.lifecycle = lifecycle
        self.engine = engine
        self.findings = findings
        self.change_sets = change_sets or EmptyChangeSetProvider()
        self._logger = logger.bind(component="EvaluationJob")

    async def run(self, review_id: UUID) -> ReviewStatus | None:
        """Evaluate one review.

        Returns:
            The status the job left the review in, or None if the job did
            not write a terminal status (review not startable, or result
            discarded).
        """
        bind_review_context(str(review_id))
        try:
            review = await self.lifecycle.start(review_id)
            if review is None:
                self._logger.info("evaluation_skipped", reason="review not pending")
                return None
            bind_review_context(str(review_id), str(review.repository_id))

            try:
                changes = await self.change_sets.fetch(review)
                drafts = await self.engine.evaluate(review, changes)
            except Exception as exc:
                self._logger.exception("evaluation_failed", error=str(exc))
                return await self._fail(review_id, exc)

            try:
                result = await self.lifecycle.complete(review_id, drafts, self.findings)
            except ReviewCoreError as exc:
                self._logger.error("evaluation_completion_failed", error=exc.message)
                return await self._fail(review_id, exc)

            if result is None:
                self._logger.info("evaluation_discarded", draft_count=len(drafts))
                return None

            completed, recorded = result
            self._logger.info(
                "evaluation_completed",
                status=completed.status.name,
                finding_count=len(recorded),
            )
            return completed.status
        finally:
            clear_review_context()

    async def _fail(self, review_id: UUID, exc: BaseException) -> ReviewStatus | None:
        message = exc.message if isinstance(exc, ReviewCoreError) else str(exc)
        try:
            finished = await self.lifecycle.finish(
                review_id,
                Outcome.ERROR,
                {"error": message or type(exc).__name__},
            )
        except ReviewCoreError as finish_exc:
            # Review deleted while evaluating
            self._logger.warning("evaluation_failure_not_recorded", error=finish_exc.message)
            return None
        return finished.status


class EvaluationScheduler:
    """Queue of reviews awaiting evaluation, drained by a worker pool.

    ``schedule`` never blocks and never runs the job inline; reviews
    scheduled before ``start`` wait in the queue.

    Attributes:
        job: Job run for each queued review.
        config: Worker pool settings.
    """

    def __init__(self, job: EvaluationJob, config: EvaluationConfig | None = None) -> None:
        self.job = job
        self.config = config or EvaluationConfig()

        self._queue: asyncio.Queue[UUID] = asyncio.Queue()
        self._workers: list[asyncio.Task[None]] = []
        self._running: bool = False
        self._active_count: int = 0
        self._logger = logger.bind(component="EvaluationScheduler")

    @property
    def is_running(self) -> bool:
        """Whether the worker pool is active."""
        return self._running

    @property
    def pending(self) -> int:
        """Reviews queued and not yet picked up by a worker."""
        return self._queue.qsize()

    @property
    def active_workers(self) -> int:
        """Workers currently running a job."""
        return self._active_count

    def schedule(self, review_id: UUID) -> None:
        """Queue a review for evaluation."""
        self._queue.put_nowait(review_id)
        self._logger.debug(
            "evaluation_scheduled",
            review_id=str(review_id),
            queue_depth=self._queue.qsize(),
        )

    async def start(self) -> None:
        """Launch the worker pool.

        Raises:
            RuntimeError: If the scheduler is already running.
        """
        if self._running:
            raise RuntimeError("EvaluationScheduler is already running")

        self._running = True
        self._workers = [
            asyncio.create_task(self._worker_loop(index), name=f"evaluation-worker-{index}")
            for index in range(self.config.max_concurrent_jobs)
        ]
        self._logger.info(
            "scheduler_started",
            workers=len(self._workers),
            queued=self._queue.qsize(),
        )

    async def join(self) -> None:
        """Wait until every queued review has been processed."""
        await self._queue.join()

    async def stop(self, drain: bool = False) -> None:
        """Stop the worker pool.

        Args:
            drain: Finish every queued review before stopping. Otherwise
                jobs in progress are cancelled; their reviews stay
                IN_PROGRESS and queued ones PENDING until the next
                startup recovery (see ``RecoveryManager``).
        """
        if not self._running:
            self._logger.debug("scheduler_stop_noop", reason="not running")
            return

        self._logger.info("scheduler_stopping", drain=drain, queued=self._queue.qsize())
        if drain:
            await self._queue.join()

        self._running = False
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._logger.info("scheduler_stopped")

    async def _worker_loop(self, index: int) -> None:
        while True:
            review_id = await self._queue.get()
            self._active_count += 1
            try:
                await self.job.run(review_id)
            except asyncio.CancelledError:
                raise
            except Exception:
                self._logger.exception(
                    "evaluation_job_crashed",
                    worker=index,
                    review_id=str(review_id),
                )
            finally:
                self._active_count -= 1
                self._queue.task_done()
