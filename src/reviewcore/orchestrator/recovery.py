"""Startup recovery for reviewcore evaluation.

The evaluation queue lives in memory, so a restart loses it. Two kinds of
review are left behind:

- PENDING reviews that were queued but never picked up. They are queued
  again.
- IN_PROGRESS reviews whose job was cancelled by shutdown or crashed
  before writing a terminal status. Their evaluation cannot be resumed, so
  they are finished with ``error`` and ``{"error": "interrupted"}``.

Recovery must run before the worker pool starts, while no job of this
process can hold a review IN_PROGRESS.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from reviewcore.database.models.review import ReviewStatus
from reviewcore.errors import ReviewCoreError
from reviewcore.review.lifecycle import EvaluationTrigger, ReviewLifecycleManager
from reviewcore.review.state_machine import Outcome

logger = structlog.get_logger(__name__)

INTERRUPTED = "interrupted"


class RecoveryReport(BaseModel):
    """Summary of a recovery run.

    Attributes:
        requeued: Reviews found PENDING and scheduled again.
        interrupted: Reviews found IN_PROGRESS and finished as FAILED.
        unrecovered: Reviews whose failure could not be recorded.
        started_at: ISO-8601 timestamp when recovery started.
        duration_seconds: Total recovery duration in seconds.
    """

    requeued: list[UUID] = Field(default_factory=list)
    interrupted: list[UUID] = Field(default_factory=list)
    unrecovered: list[UUID] = Field(default_factory=list)
    started_at: str = Field(default="")
    duration_seconds: float = Field(default=0.0)


class RecoveryManager:
    """Restores the evaluation queue after a restart.

    Attributes:
        lifecycle: Manager used to find and fail reviews.
        trigger: Scheduler the PENDING reviews are queued on.
    """

    def __init__(self, lifecycle: ReviewLifecycleManager, trigger: EvaluationTrigger) -> None:
        self.lifecycle = lifecycle
        self.trigger = trigger
        self._logger = logger.bind(component="RecoveryManager")

    async def run_startup_recovery(self) -> RecoveryReport:
        """Fail interrupted reviews and queue the pending ones.

        Returns:
            RecoveryReport listing what was done to each review.
        """
        started_at = datetime.now(timezone.utc)
        self._logger.info("startup_recovery_started")
        report = RecoveryReport(started_at=started_at.isoformat())

        for review_id in await self.lifecycle.ids_in_status(ReviewStatus.IN_PROGRESS):
            try:
                await self.lifecycle.finish(review_id, Outcome.ERROR, {"error": INTERRUPTED})
            except ReviewCoreError as exc:
                self._logger.warning(
                    "interrupted_review_not_failed",
                    review_id=str(review_id),
                    error=exc.message,
                )
                report.unrecovered.append(review_id)
                continue
            report.interrupted.append(review_id)

        for review_id in await self.lifecycle.ids_in_status(ReviewStatus.PENDING):
            self.trigger.schedule(review_id)
            report.requeued.append(review_id)

        report.duration_seconds = (datetime.now(timezone.utc) - started_at).total_seconds()
        self._logger.info(
            "startup_recovery_completed",
            requeued=len(report.requeued),
            interrupted=len(report.interrupted),
            unrecovered=len(report.unrecovered),
            duration_seconds=report.duration_seconds,
        )
        return report
