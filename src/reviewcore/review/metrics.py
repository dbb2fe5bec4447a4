"""Per-repository review statistics."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

import structlog
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reviewcore.access import Principal, require_repository
from reviewcore.database.models.review import ReviewStatus
from reviewcore.database.queries.review import review_timings
from reviewcore.errors import store_errors

logger = structlog.get_logger(__name__)


class ReviewMetrics(BaseModel):
    """Aggregate review counts and timing for one repository.

    Attributes:
        total: Number of reviews.
        completed: Reviews in COMPLETED.
        failed: Reviews in FAILED.
        pending: Reviews not yet terminal (PENDING or IN_PROGRESS).
        average_time_ms: Mean ``completed_at - started_at`` over completed
            reviews that have both timestamps, 0 if there are none.
    """

    total: int = 0
    completed: int = 0
    failed: int = 0
    pending: int = 0
    average_time_ms: float = 0.0


def summarise(
    rows: Iterable[tuple[ReviewStatus, datetime | None, datetime | None]],
) -> ReviewMetrics:
    """Fold (status, started_at, completed_at) rows into metrics."""
    metrics = ReviewMetrics()
    durations: list[float] = []

    for status, started_at, completed_at in rows:
        metrics.total += 1
        if status is ReviewStatus.COMPLETED:
            metrics.completed += 1
            if started_at is not None and completed_at is not None:
                durations.append((completed_at - started_at).total_seconds() * 1000)
        elif status is ReviewStatus.FAILED:
            metrics.failed += 1
        else:
            metrics.pending += 1

    if durations:
        metrics.average_time_ms = sum(durations) / len(durations)
    return metrics


class MetricsCalculator:
    """Computes ``ReviewMetrics`` from a single snapshot read."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def compute(
        self,
        repository_id: UUID,
        principal: Principal | None = None,
    ) -> ReviewMetrics:
        """Compute metrics for a repository.

        Args:
            repository_id: Repository to summarise.
            principal: When given, the caller must own the repository.

        Raises:
            NotFoundError: If ``principal`` does not own the repository.
        """
        with store_errors("compute_metrics", "Failed to get review metrics"):
            async with self.session_factory() as session:
                if principal is not None:
                    await require_repository(session, repository_id, principal)
                rows = await review_timings(session, repository_id)

        metrics = summarise((row[0], row[1], row[2]) for row in rows)
        logger.debug(
            "review_metrics_computed",
            repository_id=str(repository_id),
            total=metrics.total,
        )
        return metrics
