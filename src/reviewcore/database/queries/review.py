"""Review query functions for reviewcore.

Provides async functions for inserting, reading and deleting Review
records, plus the compare-and-swap status update every lifecycle
transition goes through. Callers own the transaction.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import Row, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from reviewcore.database.models.base import utcnow
from reviewcore.database.models.finding import Finding
from reviewcore.database.models.review import Review, ReviewStatus

logger = structlog.get_logger(__name__)


async def add_review(
    session: AsyncSession,
    repository_id: UUID,
    triggered_by_id: UUID,
    commit_id: str,
    branch: str,
    metadata: dict[str, Any] | None = None,
) -> Review:
    """Insert a PENDING review with ``started_at`` set to now."""
    review = Review(
        repository_id=repository_id,
        triggered_by_id=triggered_by_id,
        commit_id=commit_id,
        branch=branch,
        status=ReviewStatus.PENDING,
        review_metadata=dict(metadata or {}),
        started_at=utcnow(),
    )
    session.add(review)
    await session.flush()
    await session.refresh(review, attribute_names=["repository"])
    return review


async def get_review(
    session: AsyncSession,
    review_id: UUID,
    repository_id: UUID | None = None,
) -> Review | None:
    """Retrieve a review by ID, reloading any stale identity-map copy.

    Args:
        session: Active async database session.
        review_id: UUID of the review.
        repository_id: When given, the review must belong to this repository.

    Returns:
        The Review if found, None otherwise.
    """
    stmt = (
        select(Review)
        .where(Review.id == review_id)
        .execution_options(populate_existing=True)
    )
    if repository_id is not None:
        stmt = stmt.where(Review.repository_id == repository_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_reviews(session: AsyncSession, repository_id: UUID) -> list[Review]:
    """List a repository's reviews, newest first."""
    stmt = (
        select(Review)
        .where(Review.repository_id == repository_id)
        .order_by(Review.created_at.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_review_ids_by_status(session: AsyncSession, status: ReviewStatus) -> list[UUID]:
    """IDs of every review in ``status``, oldest first."""
    stmt = select(Review.id).where(Review.status == status).order_by(Review.created_at)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def compare_and_set_status(
    session: AsyncSession,
    review_id: UUID,
    expected: ReviewStatus,
    new_status: ReviewStatus,
    **values: Any,
) -> bool:
    """Move a review to ``new_status`` only if it is still in ``expected``.

    The status check and the write happen in one UPDATE statement, so two
    workers racing on the same review cannot both succeed.

    Args:
        session: Active async database session.
        review_id: UUID of the review.
        expected: Status the caller observed.
        new_status: Status to write.
        **values: Extra attributes to write alongside the status, keyed by
            mapped attribute name (e.g. ``review_metadata``).

    Returns:
        True if the row was updated, False if the status had changed.
    """
    assignments: dict[Any, Any] = {getattr(Review, key): value for key, value in values.items()}
    assignments[Review.status] = new_status

    stmt = (
        update(Review)
        .where(Review.id == review_id, Review.status == expected)
        .values(assignments)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    swapped = result.rowcount == 1

    logger.debug(
        "review_status_cas",
        review_id=str(review_id),
        expected=expected.name,
        new_status=new_status.name,
        swapped=swapped,
    )
    return swapped


async def delete_review(session: AsyncSession, review_id: UUID) -> bool:
    """Delete a review and its findings.

    Returns:
        True if the review existed.
    """
    await session.execute(
        delete(Finding)
        .where(Finding.review_id == review_id)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(
        delete(Review)
        .where(Review.id == review_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


async def review_timings(
    session: AsyncSession,
    repository_id: UUID,
) -> list[Row[tuple[ReviewStatus, datetime | None, datetime | None]]]:
    """Status and timestamps of every review of a repository, in one SELECT."""
    stmt = select(Review.status, Review.started_at, Review.completed_at).where(
        Review.repository_id == repository_id
    )
    result = await session.execute(stmt)
    return list(result.all())
