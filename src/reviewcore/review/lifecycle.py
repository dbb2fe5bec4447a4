"""Review lifecycle management for reviewcore.

``ReviewLifecycleManager`` is the single entry point for creating reviews
and moving them through their states. Every status write is a
compare-and-swap against the status the manager last observed (see
``compare_and_set_status``); when the swap loses a race the manager re-reads
the review and decides again. That makes ``cancel`` and ``finish``
linearizable per review: exactly one of two racing writers takes effect.

Evaluation itself happens elsewhere. ``create`` hands the new review id to
an ``EvaluationTrigger`` after the review is committed and returns without
waiting for the evaluation.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reviewcore.access import Principal, can_access_repository, require_repository
from reviewcore.database.models.base import utcnow
from reviewcore.database.models.finding import Finding
from reviewcore.database.models.review import Review, ReviewStatus
from reviewcore.database.queries.review import (
    add_review,
    compare_and_set_status,
    delete_review,
    get_review,
    list_review_ids_by_status,
    list_reviews,
)
from reviewcore.errors import NotFoundError, ValidationError, field_errors, store_errors
from reviewcore.review.findings import FindingAggregator, FindingDraft
from reviewcore.review.state_machine import Outcome, finish_path

logger = structlog.get_logger(__name__)


class EvaluationTrigger(Protocol):
    """Anything that can schedule a review for asynchronous evaluation."""

    def schedule(self, review_id: UUID) -> None:
        """Queue ``review_id`` for evaluation without blocking."""
        ...


def validate_review_request(commit_id: str | None, branch: str | None) -> tuple[str, str]:
    """Reject a review request with a missing or blank commit or branch.

    Returns:
        The commit id and branch with surrounding whitespace removed.

    Raises:
        ValidationError: With ``commitId`` and/or ``branch`` field errors.
    """
    errors = field_errors(
        commitId=None if commit_id and commit_id.strip() else "Commit ID is required",
        branch=None if branch and branch.strip() else "Branch is required",
    )
    if errors:
        raise ValidationError("Commit ID and branch are required", errors)
    return (commit_id or "").strip(), (branch or "").strip()


class ReviewLifecycleManager:
    """Creates reviews and drives their status transitions.

    Attributes:
        session_factory: Factory producing database sessions.
        trigger: Scheduler notified of every new review, if attached.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        trigger: EvaluationTrigger | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.trigger = trigger
        self._logger = logger.bind(component="ReviewLifecycleManager")

    def attach_trigger(self, trigger: EvaluationTrigger) -> None:
        """Set the evaluation trigger once the scheduler exists."""
        self.trigger = trigger

    async def create(
        self,
        repository_id: UUID,
        commit_id: str | None,
        branch: str | None,
        principal: Principal,
    ) -> Review:
        """Create a PENDING review and schedule its evaluation.

        Args:
            repository_id: Repository to review.
            commit_id: Commit identifier (opaque, non-blank).
            branch: Branch name (opaque, non-blank).
            principal: Caller; must own the repository.

        Returns:
            The new review, still PENDING.

        Raises:
            ValidationError: If commit or branch is missing.
            NotFoundError: If the repository is absent, inactive or not owned
                by the caller.
        """
        commit_id, branch = validate_review_request(commit_id, branch)

        with store_errors("create_review", "Failed to create code review"):
            async with self.session_factory() as session:
                async with session.begin():
                    await require_repository(session, repository_id, principal)
                    review = await add_review(
                        session,
                        repository_id=repository_id,
                        triggered_by_id=principal.user_id,
                        commit_id=commit_id,
                        branch=branch,
                    )

        self._logger.info(
            "review_created",
            review_id=str(review.id),
            repository_id=str(repository_id),
            commit_id=review.commit_id,
            branch=review.branch,
        )

        if self.trigger is not None:
            self.trigger.schedule(review.id)
        else:
            self._logger.warning("review_not_scheduled", review_id=str(review.id))

        return review

    async def start(self, review_id: UUID) -> Review | None:
        """Move a PENDING review to IN_PROGRESS.

        Returns:
            The started review, or None if the review is missing or has
            already left PENDING (for example because it was cancelled).
        """
        with store_errors("start_review", "Failed to update review status"):
            async with self.session_factory() as session:
                async with session.begin():
                    swapped = await compare_and_set_status(
                        session,
                        review_id,
                        expected=ReviewStatus.PENDING,
                        new_status=ReviewStatus.IN_PROGRESS,
                    )
                    if not swapped:
                        self._logger.info("review_start_skipped", review_id=str(review_id))
                        return None
                    review = await get_review(session, review_id)

        self._logger.info("review_started", review_id=str(review_id))
        return review

    async def cancel(
        self,
        review_id: UUID,
        principal: Principal,
        repository_id: UUID | None = None,
    ) -> Review:
        """Fail a review that has not reached a terminal state.

        Args:
            review_id: Review to cancel.
            principal: Caller; must own the review's repository.
            repository_id: When given, the review must belong to it.

        Returns:
            The cancelled review, now FAILED.

        Raises:
            NotFoundError: If the review (or repository) is absent or not
                owned by the caller.
            ValidationError: If the review is already COMPLETED or FAILED,
                including when a concurrent finish got there first.
        """
        with store_errors("cancel_review", "Failed to update review status"):
            async with self.session_factory() as session:
                async with session.begin():
                    review = await self._owned_review(session, review_id, principal, repository_id)
                    while True:
                        if review.status.is_terminal:
                            raise ValidationError(
                                "Cannot cancel a completed or failed review",
                                {"status": ["Review is already completed or failed"]},
                            )
                        observed = review.status
                        if await compare_and_set_status(
                            session, review_id, expected=observed, new_status=ReviewStatus.FAILED
                        ):
                            break
                        review = await self._reread(session, review_id)
                        if review is None:
                            raise NotFoundError("Code review")
                    cancelled = await self._reread_existing(session, review_id)

        self._logger.info("review_cancelled", review_id=str(review_id), previous=observed.name)
        return cancelled

    async def finish(
        self,
        review_id: UUID,
        outcome: Outcome | str,
        metadata: dict[str, Any] | None = None,
    ) -> Review:
        """Record the outcome of an evaluation.

        ``success`` moves the review to COMPLETED and stamps ``completed_at``;
        ``error`` moves it to FAILED. A PENDING review is started implicitly
        in the same write. ``metadata`` is merged into the stored map with
        the new keys winning. Finishing a terminal review is a no-op that
        returns it unchanged.

        Raises:
            ValidationError: If the review does not exist or the outcome is
                not recognised.
        """
        try:
            outcome = Outcome(outcome)
        except ValueError:
            raise ValidationError(
                "Invalid outcome",
                {"outcome": [f"Outcome must be one of: {', '.join(o.value for o in Outcome)}"]},
            ) from None

        with store_errors("finish_review", "Failed to update review status"):
            async with self.session_factory() as session:
                async with session.begin():
                    review = await self._reread(session, review_id)
                    while True:
                        if review is None:
                            raise ValidationError(
                                "Review not found",
                                {"review": ["The requested review could not be found"]},
                            )
                        path = finish_path(review.status, outcome)
                        if not path:
                            self._logger.info(
                                "review_finish_ignored",
                                review_id=str(review_id),
                                status=review.status.name,
                            )
                            return review

                        target = path[-1]
                        values: dict[str, Any] = {
                            "review_metadata": {**(review.review_metadata or {}), **(metadata or {})}
                        }
                        if target is ReviewStatus.COMPLETED:
                            values["completed_at"] = utcnow()

                        if await compare_and_set_status(
                            session,
                            review_id,
                            expected=review.status,
                            new_status=target,
                            **values,
                        ):
                            break
                        review = await self._reread(session, review_id)

                    finished = await self._reread_existing(session, review_id)

        self._logger.info(
            "review_finished",
            review_id=str(review_id),
            outcome=outcome.value,
            status=finished.status.name,
        )
        return finished

    async def complete(
        self,
        review_id: UUID,
        drafts: Sequence[FindingDraft],
        findings: FindingAggregator,
    ) -> tuple[Review, list[Finding]] | None:
        """Store an evaluation's findings and complete the review in one transaction.

        The IN_PROGRESS -> COMPLETED swap runs first; the findings are only
        written if it succeeds. If the review was cancelled or deleted
        since it started, nothing is written.

        Args:
            review_id: Review being completed.
            drafts: Findings produced by the evaluation.
            findings: Aggregator that validates and adds the drafts.

        Returns:
            The completed review and its findings in report order, or None
            if the review is no longer IN_PROGRESS.

        Raises:
            ValidationError: If a draft is invalid. The review is left
                IN_PROGRESS.
        """
        with store_errors("complete_review", "Failed to update review status"):
            async with self.session_factory() as session:
                async with session.begin():
                    review = await self._reread(session, review_id)
                    if review is None or review.status is not ReviewStatus.IN_PROGRESS:
                        self._logger.info(
                            "review_completion_skipped",
                            review_id=str(review_id),
                            status=review.status.name if review is not None else None,
                        )
                        return None

                    swapped = await compare_and_set_status(
                        session,
                        review_id,
                        expected=ReviewStatus.IN_PROGRESS,
                        new_status=ReviewStatus.COMPLETED,
                        completed_at=utcnow(),
                        review_metadata={
                            **(review.review_metadata or {}),
                            "findingCount": len(drafts),
                        },
                    )
                    if not swapped:
                        self._logger.info("review_completion_skipped", review_id=str(review_id))
                        return None

                    stored = await findings.write(session, review_id, drafts)
                    completed = await self._reread_existing(session, review_id)

        self._logger.info(
            "review_finished",
            review_id=str(review_id),
            outcome=Outcome.SUCCESS.value,
            status=completed.status.name,
            finding_count=len(stored),
        )
        return completed, stored

    async def ids_in_status(self, status: ReviewStatus) -> list[UUID]:
        """IDs of every review currently in ``status``, oldest first."""
        with store_errors("list_reviews", "Failed to fetch reviews"):
            async with self.session_factory() as session:
                return await list_review_ids_by_status(session, status)

    async def get(
        self,
        review_id: UUID,
        principal: Principal,
        repository_id: UUID | None = None,
    ) -> Review:
        """Fetch a review the caller can see.

        Raises:
            NotFoundError: If the repository or review is not visible.
        """
        with store_errors("fetch_review", "Failed to fetch review"):
            async with self.session_factory() as session:
                return await self._owned_review(session, review_id, principal, repository_id)

    async def list(self, repository_id: UUID, principal: Principal) -> list[Review]:
        """List a repository's reviews, newest first.

        Raises:
            NotFoundError: If the repository is not visible to the caller.
        """
        with store_errors("list_reviews", "Failed to fetch reviews"):
            async with self.session_factory() as session:
                await require_repository(session, repository_id, principal)
                return await list_reviews(session, repository_id)

    async def delete(
        self,
        review_id: UUID,
        principal: Principal,
        repository_id: UUID | None = None,
    ) -> None:
        """Delete a review and its findings.

        An evaluation still running for the review notices the deletion at
        its next status check and discards its result.

        Raises:
            NotFoundError: If the review is not visible to the caller.
        """
        with store_errors("delete_review", "Failed to delete review"):
            async with self.session_factory() as session:
                async with session.begin():
                    await self._owned_review(session, review_id, principal, repository_id)
                    await delete_review(session, review_id)

        self._logger.info("review_deleted", review_id=str(review_id))

    async def current_status(self, review_id: UUID) -> ReviewStatus | None:
        """Read a review's status, or None if it no longer exists."""
        with store_errors("fetch_review", "Failed to fetch review"):
            async with self.session_factory() as session:
                review = await get_review(session, review_id)
                return review.status if review is not None else None

    async def _owned_review(
        self,
        session: AsyncSession,
        review_id: UUID,
        principal: Principal,
        repository_id: UUID | None,
    ) -> Review:
        if repository_id is not None:
            await require_repository(session, repository_id, principal)

        review = await get_review(session, review_id, repository_id=repository_id)
        if review is None or not can_access_repository(principal, review.repository):
            raise NotFoundError("Code review")
        return review

    async def _reread(self, session: AsyncSession, review_id: UUID) -> Review | None:
        return await get_review(session, review_id)

    async def _reread_existing(self, session: AsyncSession, review_id: UUID) -> Review:
        review = await get_review(session, review_id)
        if review is None:
            raise NotFoundError("Code review")
        return review
