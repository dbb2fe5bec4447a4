"""Review state machine for reviewcore.

This module defines the review lifecycle graph and the validation applied
before every status write:

    PENDING     --start-->           IN_PROGRESS
    PENDING     --cancel-->          FAILED
    IN_PROGRESS --finish(success)--> COMPLETED
    IN_PROGRESS --finish(error)-->   FAILED
    IN_PROGRESS --cancel-->          FAILED

COMPLETED and FAILED are terminal and nothing re-enters PENDING.
"""

from __future__ import annotations

import enum

from reviewcore.database.models.review import ReviewStatus


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted.

    Attributes:
        current: The current review status.
        target: The attempted target status.
        review_id: The ID of the review that failed to transition.
    """

    def __init__(
        self,
        current: ReviewStatus,
        target: ReviewStatus,
        review_id: str | None = None,
    ):
        self.current = current
        self.target = target
        self.review_id = review_id
        msg = f"Invalid transition from {current.name} to {target.name}"
        if review_id:
            msg += f" for review {review_id}"
        super().__init__(msg)


class Outcome(str, enum.Enum):
    """Result reported when an evaluation finishes."""

    SUCCESS = "success"
    ERROR = "error"


# Authoritative state machine definition
VALID_TRANSITIONS: dict[ReviewStatus, set[ReviewStatus]] = {
    ReviewStatus.PENDING: {ReviewStatus.IN_PROGRESS, ReviewStatus.FAILED},
    ReviewStatus.IN_PROGRESS: {ReviewStatus.COMPLETED, ReviewStatus.FAILED},
    ReviewStatus.COMPLETED: set(),  # Terminal
    ReviewStatus.FAILED: set(),  # Terminal
}


def validate_transition(current: ReviewStatus, target: ReviewStatus) -> bool:
    """Return True if ``current -> target`` is an edge of the lifecycle graph."""
    return target in VALID_TRANSITIONS.get(current, set())


def finish_target(outcome: Outcome) -> ReviewStatus:
    """Terminal status a finish with ``outcome`` leads to."""
    return ReviewStatus.COMPLETED if outcome is Outcome.SUCCESS else ReviewStatus.FAILED


def finish_path(current: ReviewStatus, outcome: Outcome) -> list[ReviewStatus]:
    """Statuses a review passes through when finished from ``current``.

    A review still PENDING is implicitly started first, so finishing it
    successfully walks PENDING -> IN_PROGRESS -> COMPLETED. Terminal
    reviews yield an empty path.

    Raises:
        InvalidTransitionError: If no path exists.
    """
    if current.is_terminal:
        return []

    target = finish_target(outcome)
    path: list[ReviewStatus] = []
    if current is ReviewStatus.PENDING:
        path.append(ReviewStatus.IN_PROGRESS)

    path.append(target)

    previous = current
    for status in path:
        if not validate_transition(previous, status):
            raise InvalidTransitionError(previous, status)
        previous = status
    return path
