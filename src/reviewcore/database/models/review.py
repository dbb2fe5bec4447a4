"""Review model for reviewcore.

A review is one analysis run against a specific commit and branch of a
repository. Its status follows the lifecycle enforced by
``reviewcore.review.state_machine``.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reviewcore.database.models.base import Base, TimestampMixin
from reviewcore.database.models.repository import Repository


class ReviewStatus(enum.Enum):
    """State machine for review lifecycle.

    States:
        PENDING: Created, evaluation not started yet.
        IN_PROGRESS: Rules are being evaluated.
        COMPLETED: Evaluation finished successfully (terminal).
        FAILED: Cancelled or evaluation errored (terminal).
    """

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transitions are allowed from this status."""
        return self in (ReviewStatus.COMPLETED, ReviewStatus.FAILED)


class Review(TimestampMixin, Base):
    """A code review run for one commit.

    Attributes:
        id: UUID primary key (from TimestampMixin).
        commit_id: Commit identifier (opaque string).
        branch: Branch name (opaque string).
        status: Current lifecycle status.
        review_metadata: Mergeable key/value map (column ``metadata``).
        repository_id: Foreign key to the reviewed repository.
        triggered_by_id: Foreign key to the user who requested the review.
        started_at: Set at creation.
        completed_at: Set when the review reaches COMPLETED.
        repository: Relationship to the Repository.
    """

    __tablename__ = "reviews"

    commit_id: Mapped[str] = mapped_column(String(255), nullable=False)
    branch: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[ReviewStatus] = mapped_column(
        Enum(ReviewStatus, name="review_status"),
        default=ReviewStatus.PENDING,
        nullable=False,
        index=True,
    )
    # "metadata" is reserved on declarative classes
    review_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        default=dict,
        nullable=False,
    )
    repository_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("repositories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    triggered_by_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    repository: Mapped[Repository] = relationship(Repository, lazy="selectin")
