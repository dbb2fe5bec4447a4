"""Repository model for reviewcore.

A repository is a VCS project registered by its owner. The same URL may be
registered by different owners, but only once per owner. Repositories are
soft-deleted by clearing ``is_active``.
"""

from __future__ import annotations

import enum
import uuid

from sqlalchemy import Boolean, Enum, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reviewcore.database.models.base import Base, TimestampMixin
from reviewcore.database.models.user import User


class VCSProvider(enum.Enum):
    """Hosting provider of a repository."""

    GITHUB = "GITHUB"
    GITLAB = "GITLAB"
    BITBUCKET = "BITBUCKET"


class Repository(TimestampMixin, Base):
    """A source repository that reviews run against.

    Attributes:
        id: UUID primary key (from TimestampMixin).
        name: Human-readable repository name.
        url: Clone or web URL of the repository.
        description: Optional free-text description.
        vcs_provider: Hosting provider.
        default_branch: Branch reviewed when none is given.
        is_private: Whether the repository is private on its provider.
        is_active: False once soft-deleted.
        owner_id: Foreign key to the owning user.
        owner: Relationship to the owning User.
    """

    __tablename__ = "repositories"
    __table_args__ = (
        UniqueConstraint("url", "owner_id", name="uq_repositories_url_owner"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(1024), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    vcs_provider: Mapped[VCSProvider] = mapped_column(
        Enum(VCSProvider, name="vcs_provider"),
        nullable=False,
    )
    default_branch: Mapped[str] = mapped_column(String(255), default="main", nullable=False)
    is_private: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    owner: Mapped[User] = relationship(User, lazy="selectin")
