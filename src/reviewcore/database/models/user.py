"""User model for reviewcore.

Users own repositories, trigger reviews and author custom rules. They are
created by the external credential service (registration or OAuth upsert)
and are never hard-deleted by the core.
"""

from __future__ import annotations

import enum

from sqlalchemy import Boolean, Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from reviewcore.database.models.base import Base, TimestampMixin


class UserRole(enum.Enum):
    """Role of a user.

    States:
        ADMIN: May mutate system rules and every custom rule.
        USER: Regular account.
        GUEST: Read-mostly account.
    """

    ADMIN = "ADMIN"
    USER = "USER"
    GUEST = "GUEST"


class User(TimestampMixin, Base):
    """An account known to reviewcore.

    Attributes:
        id: UUID primary key (from TimestampMixin).
        name: Display name.
        email: Unique email address, stored lower-cased.
        role: Account role.
        is_active: False once the account is disabled.
        github_id: Optional GitHub account id (string form).
    """

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role"),
        default=UserRole.USER,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    github_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
