"""Rule model for reviewcore.

Rules are named analysis checks with a category, a severity and an opaque
matcher pattern. System rules (``is_custom=False``) ship with the product
and may only be changed by administrators; custom rules belong to the user
that created them.
"""

from __future__ import annotations

import enum
import uuid
from typing import Any

from sqlalchemy import Boolean, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reviewcore.database.models.base import Base, TimestampMixin
from reviewcore.database.models.user import User


class RuleCategory(enum.Enum):
    """Category of an analysis rule, in display order."""

    CODE_STYLE = "CODE_STYLE"
    SECURITY = "SECURITY"
    PERFORMANCE = "PERFORMANCE"
    MAINTAINABILITY = "MAINTAINABILITY"
    BUG_RISK = "BUG_RISK"


class Severity(enum.Enum):
    """Severity shared by rules and findings, least to most severe."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        """Position in the severity scale (INFO=0 ... CRITICAL=3)."""
        return _SEVERITY_ORDER.index(self)


_SEVERITY_ORDER = list(Severity)


class Rule(TimestampMixin, Base):
    """An analysis rule applied during review evaluation.

    Attributes:
        id: UUID primary key (from TimestampMixin).
        name: Globally unique rule name.
        description: What the rule checks for.
        category: Rule category.
        severity: Severity assigned to findings the rule produces.
        pattern: Matcher settings; ``pattern["type"]`` selects the
            matcher strategy.
        configuration: Free-form rule options passed to the matcher.
        is_enabled: Disabled rules are skipped during evaluation.
        is_custom: True when the rule was created by a user.
        created_by_id: Foreign key to the creating user, if any.
        created_by: Relationship to the creating User.
    """

    __tablename__ = "rules"

    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[RuleCategory] = mapped_column(
        Enum(RuleCategory, name="rule_category"),
        nullable=False,
    )
    severity: Mapped[Severity] = mapped_column(
        Enum(Severity, name="severity"),
        default=Severity.WARNING,
        nullable=False,
    )
    pattern: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
    configuration: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_custom: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_by: Mapped[User | None] = relationship(User, lazy="selectin")
