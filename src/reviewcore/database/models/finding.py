"""Finding model for reviewcore.

A finding is one issue reported by a rule during a review. Findings are
immutable once written and disappear only together with their review (or
their rule).
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import CheckConstraint, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reviewcore.database.models.base import Base, TimestampMixin
from reviewcore.database.models.rule import Rule, Severity


class Finding(TimestampMixin, Base):
    """An issue found by a rule in a review's change set.

    Attributes:
        id: UUID primary key (from TimestampMixin).
        review_id: Foreign key to the review that produced it.
        rule_id: Foreign key to the rule that matched.
        file_path: Path of the file the issue is in.
        line_number: 1-based line number.
        column_start: Optional 1-based start column.
        column_end: Optional end column.
        severity: Severity at evaluation time.
        message: Description of the issue.
        snippet: Optional offending source excerpt.
        suggested_fix: Optional replacement suggestion.
        finding_metadata: Optional extra data (column ``metadata``).
        rule: Relationship to the matching Rule.
    """

    __tablename__ = "findings"
    __table_args__ = (
        CheckConstraint("line_number >= 1", name="ck_findings_line_number_positive"),
    )

    review_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("reviews.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    rule_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("rules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    column_start: Mapped[int | None] = mapped_column(Integer, nullable=True)
    column_end: Mapped[int | None] = mapped_column(Integer, nullable=True)
    severity: Mapped[Severity] = mapped_column(
        Enum(Severity, name="severity"),
        default=Severity.INFO,
        nullable=False,
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    snippet: Mapped[str | None] = mapped_column(Text, nullable=True)
    suggested_fix: Mapped[str | None] = mapped_column(Text, nullable=True)
    finding_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",
        nullable=True,
    )

    rule: Mapped[Rule] = relationship(Rule, lazy="selectin")
