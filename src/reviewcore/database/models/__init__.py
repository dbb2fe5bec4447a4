"""SQLAlchemy ORM models for reviewcore.

This module defines the database schema: users, repositories, rules,
reviews and findings.

All models use SQLAlchemy 2.0 declarative style with Mapped[] type annotations.
"""

from reviewcore.database.models.base import Base, TimestampMixin
from reviewcore.database.models.finding import Finding
from reviewcore.database.models.repository import Repository, VCSProvider
from reviewcore.database.models.review import Review, ReviewStatus
from reviewcore.database.models.rule import Rule, RuleCategory, Severity
from reviewcore.database.models.user import User, UserRole

__all__ = [
    "Base",
    "TimestampMixin",
    "User",
    "UserRole",
    "Repository",
    "VCSProvider",
    "Rule",
    "RuleCategory",
    "Severity",
    "Review",
    "ReviewStatus",
    "Finding",
]
