"""Database layer for reviewcore.

This module handles database connections and session management, and
exposes the SQLAlchemy models.

Public API:
    get_engine: Create an AsyncEngine from DatabaseConfig.
    get_session_factory: Create an async_sessionmaker from an engine.
    create_schema: Create missing tables on an engine.
    Base: SQLAlchemy declarative base for all models.
"""

from reviewcore.database.connection import create_schema, get_engine, get_session_factory
from reviewcore.database.models import (
    Base,
    Finding,
    Repository,
    Review,
    ReviewStatus,
    Rule,
    RuleCategory,
    Severity,
    TimestampMixin,
    User,
    UserRole,
    VCSProvider,
)

__all__ = [
    "get_engine",
    "get_session_factory",
    "create_schema",
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
