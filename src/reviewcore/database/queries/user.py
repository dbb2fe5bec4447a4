"""User query functions for reviewcore.

Users are provisioned by the external credential service; these functions
cover what the core needs: lookup for principal resolution and creation
for bootstrap tooling. Callers own the transaction.
"""

from __future__ import annotations

from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from reviewcore.database.models.user import User, UserRole

logger = structlog.get_logger(__name__)


def normalise_email(email: str) -> str:
    """Canonical form used for storage and case-insensitive lookups."""
    return email.strip().lower()


async def create_user(
    session: AsyncSession,
    name: str,
    email: str,
    role: UserRole = UserRole.USER,
    github_id: str | None = None,
) -> User:
    """Insert a new user and flush it to obtain its id.

    Args:
        session: Active async database session.
        name: Display name.
        email: Email address; stored lower-cased.
        role: Account role.
        github_id: Optional GitHub account id.

    Returns:
        The newly created User instance.
    """
    user = User(
        name=name,
        email=normalise_email(email),
        role=role,
        github_id=github_id,
        is_active=True,
    )
    session.add(user)
    await session.flush()

    logger.info("user_created", user_id=str(user.id), role=role.name)
    return user


async def get_user(session: AsyncSession, user_id: UUID) -> User | None:
    """Retrieve a user by ID."""
    return await session.get(User, user_id)


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    """Retrieve a user by email, ignoring case."""
    stmt = select(User).where(func.lower(User.email) == normalise_email(email))
    result = await session.execute(stmt)
    return result.scalar_one_or_none()
