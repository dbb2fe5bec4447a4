"""User accounts and principal resolution for reviewcore.

Accounts are normally provisioned by the external credential service;
``UserService.create`` exists for bootstrap tooling (``reviewcore
create-user``) and tests. Every authenticated request resolves its
principal through ``UserService.resolve_principal`` so that disabled or
deleted accounts are rejected and the stored role is authoritative.
"""

from __future__ import annotations

from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reviewcore.access import Principal
from reviewcore.database.models.user import User, UserRole
from reviewcore.database.queries import user as user_queries
from reviewcore.errors import AuthenticationError, ValidationError, field_errors, store_errors

logger = structlog.get_logger(__name__)


def _duplicate_email() -> ValidationError:
    return ValidationError(
        "User with this email already exists",
        {"email": ["Email address is already registered"]},
    )


class UserService:
    """Account lookup and creation."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def create(
        self,
        name: str,
        email: str,
        role: UserRole = UserRole.USER,
        github_id: str | None = None,
    ) -> User:
        """Create an account.

        Raises:
            ValidationError: If name or email is blank, or the email (in any
                letter case) is already registered.
        """
        errors = field_errors(
            name=None if name and name.strip() else "Name is required",
            email=None if email and "@" in email else "A valid email is required",
        )
        if errors:
            raise ValidationError("Validation failed", errors)

        with store_errors("create_user", "Failed to create user"):
            async with self.session_factory() as session:
                async with session.begin():
                    if await user_queries.get_user_by_email(session, email) is not None:
                        raise _duplicate_email()
                    try:
                        return await user_queries.create_user(
                            session,
                            name=name.strip(),
                            email=email,
                            role=role,
                            github_id=github_id,
                        )
                    except IntegrityError:
                        raise _duplicate_email() from None

    async def get(self, user_id: UUID) -> User | None:
        with store_errors("fetch_user", "Failed to fetch user"):
            async with self.session_factory() as session:
                return await user_queries.get_user(session, user_id)

    async def get_by_email(self, email: str) -> User | None:
        with store_errors("fetch_user", "Failed to fetch user"):
            async with self.session_factory() as session:
                return await user_queries.get_user_by_email(session, email)

    async def resolve_principal(self, user_id: UUID) -> Principal:
        """Turn a verified token subject into a principal.

        Raises:
            AuthenticationError: If the account does not exist or is
                disabled.
        """
        user = await self.get(user_id)
        if user is None:
            logger.info("principal_unknown_user", user_id=str(user_id))
            raise AuthenticationError("User not found")
        if not user.is_active:
            logger.info("principal_inactive_user", user_id=str(user_id))
            raise AuthenticationError("User account is deactivated")
        return Principal.from_user(user)
