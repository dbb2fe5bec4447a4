"""Access control checks for reviewcore.

Ownership is the only repository access model: a principal may see and act
on a repository (and its reviews) only if it owns it. Rules are split into
system rules, mutable by administrators only, and custom rules, mutable by
their creator or an administrator.

Failures caused by visibility are reported as ``NotFoundError`` so callers
cannot probe for resources they do not own.
"""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict
from sqlalchemy import ColumnElement
from sqlalchemy.ext.asyncio import AsyncSession

from reviewcore.database.models.repository import Repository
from reviewcore.database.models.rule import Rule
from reviewcore.database.models.user import User, UserRole
from reviewcore.database.queries.repository import get_repository
from reviewcore.errors import NotFoundError


class Principal(BaseModel):
    """Resolved identity of a caller.

    Attributes:
        user_id: ID of the authenticated user.
        role: Role the user holds.
    """

    model_config = ConfigDict(frozen=True)

    user_id: UUID
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN

    @classmethod
    def from_user(cls, user: User) -> Principal:
        """Build a principal from a stored user."""
        return cls(user_id=user.id, role=user.role)


def can_access_repository(principal: Principal, repository: Repository) -> bool:
    """True iff the principal owns the repository."""
    return repository.owner_id == principal.user_id


def can_mutate_rule(principal: Principal, rule: Rule) -> bool:
    """True iff the principal is an admin, or created this custom rule."""
    if principal.is_admin:
        return True
    return rule.is_custom and rule.created_by_id == principal.user_id


def visible_rules(principal: Principal) -> list[ColumnElement[bool]]:
    """SQL conditions restricting a rule query to what the principal may see.

    Admins see every rule. Everyone else sees custom rules only; system
    rules are filtered out by the query rather than rejected afterwards.
    """
    if principal.is_admin:
        return []
    return [Rule.is_custom.is_(True)]


async def require_repository(
    session: AsyncSession,
    repository_id: UUID,
    principal: Principal,
) -> Repository:
    """Load an active repository the principal owns.

    Raises:
        NotFoundError: If the repository is absent, inactive or owned by
            someone else.
    """
    repository = await get_repository(session, repository_id, owner_id=principal.user_id)
    if repository is None or not can_access_repository(principal, repository):
        raise NotFoundError("Repository")
    return repository
