"""Repository registration for reviewcore.

Repositories are owned by exactly one user and are visible to that user
only. Deleting a repository through the API deactivates it; its reviews
stay in the store until ``purge`` removes them explicitly.
"""

from __future__ import annotations

from uuid import UUID

import structlog
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reviewcore.access import Principal, require_repository
from reviewcore.database.models.repository import Repository, VCSProvider
from reviewcore.database.queries import repository as repository_queries
from reviewcore.errors import ValidationError, field_errors, store_errors

logger = structlog.get_logger(__name__)


class RepositoryDraft(BaseModel):
    """Input for registering a repository."""

    name: str | None = None
    url: str | None = None
    description: str | None = None
    vcs_provider: VCSProvider = VCSProvider.GITHUB
    default_branch: str = "main"
    is_private: bool = False


class RepositoryPatch(BaseModel):
    """Partial update of a repository. Fields left unset are not touched."""

    name: str | None = None
    description: str | None = None
    default_branch: str | None = None
    is_private: bool | None = None


def _duplicate_url() -> ValidationError:
    return ValidationError(
        "Repository already exists for this user",
        {"url": ["Repository URL is already in use by this user"]},
    )


class RepositoryService:
    """Owner-scoped repository operations."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory
        self._logger = logger.bind(component="RepositoryService")

    async def create(self, draft: RepositoryDraft, owner: Principal) -> Repository:
        """Register a repository for ``owner``.

        Raises:
            ValidationError: If name or url is missing, or ``owner`` already
                registered the url.
        """
        errors = field_errors(
            name=None if draft.name and draft.name.strip() else "Name is required",
            url=None if draft.url and draft.url.strip() else "URL is required",
        )
        if errors:
            raise ValidationError("Validation failed", errors)

        name = (draft.name or "").strip()
        url = (draft.url or "").strip()
        with store_errors("create_repository", "Failed to create repository"):
            async with self.session_factory() as session:
                async with session.begin():
                    existing = await repository_queries.find_repository_by_url(
                        session, owner.user_id, url
                    )
                    if existing is not None:
                        raise _duplicate_url()
                    try:
                        repository = await repository_queries.create_repository(
                            session,
                            owner_id=owner.user_id,
                            name=name,
                            url=url,
                            vcs_provider=draft.vcs_provider,
                            description=draft.description,
                            is_private=draft.is_private,
                            default_branch=draft.default_branch,
                        )
                    except IntegrityError:
                        raise _duplicate_url() from None

        self._logger.info(
            "repository_created",
            repository_id=str(repository.id),
            owner_id=str(owner.user_id),
        )
        return repository

    async def list(self, owner: Principal) -> list[Repository]:
        """Active repositories owned by ``owner``, newest first."""
        with store_errors("list_repositories", "Failed to fetch repositories"):
            async with self.session_factory() as session:
                return await repository_queries.list_repositories(session, owner.user_id)

    async def get(self, repository_id: UUID, principal: Principal) -> Repository:
        """Fetch an active repository owned by the caller.

        Raises:
            NotFoundError: If it is absent, inactive or someone else's.
        """
        with store_errors("fetch_repository", "Failed to fetch repository"):
            async with self.session_factory() as session:
                return await require_repository(session, repository_id, principal)

    async def update(
        self,
        repository_id: UUID,
        patch: RepositoryPatch,
        principal: Principal,
    ) -> Repository:
        """Apply a partial update to an owned repository."""
        changes = patch.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in changes and not changes["name"].strip():
            raise ValidationError("Validation failed", {"name": ["Name cannot be empty"]})

        with store_errors("update_repository", "Failed to update repository"):
            async with self.session_factory() as session:
                async with session.begin():
                    repository = await require_repository(session, repository_id, principal)
                    for field, value in changes.items():
                        setattr(repository, field, value)
                    await session.flush()
                    await session.refresh(repository)

        self._logger.info(
            "repository_updated",
            repository_id=str(repository_id),
            fields=sorted(changes),
        )
        return repository

    async def deactivate(self, repository_id: UUID, principal: Principal) -> None:
        """Soft-delete an owned repository."""
        with store_errors("delete_repository", "Failed to delete repository"):
            async with self.session_factory() as session:
                async with session.begin():
                    await require_repository(session, repository_id, principal)
                    await repository_queries.deactivate_repository(session, repository_id)

        self._logger.info("repository_deactivated", repository_id=str(repository_id))

    async def purge(self, repository_id: UUID, principal: Principal) -> None:
        """Delete an owned repository with all its reviews and findings."""
        with store_errors("purge_repository", "Failed to delete repository"):
            async with self.session_factory() as session:
                async with session.begin():
                    await require_repository(session, repository_id, principal)
                    await repository_queries.purge_repository(session, repository_id)
