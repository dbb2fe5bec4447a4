"""Repository query functions for reviewcore.

Provides async functions for creating, reading, soft-deleting and purging
Repository records. Purging cascades explicitly to the repository's
reviews and their findings. Callers own the transaction.
"""

from __future__ import annotations

from uuid import UUID

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from reviewcore.database.models.finding import Finding
from reviewcore.database.models.repository import Repository, VCSProvider
from reviewcore.database.models.review import Review

logger = structlog.get_logger(__name__)


async def create_repository(
    session: AsyncSession,
    owner_id: UUID,
    name: str,
    url: str,
    vcs_provider: VCSProvider,
    description: str | None = None,
    is_private: bool = False,
    default_branch: str = "main",
) -> Repository:
    """Insert a new active repository for ``owner_id``.

    Returns:
        The newly created Repository instance.
    """
    repository = Repository(
        owner_id=owner_id,
        name=name,
        url=url,
        vcs_provider=vcs_provider,
        description=description,
        is_private=is_private,
        default_branch=default_branch,
        is_active=True,
    )
    session.add(repository)
    await session.flush()
    await session.refresh(repository, attribute_names=["owner"])
    return repository


async def get_repository(
    session: AsyncSession,
    repository_id: UUID,
    owner_id: UUID | None = None,
    active_only: bool = True,
) -> Repository | None:
    """Retrieve a repository by ID.

    Args:
        session: Active async database session.
        repository_id: UUID of the repository.
        owner_id: When given, only a repository owned by this user matches.
        active_only: Skip soft-deleted repositories.

    Returns:
        The Repository if found, None otherwise.
    """
    stmt = select(Repository).where(Repository.id == repository_id)
    if owner_id is not None:
        stmt = stmt.where(Repository.owner_id == owner_id)
    if active_only:
        stmt = stmt.where(Repository.is_active.is_(True))
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def find_repository_by_url(
    session: AsyncSession,
    owner_id: UUID,
    url: str,
) -> Repository | None:
    """Find the repository ``owner_id`` registered under ``url``, active or not."""
    stmt = select(Repository).where(
        Repository.owner_id == owner_id,
        Repository.url == url,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_repositories(
    session: AsyncSession,
    owner_id: UUID,
    include_inactive: bool = False,
) -> list[Repository]:
    """List repositories owned by a user, newest first."""
    stmt = select(Repository).where(Repository.owner_id == owner_id)
    if not include_inactive:
        stmt = stmt.where(Repository.is_active.is_(True))
    stmt = stmt.order_by(Repository.created_at.desc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def deactivate_repository(session: AsyncSession, repository_id: UUID) -> bool:
    """Soft-delete a repository.

    Returns:
        True if an active repository was deactivated.
    """
    stmt = (
        update(Repository)
        .where(Repository.id == repository_id, Repository.is_active.is_(True))
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount > 0


async def purge_repository(session: AsyncSession, repository_id: UUID) -> bool:
    """Physically delete a repository with its reviews and findings.

    Returns:
        True if the repository existed.
    """
    review_ids = select(Review.id).where(Review.repository_id == repository_id)
    findings = await session.execute(
        delete(Finding)
        .where(Finding.review_id.in_(review_ids))
        .execution_options(synchronize_session=False)
    )
    reviews = await session.execute(
        delete(Review)
        .where(Review.repository_id == repository_id)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(
        delete(Repository).where(Repository.id == repository_id)
    )

    deleted = result.rowcount > 0
    if deleted:
        logger.info(
            "repository_purged",
            repository_id=str(repository_id),
            reviews_deleted=reviews.rowcount,
            findings_deleted=findings.rowcount,
        )
    return deleted
