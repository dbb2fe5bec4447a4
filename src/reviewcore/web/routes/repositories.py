"""Repository endpoints for reviewcore.

All routes act on the caller's own repositories; another user's
repository answers 404.

Routes:
    POST   /repositories
    GET    /repositories
    GET    /repositories/{repository_id}
    PUT    /repositories/{repository_id}
    DELETE /repositories/{repository_id}   (soft delete)
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi import status as http_status

from reviewcore.access import Principal
from reviewcore.context import ServiceContext
from reviewcore.logging import get_logger
from reviewcore.repositories import RepositoryDraft, RepositoryPatch
from reviewcore.web.deps import get_context, get_principal
from reviewcore.web.schemas import RepositoryCreate, RepositoryResponse, RepositoryUpdate

logger = get_logger(__name__)


def create_repositories_router() -> APIRouter:
    """Create the repositories router."""
    router = APIRouter(prefix="/repositories", tags=["repositories"])

    @router.post("", response_model=RepositoryResponse, status_code=http_status.HTTP_201_CREATED)
    async def create_repository(
        body: RepositoryCreate,
        principal: Principal = Depends(get_principal),  # noqa: B008
        context: ServiceContext = Depends(get_context),  # noqa: B008
    ) -> RepositoryResponse:
        repository = await context.repositories.create(
            RepositoryDraft(**body.model_dump()),
            principal,
        )
        return RepositoryResponse.model_validate(repository)

    @router.get("", response_model=list[RepositoryResponse])
    async def list_repositories(
        principal: Principal = Depends(get_principal),  # noqa: B008
        context: ServiceContext = Depends(get_context),  # noqa: B008
    ) -> list[RepositoryResponse]:
        repositories = await context.repositories.list(principal)
        return [RepositoryResponse.model_validate(r) for r in repositories]

    @router.get("/{repository_id}", response_model=RepositoryResponse)
    async def get_repository(
        repository_id: UUID,
        principal: Principal = Depends(get_principal),  # noqa: B008
        context: ServiceContext = Depends(get_context),  # noqa: B008
    ) -> RepositoryResponse:
        repository = await context.repositories.get(repository_id, principal)
        return RepositoryResponse.model_validate(repository)

    @router.put("/{repository_id}", response_model=RepositoryResponse)
    async def update_repository(
        repository_id: UUID,
        body: RepositoryUpdate,
        principal: Principal = Depends(get_principal),  # noqa: B008
        context: ServiceContext = Depends(get_context),  # noqa: B008
    ) -> RepositoryResponse:
        patch = RepositoryPatch(**body.model_dump(exclude_unset=True))
        repository = await context.repositories.update(repository_id, patch, principal)
        return RepositoryResponse.model_validate(repository)

    @router.delete("/{repository_id}", status_code=http_status.HTTP_204_NO_CONTENT)
    async def delete_repository(
        repository_id: UUID,
        principal: Principal = Depends(get_principal),  # noqa: B008
        context: ServiceContext = Depends(get_context),  # noqa: B008
    ) -> None:
        await context.repositories.deactivate(repository_id, principal)
        logger.info("repository_deleted_via_api", repository_id=str(repository_id))

    return router
