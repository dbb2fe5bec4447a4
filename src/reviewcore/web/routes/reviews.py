"""Code review endpoints for reviewcore.

Reviews are nested under the repository they belong to; the caller must
own that repository.

Routes:
    POST   /repositories/{repository_id}/reviews
    GET    /repositories/{repository_id}/reviews
    GET    /repositories/{repository_id}/reviews/stats
    GET    /repositories/{repository_id}/reviews/{review_id}
    POST   /repositories/{repository_id}/reviews/{review_id}/cancel
    DELETE /repositories/{repository_id}/reviews/{review_id}
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi import status as http_status

from reviewcore.access import Principal
from reviewcore.context import ServiceContext
from reviewcore.logging import get_logger
from reviewcore.web.deps import get_context, get_principal
from reviewcore.web.schemas import (
    FindingResponse,
    ReviewCreate,
    ReviewDetailResponse,
    ReviewResponse,
    ReviewStatsResponse,
)

logger = get_logger(__name__)


def create_reviews_router() -> APIRouter:
    """Create the reviews router.

    ``/stats`` is registered before ``/{review_id}`` so it is not parsed as
    a review id.
    """
    router = APIRouter(prefix="/repositories/{repository_id}/reviews", tags=["reviews"])

    @router.post("", response_model=ReviewResponse, status_code=http_status.HTTP_201_CREATED)
    async def create_review(
        repository_id: UUID,
        body: ReviewCreate,
        principal: Principal = Depends(get_principal),  # noqa: B008
        context: ServiceContext = Depends(get_context),  # noqa: B008
    ) -> ReviewResponse:
        """Create a review; evaluation runs in the background."""
        review = await context.lifecycle.create(
            repository_id,
            body.commit_id,
            body.branch,
            principal,
        )
        return ReviewResponse.model_validate(review)

    @router.get("", response_model=list[ReviewResponse])
    async def list_reviews(
        repository_id: UUID,
        principal: Principal = Depends(get_principal),  # noqa: B008
        context: ServiceContext = Depends(get_context),  # noqa: B008
    ) -> list[ReviewResponse]:
        reviews = await context.lifecycle.list(repository_id, principal)
        return [ReviewResponse.model_validate(r) for r in reviews]

    @router.get("/stats", response_model=ReviewStatsResponse)
    async def review_stats(
        repository_id: UUID,
        principal: Principal = Depends(get_principal),  # noqa: B008
        context: ServiceContext = Depends(get_context),  # noqa: B008
    ) -> ReviewStatsResponse:
        metrics = await context.metrics.compute(repository_id, principal)
        return ReviewStatsResponse.model_validate(metrics.model_dump())

    @router.get("/{review_id}", response_model=ReviewDetailResponse)
    async def get_review(
        repository_id: UUID,
        review_id: UUID,
        principal: Principal = Depends(get_principal),  # noqa: B008
        context: ServiceContext = Depends(get_context),  # noqa: B008
    ) -> ReviewDetailResponse:
        """Fetch a review with its findings in report order."""
        review = await context.lifecycle.get(review_id, principal, repository_id)
        findings = await context.findings.list_by_review(review.id)

        detail = ReviewDetailResponse.model_validate(review)
        detail.findings = [FindingResponse.model_validate(f) for f in findings]
        return detail

    @router.post("/{review_id}/cancel", response_model=ReviewResponse)
    async def cancel_review(
        repository_id: UUID,
        review_id: UUID,
        principal: Principal = Depends(get_principal),  # noqa: B008
        context: ServiceContext = Depends(get_context),  # noqa: B008
    ) -> ReviewResponse:
        review = await context.lifecycle.cancel(review_id, principal, repository_id)
        return ReviewResponse.model_validate(review)

    @router.delete("/{review_id}", status_code=http_status.HTTP_204_NO_CONTENT)
    async def delete_review(
        repository_id: UUID,
        review_id: UUID,
        principal: Principal = Depends(get_principal),  # noqa: B008
        context: ServiceContext = Depends(get_context),  # noqa: B008
    ) -> None:
        await context.lifecycle.delete(review_id, principal, repository_id)

    return router
