"""Health check endpoints for reviewcore.

- ``GET /health/``: liveness, always ``ok`` while the process serves
- ``GET /health/ready``: readiness, verifies the database answers
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text

from reviewcore.context import ServiceContext
from reviewcore.logging import get_logger
from reviewcore.web.deps import get_context

logger = get_logger(__name__)


class HealthResponse(BaseModel):
    status: str


class ReadinessResponse(BaseModel):
    """Readiness check response.

    Attributes:
        status: "ok" or "unhealthy"
        database: "connected" or "disconnected"
        queued_reviews: Reviews waiting for an evaluation worker
    """

    status: str
    database: str
    queued_reviews: int


def create_health_router() -> APIRouter:
    """Create the health check router."""
    router = APIRouter(prefix="/health", tags=["health"])

    @router.get("/", response_model=HealthResponse)
    async def health() -> dict[str, Any]:
        return {"status": "ok"}

    @router.get("/ready", response_model=ReadinessResponse)
    async def readiness(
        context: ServiceContext = Depends(get_context),  # noqa: B008
    ) -> dict[str, Any]:
        """Readiness check with database connectivity verification."""
        queued = context.scheduler.pending
        try:
            async with context.session_factory() as session:
                await session.execute(text("SELECT 1"))
        except Exception as exc:
            logger.warning("readiness_check_failed", database="disconnected", error=str(exc))
            return {"status": "unhealthy", "database": "disconnected", "queued_reviews": queued}

        logger.debug("readiness_check_passed", database="connected")
        return {"status": "ok", "database": "connected", "queued_reviews": queued}

    return router
