"""FastAPI route definitions for reviewcore."""

from __future__ import annotations

from reviewcore.web.routes.health import (
    HealthResponse,
    ReadinessResponse,
    create_health_router,
)
from reviewcore.web.routes.repositories import create_repositories_router
from reviewcore.web.routes.reviews import create_reviews_router
from reviewcore.web.routes.rules import create_rules_router

__all__ = [
    "HealthResponse",
    "ReadinessResponse",
    "create_health_router",
    "create_repositories_router",
    "create_reviews_router",
    "create_rules_router",
]
