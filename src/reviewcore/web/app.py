"""FastAPI application factory for reviewcore.

This module provides the application factory that creates and configures
a FastAPI application with:
- CORS middleware for cross-origin requests
- Request logging middleware with correlation IDs
- Error handlers producing the ``{"status": "fail", ...}`` body
- A service context and evaluation workers managed by the lifespan

Example usage:
    >>> from reviewcore.config import ReviewcoreConfig
    >>> from reviewcore.web.app import create_app
    >>>
    >>> app = create_app(ReviewcoreConfig())
    >>>
    >>> import uvicorn
    >>> uvicorn.run(app, host="0.0.0.0", port=8000)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reviewcore import __version__
from reviewcore.config import ReviewcoreConfig
from reviewcore.context import ServiceContext, context_from_config
from reviewcore.logging import get_logger
from reviewcore.web.errors import register_exception_handlers
from reviewcore.web.middleware import RequestLoggingMiddleware
from reviewcore.web.routes.health import create_health_router
from reviewcore.web.routes.repositories import create_repositories_router
from reviewcore.web.routes.reviews import create_reviews_router
from reviewcore.web.routes.rules import create_rules_router

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build (or adopt) the service context and run the evaluation workers.

    A context passed to ``create_app`` is used as is and left open on
    shutdown; otherwise one is built from the configuration and closed,
    disposing its database engine.
    """
    config: ReviewcoreConfig = app.state.config
    owns_context = app.state.context is None
    if owns_context:
        app.state.context = context_from_config(config)
    context: ServiceContext = app.state.context

    logger.info("app_startup_begin", host=config.web.host, port=config.web.port)
    await context.start()

    yield

    logger.info("app_shutdown_begin")
    if owns_context:
        await context.close()
        app.state.context = None
    else:
        await context.scheduler.stop()
    logger.info("app_shutdown_complete")


def create_app(
    config: ReviewcoreConfig | None = None,
    context: ServiceContext | None = None,
) -> FastAPI:
    """Create and configure the reviewcore API application.

    Args:
        config: Configuration; defaults to ``ReviewcoreConfig()``.
        context: Pre-built service context, e.g. one bound to a test
            database. When omitted the lifespan builds one from ``config``.

    Returns:
        Configured FastAPI application instance.
    """
    if config is None:
        config = ReviewcoreConfig()

    app = FastAPI(
        title="reviewcore",
        version=__version__,
        description="Code review orchestration and rule evaluation",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.web.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)

    app.include_router(create_health_router())
    app.include_router(create_repositories_router())
    app.include_router(create_reviews_router())
    app.include_router(create_rules_router())

    logger.info("app_created", cors_origins=config.web.cors_origins, version=__version__)
    return app
