"""Structured logging for reviewcore.

All log lines are emitted through structlog and written by a single stdlib
handler on the root logger: stdout by default, or a size-rotated file when
``LoggingConfig.file`` is set. Output is JSON lines or the structlog console
renderer.

Two kinds of context are attached automatically:

- ``correlation_id``: set per HTTP request by the request middleware
- ``review_id`` / ``repository_id``: bound by evaluation jobs for the
  duration of one run

Usage::

    setup_logging(LoggingConfig(level="INFO", format="json"))
    logger = get_logger(__name__)
    logger.info("review_created", review_id=str(review.id))
"""

from __future__ import annotations

import contextvars
import logging
import logging.handlers
import sys
from typing import Any

import structlog

from reviewcore.config import LoggingConfig

# Libraries that log every statement or request at INFO/DEBUG.
NOISY_LOGGERS = ("aiosqlite", "sqlalchemy.engine", "uvicorn.access")

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)


def add_correlation_id(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """structlog processor copying the current correlation id into the event."""
    correlation_id = _correlation_id.get()
    if correlation_id is not None:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def set_correlation_id(correlation_id: str | None) -> None:
    _correlation_id.set(correlation_id)


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def bind_review_context(review_id: str, repository_id: str | None = None) -> None:
    """Attach review identifiers to every log line in the current context.

    Args:
        review_id: Review being evaluated.
        repository_id: Repository the review belongs to, once known.
    """
    context: dict[str, Any] = {"review_id": review_id}
    if repository_id is not None:
        context["repository_id"] = repository_id
    structlog.contextvars.bind_contextvars(**context)


def clear_review_context() -> None:
    structlog.contextvars.unbind_contextvars("review_id", "repository_id")


def _build_handler(config: LoggingConfig) -> logging.Handler:
    if config.file is None:
        return logging.StreamHandler(sys.stdout)

    config.file.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        filename=config.file,
        maxBytes=config.rotation_size_mb * 1024 * 1024,
        backupCount=config.retention_count,
        encoding="utf-8",
    )


def setup_logging(config: LoggingConfig) -> None:
    """Install the root handler and configure structlog.

    Safe to call more than once; each call replaces the previous handler.
    Third-party loggers in ``NOISY_LOGGERS`` are held at WARNING unless the
    configured level is DEBUG.

    Args:
        config: Logging section of ReviewcoreConfig.
    """
    level = getattr(logging, config.level)

    handler = _build_handler(config)
    handler.setLevel(level)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    library_level = level if level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    renderer: Any
    if config.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_correlation_id,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger named after the calling module."""
    return structlog.get_logger(name)  # type: ignore[no-any-return]
