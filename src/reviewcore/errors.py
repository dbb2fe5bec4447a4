"""Error taxonomy for reviewcore.

Every public operation raises one of the errors below. Each carries the
HTTP status class the web layer maps it to:

- ``ValidationError`` (400): malformed input or a business-rule conflict,
  with a field -> messages map.
- ``AuthenticationError`` (401): missing or invalid principal.
- ``AuthorizationError`` (403): valid principal, insufficient rights.
- ``NotFoundError`` (404): entity absent or not visible to the caller.

Store failures never reach callers directly. ``store_errors`` wraps each
operation boundary and converts ``SQLAlchemyError`` into a generic
``ValidationError`` chained to the original exception.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from sqlalchemy.exc import SQLAlchemyError

logger = structlog.get_logger(__name__)

FieldErrors = dict[str, list[str]]


class ReviewCoreError(Exception):
    """Base class for all errors surfaced by reviewcore operations.

    Attributes:
        message: Human-readable description of the failure.
        status_code: HTTP status class the failure maps to.
    """

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ReviewCoreError):
    """Malformed input, business-rule conflict, or illegal transition.

    Attributes:
        errors: Mapping of offending field name to its messages.
    """

    status_code = 400

    def __init__(self, message: str, errors: FieldErrors | None = None) -> None:
        super().__init__(message)
        self.errors: FieldErrors = errors or {}


class AuthenticationError(ReviewCoreError):
    """No principal, or the supplied credentials could not be verified."""

    status_code = 401

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message)


class AuthorizationError(ReviewCoreError):
    """The principal is known but lacks the rights for this action."""

    status_code = 403

    def __init__(self, message: str = "Not authorized to perform this action") -> None:
        super().__init__(message)


class NotFoundError(ReviewCoreError):
    """The entity does not exist or is not visible to the caller."""

    status_code = 404

    def __init__(self, resource: str = "Resource") -> None:
        super().__init__(f"{resource} not found")
        self.resource = resource


def field_errors(**fields: str | None) -> FieldErrors:
    """Build a field error map from keyword arguments, dropping empty ones.

    Example:
        >>> field_errors(name="Rule name is required", description=None)
        {'name': ['Rule name is required']}
    """
    return {name: [msg] for name, msg in fields.items() if msg}


@contextmanager
def store_errors(operation: str, message: str) -> Iterator[None]:
    """Translate store failures raised inside the block.

    ``ReviewCoreError`` subclasses pass through untouched. Any
    ``SQLAlchemyError`` is logged with its traceback and re-raised as a
    ``ValidationError`` carrying only ``message``; the store error stays
    reachable through ``__cause__``.

    Args:
        operation: Operation name used in the log event.
        message: Non-specific message returned to the caller.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error(
            "store_operation_failed",
            operation=operation,
            error_type=type(exc).__name__,
            exc_info=True,
        )
        raise ValidationError(
            message,
            {"general": [f"An unexpected error occurred during {operation.replace('_', ' ')}"]},
        ) from exc
