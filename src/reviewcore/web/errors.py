"""Exception handlers mapping reviewcore errors to JSON responses.

Every failure body has the shape::

    {"status": "fail", "message": "...", "errors": {"field": ["..."]}}

``errors`` is present for validation failures only. Unexpected exceptions
produce a 500 with ``{"status": "error", "message": "Internal server error"}``
and are logged with their traceback.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from reviewcore.errors import FieldErrors, ReviewCoreError, ValidationError
from reviewcore.logging import get_logger

logger = get_logger(__name__)


def fail_body(message: str, errors: FieldErrors | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"status": "fail", "message": message}
    if errors:
        body["errors"] = errors
    return body


def request_field_errors(exc: RequestValidationError) -> FieldErrors:
    """Flatten FastAPI's request validation errors into a field map."""
    errors: FieldErrors = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(location) or "body"
        errors.setdefault(field, []).append(str(error.get("msg", "Invalid value")))
    return errors


async def handle_reviewcore_error(request: Request, exc: ReviewCoreError) -> JSONResponse:
    errors = exc.errors if isinstance(exc, ValidationError) else None
    logger.info(
        "request_rejected",
        path=request.url.path,
        status_code=exc.status_code,
        error_type=type(exc).__name__,
        message=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=fail_body(exc.message, errors))


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=fail_body("Validation failed", request_field_errors(exc)),
    )


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=fail_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"status": "error", "message": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the reviewcore exception handlers on ``app``."""
    app.add_exception_handler(ReviewCoreError, handle_reviewcore_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, handle_unexpected_error)
