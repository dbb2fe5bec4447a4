"""HTTP API for reviewcore."""

from __future__ import annotations

from reviewcore.web.app import create_app
from reviewcore.web.middleware import RequestLoggingMiddleware

__all__ = [
    "create_app",
    "RequestLoggingMiddleware",
]
