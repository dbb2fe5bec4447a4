"""FastAPI dependencies for reviewcore routes.

Components live on ``app.state.context`` (a ``ServiceContext``); the
configuration lives on ``app.state.config``. Authenticated routes depend on
``get_principal``, which verifies the bearer token and resolves the account
it names.
"""

from __future__ import annotations

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from reviewcore.access import Principal
from reviewcore.auth import decode_token
from reviewcore.config import ReviewcoreConfig
from reviewcore.context import ServiceContext
from reviewcore.errors import AuthenticationError

bearer_scheme = HTTPBearer(auto_error=False)


def get_config(request: Request) -> ReviewcoreConfig:
    """Dependency that retrieves the configuration from app state."""
    return request.app.state.config  # type: ignore[no-any-return]


def get_context(request: Request) -> ServiceContext:
    """Dependency that retrieves the service context from app state."""
    return request.app.state.context  # type: ignore[no-any-return]


async def get_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),  # noqa: B008
    config: ReviewcoreConfig = Depends(get_config),  # noqa: B008
    context: ServiceContext = Depends(get_context),  # noqa: B008
) -> Principal:
    """Resolve the caller from the ``Authorization: Bearer`` header.

    Raises:
        AuthenticationError: If no token is supplied, it does not verify,
            or its account is unknown or disabled.
    """
    if credentials is None:
        raise AuthenticationError("No token provided")

    user_id = decode_token(credentials.credentials, config.auth)
    return await context.users.resolve_principal(user_id)
