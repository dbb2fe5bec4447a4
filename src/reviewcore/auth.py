"""Bearer token handling for reviewcore.

Tokens are HS256 (by default) JWTs issued by the credential service with
the payload ``{"userId": <uuid>, "role": <role>}``. reviewcore only needs
the user id; the role is re-read from the stored account.

``issue_token`` mints tokens in the same format for local tooling and
tests.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import jwt

from reviewcore.config import AuthConfig
from reviewcore.database.models.user import User
from reviewcore.errors import AuthenticationError


def issue_token(
    user: User,
    config: AuthConfig,
    expires_in: timedelta | None = timedelta(hours=24),
) -> str:
    """Sign a token for ``user``."""
    payload: dict[str, Any] = {"userId": str(user.id), "role": user.role.name}
    if expires_in is not None:
        payload["exp"] = datetime.now(timezone.utc) + expires_in
    return jwt.encode(payload, config.jwt_secret, algorithm=config.jwt_algorithm)


def decode_token(token: str, config: AuthConfig) -> UUID:
    """Verify a token and return the user id it names.

    Raises:
        AuthenticationError: If the signature, expiry or payload is invalid.
    """
    try:
        payload = jwt.decode(token, config.jwt_secret, algorithms=[config.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired") from None
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token") from None

    try:
        return UUID(str(payload["userId"]))
    except (KeyError, ValueError):
        raise AuthenticationError("Invalid token payload") from None
