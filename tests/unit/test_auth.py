"""Unit tests for bearer token handling."""

from __future__ import annotations

import uuid
from datetime import timedelta

import jwt
import pytest

from reviewcore.auth import decode_token, issue_token
from reviewcore.config import AuthConfig
from reviewcore.database.models.user import User, UserRole
from reviewcore.errors import AuthenticationError

CONFIG = AuthConfig(jwt_secret="unit-test-secret")


def make_user(role: UserRole = UserRole.USER) -> User:
    return User(id=uuid.uuid4(), name="Ada", email="ada@example.com", role=role)


def test_round_trip_returns_user_id() -> None:
    user = make_user()
    assert decode_token(issue_token(user, CONFIG), CONFIG) == user.id


def test_payload_carries_role_name() -> None:
    token = issue_token(make_user(UserRole.ADMIN), CONFIG)
    payload = jwt.decode(token, CONFIG.jwt_secret, algorithms=[CONFIG.jwt_algorithm])
    assert payload["role"] == "ADMIN"
    assert "exp" in payload


def test_token_without_expiry() -> None:
    token = issue_token(make_user(), CONFIG, expires_in=None)
    payload = jwt.decode(token, CONFIG.jwt_secret, algorithms=[CONFIG.jwt_algorithm])
    assert "exp" not in payload


def test_expired_token() -> None:
    token = issue_token(make_user(), CONFIG, expires_in=timedelta(seconds=-10))
    with pytest.raises(AuthenticationError, match="Token has expired"):
        decode_token(token, CONFIG)


def test_wrong_secret() -> None:
    token = issue_token(make_user(), AuthConfig(jwt_secret="another-secret"))
    with pytest.raises(AuthenticationError, match="Invalid token"):
        decode_token(token, CONFIG)


def test_garbage_token() -> None:
    with pytest.raises(AuthenticationError, match="Invalid token"):
        decode_token("not-a-jwt", CONFIG)


@pytest.mark.parametrize("payload", [{"role": "USER"}, {"userId": "not-a-uuid"}])
def test_invalid_payload(payload: dict[str, str]) -> None:
    token = jwt.encode(payload, CONFIG.jwt_secret, algorithm=CONFIG.jwt_algorithm)
    with pytest.raises(AuthenticationError, match="Invalid token payload"):
        decode_token(token, CONFIG)
