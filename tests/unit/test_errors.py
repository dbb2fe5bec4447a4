"""Unit tests for the error taxonomy and store error translation."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from reviewcore.errors import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ReviewCoreError,
    ValidationError,
    field_errors,
    store_errors,
)


@pytest.mark.parametrize(
    "error,status_code",
    [
        (ValidationError("bad"), 400),
        (AuthenticationError(), 401),
        (AuthorizationError(), 403),
        (NotFoundError("Rule"), 404),
    ],
)
def test_status_codes(error: ReviewCoreError, status_code: int) -> None:
    assert error.status_code == status_code
    assert isinstance(error, ReviewCoreError)


def test_not_found_message() -> None:
    error = NotFoundError("Code review")
    assert error.message == "Code review not found"
    assert error.resource == "Code review"


def test_validation_error_defaults_to_empty_errors() -> None:
    assert ValidationError("bad").errors == {}


def test_field_errors_drops_empty_entries() -> None:
    assert field_errors(name="Name is required", description=None, url="") == {
        "name": ["Name is required"]
    }


class TestStoreErrors:
    def test_passes_through_domain_errors(self) -> None:
        with pytest.raises(NotFoundError):
            with store_errors("fetch_rule", "Failed to fetch rule"):
                raise NotFoundError("Rule")

    def test_translates_sqlalchemy_errors(self) -> None:
        original = OperationalError("SELECT 1", {}, Exception("database is locked"))

        with pytest.raises(ValidationError) as excinfo:
            with store_errors("list_rules", "Failed to fetch rules"):
                raise original

        assert excinfo.value.message == "Failed to fetch rules"
        assert excinfo.value.errors == {
            "general": ["An unexpected error occurred during list rules"]
        }
        assert excinfo.value.__cause__ is original

    def test_store_detail_is_not_leaked(self) -> None:
        with pytest.raises(ValidationError) as excinfo:
            with store_errors("create_rule", "Failed to create rule"):
                raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: rules.name"))

        assert "UNIQUE" not in excinfo.value.message
        assert "UNIQUE" not in str(excinfo.value.errors)

    def test_other_exceptions_propagate(self) -> None:
        with pytest.raises(KeyError):
            with store_errors("fetch_rule", "Failed to fetch rule"):
                raise KeyError("x")
