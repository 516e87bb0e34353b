"""
Tests for the application exception hierarchy.
"""

import pytest

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
)


class TestBaseApplicationError:
    """Tests for BaseApplicationError."""

    def test_defaults(self):
        error = BaseApplicationError("Something failed")

        assert error.message == "Something failed"
        assert error.error_code == "APPLICATION_ERROR"
        assert error.details == {}
        assert error.http_status == 400
        assert str(error) == "[APPLICATION_ERROR] Something failed"

    def test_to_dict_includes_details_when_present(self):
        error = BaseApplicationError(
            "Unknown plan: gold",
            error_code="INVALID_PLAN",
            details={"plan_type": "gold"},
        )

        assert error.to_dict() == {
            "error": "Unknown plan: gold",
            "error_code": "INVALID_PLAN",
            "details": {"plan_type": "gold"},
        }

    def test_to_dict_omits_empty_details(self):
        assert BaseApplicationError("x").to_dict() == {
            "error": "x",
            "error_code": "APPLICATION_ERROR",
        }

    def test_repr(self):
        error = NotFoundError("gone", details={"id": "1"})

        assert repr(error) == (
            "NotFoundError(message='gone', error_code='NOT_FOUND', details={'id': '1'})"
        )


@pytest.mark.parametrize(
    "error_class,code,status",
    [
        (NotFoundError, "NOT_FOUND", 404),
        (PermissionDeniedError, "PERMISSION_DENIED", 403),
        (ConflictError, "CONFLICT", 409),
    ],
)
def test_subclass_defaults(error_class, code, status):
    """Each family has its own default code and HTTP status."""
    error = error_class("message")

    assert isinstance(error, BaseApplicationError)
    assert error.error_code == code
    assert error.http_status == status


def test_explicit_error_code_wins():
    error = NotFoundError("No active subscription", error_code="SUBSCRIPTION_NOT_FOUND")

    assert error.error_code == "SUBSCRIPTION_NOT_FOUND"
    assert error.http_status == 404
