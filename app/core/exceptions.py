"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error responses across the application
- Machine-readable error codes for client handling
- An HTTP status per error family for the API layer

Exception Hierarchy:
    BaseApplicationError (base)
    ├── NotFoundError - Resource not found (404)
    ├── PermissionDeniedError - Authorization failures (403)
    └── ConflictError - State conflicts (409)

    Domain apps subclass these (see payments.exceptions).

Usage:
    from core.exceptions import NotFoundError

    raise NotFoundError(
        f"User {user_id} not found",
        error_code="USER_NOT_FOUND",
        details={"user_id": str(user_id)},
    )

    # Render in a view
    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.http_status)

Note:
    These exceptions are for domain/business logic errors.
    DRF handles API-layer exceptions (serialization, authentication, etc.).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, metadata, etc.)
        http_status: Status code the API layer responds with

    Example:
        try:
            CheckoutService.create_checkout_session(user, "gold")
        except BaseApplicationError as e:
            logger.warning(f"Checkout rejected: {e.error_code}")
            return Response(e.to_dict(), status=e.http_status)
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Returns:
            Dict with error, error_code, and details keys

        Example:
            {
                "error": "Unknown plan: gold",
                "error_code": "INVALID_PLAN",
                "details": {"plan_type": "gold"}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Example:
        subscription = Subscription.objects.active().filter(user=user).first()
        if not subscription:
            raise NotFoundError(
                "No active subscription",
                error_code="SUBSCRIPTION_NOT_FOUND",
            )
    """

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when a user acts on a resource they do not own.

    Note:
        For authentication failures (missing/invalid token), use DRF's
        AuthenticationFailed. Use this for authorization failures.
    """

    default_error_code: str = "PERMISSION_DENIED"
    http_status: int = 403


class ConflictError(BaseApplicationError):
    """
    Raised when operation conflicts with current resource state.

    Use for:
    - Duplicate entries (unique constraint violations)
    - Concurrent modification conflicts
    - Invalid state transitions
    - Reassigning identifiers that are fixed once set

    Example:
        if user.stripe_customer_id and user.stripe_customer_id != customer_id:
            raise ConflictError(
                "Stripe customer already assigned",
                error_code="CUSTOMER_ALREADY_ASSIGNED",
                details={"user_id": str(user.id)},
            )
    """

    default_error_code: str = "CONFLICT"
    http_status: int = 409

