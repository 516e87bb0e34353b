"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for expected failures
- BaseService: Base class with per-service logging and transactions

Service Layer Philosophy:
    Services encapsulate business logic separate from views and models.
    Views handle HTTP concerns, models handle data, services handle logic.

Pattern Comparison:
    - ServiceResult: Use for expected failures (duplicates, inactive types)
    - Exceptions: Use for failures the caller must not ignore (Stripe errors,
      invalid plans, ownership violations)

Usage:
    from core.services import BaseService, ServiceResult

    class NotificationService(BaseService):
        @classmethod
        def create_notification(cls, recipient, ...) -> ServiceResult[Notification]:
            with cls.atomic():
                notification = Notification.objects.create(...)

            cls.get_logger().info(f"Created notification {notification.id}")
            return ServiceResult.success(notification)

    result = NotificationService.create_notification(...)
    if not result:
        logger.info(f"Skipped: {result.error_code}")

Related:
    - core.exceptions: Domain errors rendered by the API layer
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for callers
        errors: Field-level errors for validation failures

    Usage:
        return ServiceResult.success(notification)
        return ServiceResult.failure("Already notified", error_code="DUPLICATE")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """Create a successful result carrying ``data``."""
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code
            errors: Field-level errors (for validation failures)
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    def __bool__(self) -> bool:
        """Allow using result in boolean context (same as result.success)."""
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Design Notes:
        - Use @classmethod (no instance state)
        - Collaborators (e.g. the Stripe adapter) are passed as arguments
        - Use ServiceResult for expected failures
        - Raise exceptions for unexpected failures
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named after the service class, for filtering."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        Example:
            with cls.atomic():
                owner = lock_user(user.pk)
                payment_method.set_as_default()
        """
        with transaction.atomic():
            yield
