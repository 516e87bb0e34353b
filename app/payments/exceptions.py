"""
Billing-specific exceptions.

This module provides the hierarchy of exceptions raised by the billing
services, the webhook verifier and the Stripe adapter.

Exception Hierarchy:
    PaymentError (base for billing domain)
    ├── PaymentValidationError - Validation failures (400)
    │   ├── InvalidSignatureError - Webhook signature rejected
    │   └── InvalidPlanError - Unknown plan requested at checkout
    └── PaymentProcessingError - Processing failures (502)
        ├── CustomerCreationError - Stripe customer could not be created
        ├── CheckoutSessionError - Stripe checkout session could not be created
        └── StripeError - Base for all translated Stripe SDK errors
            ├── StripeCardDeclinedError - Card declined (permanent)
            ├── StripeInsufficientFundsError - Insufficient funds (permanent)
            ├── StripeInvalidRequestError - Invalid request params (permanent)
            ├── StripeAuthenticationError - Bad API key (permanent)
            ├── StripeRateLimitError - Rate limited (transient, retry)
            ├── StripeAPIUnavailableError - API unavailable (transient, retry)
            └── StripeTimeoutError - Request timeout (transient, retry)

    PaymentMethodMismatchError - Payment method owned by another customer
        (inherits PermissionDeniedError, 403)
    LockAcquisitionError - Distributed lock timeout (inherits ConflictError)

Usage:
    from payments.exceptions import InvalidPlanError, StripeError

    try:
        CheckoutService.create_checkout_session(user, plan_type)
    except InvalidPlanError as e:
        return Response(e.to_dict(), status=e.http_status)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError, PermissionDeniedError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all billing operations.

    Inherits from BaseApplicationError for consistent API error responses.
    """

    default_error_code: str = "PAYMENT_ERROR"


class PaymentValidationError(PaymentError):
    """
    Raised when billing input validation fails.

    Use for:
    - Unknown billing cycle
    - Missing required fields
    - Business rule violations

    Example:
        if billing_cycle not in BillingCycle.values:
            raise PaymentValidationError(
                f"Unknown billing cycle: {billing_cycle}",
                error_code="INVALID_BILLING_CYCLE",
                details={"billing_cycle": billing_cycle},
            )
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"
    http_status: int = 400


class InvalidSignatureError(PaymentValidationError):
    """
    Raised when a webhook fails authentication.

    Covers a missing or malformed signature header, a signature mismatch,
    a stale timestamp and a body that is not a Stripe event. The request
    is rejected and never processed.
    """

    default_error_code: str = "INVALID_SIGNATURE"


class InvalidPlanError(PaymentValidationError):
    """Raised when checkout is requested for a plan not in the catalog."""

    default_error_code: str = "INVALID_PLAN"


class PaymentProcessingError(PaymentError):
    """
    Raised when a call to the payment processor fails.

    The HTTP layer reports these as 502: the request was valid but the
    upstream could not complete it.
    """

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"
    http_status: int = 502


class CustomerCreationError(PaymentProcessingError):
    """Raised when the user's Stripe customer cannot be created or retrieved."""

    default_error_code: str = "CUSTOMER_CREATION_FAILED"


class CheckoutSessionError(PaymentProcessingError):
    """
    Raised when the Stripe checkout session cannot be created.

    No local Invoice exists for a failed attempt.
    """

    default_error_code: str = "CHECKOUT_SESSION_FAILED"


# =============================================================================
# Stripe-Specific Exceptions
# =============================================================================


class StripeError(PaymentProcessingError):
    """
    Base exception for all Stripe-related errors.

    Provides common attributes for Stripe error handling:
    - stripe_code: Stripe's internal error code
    - decline_code: Card decline code (if applicable)
    - is_retryable: Whether the operation can be retried

    Example:
        try:
            adapter.set_default_payment_method(customer_id, pm_id)
        except StripeError as e:
            if e.is_retryable:
                schedule_retry(e)
    """

    default_error_code: str = "STRIPE_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        decline_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code
        self.decline_code = decline_code


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class StripeCardDeclinedError(StripeError):
    """
    Card was declined by the issuing bank.

    The decline_code attribute contains the specific reason
    (generic_decline, expired_card, incorrect_cvc, ...).
    """

    default_error_code: str = "CARD_DECLINED"
    http_status: int = 402
    is_retryable: bool = False


class StripeInsufficientFundsError(StripeError):
    """Insufficient funds on the payment method. User action is required."""

    default_error_code: str = "INSUFFICIENT_FUNDS"
    http_status: int = 402
    is_retryable: bool = False


class StripeInvalidRequestError(StripeError):
    """
    Invalid request parameters sent to Stripe.

    Possible causes:
    - Unknown customer, price or payment method ID
    - Missing required parameters

    Note:
        This usually indicates a configuration problem (e.g. a price ID
        from another Stripe account), not a user error.
    """

    default_error_code: str = "INVALID_STRIPE_REQUEST"
    is_retryable: bool = False


class StripeAuthenticationError(StripeError):
    """The configured API key was rejected."""

    default_error_code: str = "STRIPE_AUTHENTICATION_FAILED"
    is_retryable: bool = False


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry with backoff)
# -----------------------------------------------------------------------------


class StripeRateLimitError(StripeError):
    """Rate limited by Stripe API."""

    default_error_code: str = "STRIPE_RATE_LIMITED"
    is_retryable: bool = True


class StripeAPIUnavailableError(StripeError):
    """
    Stripe API is temporarily unavailable.

    This covers network connectivity issues and Stripe server errors (5xx).
    """

    default_error_code: str = "STRIPE_UNAVAILABLE"
    is_retryable: bool = True


class StripeTimeoutError(StripeError):
    """
    Stripe API call timed out.

    IMPORTANT: The operation may have succeeded on Stripe's side.
    Retry with the same idempotency key so Stripe returns the original
    response instead of repeating the operation.
    """

    default_error_code: str = "STRIPE_TIMEOUT"
    is_retryable: bool = True


# =============================================================================
# Ownership & Concurrency Exceptions
# =============================================================================


class PaymentMethodMismatchError(PermissionDeniedError):
    """
    Raised when a payment method does not belong to the user's Stripe customer.

    Nothing is stored or changed when this is raised.
    """

    default_error_code: str = "PAYMENT_METHOD_MISMATCH"


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired.

    Example:
        lock = DistributedLock("customer:create:42", ttl=30, timeout=10)
        if not lock.acquire():
            raise LockAcquisitionError(
                "Failed to acquire lock 'customer:create:42' within 10s",
                details={"key": "customer:create:42", "timeout": 10},
            )
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


__all__ = [
    # Payment domain
    "PaymentError",
    "PaymentValidationError",
    "InvalidSignatureError",
    "InvalidPlanError",
    "PaymentProcessingError",
    "CustomerCreationError",
    "CheckoutSessionError",
    # Stripe-specific
    "StripeError",
    "StripeCardDeclinedError",
    "StripeInsufficientFundsError",
    "StripeInvalidRequestError",
    "StripeAuthenticationError",
    "StripeRateLimitError",
    "StripeAPIUnavailableError",
    "StripeTimeoutError",
    # Ownership & concurrency
    "PaymentMethodMismatchError",
    "LockAcquisitionError",
]
