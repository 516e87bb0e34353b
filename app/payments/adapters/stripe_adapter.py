"""
Stripe API adapter for billing operations.

This module provides the StripeAdapter class which encapsulates all
Stripe API interactions. All Stripe calls should go through this
adapter to ensure consistent error handling, idempotency, and
observability.

Features:
- API key and version passed per request (no module-level key)
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- Idempotency support for safe retries
- Thread-safe for use from Celery workers

Configuration (via settings, read by from_settings()):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_API_VERSION: Pinned API version

The HTTP timeout (STRIPE_API_TIMEOUT_SECONDS) and network retries
(STRIPE_MAX_RETRIES) are configured once in PaymentsConfig.ready().

Usage:
    from payments.adapters import StripeAdapter, IdempotencyKeyGenerator

    adapter = StripeAdapter.from_settings()
    customer = adapter.create_customer(
        email=user.email,
        name=user.get_full_name(),
        metadata={"user_id": str(user.id)},
        idempotency_key=IdempotencyKeyGenerator.generate("create_customer", user.id),
    )
"""

from __future__ import annotations

import hashlib
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

import stripe
from django.conf import settings

from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeAuthenticationError,
    StripeCardDeclinedError,
    StripeError,
    StripeInsufficientFundsError,
    StripeInvalidRequestError,
    StripeRateLimitError,
)


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CustomerResult:
    """
    Result from Stripe Customer operations.

    Attributes:
        id: Customer ID (cus_xxx)
        email: Customer email
        name: Customer name
        metadata: Attached metadata
        created: True when this call created the customer
        deleted: True if Stripe reports the customer as deleted
    """

    id: str
    email: str | None = None
    name: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    created: bool = False
    deleted: bool = False


@dataclass
class CheckoutSessionResult:
    """
    Result from Stripe Checkout Session creation.

    Attributes:
        id: Checkout Session ID (cs_xxx)
        url: Hosted checkout URL to redirect the user to
        customer_id: Customer the session was created for
        metadata: Attached metadata
    """

    id: str
    url: str
    customer_id: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class PaymentMethodResult:
    """
    Result from Stripe PaymentMethod operations.

    Attributes:
        id: PaymentMethod ID (pm_xxx)
        customer_id: Customer the method is attached to (None if detached)
        type: Stripe payment method type (card, sepa_debit, ...)
        last4: Last four digits, when the type has them
        brand: Card brand or bank name
        fingerprint: Stable instrument fingerprint
        country: Issuing country
        exp_month/exp_year: Card expiry
    """

    id: str
    customer_id: str | None
    type: str
    last4: str | None = None
    brand: str | None = None
    fingerprint: str | None = None
    country: str | None = None
    exp_month: int | None = None
    exp_year: int | None = None

    @property
    def details(self) -> dict[str, Any]:
        """Display details stored in PaymentMethod.metadata."""
        return {
            key: value
            for key, value in (
                ("fingerprint", self.fingerprint),
                ("country", self.country),
                ("exp_month", self.exp_month),
                ("exp_year", self.exp_year),
            )
            if value is not None
        }


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for Stripe API calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    The hash component provides uniqueness across deployments sharing a
    Stripe account while the structured format aids debugging and
    correlation.

    Example:
        key = IdempotencyKeyGenerator.generate(
            operation="create_customer",
            entity_id=user.id,
        )
        # Result: "create_customer:42:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str | int,
        attempt: int = 1,
    ) -> str:
        """
        Generate a deterministic idempotency key.

        Args:
            operation: The Stripe operation (create_customer, ...)
            entity_id: The domain entity ID
            attempt: Attempt number for retries (default: 1)
        """
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]

        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


# =============================================================================
# Retry Classification
# =============================================================================


def is_retryable_stripe_error(error: Exception) -> bool:
    """
    Check if a Stripe error is retryable.

    Services copy this onto the errors they wrap so the API layer can
    tell clients to retry.
    """
    if isinstance(error, StripeError):
        return getattr(error, "is_retryable", False)
    return False


def _metadata(obj: Any) -> dict[str, str]:
    return dict(getattr(obj, "metadata", None) or {})


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    Instances only hold the API key and version, so one adapter can be
    shared across threads and Celery workers.

    Features:
    - Per-request API key and version
    - Automatic error translation to domain exceptions
    - Structured logging with timing metrics
    - Idempotency support for safe retries

    Usage:
        adapter = StripeAdapter(api_key="sk_test_...", api_version="2023-10-16")
        session = adapter.create_checkout_session(...)
    """

    def __init__(self, api_key: str, api_version: str | None = None):
        self.api_key = api_key
        self.api_version = api_version

    @classmethod
    def from_settings(cls) -> StripeAdapter:
        """Build an adapter from STRIPE_SECRET_KEY and STRIPE_API_VERSION."""
        return cls(
            api_key=settings.STRIPE_SECRET_KEY,
            api_version=getattr(settings, "STRIPE_API_VERSION", None),
        )

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    def _request_options(self, idempotency_key: str | None = None) -> dict[str, Any]:
        options: dict[str, Any] = {"api_key": self.api_key}
        if self.api_version:
            options["stripe_version"] = self.api_version
        if idempotency_key:
            options["idempotency_key"] = idempotency_key
        return options

    # =========================================================================
    # Customers
    # =========================================================================

    def create_customer(
        self,
        email: str,
        name: str | None = None,
        metadata: dict[str, str] | None = None,
        idempotency_key: str | None = None,
    ) -> CustomerResult:
        """
        Create a Stripe Customer.

        Args:
            email: Customer email
            name: Display name
            metadata: Key-value pairs (user_id at least)
            idempotency_key: Key making repeated creation return the same customer

        Returns:
            CustomerResult with created=True

        Raises:
            StripeInvalidRequestError: Invalid parameters
            StripeAPIUnavailableError: Stripe service unavailable
        """
        logger = self.get_logger()

        log_context = {
            "operation": "create_customer",
            "idempotency_key": idempotency_key,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            customer = stripe.Customer.create(
                email=email,
                name=name or None,
                metadata=metadata or {},
                **self._request_options(idempotency_key),
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "customer_id": customer.id,
                    "duration_ms": duration_ms,
                },
            )

            return CustomerResult(
                id=customer.id,
                email=getattr(customer, "email", None),
                name=getattr(customer, "name", None),
                metadata=_metadata(customer),
                created=True,
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_stripe_error(e, log_context, duration_ms)
            raise  # Never reached, but satisfies type checker

    def retrieve_customer(self, customer_id: str) -> CustomerResult:
        """
        Retrieve a Stripe Customer by ID.

        Raises:
            StripeInvalidRequestError: Customer not found
        """
        logger = self.get_logger()

        log_context = {
            "operation": "retrieve_customer",
            "customer_id": customer_id,
        }

        start_time = time.time()
        logger.debug("Starting Stripe operation", extra=log_context)

        try:
            customer = stripe.Customer.retrieve(customer_id, **self._request_options())

            duration_ms = (time.time() - start_time) * 1000
            logger.debug(
                "Stripe operation completed",
                extra={**log_context, "duration_ms": duration_ms},
            )

            return CustomerResult(
                id=customer.id,
                email=getattr(customer, "email", None),
                name=getattr(customer, "name", None),
                metadata=_metadata(customer),
                deleted=bool(getattr(customer, "deleted", False)),
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_stripe_error(e, log_context, duration_ms)
            raise

    def set_default_payment_method(
        self,
        customer_id: str,
        payment_method_id: str,
        idempotency_key: str | None = None,
    ) -> CustomerResult:
        """
        Set the customer's invoice_settings.default_payment_method.

        Setting the same payment method twice is harmless, so callers may
        retry this after a failure.
        """
        logger = self.get_logger()

        log_context = {
            "operation": "set_default_payment_method",
            "customer_id": customer_id,
            "payment_method_id": payment_method_id,
            "idempotency_key": idempotency_key,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            customer = stripe.Customer.modify(
                customer_id,
                invoice_settings={"default_payment_method": payment_method_id},
                **self._request_options(idempotency_key),
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={**log_context, "duration_ms": duration_ms},
            )

            return CustomerResult(
                id=customer.id,
                email=getattr(customer, "email", None),
                name=getattr(customer, "name", None),
                metadata=_metadata(customer),
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_stripe_error(e, log_context, duration_ms)
            raise

    # =========================================================================
    # Checkout
    # =========================================================================

    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
        subscription_data: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> CheckoutSessionResult:
        """
        Create a hosted Checkout Session in subscription mode.

        Args:
            customer_id: Stripe Customer ID
            price_id: Stripe Price ID of the plan
            success_url: Redirect after payment ({CHECKOUT_SESSION_ID} is expanded by Stripe)
            cancel_url: Redirect when the user abandons checkout
            metadata: Session metadata
            subscription_data: Passed through (metadata, proration_behavior)
            idempotency_key: Key for safe retries

        Raises:
            StripeInvalidRequestError: Invalid parameters (e.g. unknown price)
            StripeAPIUnavailableError: Stripe service unavailable
        """
        logger = self.get_logger()

        log_context = {
            "operation": "create_checkout_session",
            "customer_id": customer_id,
            "price_id": price_id,
            "idempotency_key": idempotency_key,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            session = stripe.checkout.Session.create(
                customer=customer_id,
                mode="subscription",
                payment_method_types=["card"],
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
                subscription_data=subscription_data or {},
                **self._request_options(idempotency_key),
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "session_id": session.id,
                    "duration_ms": duration_ms,
                },
            )

            return CheckoutSessionResult(
                id=session.id,
                url=session.url,
                customer_id=getattr(session, "customer", None),
                metadata=_metadata(session),
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_stripe_error(e, log_context, duration_ms)
            raise

    # =========================================================================
    # Payment Methods
    # =========================================================================

    def retrieve_payment_method(self, payment_method_id: str) -> PaymentMethodResult:
        """
        Retrieve a PaymentMethod by ID.

        Raises:
            StripeInvalidRequestError: PaymentMethod not found
        """
        logger = self.get_logger()

        log_context = {
            "operation": "retrieve_payment_method",
            "payment_method_id": payment_method_id,
        }

        start_time = time.time()
        logger.debug("Starting Stripe operation", extra=log_context)

        try:
            payment_method = stripe.PaymentMethod.retrieve(
                payment_method_id, **self._request_options()
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.debug(
                "Stripe operation completed",
                extra={**log_context, "duration_ms": duration_ms},
            )

            return self.payment_method_result(payment_method)

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_stripe_error(e, log_context, duration_ms)
            raise

    @staticmethod
    def payment_method_result(payment_method: Any) -> PaymentMethodResult:
        """
        Build a PaymentMethodResult from a Stripe PaymentMethod.

        Accepts an SDK object or a plain dict (webhook payloads).
        """

        def read(obj, key):
            if obj is None:
                return None
            if isinstance(obj, dict):
                return obj.get(key)
            return getattr(obj, key, None)

        pm_type = read(payment_method, "type") or "card"
        # Type-specific details live under a key named after the type
        details = read(payment_method, pm_type)
        brand = read(details, "brand") or read(details, "bank_name")

        return PaymentMethodResult(
            id=read(payment_method, "id"),
            customer_id=read(payment_method, "customer"),
            type=pm_type,
            last4=read(details, "last4"),
            brand=brand,
            fingerprint=read(details, "fingerprint"),
            country=read(details, "country"),
            exp_month=read(details, "exp_month"),
            exp_year=read(details, "exp_year"),
        )

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to domain exceptions.

        Raises:
            StripeCardDeclinedError: Card was declined
            StripeInsufficientFundsError: Insufficient funds
            StripeInvalidRequestError: Invalid request parameters
            StripeAuthenticationError: API key rejected
            StripeRateLimitError: Rate limited
            StripeAPIUnavailableError: API unavailable
        """
        logger = cls.get_logger()

        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, StripeError):
            # Already translated
            raise error

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )

            if decline_code == "insufficient_funds":
                raise StripeInsufficientFundsError(
                    str(error.user_message or error),
                    stripe_code=error.code,
                    decline_code=decline_code,
                ) from error

            raise StripeCardDeclinedError(
                str(error.user_message or error),
                stripe_code=error.code,
                decline_code=decline_code,
            ) from error

        elif isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            raise StripeInvalidRequestError(
                str(error.user_message or error),
                stripe_code=error.code,
                details={"param": getattr(error, "param", None)},
            ) from error

        elif isinstance(error, stripe.RateLimitError):
            logger.warning(
                "Rate limited by Stripe",
                extra=log_context,
            )
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            ) from error

        elif isinstance(error, stripe.APIConnectionError):
            logger.error(
                "Connection error to Stripe",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            ) from error

        elif isinstance(error, stripe.AuthenticationError):
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise StripeAuthenticationError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            ) from error

        elif isinstance(error, stripe.APIError):
            logger.error(
                "Stripe API error",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            ) from error

        else:
            logger.error(
                f"Unexpected error from Stripe: {type(error).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                f"Unexpected Stripe error: {error}",
                stripe_code="unknown_error",
            ) from error
