"""
Payment adapters for external services.

All Stripe API calls go through StripeAdapter to ensure consistent error
handling, idempotency, and observability.

Usage:
    from payments.adapters import StripeAdapter

    adapter = StripeAdapter.from_settings()
    payment_method = adapter.retrieve_payment_method("pm_123")
"""

from payments.adapters.stripe_adapter import (
    CheckoutSessionResult,
    CustomerResult,
    IdempotencyKeyGenerator,
    PaymentMethodResult,
    StripeAdapter,
    is_retryable_stripe_error,
)

__all__ = [
    "CheckoutSessionResult",
    "CustomerResult",
    "IdempotencyKeyGenerator",
    "PaymentMethodResult",
    "StripeAdapter",
    "is_retryable_stripe_error",
]
