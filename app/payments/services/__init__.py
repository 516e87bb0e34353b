"""
Billing services.

This module provides:
- CustomerService: Stripe customer resolution and default payment method
- CheckoutService: Hosted checkout session creation

Usage:
    from payments.services import CheckoutService, CustomerService

    checkout = CheckoutService.create_checkout_session(user, "basic")
    CustomerService.update_payment_method(user, "pm_123")
"""

from payments.services.checkout_service import CheckoutResult, CheckoutService
from payments.services.customer_service import CustomerService

__all__ = [
    "CheckoutResult",
    "CheckoutService",
    "CustomerService",
]
