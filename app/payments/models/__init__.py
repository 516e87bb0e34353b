"""
Billing ledger models.

This module contains the records mirrored from Stripe:
- Invoice: A bill for a plan, created at checkout and reconciled by webhooks
- Subscription: A user's plan subscription, at most one active per user
- PaymentMethod: Instruments attached to the user's Stripe customer
- WebhookEvent: Receipt log of verified Stripe webhook events
"""

from payments.models.invoice import Invoice
from payments.models.payment_method import PaymentMethod
from payments.models.subscription import Subscription
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "Invoice",
    "PaymentMethod",
    "Subscription",
    "WebhookEvent",
]
