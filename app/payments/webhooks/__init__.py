"""
Webhook handling for billing events from Stripe.

Deliveries are verified, recorded idempotently and routed synchronously
to the reconciliation handlers.

Usage:
    # In urls.py
    from payments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from payments.webhooks.events import EventType, VerifiedEvent
from payments.webhooks.handlers import register_handler, route
from payments.webhooks.types import HandlerResult, HandlerStatus
from payments.webhooks.verifier import WebhookVerifier, verify
from payments.webhooks.views import stripe_webhook

__all__ = [
    "EventType",
    "HandlerResult",
    "HandlerStatus",
    "VerifiedEvent",
    "WebhookVerifier",
    "register_handler",
    "route",
    "stripe_webhook",
    "verify",
]
