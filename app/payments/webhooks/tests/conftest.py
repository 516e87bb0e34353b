"""
Pytest fixtures for webhook tests.

Provides signed webhook deliveries for view and verifier tests, verified
events for handler tests, and billing records in the states handlers see.
"""

import hashlib
import hmac
import json
import time

import pytest
from django.test import Client

from payments.tests.factories import (
    InvoiceFactory,
    StripeCustomerUserFactory,
    SubscriptionFactory,
)
from payments.webhooks.events import VerifiedEvent

WEBHOOK_URL = "/api/v1/payments/webhooks/stripe/"
WEBHOOK_SECRET = "whsec_test_secret"


# =============================================================================
# Payload Fixtures
# =============================================================================


def sign(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header for a raw payload."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


@pytest.fixture
def sign_payload():
    """The signing helper, for tests that build their own headers."""
    return sign


@pytest.fixture
def webhook_secret(settings):
    """Configure the endpoint signing secret."""
    settings.STRIPE_WEBHOOK_SECRET = WEBHOOK_SECRET
    settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS = 300
    return WEBHOOK_SECRET


@pytest.fixture
def build_payload():
    """Factory for raw Stripe event bodies."""

    def _build(event_type: str, data_object: dict, event_id: str = "evt_test_123") -> bytes:
        return json.dumps(
            {
                "id": event_id,
                "object": "event",
                "type": event_type,
                "created": int(time.time()),
                "livemode": False,
                "data": {"object": data_object},
            }
        ).encode()

    return _build


@pytest.fixture
def post_webhook(webhook_secret):
    """POST a payload to the webhook endpoint, signed unless told otherwise."""
    client = Client()

    def _post(payload: bytes, signature: str | None = None):
        headers = {}
        signature = sign(payload) if signature is None else signature
        if signature:
            headers["HTTP_STRIPE_SIGNATURE"] = signature
        return client.post(
            WEBHOOK_URL,
            data=payload,
            content_type="application/json",
            **headers,
        )

    return _post


@pytest.fixture
def make_event():
    """Factory for VerifiedEvent instances passed straight to handlers."""

    def _make(
        event_type: str,
        data_object: dict,
        event_id: str = "evt_test_123",
        created=None,
    ):
        return VerifiedEvent(
            event_id=event_id,
            event_type=event_type,
            data_object=data_object,
            created=created,
        )

    return _make


# =============================================================================
# Billing Record Fixtures
# =============================================================================


@pytest.fixture
def customer(db):
    """User linked to Stripe customer cus_test_webhook."""
    return StripeCustomerUserFactory(
        email="webhook@example.com",
        stripe_customer_id="cus_test_webhook",
    )


@pytest.fixture
def checkout_invoice(customer):
    """Draft invoice created for checkout session cs_test_webhook."""
    return InvoiceFactory(
        user=customer,
        metadata={
            "session_id": "cs_test_webhook",
            "plan_type": "premium",
            "billing_cycle": "monthly",
        },
    )


@pytest.fixture
def open_invoice(customer):
    """Finalized invoice already linked to Stripe invoice in_test_webhook."""
    return InvoiceFactory(
        user=customer,
        stripe_invoice_id="in_test_webhook",
        status="open",
    )


@pytest.fixture
def subscription(customer):
    """Active subscription sub_test_webhook."""
    return SubscriptionFactory(user=customer, stripe_subscription_id="sub_test_webhook")
