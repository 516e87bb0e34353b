"""
Pytest fixtures for billing tests.

Provides users linked to Stripe, billing records in common states and a
mocked StripeAdapter so service tests never reach the network.

Usage:
    def test_checkout(user, stripe_adapter):
        stripe_adapter.create_checkout_session.return_value = ...
"""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from django.utils import timezone

from authentication.tests.factories import UserFactory
from payments.adapters import (
    CheckoutSessionResult,
    CustomerResult,
    PaymentMethodResult,
    StripeAdapter,
)
from payments.state_machines import SubscriptionStatus
from payments.tests.factories import (
    InvoiceFactory,
    StripeCustomerUserFactory,
    SubscriptionFactory,
)


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """User linked to a Stripe customer."""
    return StripeCustomerUserFactory(email="billing@example.com", name="Billing User")


@pytest.fixture
def new_user(db):
    """User without a Stripe customer yet."""
    return UserFactory(email="new@example.com", name="New User")


# =============================================================================
# Billing Record Fixtures
# =============================================================================


@pytest.fixture
def draft_invoice(user):
    """Draft invoice left by a checkout session."""
    return InvoiceFactory(
        user=user,
        metadata={
            "session_id": "cs_test_123",
            "plan_type": "basic",
            "billing_cycle": "monthly",
        },
    )


@pytest.fixture
def active_subscription(user):
    """Active basic subscription ending in 30 days."""
    return SubscriptionFactory(user=user, stripe_subscription_id="sub_test_active")


@pytest.fixture
def ended_subscription(user):
    """Active subscription whose period ended yesterday."""
    start = timezone.now() - timedelta(days=31)
    return SubscriptionFactory(
        user=user,
        status=SubscriptionStatus.ACTIVE,
        start_date=start,
        end_date=start + timedelta(days=30),
    )


# =============================================================================
# Stripe Fixtures
# =============================================================================


@pytest.fixture
def stripe_adapter():
    """
    StripeAdapter mock with successful default responses.

    Individual tests override return values or set side effects.
    """
    adapter = MagicMock(spec=StripeAdapter)
    adapter.create_customer.return_value = CustomerResult(
        id="cus_test_new",
        email="new@example.com",
        name="New User",
        metadata={},
        created=True,
    )
    adapter.retrieve_customer.side_effect = lambda customer_id: CustomerResult(
        id=customer_id, email="billing@example.com"
    )
    adapter.create_checkout_session.return_value = CheckoutSessionResult(
        id="cs_test_123",
        url="https://checkout.stripe.com/c/pay/cs_test_123",
        customer_id="cus_test_000000",
    )
    adapter.retrieve_payment_method.return_value = PaymentMethodResult(
        id="pm_test_card",
        customer_id=None,
        type="card",
        last4="4242",
        brand="visa",
        fingerprint="fp_123",
        country="MX",
        exp_month=12,
        exp_year=2030,
    )
    adapter.set_default_payment_method.return_value = CustomerResult(id="cus_test_000000")
    return adapter


@pytest.fixture
def mock_redis():
    """Mock Redis connection so DistributedLock always acquires."""
    with patch("payments.locks.get_redis_connection") as mock_get_conn:
        redis_instance = MagicMock()
        redis_instance.set.return_value = True
        redis_instance.eval.return_value = 1
        mock_get_conn.return_value = redis_instance
        yield redis_instance
