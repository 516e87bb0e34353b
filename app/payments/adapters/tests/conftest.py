"""
Pytest fixtures for Stripe adapter tests.

Sections:
    - Mock Stripe Objects
    - Error Response Fixtures
    - Mock Stripe API Fixtures
"""

from dataclasses import dataclass
from typing import Any
from unittest.mock import patch

import pytest
import stripe

from payments.adapters import StripeAdapter


# =============================================================================
# Mock Stripe Objects
# =============================================================================


@dataclass
class MockStripeObject:
    """Mock Stripe API object; missing attributes read as None."""

    data: dict[str, Any]

    def __getattr__(self, name: str) -> Any:
        if name == "data":
            return self.__dict__["data"]
        value = self.data.get(name)
        if isinstance(value, dict) and name != "metadata":
            return MockStripeObject(value)
        return value

    def to_dict(self) -> dict[str, Any]:
        return self.data


@pytest.fixture
def adapter():
    """Adapter with a fake key and pinned version."""
    return StripeAdapter(api_key="sk_test_adapter", api_version="2023-10-16")


@pytest.fixture
def mock_customer():
    """Factory for Customer responses."""

    def _create(
        id: str = "cus_test123",
        email: str = "ana@example.com",
        name: str = "Ana López",
        metadata: dict | None = None,
        deleted: bool | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "customer",
                "email": email,
                "name": name,
                "metadata": metadata or {},
                "deleted": deleted,
            }
        )

    return _create


@pytest.fixture
def mock_payment_method():
    """Factory for PaymentMethod responses."""

    def _create(
        id: str = "pm_test123",
        customer: str | None = "cus_test123",
        type: str = "card",
        details: dict | None = None,
    ) -> MockStripeObject:
        if details is None:
            details = {
                "brand": "visa",
                "last4": "4242",
                "fingerprint": "fp_abc",
                "country": "MX",
                "exp_month": 12,
                "exp_year": 2030,
            }
        return MockStripeObject(
            {
                "id": id,
                "object": "payment_method",
                "customer": customer,
                "type": type,
                type: details,
            }
        )

    return _create


# =============================================================================
# Error Response Fixtures
# =============================================================================


@pytest.fixture
def card_error():
    """Create a Stripe CardError with a decline code."""

    def _create(decline_code: str = "generic_decline") -> stripe.CardError:
        error = stripe.CardError(
            message="Your card was declined.",
            param=None,
            code="card_declined",
        )
        error.decline_code = decline_code
        return error

    return _create


@pytest.fixture
def invalid_request_error():
    """Create a Stripe InvalidRequestError."""
    return stripe.InvalidRequestError(
        message="No such price: 'price_missing'",
        param="line_items[0][price]",
        code="resource_missing",
    )


@pytest.fixture
def rate_limit_error():
    """Create a Stripe RateLimitError."""
    return stripe.RateLimitError(message="Too many requests hit the API too quickly.")


@pytest.fixture
def api_connection_error():
    """Create a Stripe APIConnectionError."""
    return stripe.APIConnectionError(message="Could not connect to Stripe.")


@pytest.fixture
def api_error():
    """Create a Stripe APIError."""
    return stripe.APIError(message="Something went wrong on Stripe's end.")


@pytest.fixture
def authentication_error():
    """Create a Stripe AuthenticationError."""
    return stripe.AuthenticationError(message="Invalid API Key provided.")


# =============================================================================
# Mock Stripe API Fixtures
# =============================================================================


@pytest.fixture
def mock_stripe_customer(mock_customer):
    """Mock stripe.Customer API."""
    with patch("stripe.Customer") as mock:
        mock.create.return_value = mock_customer()
        mock.retrieve.return_value = mock_customer()
        mock.modify.return_value = mock_customer()
        yield mock


@pytest.fixture
def mock_stripe_checkout_session():
    """Mock stripe.checkout.Session API."""
    with patch("stripe.checkout.Session") as mock:
        mock.create.return_value = MockStripeObject(
            {
                "id": "cs_test123",
                "object": "checkout.session",
                "url": "https://checkout.stripe.com/c/pay/cs_test123",
                "customer": "cus_test123",
                "metadata": {"user_id": "1", "plan_type": "basic"},
            }
        )
        yield mock


@pytest.fixture
def mock_stripe_payment_method(mock_payment_method):
    """Mock stripe.PaymentMethod API."""
    with patch("stripe.PaymentMethod") as mock:
        mock.retrieve.return_value = mock_payment_method()
        yield mock
