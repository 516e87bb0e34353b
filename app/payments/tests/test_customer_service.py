"""
Tests for CustomerService.

Stripe is replaced by the stripe_adapter fixture and Redis by mock_redis.
"""

import logging
from unittest.mock import call

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from authentication.models import User
from payments.adapters import PaymentMethodResult
from payments.exceptions import (
    CustomerCreationError,
    PaymentMethodMismatchError,
    StripeAPIUnavailableError,
)
from payments.models import PaymentMethod
from payments.services import CustomerService
from payments.state_machines import PaymentMethodType
from payments.tests.factories import PaymentMethodFactory


# =============================================================================
# get_or_create_customer
# =============================================================================


class TestGetOrCreateCustomer:
    """Tests for CustomerService.get_or_create_customer."""

    def test_reuses_existing_customer(self, user, stripe_adapter, mock_redis):
        """A stored customer id is retrieved, never recreated."""
        customer = CustomerService.get_or_create_customer(user, adapter=stripe_adapter)

        assert customer.id == user.stripe_customer_id
        stripe_adapter.retrieve_customer.assert_called_once_with(user.stripe_customer_id)
        stripe_adapter.create_customer.assert_not_called()
        mock_redis.set.assert_not_called()

    def test_creates_and_links_customer(self, new_user, stripe_adapter, mock_redis):
        """The first call creates the customer and stores its id."""
        customer = CustomerService.get_or_create_customer(new_user, adapter=stripe_adapter)

        assert customer.id == "cus_test_new"
        new_user.refresh_from_db()
        assert new_user.stripe_customer_id == "cus_test_new"

        kwargs = stripe_adapter.create_customer.call_args.kwargs
        assert kwargs["email"] == "new@example.com"
        assert kwargs["name"] == "New User"
        assert kwargs["metadata"] == {"user_id": str(new_user.pk)}
        assert kwargs["idempotency_key"].startswith(f"create_customer:{new_user.pk}:1:")

    def test_creation_runs_under_lock(self, new_user, stripe_adapter, mock_redis):
        """The per-user lock is taken and released."""
        CustomerService.get_or_create_customer(new_user, adapter=stripe_adapter)

        lock_key = mock_redis.set.call_args.args[0]
        assert lock_key == f"lock:customer:create:{new_user.pk}"
        mock_redis.eval.assert_called_once()

    def test_idempotency_key_is_stable(self, new_user, stripe_adapter, mock_redis):
        """Retries for the same user send the same idempotency key."""
        stripe_adapter.create_customer.side_effect = StripeAPIUnavailableError("down")

        for _ in range(2):
            with pytest.raises(CustomerCreationError):
                CustomerService.get_or_create_customer(new_user, adapter=stripe_adapter)

        first, second = stripe_adapter.create_customer.call_args_list
        assert first.kwargs["idempotency_key"] == second.kwargs["idempotency_key"]

    def test_stripe_failure_leaves_user_unlinked(self, new_user, stripe_adapter, mock_redis):
        """A failed creation stores nothing."""
        stripe_adapter.create_customer.side_effect = StripeAPIUnavailableError("down")

        with pytest.raises(CustomerCreationError) as exc_info:
            CustomerService.get_or_create_customer(new_user, adapter=stripe_adapter)

        assert exc_info.value.details["stripe_error"] == "STRIPE_UNAVAILABLE"
        new_user.refresh_from_db()
        assert new_user.stripe_customer_id is None

    def test_lock_timeout_is_retryable_creation_error(
        self, new_user, stripe_adapter, mock_redis, monkeypatch
    ):
        """A creation lock held elsewhere surfaces as a retryable creation error."""
        mock_redis.set.return_value = False
        monkeypatch.setattr(CustomerService, "CUSTOMER_LOCK_TIMEOUT", 0.0)

        with pytest.raises(CustomerCreationError) as exc_info:
            CustomerService.get_or_create_customer(new_user, adapter=stripe_adapter)

        assert exc_info.value.details["retryable"] is True
        assert exc_info.value.details["user_id"] == str(new_user.pk)
        stripe_adapter.create_customer.assert_not_called()

    def test_redis_unavailable_is_retryable_creation_error(
        self, new_user, stripe_adapter, mock_redis
    ):
        mock_redis.set.side_effect = RedisConnectionError("Connection refused")

        with pytest.raises(CustomerCreationError) as exc_info:
            CustomerService.get_or_create_customer(new_user, adapter=stripe_adapter)

        assert exc_info.value.details["retryable"] is True
        assert isinstance(exc_info.value.__cause__, RedisConnectionError)
        stripe_adapter.create_customer.assert_not_called()

    def test_customer_linked_while_waiting_for_lock(self, new_user, stripe_adapter, mock_redis):
        """A customer stored by another request is reused after the lock."""
        User.objects.filter(pk=new_user.pk).update(stripe_customer_id="cus_test_other")

        customer = CustomerService.get_or_create_customer(new_user, adapter=stripe_adapter)

        assert customer.id == "cus_test_other"
        stripe_adapter.create_customer.assert_not_called()

    def test_first_stored_customer_wins(self, new_user, stripe_adapter, mock_redis, caplog):
        """When another request stores a customer mid-creation, that one is kept."""

        def link_concurrently(**kwargs):
            User.objects.filter(pk=new_user.pk).update(stripe_customer_id="cus_test_first")
            return stripe_adapter.create_customer.return_value

        stripe_adapter.create_customer.side_effect = link_concurrently

        with caplog.at_level(logging.WARNING):
            customer = CustomerService.get_or_create_customer(new_user, adapter=stripe_adapter)

        assert customer.id == "cus_test_first"
        assert new_user.stripe_customer_id == "cus_test_first"
        new_user.refresh_from_db()
        assert new_user.stripe_customer_id == "cus_test_first"
        assert "Another request linked a Stripe customer first" in caplog.text

    def test_retrieve_failure(self, user, stripe_adapter, mock_redis):
        """An unreachable stored customer surfaces as CustomerCreationError."""
        stripe_adapter.retrieve_customer.side_effect = StripeAPIUnavailableError("down")

        with pytest.raises(CustomerCreationError):
            CustomerService.get_or_create_customer(user, adapter=stripe_adapter)

    def test_audits_creation(self, new_user, stripe_adapter, mock_redis, caplog):
        """Creating a customer writes an audit record."""
        with caplog.at_level(logging.INFO, logger="billing.audit"):
            CustomerService.get_or_create_customer(new_user, adapter=stripe_adapter)

        actions = [r.action for r in caplog.records if r.name == "billing.audit"]
        assert actions == ["customer.created"]


# =============================================================================
# update_payment_method
# =============================================================================


@pytest.fixture
def owned_payment_method(user, stripe_adapter):
    """Stripe reports pm_test_card as attached to the user's customer."""
    stripe_adapter.retrieve_payment_method.return_value = PaymentMethodResult(
        id="pm_test_card",
        customer_id=user.stripe_customer_id,
        type="card",
        last4="4242",
        brand="visa",
        fingerprint="fp_123",
        country="MX",
        exp_month=12,
        exp_year=2030,
    )
    return stripe_adapter.retrieve_payment_method.return_value


class TestUpdatePaymentMethod:
    """Tests for CustomerService.update_payment_method."""

    def test_sets_local_and_stripe_default(self, user, stripe_adapter, owned_payment_method):
        """The method becomes the single local default and the Stripe default."""
        previous = PaymentMethodFactory(user=user, is_default=True)

        method = CustomerService.update_payment_method(
            user, "pm_test_card", adapter=stripe_adapter
        )

        previous.refresh_from_db()
        assert previous.is_default is False
        assert method.is_default is True
        assert method.type == PaymentMethodType.CARD
        assert method.last4 == "4242"
        assert method.metadata == {
            "fingerprint": "fp_123",
            "country": "MX",
            "exp_month": 12,
            "exp_year": 2030,
        }

        stripe_adapter.set_default_payment_method.assert_called_once()
        args = stripe_adapter.set_default_payment_method.call_args
        assert args.args == (user.stripe_customer_id, "pm_test_card")
        assert args.kwargs["idempotency_key"].startswith("set_default_payment_method:")

    def test_updates_existing_record(self, user, stripe_adapter, owned_payment_method):
        """A method already stored locally is updated in place."""
        PaymentMethodFactory(user=user, stripe_payment_method_id="pm_test_card", last4="1111")

        CustomerService.update_payment_method(user, "pm_test_card", adapter=stripe_adapter)

        assert PaymentMethod.objects.filter(stripe_payment_method_id="pm_test_card").count() == 1
        assert PaymentMethod.objects.get(stripe_payment_method_id="pm_test_card").last4 == "4242"

    def test_rejects_other_customers_method(self, user, stripe_adapter):
        """A method attached to another customer is refused before any write."""
        stripe_adapter.retrieve_payment_method.return_value = PaymentMethodResult(
            id="pm_test_card", customer_id="cus_someone_else", type="card"
        )

        with pytest.raises(PaymentMethodMismatchError):
            CustomerService.update_payment_method(user, "pm_test_card", adapter=stripe_adapter)

        assert not PaymentMethod.objects.exists()
        stripe_adapter.set_default_payment_method.assert_not_called()

    def test_rejects_detached_method(self, user, stripe_adapter):
        """A method with no customer is refused."""
        with pytest.raises(PaymentMethodMismatchError):
            CustomerService.update_payment_method(user, "pm_test_card", adapter=stripe_adapter)

    def test_user_without_customer(self, new_user, stripe_adapter):
        """Users without a Stripe customer cannot set a default."""
        with pytest.raises(PaymentMethodMismatchError):
            CustomerService.update_payment_method(
                new_user, "pm_test_card", adapter=stripe_adapter
            )

        stripe_adapter.retrieve_payment_method.assert_not_called()

    def test_stripe_failure_keeps_local_default(self, user, stripe_adapter, owned_payment_method):
        """The local default is committed even if Stripe must be retried."""
        stripe_adapter.set_default_payment_method.side_effect = StripeAPIUnavailableError("down")

        with pytest.raises(StripeAPIUnavailableError):
            CustomerService.update_payment_method(user, "pm_test_card", adapter=stripe_adapter)

        method = PaymentMethod.objects.get(stripe_payment_method_id="pm_test_card")
        assert method.is_default is True

    def test_repeated_call_uses_same_idempotency_key(
        self, user, stripe_adapter, owned_payment_method
    ):
        """Retrying the same default produces the same Stripe request."""
        CustomerService.update_payment_method(user, "pm_test_card", adapter=stripe_adapter)
        CustomerService.update_payment_method(user, "pm_test_card", adapter=stripe_adapter)

        first, second = stripe_adapter.set_default_payment_method.call_args_list
        assert first == second
        assert first == call(
            user.stripe_customer_id,
            "pm_test_card",
            idempotency_key=first.kwargs["idempotency_key"],
        )
