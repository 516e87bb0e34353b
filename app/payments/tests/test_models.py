"""
Tests for billing ledger models.

Tests field defaults, constraints, state transitions and helper methods
of Invoice, Subscription, PaymentMethod and WebhookEvent.
"""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction
from django.utils import timezone
from django_fsm import TransitionNotAllowed

from payments.models import Invoice, PaymentMethod, Subscription, WebhookEvent
from payments.models.payment_method import normalize_last4, normalize_payment_method_type
from payments.state_machines import (
    InvoiceStatus,
    PaymentMethodType,
    SubscriptionStatus,
    WebhookEventStatus,
)
from payments.tests.factories import (
    InvoiceFactory,
    PaymentMethodFactory,
    SubscriptionFactory,
    WebhookEventFactory,
)


# =============================================================================
# Invoice Tests
# =============================================================================


class TestInvoiceModel:
    """Tests for Invoice model fields and queries."""

    def test_defaults(self, user):
        """New invoices are drafts in MXN with a UUID primary key."""
        invoice = Invoice.objects.create(
            user=user,
            amount=Decimal("299.00"),
            due_date=timezone.now() + timedelta(days=30),
        )

        assert isinstance(invoice.pk, uuid.UUID)
        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.currency == "mxn"
        assert invoice.paid_at is None
        assert invoice.metadata == {}

    def test_negative_amount_rejected(self, user):
        """The database rejects negative amounts."""
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                InvoiceFactory(user=user, amount=Decimal("-1.00"))

    def test_stripe_invoice_id_unique(self, user):
        """Two invoices cannot share a Stripe invoice id."""
        InvoiceFactory(user=user, stripe_invoice_id="in_dup")

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                InvoiceFactory(user=user, stripe_invoice_id="in_dup")

    def test_for_checkout_session(self, draft_invoice):
        """Invoices are found by the checkout session stored in metadata."""
        InvoiceFactory(user=draft_invoice.user, metadata={"session_id": "cs_other"})

        found = list(Invoice.objects.for_checkout_session("cs_test_123"))

        assert found == [draft_invoice]
        assert draft_invoice.session_id == "cs_test_123"
        assert draft_invoice.plan_type == "basic"

    def test_awaiting_subscription(self, user):
        """Only unlinked invoices naming the subscription are waiting for it."""
        waiting = InvoiceFactory(user=user, metadata={"stripe_subscription_id": "sub_1"})
        InvoiceFactory(user=user, metadata={"stripe_subscription_id": "sub_2"})
        InvoiceFactory(
            user=user,
            subscription=SubscriptionFactory(user=user, status=SubscriptionStatus.PENDING),
            metadata={"stripe_subscription_id": "sub_1"},
        )

        assert list(Invoice.objects.awaiting_subscription("sub_1")) == [waiting]


class TestInvoiceTransitions:
    """Tests for Invoice state machine transitions."""

    def test_finalize(self, draft_invoice):
        """DRAFT -> OPEN."""
        draft_invoice.finalize()
        draft_invoice.save()

        draft_invoice.refresh_from_db()
        assert draft_invoice.status == InvoiceStatus.OPEN

    def test_mark_paid_sets_amount_and_time(self, draft_invoice):
        """mark_paid records the collected amount and the payment time."""
        draft_invoice.mark_paid(amount=Decimal("250.00"))
        draft_invoice.save()

        draft_invoice.refresh_from_db()
        assert draft_invoice.status == InvoiceStatus.PAID
        assert draft_invoice.amount == Decimal("250.00")
        assert draft_invoice.paid_at is not None
        assert draft_invoice.is_paid

    def test_uncollectible_can_still_be_paid(self, draft_invoice):
        """A later retry can collect an uncollectible invoice."""
        draft_invoice.mark_uncollectible()
        draft_invoice.mark_paid()

        assert draft_invoice.status == InvoiceStatus.PAID

    @pytest.mark.parametrize("terminal", [InvoiceStatus.PAID, InvoiceStatus.VOID])
    def test_terminal_states_accept_no_transitions(self, user, terminal):
        """Paid and void invoices cannot move again."""
        invoice = InvoiceFactory(user=user, status=terminal)

        for transition_name in ("finalize", "mark_paid", "mark_uncollectible", "void"):
            with pytest.raises(TransitionNotAllowed):
                getattr(invoice, transition_name)()

    def test_uncollectible_cannot_reopen(self, user):
        """No transition leads back to draft or open."""
        invoice = InvoiceFactory(user=user, status=InvoiceStatus.UNCOLLECTIBLE)

        with pytest.raises(TransitionNotAllowed):
            invoice.finalize()


# =============================================================================
# Subscription Tests
# =============================================================================


class TestSubscriptionModel:
    """Tests for Subscription model."""

    def test_one_active_per_user(self, active_subscription):
        """A second active subscription for the same user is rejected."""
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                SubscriptionFactory(user=active_subscription.user)

    def test_inactive_subscriptions_do_not_conflict(self, active_subscription):
        """Cancelled and pending subscriptions coexist with the active one."""
        SubscriptionFactory(user=active_subscription.user, status=SubscriptionStatus.CANCELLED)
        SubscriptionFactory(user=active_subscription.user, status=SubscriptionStatus.PENDING)

        assert Subscription.objects.filter(user=active_subscription.user).count() == 3

    def test_mark_cancelled(self, active_subscription):
        """Cancelling stops renewal."""
        active_subscription.mark_cancelled()

        active_subscription.refresh_from_db()
        assert active_subscription.status == SubscriptionStatus.CANCELLED
        assert active_subscription.auto_renew is False
        assert active_subscription.next_billing_date is None

    def test_mark_expired(self, ended_subscription):
        """Expiry clears the next billing date."""
        ended_subscription.mark_expired()

        ended_subscription.refresh_from_db()
        assert ended_subscription.status == SubscriptionStatus.EXPIRED
        assert ended_subscription.next_billing_date is None

    def test_set_period_follows_auto_renew(self, active_subscription):
        """next_billing_date is the period end only while auto-renew is on."""
        end = timezone.now() + timedelta(days=60)

        active_subscription.set_period(None, end)
        assert active_subscription.next_billing_date == end

        active_subscription.auto_renew = False
        active_subscription.set_period(None, end)
        assert active_subscription.next_billing_date is None

    def test_days_until_renewal(self, user):
        """Whole days left in the period, never negative."""
        now = timezone.now()
        subscription = SubscriptionFactory(
            user=user,
            start_date=now - timedelta(days=20),
            end_date=now + timedelta(days=10, hours=1),
        )

        assert subscription.days_until_renewal(now) == 10
        assert subscription.days_until_renewal(now + timedelta(days=30)) == 0

    def test_is_expiring_within(self, active_subscription):
        """The 30-day period is expiring within 30 days but not within 7."""
        now = active_subscription.start_date

        assert active_subscription.is_expiring_within(30, now) is True
        assert active_subscription.is_expiring_within(7, now) is False


class TestSubscriptionQuerySet:
    """Tests for SubscriptionQuerySet lookups."""

    def test_expired_but_active(self, ended_subscription):
        """Only active subscriptions past their end date are returned."""
        SubscriptionFactory()
        SubscriptionFactory(
            user=ended_subscription.user,
            status=SubscriptionStatus.CANCELLED,
            start_date=ended_subscription.start_date,
        )

        result = list(Subscription.objects.expired_but_active(timezone.now()))

        assert result == [ended_subscription]

    def test_due_for_renewal_reminder(self, db):
        """Auto-renewing active subscriptions ending within the window."""
        now = timezone.now()
        due = SubscriptionFactory(start_date=now - timedelta(days=25), end_date=now + timedelta(days=5))
        SubscriptionFactory(start_date=now, end_date=now + timedelta(days=20))
        SubscriptionFactory(
            start_date=now - timedelta(days=25),
            end_date=now + timedelta(days=5),
            auto_renew=False,
        )

        assert list(Subscription.objects.due_for_renewal_reminder(now, 7)) == [due]


# =============================================================================
# PaymentMethod Tests
# =============================================================================


class TestPaymentMethodModel:
    """Tests for PaymentMethod model."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("4242", "4242"),
            ("4242424242424242", "4242"),
            ("**** 1881", "1881"),
            ("12", None),
            (None, None),
        ],
    )
    def test_normalize_last4(self, value, expected):
        """last4 keeps the final four digits or nothing."""
        assert normalize_last4(value) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("card", PaymentMethodType.CARD),
            ("sepa_debit", PaymentMethodType.SEPA_DEBIT),
            ("us_bank_account", PaymentMethodType.BANK_ACCOUNT),
            ("klarna", PaymentMethodType.OTHER),
            (None, PaymentMethodType.OTHER),
        ],
    )
    def test_normalize_payment_method_type(self, value, expected):
        """Stripe types map onto the local choices."""
        assert normalize_payment_method_type(value) == expected

    def test_save_normalizes_last4(self, user):
        """Saved last4 values are always four digits."""
        method = PaymentMethodFactory(user=user, last4="4000056655665556")

        method.refresh_from_db()
        assert method.last4 == "5556"

    def test_set_as_default_clears_previous(self, user):
        """Exactly one default remains after switching."""
        first = PaymentMethodFactory(user=user, is_default=True)
        second = PaymentMethodFactory(user=user)

        second.set_as_default()

        first.refresh_from_db()
        second.refresh_from_db()
        assert first.is_default is False
        assert second.is_default is True
        assert PaymentMethod.objects.filter(user=user, is_default=True).count() == 1

    def test_set_as_default_leaves_other_users_alone(self, user):
        """Defaults of other users are untouched."""
        other = PaymentMethodFactory(is_default=True)
        method = PaymentMethodFactory(user=user)

        method.set_as_default()

        other.refresh_from_db()
        assert other.is_default is True

    def test_two_defaults_rejected(self, user):
        """The database rejects a second default for the same user."""
        PaymentMethodFactory(user=user, is_default=True)

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                PaymentMethodFactory(user=user, is_default=True)

    def test_display_name(self, user):
        """Cards show brand and last four digits."""
        card = PaymentMethodFactory(user=user, brand="visa", last4="4242")
        oxxo = PaymentMethodFactory(user=user, type=PaymentMethodType.OXXO, brand=None, last4=None)

        assert card.display_name == "Visa ending in 4242"
        assert oxxo.display_name == "OXXO"


# =============================================================================
# WebhookEvent Tests
# =============================================================================


class TestWebhookEventModel:
    """Tests for WebhookEvent receipt helpers."""

    def test_stripe_event_id_unique(self, db):
        """The same Stripe event cannot be recorded twice."""
        WebhookEventFactory(stripe_event_id="evt_dup")

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                WebhookEventFactory(stripe_event_id="evt_dup")

    def test_processing_lifecycle(self, db):
        """processing -> processed records the outcome and clears errors."""
        event = WebhookEventFactory()

        event.mark_processing()
        assert event.status == WebhookEventStatus.PROCESSING
        assert event.retry_count == 1

        event.mark_failed("boom")
        assert event.is_failed

        event.mark_processing()
        event.mark_processed("unchanged")
        event.save()

        event.refresh_from_db()
        assert event.is_processed
        assert event.outcome == "unchanged"
        assert event.error_message is None
        assert event.processed_at is not None
        assert event.retry_count == 2

    def test_get_object_id(self, db):
        """The data object's id is read from the stored payload."""
        event = WebhookEventFactory()
        broken = WebhookEvent(payload={"data": "not-a-dict"})

        assert event.get_object_id() == "in_test_123"
        assert broken.get_object_id() is None
