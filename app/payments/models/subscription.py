"""
Subscription model for recurring plan billing.

A Subscription mirrors a Stripe subscription for one user and one plan.
Its status follows the status Stripe reports (see the webhook handlers),
so it is a plain choices field rather than a state machine: Stripe may
move a subscription between any two states.

Constraint:
    A user has at most one ACTIVE subscription. Handlers lock the user row
    before cancelling the previous one and activating the next, and a
    partial unique constraint backs this up at the database level.

Usage:
    from payments.models import Subscription

    subscription = Subscription.objects.active().filter(user=user).first()
    if subscription and subscription.is_expiring_within(7):
        ...
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.managers import BaseManager, BaseQuerySet
from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import (
    BillingCycle,
    PlanType,
    SubscriptionPaymentStatus,
    SubscriptionStatus,
)

if TYPE_CHECKING:
    from datetime import datetime


class SubscriptionQuerySet(BaseQuerySet):
    """Chainable subscription lookups for handlers and scheduled tasks."""

    def active(self) -> SubscriptionQuerySet:
        return self.filter(status=SubscriptionStatus.ACTIVE)

    def expired_but_active(self, now: datetime) -> SubscriptionQuerySet:
        """Active subscriptions whose period already ended."""
        return self.active().filter(end_date__lt=now)

    def due_for_renewal_reminder(self, now: datetime, days: int) -> SubscriptionQuerySet:
        """Active auto-renewing subscriptions whose period ends within ``days``."""
        return self.active().filter(
            auto_renew=True,
            end_date__gte=now,
            end_date__lte=now + timedelta(days=days),
        )


class Subscription(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    Tracks a user's plan subscription.

    Fields:
        user: Subscriber
        stripe_subscription_id: Stripe Subscription ID (sub_xxx)
        plan_type: Plan from the catalog
        status: Local status mirrored from Stripe
        amount: Plan amount in major currency units
        currency: ISO 4217 currency code (lowercase)
        start_date/end_date: Current billing period
        next_billing_date: Next charge date while auto-renew is on
        billing_cycle: Billing cadence chosen at checkout
        auto_renew: False once cancellation at period end is scheduled
        payment_status: Outcome of the latest charge
        transaction_id: Stripe invoice ID of the latest successful charge
        features: Plan features snapshot
        notes: Free-form operator notes
        metadata: Flexible JSON storage
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="subscriptions",
        help_text="User subscribed to the plan",
    )

    # ==========================================================================
    # Stripe Integration
    # ==========================================================================

    stripe_subscription_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Stripe Subscription ID (sub_xxx)",
    )

    # ==========================================================================
    # Plan & Amount
    # ==========================================================================

    plan_type = models.CharField(
        max_length=20,
        choices=PlanType.choices,
        help_text="Plan from the catalog",
    )

    amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Plan amount in major currency units",
    )

    currency = models.CharField(
        max_length=3,
        default="mxn",
        help_text="ISO 4217 currency code (lowercase)",
    )

    billing_cycle = models.CharField(
        max_length=20,
        choices=BillingCycle.choices,
        default=BillingCycle.MONTHLY,
        help_text="Billing cadence",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=SubscriptionStatus.choices,
        default=SubscriptionStatus.PENDING,
        db_index=True,
        help_text="Local status mirrored from Stripe",
    )

    payment_status = models.CharField(
        max_length=20,
        choices=SubscriptionPaymentStatus.choices,
        default=SubscriptionPaymentStatus.PENDING,
        help_text="Outcome of the latest charge",
    )

    auto_renew = models.BooleanField(
        default=True,
        help_text="Whether the subscription renews at period end",
    )

    # ==========================================================================
    # Billing Period
    # ==========================================================================

    start_date = models.DateTimeField(
        help_text="Start of current billing period",
    )

    end_date = models.DateTimeField(
        help_text="End of current billing period",
    )

    next_billing_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Next charge date while auto-renew is on",
    )

    # ==========================================================================
    # Details
    # ==========================================================================

    transaction_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Stripe invoice ID of the latest successful charge",
    )

    features = models.JSONField(
        default=dict,
        blank=True,
        help_text="Plan features snapshot",
    )

    notes = models.TextField(
        blank=True,
        default="",
        help_text="Operator notes",
    )

    objects = BaseManager.from_queryset(SubscriptionQuerySet)()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Subscription"
        verbose_name_plural = "Subscriptions"
        indexes = [
            models.Index(fields=["user", "status"], name="payments_su_user_id_5b7e2a_idx"),
            models.Index(fields=["status", "end_date"], name="payments_su_status_91c4d8_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["user"],
                condition=models.Q(status=SubscriptionStatus.ACTIVE),
                name="subscription_one_active_per_user",
            ),
            models.CheckConstraint(
                condition=models.Q(amount__gte=0),
                name="subscription_amount_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return (
            f"Subscription({self.id}, {self.plan_type}, {self.status}, "
            f"{self.amount} {self.currency.upper()}/{self.billing_cycle})"
        )

    # ==========================================================================
    # Status Changes
    # ==========================================================================

    def mark_cancelled(self, save: bool = True) -> None:
        """Cancel immediately; nothing renews afterwards."""
        self.status = SubscriptionStatus.CANCELLED
        self.auto_renew = False
        self.next_billing_date = None
        if save:
            self.save(
                update_fields=["status", "auto_renew", "next_billing_date", "updated_at"]
            )

    def mark_expired(self, save: bool = True) -> None:
        """Expire a subscription whose period ended without renewal."""
        self.status = SubscriptionStatus.EXPIRED
        self.next_billing_date = None
        if save:
            self.save(update_fields=["status", "next_billing_date", "updated_at"])

    def set_period(self, start: datetime | None, end: datetime) -> None:
        """
        Move the billing period. Does not save.

        next_billing_date follows the period end while auto-renew is on.
        """
        if start is not None:
            self.start_date = start
        self.end_date = end
        self.next_billing_date = end if self.auto_renew else None

    # ==========================================================================
    # Helper Properties
    # ==========================================================================

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE

    def days_until_renewal(self, now: datetime | None = None) -> int:
        """Whole days until the period ends (0 if already past)."""
        now = now or timezone.now()
        return max((self.end_date - now).days, 0)

    def is_expiring_within(self, days: int, now: datetime | None = None) -> bool:
        """Whether the period ends within ``days`` from now."""
        now = now or timezone.now()
        return now <= self.end_date <= now + timedelta(days=days)
