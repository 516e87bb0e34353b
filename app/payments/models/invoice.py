"""
Invoice model for checkout and subscription billing.

An Invoice is created as a draft when a checkout session is opened and is
reconciled from Stripe webhooks afterwards: checkout.session.completed
links the Stripe invoice, invoice.payment_succeeded marks it paid and
invoice.payment_failed marks it uncollectible.

Usage:
    from payments.models import Invoice

    invoice = Invoice.objects.for_checkout_session("cs_test_123").first()

    # State transitions using django-fsm
    invoice.mark_paid(amount=Decimal("299.00"))
    invoice.save()
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone
from django_fsm import FSMField, transition

from core.managers import BaseManager, BaseQuerySet
from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import InvoiceStatus


OUTSTANDING_STATUSES = (
    InvoiceStatus.DRAFT,
    InvoiceStatus.OPEN,
    InvoiceStatus.UNCOLLECTIBLE,
)


class InvoiceQuerySet(BaseQuerySet):
    """Chainable invoice lookups used by the webhook handlers."""

    def for_checkout_session(self, session_id: str) -> InvoiceQuerySet:
        """Invoices created for a Stripe checkout session."""
        return self.filter(metadata__session_id=session_id)

    def unpaid(self) -> InvoiceQuerySet:
        """Invoices still waiting for payment."""
        return self.filter(status__in=[InvoiceStatus.DRAFT, InvoiceStatus.OPEN])

    def stats(self) -> dict[str, int]:
        """
        Paid, unpaid and overdue counts over this queryset.

        Unpaid covers failed collections too; overdue is the unpaid part
        past its due date.
        """
        outstanding = models.Q(status__in=OUTSTANDING_STATUSES)
        return self.aggregate(
            paid=models.Count("pk", filter=models.Q(status=InvoiceStatus.PAID)),
            unpaid=models.Count("pk", filter=outstanding),
            overdue=models.Count(
                "pk", filter=outstanding & models.Q(due_date__lt=timezone.now())
            ),
        )

    def awaiting_subscription(self, stripe_subscription_id: str) -> InvoiceQuerySet:
        """Invoices whose checkout produced a subscription not yet linked locally."""
        return self.filter(
            subscription__isnull=True,
            metadata__stripe_subscription_id=stripe_subscription_id,
        )


class Invoice(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    A bill owed by a user for a plan.

    State Flow:
        DRAFT -> OPEN (checkout completed, Stripe invoice finalized)
        DRAFT/OPEN -> PAID (invoice.payment_succeeded)
        DRAFT/OPEN -> UNCOLLECTIBLE (invoice.payment_failed)
        UNCOLLECTIBLE -> PAID (a later retry collected the funds)
        DRAFT/OPEN -> VOID

    Fields:
        user: Owner of the invoice
        subscription: Subscription the invoice pays for, once known
        stripe_invoice_id: Stripe Invoice ID (in_xxx), set once correlated
        amount: Amount in major currency units
        currency: ISO 4217 currency code (lowercase)
        status: Current FSM state
        due_date: When payment is due
        paid_at: When payment was confirmed
        metadata: session_id, plan_type, billing_cycle and Stripe links
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="invoices",
        help_text="User who owes this invoice",
    )

    subscription = models.ForeignKey(
        "payments.Subscription",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="invoices",
        help_text="Subscription this invoice pays for",
    )

    # ==========================================================================
    # Stripe Integration
    # ==========================================================================

    stripe_invoice_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Stripe Invoice ID (in_xxx)",
    )

    # ==========================================================================
    # Amount & Currency
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Invoice amount in major currency units",
    )

    currency = models.CharField(
        max_length=3,
        default="mxn",
        help_text="ISO 4217 currency code (lowercase)",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=InvoiceStatus.DRAFT,
        choices=InvoiceStatus.choices,
        db_index=True,
        help_text="Current state of the invoice (managed by FSM)",
    )

    due_date = models.DateTimeField(
        help_text="When payment is due",
    )

    paid_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When payment was confirmed",
    )

    objects = BaseManager.from_queryset(InvoiceQuerySet)()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Invoice"
        verbose_name_plural = "Invoices"
        indexes = [
            models.Index(fields=["user", "status"], name="payments_in_user_id_0a9f3c_idx"),
            models.Index(fields=["status", "due_date"], name="payments_in_status_6e2b17_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gte=0),
                name="invoice_amount_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Invoice({self.id}, {self.status}, {self.amount} {self.currency.upper()})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=InvoiceStatus.DRAFT,
        target=InvoiceStatus.OPEN,
    )
    def finalize(self):
        """
        Finalize the invoice once Stripe has issued it.

        Transition: DRAFT -> OPEN
        """

    @transition(
        field=status,
        source=[InvoiceStatus.DRAFT, InvoiceStatus.OPEN, InvoiceStatus.UNCOLLECTIBLE],
        target=InvoiceStatus.PAID,
    )
    def mark_paid(self, amount: Decimal | None = None, paid_at=None):
        """
        Record a confirmed payment.

        Transition: DRAFT/OPEN/UNCOLLECTIBLE -> PAID

        Args:
            amount: Amount actually collected, when Stripe reports one
            paid_at: Payment time (defaults to now)
        """
        if amount is not None:
            self.amount = amount
        self.paid_at = paid_at or timezone.now()

    @transition(
        field=status,
        source=[InvoiceStatus.DRAFT, InvoiceStatus.OPEN],
        target=InvoiceStatus.UNCOLLECTIBLE,
    )
    def mark_uncollectible(self):
        """
        Record a failed collection attempt.

        Transition: DRAFT/OPEN -> UNCOLLECTIBLE
        """

    @transition(
        field=status,
        source=[InvoiceStatus.DRAFT, InvoiceStatus.OPEN],
        target=InvoiceStatus.VOID,
    )
    def void(self):
        """
        Void an invoice that will never be collected.

        Transition: DRAFT/OPEN -> VOID
        """

    # ==========================================================================
    # Helper Properties
    # ==========================================================================

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID

    @property
    def session_id(self) -> str | None:
        """Checkout session this invoice was created for."""
        return self.get_meta("session_id")

    @property
    def plan_type(self) -> str | None:
        return self.get_meta("plan_type")
