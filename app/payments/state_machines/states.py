"""
State enums for billing models.

This module defines the state and choice enums used by billing models.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Invoice States (django-fsm):
    draft → open → paid
    draft/open → uncollectible → paid (late payment)
    draft/open → void

Subscription States (mirrors the Stripe subscription status):
    pending → active → cancelled
    active → expired (period ended without renewal)
    active → pending (past_due, unpaid, paused) → active
"""

from django.db import models


class InvoiceStatus(models.TextChoices):
    """
    States for the Invoice model lifecycle.

    Terminal states: PAID, VOID

    State Flow:
        DRAFT → OPEN → PAID
        DRAFT/OPEN → UNCOLLECTIBLE → PAID
        DRAFT/OPEN → VOID

    Note:
        Nothing transitions back to DRAFT or OPEN.
    """

    DRAFT = "draft", "Draft"
    OPEN = "open", "Open"
    PAID = "paid", "Paid"
    VOID = "void", "Void"
    UNCOLLECTIBLE = "uncollectible", "Uncollectible"


class SubscriptionStatus(models.TextChoices):
    """
    Local subscription status.

    Stripe reports more statuses than this; see
    payments.webhooks.handlers.map_stripe_subscription_status.
    """

    ACTIVE = "active", "Active"
    CANCELLED = "cancelled", "Cancelled"
    EXPIRED = "expired", "Expired"
    PENDING = "pending", "Pending"


class SubscriptionPaymentStatus(models.TextChoices):
    """Outcome of the latest charge for a subscription."""

    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class PlanType(models.TextChoices):
    """Plans offered in the catalog (see settings.STRIPE_PLANS)."""

    BASIC = "basic", "Basic"
    PREMIUM = "premium", "Premium"
    ENTERPRISE = "enterprise", "Enterprise"


class BillingCycle(models.TextChoices):
    """Billing cadence chosen at checkout."""

    MONTHLY = "monthly", "Monthly"
    QUARTERLY = "quarterly", "Quarterly"
    YEARLY = "yearly", "Yearly"


class PaymentMethodType(models.TextChoices):
    """Payment method kinds stored locally; unknown Stripe types map to OTHER."""

    CARD = "card", "Card"
    BANK_ACCOUNT = "bank_account", "Bank Account"
    SEPA_DEBIT = "sepa_debit", "SEPA Debit"
    OXXO = "oxxo", "OXXO"
    OTHER = "other", "Other"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    Tracks the lifecycle of webhook event processing for idempotency.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (can retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


__all__ = [
    "InvoiceStatus",
    "SubscriptionStatus",
    "SubscriptionPaymentStatus",
    "PlanType",
    "BillingCycle",
    "PaymentMethodType",
    "WebhookEventStatus",
]
