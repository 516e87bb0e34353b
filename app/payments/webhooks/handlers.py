"""
Webhook event handlers for Stripe events.

This module provides a handler registry and the handlers that reconcile
Stripe events with local invoices, subscriptions and payment methods.

Every handler:
- Runs inside transaction.atomic()
- Locks the user row first, then the rows it reads (select_for_update)
- Checks current state before transitioning, so replays are no-ops
- Returns a HandlerResult; unexpected errors propagate to the view

Usage:
    from payments.webhooks.handlers import register_handler, route

    @register_handler(EventType.CHECKOUT_SESSION_COMPLETED)
    def handle_checkout_session_completed(event: VerifiedEvent) -> HandlerResult:
        ...

    result = route(event)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from payments.adapters import StripeAdapter
from payments.audit import AuditAction, AuditEntity, record_audit_event
from payments.exceptions import InvalidPlanError
from payments.locks import lock_user
from payments.models import Invoice, PaymentMethod, Subscription
from payments.models.payment_method import normalize_payment_method_type
from payments.notifications import BillingNotifier
from payments.plans import billing_cycle_length, get_plan, to_major_units
from payments.state_machines import (
    BillingCycle,
    InvoiceStatus,
    SubscriptionPaymentStatus,
    SubscriptionStatus,
)
from payments.webhooks.events import EventType, VerifiedEvent, timestamp_to_datetime
from payments.webhooks.types import HandlerResult

if TYPE_CHECKING:
    from datetime import datetime


logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_FAILURE_REASON = "The payment could not be processed"

# Subscription metadata key holding the creation time of the last applied event
LAST_EVENT_META_KEY = "last_event_created"

# Stripe subscription status -> local status
STRIPE_SUBSCRIPTION_STATUS_MAP = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.ACTIVE,
    "canceled": SubscriptionStatus.CANCELLED,
    "incomplete_expired": SubscriptionStatus.EXPIRED,
    "incomplete": SubscriptionStatus.PENDING,
    "past_due": SubscriptionStatus.PENDING,
    "unpaid": SubscriptionStatus.PENDING,
    "paused": SubscriptionStatus.PENDING,
}


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event types to handler functions
WEBHOOK_HANDLERS: dict[EventType, Callable[[VerifiedEvent], HandlerResult]] = {}


def register_handler(event_type: EventType) -> Callable:
    """
    Decorator to register a webhook event handler.

    Args:
        event_type: The Stripe event type handled by the function

    Returns:
        Decorator function that registers the handler
    """

    def decorator(func: Callable[[VerifiedEvent], HandlerResult]) -> Callable:
        WEBHOOK_HANDLERS[event_type] = func
        logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def route(event: VerifiedEvent) -> HandlerResult:
    """
    Route a verified event to exactly one handler.

    Unknown and unregistered event types are acknowledged as ignored.
    Exceptions raised by the handler propagate to the caller.
    """
    handler = WEBHOOK_HANDLERS.get(event.kind) if event.kind else None

    if handler is None:
        logger.info(
            f"No handler registered for event type: {event.event_type}",
            extra={"stripe_event_id": event.event_id},
        )
        return HandlerResult.ignored(event.event_type, "No handler registered")

    logger.info(
        f"Dispatching {event.event_type} to handler",
        extra={"stripe_event_id": event.event_id},
    )
    return handler(event)


# =============================================================================
# Helpers
# =============================================================================


def map_stripe_subscription_status(stripe_status: str | None) -> str | None:
    """Local status for a Stripe subscription status (None if unknown)."""
    return STRIPE_SUBSCRIPTION_STATUS_MAP.get(stripe_status or "")


def _missing_field(event: VerifiedEvent, field_name: str) -> HandlerResult:
    logger.error(
        f"{event.event_type}: Could not extract {field_name}",
        extra={"stripe_event_id": event.event_id},
    )
    return HandlerResult.ignored(event.event_type, f"Missing {field_name}")


def _not_found(event: VerifiedEvent, entity: str, **context) -> HandlerResult:
    logger.warning(
        f"{entity} not found for {event.event_type}",
        extra={"stripe_event_id": event.event_id, **context},
    )
    return HandlerResult.entity_not_found(event.event_type, f"{entity} not found")


def _locked_first(queryset):
    """
    Lock the owning user, then the matching row.

    Returns None when no row matches. The row is read twice so that the
    user lock is always taken before any billing row lock.
    """
    row = queryset.first()
    if row is None:
        return None
    lock_user(row.user_id)
    return queryset.select_for_update().filter(pk=row.pk).first()


def _subscription_period(
    event: VerifiedEvent,
    billing_cycle: str,
    fallback_start: datetime,
) -> tuple[datetime, datetime]:
    """
    Billing period reported by a subscription event.

    Newer API versions report the period on the subscription items rather
    than on the subscription itself. When neither carries it, the period
    runs one billing cycle from the start.
    """
    item = next(iter(event.get_list("items.data")), None)
    item = item if isinstance(item, dict) else {}

    start = event.get_timestamp("current_period_start") or timestamp_to_datetime(
        item.get("current_period_start")
    )
    end = event.get_timestamp("current_period_end") or timestamp_to_datetime(
        item.get("current_period_end")
    )
    start = start or fallback_start
    return start, end or start + billing_cycle_length(billing_cycle)


def _invoice_period_end(event: VerifiedEvent) -> datetime | None:
    line = next(iter(event.get_list("lines.data")), None)
    if not isinstance(line, dict):
        return None
    period = line.get("period")
    return timestamp_to_datetime(period.get("end")) if isinstance(period, dict) else None


def _invoice_subscription_id(event: VerifiedEvent) -> str | None:
    return event.get_str("subscription") or event.get_str(
        "parent.subscription_details.subscription"
    )


def _invoice_subscription_metadata(event: VerifiedEvent) -> dict:
    return event.get_dict("subscription_details.metadata") or event.get_dict(
        "parent.subscription_details.metadata"
    )


def _cancel_other_active(user_id, keep: Subscription | None = None) -> int:
    """
    Cancel the user's active subscriptions other than ``keep``.

    Caller must hold the user lock.
    """
    others = Subscription.objects.active().select_for_update().filter(user_id=user_id)
    if keep is not None and keep.pk:
        others = others.exclude(pk=keep.pk)

    count = 0
    for other in others:
        other.mark_cancelled()
        record_audit_event(
            AuditAction.SUBSCRIPTION_CANCELLED,
            entity=AuditEntity.for_instance(other),
            reason="superseded",
        )
        count += 1
    return count


def _is_stale(subscription: Subscription, event: VerifiedEvent) -> bool:
    """True when a newer event for this subscription was already applied."""
    if event.created is None:
        return False
    last_applied = subscription.get_meta(LAST_EVENT_META_KEY)
    return (
        isinstance(last_applied, int)
        and int(event.created.timestamp()) < last_applied
    )


def _remember_event(subscription: Subscription, event: VerifiedEvent) -> None:
    """Record the event time on the subscription. Does not save."""
    if event.created is not None:
        subscription.set_meta(
            LAST_EVENT_META_KEY, int(event.created.timestamp()), save=False
        )


def _find_unlinked_invoice(event: VerifiedEvent) -> Invoice | None:
    """
    Fallback lookup for an invoice that was never linked to Stripe.

    The checkout request id stamped on both the draft invoice and the
    subscription identifies the invoice exactly. Without it, the newest
    unpaid invoice without a Stripe invoice id for the user and plan named
    in the subscription metadata is used.
    """
    metadata = _invoice_subscription_metadata(event)
    user_id = metadata.get("user_id")
    plan_type = metadata.get("plan_type")
    checkout_request_id = metadata.get("checkout_request_id")
    if not user_id or not str(user_id).isdigit():
        return None

    queryset = Invoice.objects.unpaid().filter(
        user_id=int(user_id),
        stripe_invoice_id__isnull=True,
    )
    if checkout_request_id:
        invoice = _locked_first(
            queryset.filter(metadata__checkout_request_id=checkout_request_id)
        )
        if invoice is not None:
            return invoice
    if plan_type:
        queryset = queryset.filter(metadata__plan_type=plan_type)
    return _locked_first(queryset.order_by("-created_at"))


def _payment_failure_reason(event: VerifiedEvent) -> str:
    return (
        event.get_str("last_payment_error.message")
        or event.get_str("payment_intent.last_payment_error.message")
        or DEFAULT_PAYMENT_FAILURE_REASON
    )


def _maybe_send_renewal_reminder(subscription: Subscription) -> None:
    days = settings.BILLING_RENEWAL_REMINDER_DAYS
    if (
        subscription.is_active
        and subscription.auto_renew
        and subscription.is_expiring_within(days)
    ):
        BillingNotifier.subscription_renewal_reminder(
            subscription, subscription.days_until_renewal()
        )


# =============================================================================
# Invoice Handlers
# =============================================================================


@register_handler(EventType.INVOICE_PAYMENT_SUCCEEDED)
def handle_invoice_payment_succeeded(event: VerifiedEvent) -> HandlerResult:
    """
    Handle a collected invoice.

    Marks the local invoice paid and activates the subscription it pays for,
    cancelling any other active subscription of the user. The payment
    notification is sent at most once per invoice.
    """
    stripe_invoice_id = event.object_id
    if not stripe_invoice_id:
        return _missing_field(event, "invoice id")

    logger.info(
        "Processing invoice.payment_succeeded",
        extra={"stripe_event_id": event.event_id, "stripe_invoice_id": stripe_invoice_id},
    )

    with transaction.atomic():
        invoice = _locked_first(Invoice.objects.filter(stripe_invoice_id=stripe_invoice_id))
        if invoice is None:
            invoice = _find_unlinked_invoice(event)
        if invoice is None:
            return _not_found(event, "Invoice", stripe_invoice_id=stripe_invoice_id)

        entity = AuditEntity.for_instance(invoice)
        if invoice.is_paid:
            logger.info(
                "Invoice already paid",
                extra={"invoice_id": str(invoice.id), "stripe_invoice_id": stripe_invoice_id},
            )
            return HandlerResult.unchanged(event.event_type, "Invoice already paid", entity)
        if invoice.status == InvoiceStatus.VOID:
            logger.warning(
                "Payment reported for a void invoice",
                extra={"invoice_id": str(invoice.id), "stripe_invoice_id": stripe_invoice_id},
            )
            return HandlerResult.unchanged(event.event_type, "Invoice is void", entity)

        if not invoice.stripe_invoice_id:
            invoice.stripe_invoice_id = stripe_invoice_id

        amount_paid = event.get_int("amount_paid")
        invoice.mark_paid(
            amount=to_major_units(amount_paid) if amount_paid is not None else None
        )

        subscription = None
        if invoice.subscription_id:
            subscription = (
                Subscription.objects.select_for_update()
                .filter(pk=invoice.subscription_id)
                .first()
            )
        else:
            stripe_subscription_id = _invoice_subscription_id(event)
            if stripe_subscription_id:
                subscription = (
                    Subscription.objects.select_for_update()
                    .filter(stripe_subscription_id=stripe_subscription_id, user_id=invoice.user_id)
                    .first()
                )
                invoice.subscription = subscription
                if subscription is None:
                    # Linked when customer.subscription.created arrives
                    invoice.set_meta("stripe_subscription_id", stripe_subscription_id, save=False)

        invoice.save()

        if subscription is not None and subscription.status == SubscriptionStatus.CANCELLED:
            logger.warning(
                "Payment reported for a cancelled subscription",
                extra={
                    "invoice_id": str(invoice.id),
                    "subscription_id": str(subscription.id),
                },
            )
        elif subscription is not None:
            _cancel_other_active(invoice.user_id, keep=subscription)

            now = timezone.now()
            period_end = _invoice_period_end(event) or now + billing_cycle_length(
                subscription.billing_cycle
            )
            subscription.status = SubscriptionStatus.ACTIVE
            subscription.payment_status = SubscriptionPaymentStatus.COMPLETED
            subscription.transaction_id = stripe_invoice_id
            subscription.set_period(None, period_end)
            subscription.save()

            record_audit_event(
                AuditAction.SUBSCRIPTION_UPDATED,
                entity=AuditEntity.for_instance(subscription),
                status=subscription.status,
                end_date=subscription.end_date.isoformat(),
            )

        record_audit_event(
            AuditAction.INVOICE_PAID,
            entity=entity,
            stripe_invoice_id=stripe_invoice_id,
            amount=invoice.amount,
        )

        BillingNotifier.payment_successful(invoice)

    logger.info(
        "Invoice payment succeeded",
        extra={
            "invoice_id": str(invoice.id),
            "stripe_invoice_id": stripe_invoice_id,
            "amount_paid": amount_paid,
        },
    )
    return HandlerResult.processed(event.event_type, "Invoice paid", entity)


@register_handler(EventType.INVOICE_PAYMENT_FAILED)
def handle_invoice_payment_failed(event: VerifiedEvent) -> HandlerResult:
    """
    Handle a failed collection attempt.

    The invoice becomes uncollectible and its subscription records the
    failed payment. The failure notification is sent at most once per invoice.
    """
    stripe_invoice_id = event.object_id
    if not stripe_invoice_id:
        return _missing_field(event, "invoice id")

    with transaction.atomic():
        invoice = _locked_first(Invoice.objects.filter(stripe_invoice_id=stripe_invoice_id))
        if invoice is None:
            return _not_found(event, "Invoice", stripe_invoice_id=stripe_invoice_id)

        entity = AuditEntity.for_instance(invoice)
        if invoice.status not in (InvoiceStatus.DRAFT, InvoiceStatus.OPEN):
            logger.info(
                f"Invoice in {invoice.status} state, ignoring payment failure",
                extra={"invoice_id": str(invoice.id), "stripe_invoice_id": stripe_invoice_id},
            )
            return HandlerResult.unchanged(
                event.event_type, f"Invoice already {invoice.status}", entity
            )

        invoice.mark_uncollectible()
        invoice.save()

        if invoice.subscription_id:
            Subscription.objects.filter(pk=invoice.subscription_id).update(
                payment_status=SubscriptionPaymentStatus.FAILED,
                updated_at=timezone.now(),
            )

        reason = _payment_failure_reason(event)
        record_audit_event(
            AuditAction.INVOICE_PAYMENT_FAILED,
            entity=entity,
            stripe_invoice_id=stripe_invoice_id,
            reason=reason,
        )
        BillingNotifier.payment_failed(invoice, reason)

    logger.warning(
        "Invoice payment failed",
        extra={"invoice_id": str(invoice.id), "stripe_invoice_id": stripe_invoice_id},
    )
    return HandlerResult.processed(event.event_type, "Invoice marked uncollectible", entity)


# =============================================================================
# Subscription Handlers
# =============================================================================


@register_handler(EventType.SUBSCRIPTION_CREATED)
def handle_subscription_created(event: VerifiedEvent) -> HandlerResult:
    """
    Create the local subscription for a new Stripe subscription.

    Plan and billing cycle come from the metadata set at checkout; amount
    and features come from the plan catalog. Any other active subscription
    of the user is cancelled first.
    """
    stripe_subscription_id = event.object_id
    customer_id = event.get_str("customer")
    if not stripe_subscription_id:
        return _missing_field(event, "subscription id")
    if not customer_id:
        return _missing_field(event, "customer")

    metadata = event.metadata
    plan_type = metadata.get("plan_type") or "basic"
    try:
        plan = get_plan(plan_type)
    except InvalidPlanError:
        logger.error(
            f"Unknown plan in subscription metadata: {plan_type}",
            extra={"stripe_event_id": event.event_id, "stripe_subscription_id": stripe_subscription_id},
        )
        return HandlerResult.ignored(event.event_type, f"Unknown plan: {plan_type}")

    billing_cycle = metadata.get("billing_cycle")
    if billing_cycle not in BillingCycle.values:
        billing_cycle = BillingCycle.MONTHLY

    with transaction.atomic():
        user = get_user_model().objects.by_stripe_customer(customer_id).first()
        if user is None:
            return _not_found(event, "User", stripe_customer_id=customer_id)
        user = lock_user(user.pk)

        existing = Subscription.objects.filter(
            stripe_subscription_id=stripe_subscription_id
        ).first()
        if existing is not None:
            return HandlerResult.unchanged(
                event.event_type,
                "Subscription already exists",
                AuditEntity.for_instance(existing),
            )

        _cancel_other_active(user.pk)

        start, end = _subscription_period(event, billing_cycle, timezone.now())
        subscription = Subscription(
            user=user,
            stripe_subscription_id=stripe_subscription_id,
            plan_type=plan.plan_type,
            amount=plan.major_amount,
            currency=plan.currency,
            billing_cycle=billing_cycle,
            status=SubscriptionStatus.ACTIVE,
            auto_renew=not event.get_bool("cancel_at_period_end"),
            features=plan.features,
            metadata={"stripe_status": event.get_str("status")},
        )
        subscription.set_period(start, end)
        _remember_event(subscription, event)
        subscription.save()

        awaiting = Invoice.objects.awaiting_subscription(stripe_subscription_id).filter(
            user=user
        )
        paid = awaiting.filter(status=InvoiceStatus.PAID).order_by("-paid_at").first()
        if paid is not None:
            # The first invoice was paid before this event arrived
            subscription.payment_status = SubscriptionPaymentStatus.COMPLETED
            subscription.transaction_id = paid.stripe_invoice_id
            subscription.save(update_fields=["payment_status", "transaction_id", "updated_at"])
        linked = awaiting.update(subscription=subscription, updated_at=timezone.now())

        entity = AuditEntity.for_instance(subscription)
        record_audit_event(
            AuditAction.SUBSCRIPTION_CREATED,
            entity=entity,
            stripe_subscription_id=stripe_subscription_id,
            plan_type=plan.plan_type,
            linked_invoices=linked,
        )

    logger.info(
        "Subscription created",
        extra={"user_id": str(user.pk), "stripe_subscription_id": stripe_subscription_id},
    )
    return HandlerResult.processed(event.event_type, "Subscription created", entity)


@register_handler(EventType.SUBSCRIPTION_UPDATED)
def handle_subscription_updated(event: VerifiedEvent) -> HandlerResult:
    """
    Mirror a Stripe subscription change.

    Status, billing period and auto-renew follow what Stripe reports. A
    renewal reminder is sent when the period ends soon.
    """
    stripe_subscription_id = event.object_id
    if not stripe_subscription_id:
        return _missing_field(event, "subscription id")

    with transaction.atomic():
        subscription = _locked_first(
            Subscription.objects.filter(stripe_subscription_id=stripe_subscription_id)
        )
        if subscription is None:
            return _not_found(
                event, "Subscription", stripe_subscription_id=stripe_subscription_id
            )

        entity = AuditEntity.for_instance(subscription)
        if subscription.status == SubscriptionStatus.CANCELLED:
            # Cancellation is terminal
            logger.info(
                "Ignoring update for a cancelled subscription",
                extra={
                    "stripe_event_id": event.event_id,
                    "stripe_subscription_id": stripe_subscription_id,
                },
            )
            return HandlerResult.unchanged(
                event.event_type, "Subscription is cancelled", entity
            )
        if _is_stale(subscription, event):
            logger.info(
                "Ignoring out-of-date subscription update",
                extra={
                    "stripe_event_id": event.event_id,
                    "stripe_subscription_id": stripe_subscription_id,
                },
            )
            return HandlerResult.unchanged(
                event.event_type, "A newer event was already applied", entity
            )

        before = (
            subscription.status,
            subscription.auto_renew,
            subscription.start_date,
            subscription.end_date,
        )

        stripe_status = event.get_str("status")
        new_status = map_stripe_subscription_status(stripe_status)
        if new_status is None:
            logger.warning(
                f"Unknown Stripe subscription status: {stripe_status}",
                extra={"stripe_subscription_id": stripe_subscription_id},
            )
            new_status = subscription.status

        if new_status == SubscriptionStatus.ACTIVE and not subscription.is_active:
            _cancel_other_active(subscription.user_id, keep=subscription)

        subscription.status = new_status
        subscription.auto_renew = not event.get_bool("cancel_at_period_end")
        start, end = _subscription_period(
            event, subscription.billing_cycle, subscription.start_date
        )
        subscription.set_period(start, end)
        if new_status in (SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED):
            subscription.next_billing_date = None

        after = (
            subscription.status,
            subscription.auto_renew,
            subscription.start_date,
            subscription.end_date,
        )
        changed = before != after
        if changed:
            _remember_event(subscription, event)
            subscription.save()
            record_audit_event(
                AuditAction.SUBSCRIPTION_UPDATED,
                entity=entity,
                stripe_status=stripe_status,
                status=subscription.status,
                auto_renew=subscription.auto_renew,
                end_date=subscription.end_date.isoformat(),
            )

        _maybe_send_renewal_reminder(subscription)

    if not changed:
        return HandlerResult.unchanged(event.event_type, "Subscription unchanged", entity)

    logger.info(
        "Subscription updated",
        extra={
            "subscription_id": str(subscription.id),
            "stripe_subscription_id": stripe_subscription_id,
            "status": subscription.status,
        },
    )
    return HandlerResult.processed(event.event_type, "Subscription updated", entity)


@register_handler(EventType.SUBSCRIPTION_DELETED)
def handle_subscription_deleted(event: VerifiedEvent) -> HandlerResult:
    """Cancel the local subscription."""
    stripe_subscription_id = event.object_id
    if not stripe_subscription_id:
        return _missing_field(event, "subscription id")

    with transaction.atomic():
        subscription = _locked_first(
            Subscription.objects.filter(stripe_subscription_id=stripe_subscription_id)
        )
        if subscription is None:
            return _not_found(
                event, "Subscription", stripe_subscription_id=stripe_subscription_id
            )

        entity = AuditEntity.for_instance(subscription)
        if subscription.status == SubscriptionStatus.CANCELLED:
            return HandlerResult.unchanged(
                event.event_type, "Subscription already cancelled", entity
            )

        _remember_event(subscription, event)
        subscription.mark_cancelled(save=False)
        subscription.save(
            update_fields=[
                "status",
                "auto_renew",
                "next_billing_date",
                "metadata",
                "updated_at",
            ]
        )
        record_audit_event(
            AuditAction.SUBSCRIPTION_CANCELLED,
            entity=entity,
            stripe_subscription_id=stripe_subscription_id,
        )

    logger.info(
        "Subscription cancelled",
        extra={
            "subscription_id": str(subscription.id),
            "stripe_subscription_id": stripe_subscription_id,
        },
    )
    return HandlerResult.processed(event.event_type, "Subscription cancelled", entity)


# =============================================================================
# Payment Method Handlers
# =============================================================================


@register_handler(EventType.PAYMENT_METHOD_ATTACHED)
def handle_payment_method_attached(event: VerifiedEvent) -> HandlerResult:
    """Store or refresh a payment method attached to a user's customer."""
    payment_method_id = event.object_id
    customer_id = event.get_str("customer")
    if not payment_method_id:
        return _missing_field(event, "payment method id")
    if not customer_id:
        return _missing_field(event, "customer")

    details = StripeAdapter.payment_method_result(event.data_object)

    with transaction.atomic():
        user = get_user_model().objects.by_stripe_customer(customer_id).first()
        if user is None:
            return _not_found(event, "User", stripe_customer_id=customer_id)
        user = lock_user(user.pk)

        defaults = {
            "user": user,
            "type": normalize_payment_method_type(details.type),
            "last4": details.last4,
            "brand": details.brand,
            "metadata": details.details,
        }
        previous_owner_id = (
            PaymentMethod.objects.filter(stripe_payment_method_id=payment_method_id)
            .values_list("user_id", flat=True)
            .first()
        )
        if previous_owner_id is not None and previous_owner_id != user.pk:
            # A default belongs to its owner; the new owner chooses again
            defaults["is_default"] = False
            logger.warning(
                "Payment method moved to another customer",
                extra={
                    "stripe_payment_method_id": payment_method_id,
                    "previous_user_id": str(previous_owner_id),
                    "user_id": str(user.pk),
                },
            )

        payment_method, created = PaymentMethod.objects.update_or_create(
            stripe_payment_method_id=payment_method_id,
            defaults=defaults,
        )

        entity = AuditEntity.for_instance(payment_method)
        record_audit_event(
            AuditAction.PAYMENT_METHOD_ATTACHED,
            entity=entity,
            stripe_payment_method_id=payment_method_id,
            created=created,
        )

    logger.info(
        "Payment method attached",
        extra={"user_id": str(user.pk), "stripe_payment_method_id": payment_method_id},
    )
    return HandlerResult.processed(event.event_type, "Payment method stored", entity)


@register_handler(EventType.PAYMENT_METHOD_DETACHED)
def handle_payment_method_detached(event: VerifiedEvent) -> HandlerResult:
    """Remove a payment method detached at Stripe."""
    payment_method_id = event.object_id
    if not payment_method_id:
        return _missing_field(event, "payment method id")

    with transaction.atomic():
        payment_method = _locked_first(
            PaymentMethod.objects.filter(stripe_payment_method_id=payment_method_id)
        )
        if payment_method is None:
            return _not_found(
                event, "PaymentMethod", stripe_payment_method_id=payment_method_id
            )

        entity = AuditEntity.for_instance(payment_method)
        payment_method.delete()
        record_audit_event(
            AuditAction.PAYMENT_METHOD_DETACHED,
            entity=entity,
            stripe_payment_method_id=payment_method_id,
        )

    logger.info(
        "Payment method detached",
        extra={"stripe_payment_method_id": payment_method_id},
    )
    return HandlerResult.processed(event.event_type, "Payment method removed", entity)


# =============================================================================
# Checkout Handlers
# =============================================================================


@register_handler(EventType.CHECKOUT_SESSION_COMPLETED)
def handle_checkout_session_completed(event: VerifiedEvent) -> HandlerResult:
    """
    Correlate a completed checkout with the invoice created for it.

    Records the Stripe invoice and subscription ids on the local invoice and
    finalizes it, so later invoice events find it by stripe_invoice_id.
    """
    session_id = event.object_id
    if not session_id:
        return _missing_field(event, "session id")

    stripe_invoice_id = event.get_str("invoice")
    stripe_subscription_id = event.get_str("subscription")

    with transaction.atomic():
        invoice = _locked_first(Invoice.objects.for_checkout_session(session_id))
        if invoice is None:
            return _not_found(event, "Invoice", session_id=session_id)

        entity = AuditEntity.for_instance(invoice)
        changed = False

        if (
            stripe_invoice_id
            and not invoice.stripe_invoice_id
            and not Invoice.objects.filter(stripe_invoice_id=stripe_invoice_id).exists()
        ):
            invoice.stripe_invoice_id = stripe_invoice_id
            changed = True

        if stripe_subscription_id and invoice.subscription_id is None:
            if invoice.get_meta("stripe_subscription_id") != stripe_subscription_id:
                invoice.set_meta("stripe_subscription_id", stripe_subscription_id, save=False)
                changed = True
            subscription = Subscription.objects.filter(
                stripe_subscription_id=stripe_subscription_id,
                user_id=invoice.user_id,
            ).first()
            if subscription is not None:
                invoice.subscription = subscription
                changed = True

        if invoice.status == InvoiceStatus.DRAFT:
            invoice.finalize()
            changed = True

        if not changed:
            return HandlerResult.unchanged(event.event_type, "Checkout already recorded", entity)

        invoice.save()

    logger.info(
        "Checkout session completed",
        extra={
            "invoice_id": str(invoice.id),
            "session_id": session_id,
            "stripe_invoice_id": stripe_invoice_id,
        },
    )
    return HandlerResult.processed(event.event_type, "Checkout recorded", entity)
