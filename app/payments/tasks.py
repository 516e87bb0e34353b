"""
Celery tasks for billing maintenance.

This module provides periodic tasks for:
- Expiring subscriptions whose period ended without renewal
- Sending renewal reminders ahead of the period end
- Cleaning up old webhook receipts

All three are scheduled through CELERY_BEAT_SCHEDULE in settings and are
safe to run more than once: expiry re-checks state under lock and
reminders are deduplicated by their idempotency key.

Usage:
    from payments.tasks import expire_subscriptions

    # Preview without changing anything
    expire_subscriptions.delay(dry_run=True)
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from payments.audit import AuditAction, AuditEntity, record_audit_event
from payments.locks import lock_user
from payments.models import Subscription, WebhookEvent
from payments.notifications import BillingNotifier
from payments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Subscription Tasks
# =============================================================================


@shared_task
def expire_subscriptions(dry_run: bool = False) -> dict:
    """
    Expire active subscriptions whose billing period has ended.

    Args:
        dry_run: Only count the subscriptions that would expire

    Returns:
        Dict with the number of subscriptions found and expired
    """
    now = timezone.now()
    candidates = list(
        Subscription.objects.expired_but_active(now).values_list("pk", "user_id")
    )

    if dry_run:
        logger.info(
            f"Dry run: {len(candidates)} subscriptions would expire",
            extra={"found_count": len(candidates)},
        )
        return {"found_count": len(candidates), "expired_count": 0, "dry_run": True}

    expired_count = 0
    for subscription_id, user_id in candidates:
        with transaction.atomic():
            lock_user(user_id)
            subscription = (
                Subscription.objects.expired_but_active(now)
                .select_for_update()
                .filter(pk=subscription_id)
                .first()
            )
            # Renewed or cancelled since the scan
            if subscription is None:
                continue

            subscription.mark_expired()
            record_audit_event(
                AuditAction.SUBSCRIPTION_EXPIRED,
                entity=AuditEntity.for_instance(subscription),
                end_date=subscription.end_date.isoformat(),
            )
            expired_count += 1

    if expired_count:
        logger.info(
            f"Expired {expired_count} subscriptions",
            extra={"found_count": len(candidates), "expired_count": expired_count},
        )

    return {"found_count": len(candidates), "expired_count": expired_count, "dry_run": False}


@shared_task
def send_subscription_renewal_reminders(days: int | None = None) -> dict:
    """
    Remind users whose auto-renewing subscription ends within ``days``.

    Args:
        days: Look-ahead window (defaults to BILLING_RENEWAL_REMINDER_DAYS)

    Returns:
        Dict with counts of reminders sent and skipped as duplicates
    """
    days = days if days is not None else settings.BILLING_RENEWAL_REMINDER_DAYS
    now = timezone.now()

    sent_count = 0
    skipped_count = 0
    subscriptions = Subscription.objects.due_for_renewal_reminder(now, days).select_related(
        "user"
    )
    for subscription in subscriptions:
        with transaction.atomic():
            result = BillingNotifier.subscription_renewal_reminder(
                subscription, subscription.days_until_renewal(now)
            )
        if result.success:
            sent_count += 1
        else:
            skipped_count += 1

    logger.info(
        f"Renewal reminders: {sent_count} sent, {skipped_count} skipped",
        extra={"sent_count": sent_count, "skipped_count": skipped_count, "days": days},
    )
    return {"sent_count": sent_count, "skipped_count": skipped_count}


# =============================================================================
# Webhook Maintenance Tasks
# =============================================================================


@shared_task
def cleanup_old_webhooks(days: int = 90) -> dict:
    """
    Delete processed webhook receipts older than ``days``.

    Failed receipts are kept for debugging.

    Returns:
        Dict with count of receipts deleted
    """
    cutoff = timezone.now() - timedelta(days=days)

    deleted_count, _ = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSED,
        processed_at__lt=cutoff,
    ).delete()

    if deleted_count > 0:
        logger.info(
            f"Deleted {deleted_count} old webhook events",
            extra={
                "deleted_count": deleted_count,
                "cutoff_date": cutoff.isoformat(),
            },
        )

    return {"deleted_count": deleted_count}
