"""
Celery tasks for notification delivery.

Tasks:
    send_notification_email: Deliver a notification's email copy

Design:
    - Tasks receive notification_id (UUID string)
    - Tasks are idempotent: a notification with emailed_at set is a no-op
    - SMTP failures propagate and trigger Celery's retry with backoff

Usage:
    from notifications.tasks import send_notification_email

    # Queued automatically by NotificationService.create_notification()
    send_notification_email.delay(notification_id="uuid-string")
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone as django_timezone

from notifications.models import Notification

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def send_notification_email(self, notification_id: str) -> bool:
    """
    Send a notification via email.

    Flow:
        1. Fetch notification + recipient
        2. Skip if already emailed or the recipient has no email
        3. Send through the configured email backend
        4. Stamp emailed_at

    Args:
        notification_id: UUID string of the Notification

    Returns:
        True if sent, False if skipped
    """
    notification = (
        Notification.objects.select_related("recipient")
        .filter(id=notification_id)
        .first()
    )
    if notification is None:
        logger.warning(f"Notification {notification_id} not found")
        return False

    if notification.emailed_at is not None:
        logger.info(f"Notification {notification_id} already emailed, skipping")
        return False

    recipient = notification.recipient
    if not recipient.email:
        logger.info(
            f"Email skipped for notification {notification_id}: "
            "recipient has no email"
        )
        return False

    send_mail(
        subject=notification.title,
        message=notification.body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[recipient.email],
    )

    notification.emailed_at = django_timezone.now()
    notification.save(update_fields=["emailed_at", "updated_at"])

    logger.info(
        f"Email sent for notification {notification_id}",
        extra={"notification_id": notification_id, "recipient_id": recipient.id},
    )
    return True
