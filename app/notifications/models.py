"""
Notification system models.

This module defines the models for the notification system:
- NotificationType: Configuration for notification types with templates
- Notification: Individual notifications sent to users

Design Decisions:
    - NotificationType uses integer PK (internal lookup table, seeded by migration)
    - Notification uses a UUID PK and BaseModel timestamps
    - NotificationType uses PROTECT (prevent deletion with existing notifications)
    - GenericForeignKey links a notification to the invoice or subscription
      that triggered it
    - idempotency_key is unique when set, so one logical event notifies once

Usage:
    from notifications.models import Notification, NotificationKey

    Notification.objects.filter(
        recipient=user,
        notification_type__key=NotificationKey.PAYMENT_SUCCESSFUL,
    )
"""

from __future__ import annotations

from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


# =============================================================================
# Enums
# =============================================================================


class NotificationKey(models.TextChoices):
    """Keys of the notification types seeded by migration."""

    PAYMENT_SUCCESSFUL = "payment_successful", "Payment Successful"
    PAYMENT_FAILED = "payment_failed", "Payment Failed"
    SUBSCRIPTION_RENEWAL_REMINDER = (
        "subscription_renewal_reminder",
        "Subscription Renewal Reminder",
    )


# =============================================================================
# Models
# =============================================================================


class NotificationType(models.Model):
    """
    Lookup table for notification type definitions.

    Fields:
        key: Unique programmatic identifier (see NotificationKey)
        display_name: Human-readable name
        title_template: Python format string for notification title
        body_template: Python format string for notification body
        is_active: Whether this notification type is currently enabled
        supports_email: Whether the notification is also emailed

    Note:
        - Templates use Python str.format() syntax: {placeholder}
        - Missing placeholders raise KeyError during rendering
    """

    key = models.CharField(
        max_length=100,
        unique=True,
        db_index=True,
        help_text="Unique programmatic identifier (e.g., 'payment_successful')",
    )

    display_name = models.CharField(
        max_length=200,
        help_text="Human-readable name for display",
    )

    title_template = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="Python format string template for title",
    )

    body_template = models.TextField(
        blank=True,
        default="",
        help_text="Python format string template for body",
    )

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether this notification type is currently enabled",
    )

    supports_email = models.BooleanField(
        default=True,
        help_text="Can be delivered via email",
    )

    class Meta:
        db_table = "notifications_notification_type"
        verbose_name = "notification type"
        verbose_name_plural = "notification types"
        ordering = ["key"]

    def __str__(self) -> str:
        return f"{self.display_name} ({self.key})"


class Notification(UUIDPrimaryKeyMixin, BaseModel):
    """
    Individual notification record for a user.

    Notifications are immutable once created - title and body are
    fully rendered strings serving as historical records.

    Fields:
        notification_type: FK to NotificationType
        recipient: User receiving the notification
        title: Fully rendered title string
        body: Fully rendered body string
        data: Template data and identifiers of the source entity
        content_type/object_id/source_object: Generic FK to source entity
        is_read: Whether recipient has read this notification
        idempotency_key: Unique per logical event when set
        emailed_at: When the email copy was sent
    """

    notification_type = models.ForeignKey(
        NotificationType,
        on_delete=models.PROTECT,
        related_name="notifications",
        help_text="Type of this notification",
    )

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        db_index=True,
        help_text="User receiving this notification",
    )

    title = models.CharField(
        max_length=500,
        help_text="Fully rendered notification title",
    )

    body = models.TextField(
        blank=True,
        default="",
        help_text="Fully rendered notification body",
    )

    data = models.JSONField(
        default=dict,
        blank=True,
        help_text="Template data and source identifiers",
    )

    # Generic foreign key for linking to source entity
    content_type = models.ForeignKey(
        ContentType,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        help_text="Content type of source object",
    )

    object_id = models.CharField(
        max_length=36,
        null=True,
        blank=True,
        help_text="ID of source object (supports UUID and integer PKs)",
    )

    source_object = GenericForeignKey("content_type", "object_id")

    is_read = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether recipient has read this notification",
    )

    idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Idempotency key to prevent duplicate notifications",
    )

    emailed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the email copy of this notification was sent",
    )

    class Meta:
        db_table = "notifications_notification"
        ordering = ["-created_at"]  # Newest first
        indexes = [
            models.Index(
                fields=["recipient", "is_read", "-created_at"],
                name="notif_recipient_unread_idx",
            ),
        ]
        constraints = [
            # Unique constraint on idempotency_key when not null
            models.UniqueConstraint(
                fields=["idempotency_key"],
                name="notif_idempotency_key_unique",
                condition=models.Q(idempotency_key__isnull=False),
            ),
        ]

    def __str__(self) -> str:
        read_status = "read" if self.is_read else "unread"
        return (
            f"Notification({self.notification_type.key}) -> "
            f"User {self.recipient_id} [{read_status}]"
        )
