"""
WebhookEvent model for Stripe webhook event tracking.

Stores every verified webhook event received from Stripe for idempotent
processing and audit trails. The unique stripe_event_id constraint
ensures duplicate webhooks are detected and acknowledged without being
routed twice.

Usage:
    from payments.models import WebhookEvent

    event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id="evt_1234567890",
        defaults={
            "event_type": "invoice.payment_succeeded",
            "payload": webhook_payload,
        },
    )

    if event.is_processed:
        # Duplicate webhook - already processed
        return JsonResponse({"status": "duplicate"})

    event.mark_processing()
    event.save()
    # ... route event ...
    event.mark_processed(outcome="processed")
    event.save()
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import WebhookEventStatus


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Receipt log of Stripe webhook events.

    Processing Flow:
        1. Webhook arrives, verify Stripe signature
        2. Insert/get WebhookEvent with stripe_event_id
        3. If exists and PROCESSED -> return 200 (duplicate)
        4. Set status to PROCESSING
        5. Route to the registered handler inside a transaction
        6. Set status to PROCESSED (with the handler outcome) or FAILED
        7. Stripe redelivers FAILED events; retry_count tracks attempts

    Fields:
        stripe_event_id: Unique Stripe Event ID (evt_xxx)
        event_type: Type of webhook event
        payload: Full JSON payload from Stripe
        status: Processing status
        outcome: Handler status of the last successful processing
        processed_at: When event was successfully processed
        error_message: Error details if processing failed
        retry_count: Number of processing attempts
    """

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    stripe_event_id = models.CharField(
        max_length=255,
        unique=True,
        db_index=True,
        help_text="Stripe Event ID (evt_xxx) - unique constraint for idempotency",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Stripe event type (e.g., 'invoice.payment_succeeded')",
    )

    payload = models.JSONField(
        help_text="Full webhook payload from Stripe (JSON)",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
        help_text="Current processing status",
    )

    outcome = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="Handler result status (processed, unchanged, ignored, entity_not_found)",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When event was successfully processed",
    )

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Error message if processing failed",
    )

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"], name="payments_we_status_2c1f0e_idx"),
            models.Index(fields=["event_type", "created_at"], name="payments_we_event_t_8d3a41_idx"),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.stripe_event_id}, {self.event_type})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_processed(self) -> bool:
        """Check if event has been successfully processed."""
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def is_failed(self) -> bool:
        """Check if event processing failed."""
        return self.status == WebhookEventStatus.FAILED

    # ==========================================================================
    # Helper Methods
    # ==========================================================================

    def mark_processing(self) -> None:
        """
        Mark event as being processed.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self, outcome: str) -> None:
        """
        Mark event as successfully processed with the handler outcome.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.PROCESSED
        self.outcome = outcome
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        """
        Mark event as failed with error message.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message

    def get_object_id(self) -> str | None:
        """Extract the primary object ID (payload.data.object.id)."""
        try:
            return self.payload.get("data", {}).get("object", {}).get("id")
        except (AttributeError, TypeError):
            return None
