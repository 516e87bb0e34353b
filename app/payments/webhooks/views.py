"""
Webhook endpoint view for Stripe.

The view:
1. Verifies the webhook signature over the raw body
2. Creates/retrieves the WebhookEvent receipt (idempotent)
3. Routes the event to its handler inside a transaction
4. Records the outcome and acknowledges

Usage:
    # In urls.py
    from payments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.audit import AuditAction, record_audit_event
from payments.exceptions import InvalidSignatureError
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus
from payments.webhooks.handlers import route
from payments.webhooks.verifier import WebhookVerifier


logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive and process Stripe webhook events.

    Security:
    - Signature verification prevents spoofed webhooks
    - CSRF exemption required for external webhooks
    - Only POST requests accepted

    Idempotency:
    - WebhookEvent.stripe_event_id is unique
    - Events already processed return 200 without being routed again
    - Handlers check state before transitioning, so a redelivered failed
      event is safe to route again

    Returns:
        HttpResponse with status:
        - 200: Event acknowledged (processed, unchanged, ignored, not found)
        - 400: Missing or invalid signature; nothing is recorded
        - 500: Handler error; the transaction was rolled back and Stripe retries
    """
    signature = request.headers.get("Stripe-Signature", "")

    if not signature:
        logger.warning("Webhook received without Stripe-Signature header")
        return HttpResponse("Missing signature", status=400)

    try:
        event = WebhookVerifier.from_settings().verify(request.body, signature)
    except InvalidSignatureError as e:
        logger.warning(
            "Webhook rejected",
            extra={"error": e.message, "reason": e.details.get("reason")},
        )
        return HttpResponse("Invalid signature", status=400)

    logger.info(
        f"Received Stripe webhook: {event.event_type}",
        extra={"stripe_event_id": event.event_id, "event_type": event.event_type},
    )

    webhook_event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id=event.event_id,
        defaults={
            "event_type": event.event_type,
            "payload": event.to_payload(),
            "status": WebhookEventStatus.PENDING,
        },
    )

    if not created and webhook_event.is_processed:
        logger.info(
            "Webhook already processed, returning success",
            extra={"stripe_event_id": event.event_id},
        )
        return JsonResponse({"status": "duplicate"})

    if created:
        record_audit_event(
            AuditAction.WEBHOOK_RECEIVED,
            stripe_event_id=event.event_id,
            event_type=event.event_type,
        )

    webhook_event.mark_processing()
    webhook_event.save(update_fields=["status", "retry_count", "updated_at"])

    try:
        with transaction.atomic():
            result = route(event)
            webhook_event.mark_processed(result.status)
            webhook_event.save(
                update_fields=[
                    "status",
                    "outcome",
                    "processed_at",
                    "error_message",
                    "updated_at",
                ]
            )
    except Exception as e:
        webhook_event.mark_failed(f"{type(e).__name__}: {e}")
        webhook_event.save(update_fields=["status", "error_message", "updated_at"])
        record_audit_event(
            AuditAction.WEBHOOK_ERROR,
            stripe_event_id=event.event_id,
            event_type=event.event_type,
            error=type(e).__name__,
        )
        logger.exception(
            f"Webhook handler failed: {type(e).__name__}",
            extra={"stripe_event_id": event.event_id, "event_type": event.event_type},
        )
        return JsonResponse({"status": "error"}, status=500)

    logger.info(
        f"Webhook processed: {result.status}",
        extra={
            "stripe_event_id": event.event_id,
            "event_type": event.event_type,
            "outcome": result.status,
        },
    )
    return JsonResponse({"status": str(result.status)})
