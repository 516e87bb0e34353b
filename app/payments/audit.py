"""
Billing audit trail.

Every state change the billing core makes is written as one structured
record on the ``billing.audit`` logger, which settings.LOGGING routes to
``audit.log``.

Usage:
    from payments.audit import AuditAction, AuditEntity, record_audit_event

    record_audit_event(
        AuditAction.INVOICE_PAID,
        entity=AuditEntity.for_instance(invoice),
        stripe_invoice_id=invoice.stripe_invoice_id,
    )
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db import models

if TYPE_CHECKING:
    from typing import Any

    from django.db.models import Model


audit_logger = logging.getLogger("billing.audit")


class AuditAction(models.TextChoices):
    CUSTOMER_CREATED = "customer.created", "Customer Created"
    PAYMENT_METHOD_UPDATED = "payment_method.updated", "Payment Method Updated"
    PAYMENT_METHOD_ATTACHED = "payment_method.attached", "Payment Method Attached"
    PAYMENT_METHOD_DETACHED = "payment_method.detached", "Payment Method Detached"
    SUBSCRIPTION_CREATED = "subscription.created", "Subscription Created"
    SUBSCRIPTION_UPDATED = "subscription.updated", "Subscription Updated"
    SUBSCRIPTION_CANCELLED = "subscription.cancelled", "Subscription Cancelled"
    SUBSCRIPTION_EXPIRED = "subscription.expired", "Subscription Expired"
    INVOICE_CREATED = "invoice.created", "Invoice Created"
    INVOICE_PAID = "invoice.paid", "Invoice Paid"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed", "Invoice Payment Failed"
    WEBHOOK_RECEIVED = "webhook.received", "Webhook Received"
    WEBHOOK_ERROR = "webhook.error", "Webhook Error"


@dataclass(frozen=True)
class AuditEntity:
    """Reference to the record an audit event is about."""

    entity_type: str
    entity_id: str

    @classmethod
    def for_instance(cls, instance: Model) -> AuditEntity:
        return cls(
            entity_type=instance._meta.label_lower,
            entity_id=str(instance.pk),
        )

    def __str__(self) -> str:
        return f"{self.entity_type}:{self.entity_id}"


def record_audit_event(
    action: str,
    entity: AuditEntity | None = None,
    **fields: Any,
) -> None:
    """
    Write one audit record.

    Args:
        action: AuditAction value
        entity: The record the action applies to, if any
        **fields: Additional context (ids, amounts, statuses)
    """
    action = str(action)
    details = " ".join(f"{key}={value}" for key, value in sorted(fields.items()))
    audit_logger.info(
        f"{action} {details}".strip(),
        extra={
            "action": action,
            "entity_type": entity.entity_type if entity else "-",
            "entity_id": entity.entity_id if entity else "-",
            "audit_fields": fields,
        },
    )
