"""
Verified Stripe webhook events.

A VerifiedEvent is only ever built by the verifier, after the signature
has been checked over the raw body. Handlers read the event's data object
through typed accessors rather than indexing raw dicts, so a field of the
wrong type reads as absent instead of failing halfway through a handler.

Usage:
    event = verifier.verify(payload, signature)
    if event.kind is EventType.INVOICE_PAYMENT_SUCCEEDED:
        amount_paid = event.get_int("amount_paid")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from typing import TYPE_CHECKING

from django.db import models

if TYPE_CHECKING:
    from typing import Any


class EventType(models.TextChoices):
    """Stripe event types the billing core routes."""

    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded", "Invoice Payment Succeeded"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed", "Invoice Payment Failed"
    SUBSCRIPTION_CREATED = "customer.subscription.created", "Subscription Created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated", "Subscription Updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted", "Subscription Deleted"
    PAYMENT_METHOD_ATTACHED = "payment_method.attached", "Payment Method Attached"
    PAYMENT_METHOD_DETACHED = "payment_method.detached", "Payment Method Detached"
    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed", "Checkout Session Completed"


def _lookup(source: Any, path: str) -> Any:
    """Follow a dotted path through nested dicts; None when any step is missing."""
    value = source
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def timestamp_to_datetime(value: Any) -> datetime | None:
    """Convert a Unix timestamp to an aware UTC datetime."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return datetime.fromtimestamp(value, tz=dt_timezone.utc)


@dataclass(frozen=True)
class VerifiedEvent:
    """
    An authenticated Stripe event.

    Attributes:
        event_id: Stripe Event ID (evt_xxx)
        event_type: Raw event type string, known or not
        data_object: The event's ``data.object``
        created: Event creation time
        livemode: Whether the event came from live mode
    """

    event_id: str
    event_type: str
    data_object: dict = field(default_factory=dict)
    created: datetime | None = None
    livemode: bool = False

    @property
    def kind(self) -> EventType | None:
        """The routed event type, or None for types the core doesn't handle."""
        if self.event_type in EventType.values:
            return EventType(self.event_type)
        return None

    @property
    def object_id(self) -> str | None:
        return self.get_str("id")

    @property
    def metadata(self) -> dict:
        return self.get_dict("metadata")

    # ==========================================================================
    # Typed Accessors (dotted paths into data_object)
    # ==========================================================================

    def get_str(self, path: str) -> str | None:
        value = _lookup(self.data_object, path)
        if isinstance(value, str) and value:
            return value
        # Expanded objects carry their id
        if isinstance(value, dict) and isinstance(value.get("id"), str):
            return value["id"]
        return None

    def get_int(self, path: str) -> int | None:
        value = _lookup(self.data_object, path)
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        return value

    def get_bool(self, path: str, default: bool = False) -> bool:
        value = _lookup(self.data_object, path)
        return value if isinstance(value, bool) else default

    def get_dict(self, path: str) -> dict:
        value = _lookup(self.data_object, path)
        return value if isinstance(value, dict) else {}

    def get_list(self, path: str) -> list:
        value = _lookup(self.data_object, path)
        return value if isinstance(value, list) else []

    def get_timestamp(self, path: str) -> datetime | None:
        return timestamp_to_datetime(_lookup(self.data_object, path))

    def to_payload(self) -> dict:
        """Envelope stored on the WebhookEvent receipt."""
        return {
            "id": self.event_id,
            "type": self.event_type,
            "created": int(self.created.timestamp()) if self.created else None,
            "livemode": self.livemode,
            "data": {"object": self.data_object},
        }
