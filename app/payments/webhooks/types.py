"""
Handler results.

Every handler returns a HandlerResult; a returned result always means the
delivery is acknowledged. Errors that should make Stripe redeliver are
raised instead and never become a result.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db import models

if TYPE_CHECKING:
    from payments.audit import AuditEntity


class HandlerStatus(models.TextChoices):
    PROCESSED = "processed", "Processed"
    UNCHANGED = "unchanged", "Unchanged"
    IGNORED = "ignored", "Ignored"
    ENTITY_NOT_FOUND = "entity_not_found", "Entity Not Found"


@dataclass(frozen=True)
class HandlerResult:
    """
    Outcome of routing one event.

    Attributes:
        status: What the handler did
        event_type: Event type that was routed
        message: Human-readable summary for logs
        entity: The local record that was changed or looked up
    """

    status: HandlerStatus
    event_type: str
    message: str = ""
    entity: AuditEntity | None = None

    @property
    def acknowledged(self) -> bool:
        return True

    @classmethod
    def processed(cls, event_type: str, message: str = "", entity=None) -> HandlerResult:
        return cls(HandlerStatus.PROCESSED, event_type, message, entity)

    @classmethod
    def unchanged(cls, event_type: str, message: str = "", entity=None) -> HandlerResult:
        return cls(HandlerStatus.UNCHANGED, event_type, message, entity)

    @classmethod
    def ignored(cls, event_type: str, message: str = "") -> HandlerResult:
        return cls(HandlerStatus.IGNORED, event_type, message)

    @classmethod
    def entity_not_found(cls, event_type: str, message: str = "") -> HandlerResult:
        return cls(HandlerStatus.ENTITY_NOT_FOUND, event_type, message)
