"""
Model mixins providing reusable functionality for Django models.

This module contains abstract mixin classes that can be combined with
BaseModel to add specific functionality. They carry no billing logic.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key
    MetadataMixin: Flexible JSON metadata storage

Usage:
    from core.models import BaseModel
    from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin

    class Invoice(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
        amount = models.DecimalField(max_digits=10, decimal_places=2)

Note:
    - Always list mixins before BaseModel in inheritance
    - Mixins are abstract and don't create database tables
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.db import models

if TYPE_CHECKING:
    from typing import Any


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Billing records are referenced from Stripe metadata and client URLs,
    so their IDs must not reveal record counts or be guessable.

    Fields:
        id: UUIDField as primary key (auto-generated)

    Usage:
        class Invoice(UUIDPrimaryKeyMixin, BaseModel):
            ...

        invoice = Invoice.objects.create(...)
        print(invoice.id)  # UUID like: 550e8400-e29b-41d4-a716-446655440000
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class MetadataMixin(models.Model):
    """
    Flexible JSON metadata storage.

    Provides a JSONField for storing arbitrary key-value data, such as the
    Stripe checkout session an invoice was created for or card details that
    have no dedicated column.

    Fields:
        metadata: JSONField for arbitrary key-value data

    Usage:
        invoice.set_meta("session_id", "cs_test_123")
        invoice.get_meta("session_id")  # "cs_test_123"

    Note:
        metadata is a dict, so you can also access it directly, but the
        helper methods handle saving.
    """

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Flexible key-value metadata storage",
    )

    class Meta:
        abstract = True

    def get_meta(self, key: str, default: Any = None) -> Any:
        """
        Get metadata value by key.

        Args:
            key: Metadata key
            default: Value to return if key not found

        Returns:
            Metadata value or default
        """
        return (self.metadata or {}).get(key, default)

    def set_meta(self, key: str, value: Any, save: bool = True) -> None:
        """
        Set metadata value and optionally save.

        Args:
            key: Metadata key
            value: Value to store (must be JSON-serializable)
            save: Whether to save the model (default True)
        """
        if self.metadata is None:
            self.metadata = {}
        self.metadata[key] = value
        if save:
            self.save(update_fields=["metadata", "updated_at"])
