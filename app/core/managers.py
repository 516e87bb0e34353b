"""
Custom QuerySet and Manager classes shared by domain models.

Usage:
    from core.managers import BaseManager, BaseQuerySet

    class InvoiceQuerySet(BaseQuerySet):
        def paid(self):
            return self.filter(status="paid")

    class Invoice(BaseModel):
        objects = BaseManager.from_queryset(InvoiceQuerySet)()

    Invoice.objects.for_user(request.user).paid()
"""

from __future__ import annotations

from django.db import models


class BaseQuerySet(models.QuerySet):
    """
    QuerySet with ownership helpers.

    Note:
        for_user() assumes the model has a ``user`` foreign key.
    """

    def for_user(self, user) -> BaseQuerySet:
        """Filter records whose ``user`` foreign key is the given user."""
        return self.filter(user=user)


class BaseManager(models.Manager.from_queryset(BaseQuerySet)):
    """Default manager for models built on BaseModel."""
