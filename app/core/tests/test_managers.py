"""
Tests for BaseQuerySet ownership helpers.
"""

from authentication.tests.factories import UserFactory
from payments.models import Invoice
from payments.tests.factories import InvoiceFactory


class TestBaseQuerySet:
    """Tests for BaseQuerySet.for_user()."""

    def test_for_user_filters_by_owner(self, db):
        owner = UserFactory()
        mine = InvoiceFactory(user=owner)
        InvoiceFactory(user=UserFactory())

        assert list(Invoice.objects.for_user(owner)) == [mine]

    def test_for_user_is_chainable(self, db):
        """for_user() returns a queryset usable with the model's own lookups."""
        owner = UserFactory()
        invoice = InvoiceFactory(user=owner, metadata={"session_id": "cs_1"})
        InvoiceFactory(user=owner, metadata={"session_id": "cs_2"})

        found = Invoice.objects.for_user(owner).for_checkout_session("cs_1")

        assert list(found) == [invoice]
