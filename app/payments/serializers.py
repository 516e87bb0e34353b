"""
DRF serializers for payments app.

This module provides serializers for:
- Checkout session requests and responses
- Default payment method requests
- Invoice, subscription and payment method display
- The plan catalog

Usage:
    serializer = CheckoutRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
"""

from __future__ import annotations

from rest_framework import serializers

from payments.models import Invoice, PaymentMethod, Subscription
from payments.plans import plan_display_name
from payments.state_machines import BillingCycle


# =============================================================================
# Request Serializers
# =============================================================================


class CheckoutRequestSerializer(serializers.Serializer):
    """
    Checkout request body.

    Plan availability is checked by the service against the catalog, so
    an unknown plan here is reported as INVALID_PLAN rather than a field
    error.
    """

    plan_type = serializers.CharField(max_length=20)
    billing_cycle = serializers.ChoiceField(
        choices=BillingCycle.choices,
        default=BillingCycle.MONTHLY,
    )


class DefaultPaymentMethodRequestSerializer(serializers.Serializer):
    payment_method_id = serializers.RegexField(
        regex=r"^pm_[A-Za-z0-9_]+$",
        max_length=255,
        error_messages={"invalid": "Expected a Stripe PaymentMethod ID (pm_xxx)."},
    )


# =============================================================================
# Response Serializers
# =============================================================================


class CheckoutResponseSerializer(serializers.Serializer):
    session_id = serializers.CharField()
    checkout_url = serializers.URLField()
    invoice_id = serializers.UUIDField()
    amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    currency = serializers.CharField()


class InvoiceSerializer(serializers.ModelSerializer):
    """Invoice as shown to its owner."""

    plan_type = serializers.CharField(read_only=True, allow_null=True)

    class Meta:
        model = Invoice
        fields = [
            "id",
            "stripe_invoice_id",
            "amount",
            "currency",
            "status",
            "plan_type",
            "due_date",
            "paid_at",
            "created_at",
        ]
        read_only_fields = fields


class SubscriptionSerializer(serializers.ModelSerializer):
    """
    Subscription serializer for API responses.

    Adds the plan's display name and the days left in the current period.
    """

    plan_name = serializers.SerializerMethodField()
    days_until_renewal = serializers.SerializerMethodField()

    class Meta:
        model = Subscription
        fields = [
            "id",
            "plan_type",
            "plan_name",
            "status",
            "payment_status",
            "amount",
            "currency",
            "billing_cycle",
            "auto_renew",
            "start_date",
            "end_date",
            "next_billing_date",
            "days_until_renewal",
            "features",
        ]
        read_only_fields = fields

    def get_plan_name(self, obj: Subscription) -> str:
        return plan_display_name(obj.plan_type)

    def get_days_until_renewal(self, obj: Subscription) -> int:
        return obj.days_until_renewal()


class PaymentMethodSerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = PaymentMethod
        fields = [
            "id",
            "stripe_payment_method_id",
            "type",
            "last4",
            "brand",
            "is_default",
            "display_name",
        ]
        read_only_fields = fields


class PlanSerializer(serializers.Serializer):
    """Catalog entry (plans.Plan)."""

    plan_type = serializers.CharField()
    name = serializers.CharField()
    amount = serializers.DecimalField(
        source="major_amount", max_digits=10, decimal_places=2
    )
    currency = serializers.CharField()
    interval = serializers.CharField()
    features = serializers.DictField()
