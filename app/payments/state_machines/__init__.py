"""
State and choice enums for billing models.
"""

from payments.state_machines.states import (
    BillingCycle,
    InvoiceStatus,
    PaymentMethodType,
    PlanType,
    SubscriptionPaymentStatus,
    SubscriptionStatus,
    WebhookEventStatus,
)

__all__ = [
    "BillingCycle",
    "InvoiceStatus",
    "PaymentMethodType",
    "PlanType",
    "SubscriptionPaymentStatus",
    "SubscriptionStatus",
    "WebhookEventStatus",
]
