"""
Billing notifications.

Selects the notification type and template data for billing events and
hands them to the notifications app. Each logical event carries an
idempotency key, so a replayed webhook or a second scheduler run never
notifies twice.

Usage:
    from payments.notifications import BillingNotifier

    BillingNotifier.payment_successful(invoice)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.services import BaseService

from notifications.models import NotificationKey
from notifications.services import NotificationService
from payments.plans import plan_display_name

if TYPE_CHECKING:
    from core.services import ServiceResult
    from payments.models import Invoice, Subscription


def _invoice_plan_type(invoice: Invoice) -> str | None:
    if invoice.plan_type:
        return invoice.plan_type
    if invoice.subscription_id:
        return invoice.subscription.plan_type
    return None


class BillingNotifier(BaseService):
    """Billing notification triggers."""

    @classmethod
    def payment_successful(cls, invoice: Invoice) -> ServiceResult:
        return NotificationService.create_notification(
            recipient=invoice.user,
            type_key=NotificationKey.PAYMENT_SUCCESSFUL,
            data={
                "amount": f"{invoice.amount:.2f}",
                "currency": invoice.currency.upper(),
                "plan_name": plan_display_name(_invoice_plan_type(invoice)),
            },
            source_object=invoice,
            idempotency_key=f"payment_successful:{invoice.id}",
        )

    @classmethod
    def payment_failed(cls, invoice: Invoice, reason: str) -> ServiceResult:
        return NotificationService.create_notification(
            recipient=invoice.user,
            type_key=NotificationKey.PAYMENT_FAILED,
            data={
                "amount": f"{invoice.amount:.2f}",
                "currency": invoice.currency.upper(),
                "plan_name": plan_display_name(_invoice_plan_type(invoice)),
                "reason": reason,
            },
            source_object=invoice,
            idempotency_key=f"payment_failed:{invoice.id}",
        )

    @classmethod
    def subscription_renewal_reminder(
        cls,
        subscription: Subscription,
        days_until_renewal: int,
    ) -> ServiceResult:
        """
        Remind the user that the subscription renews soon.

        One reminder per billing period: the key includes the period end date.
        """
        renewal_date = subscription.end_date.date().isoformat()
        result = NotificationService.create_notification(
            recipient=subscription.user,
            type_key=NotificationKey.SUBSCRIPTION_RENEWAL_REMINDER,
            data={
                "plan_name": plan_display_name(subscription.plan_type),
                "renewal_date": renewal_date,
                "days_until_renewal": days_until_renewal,
            },
            source_object=subscription,
            idempotency_key=f"renewal_reminder:{subscription.id}:{renewal_date}",
        )
        if result.success:
            cls.get_logger().info(
                "Renewal reminder created",
                extra={
                    "subscription_id": str(subscription.id),
                    "days_until_renewal": days_until_renewal,
                },
            )
        return result
