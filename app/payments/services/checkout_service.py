"""
Hosted checkout session creation.

Services:
    CheckoutService: Opens a Stripe Checkout session for a plan

The local draft Invoice is created only after Stripe returns the session,
so a failed attempt leaves nothing behind. The invoice carries the
session id in its metadata; checkout.session.completed uses it to link
the Stripe invoice and subscription afterwards.

Usage:
    from payments.services import CheckoutService

    checkout = CheckoutService.create_checkout_session(user, "premium", "monthly")
    redirect(checkout.checkout_url)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils import timezone

from core.services import BaseService

from payments.adapters import (
    IdempotencyKeyGenerator,
    StripeAdapter,
    is_retryable_stripe_error,
)
from payments.audit import AuditAction, AuditEntity, record_audit_event
from payments.exceptions import CheckoutSessionError, StripeError
from payments.models import Invoice
from payments.plans import get_plan, validate_billing_cycle
from payments.services.customer_service import CustomerService
from payments.state_machines import BillingCycle, InvoiceStatus

if TYPE_CHECKING:
    from authentication.models import User


@dataclass
class CheckoutResult:
    """
    A created checkout session and its local invoice.

    Attributes:
        session_id: Stripe Checkout Session ID (cs_xxx)
        checkout_url: Hosted page to redirect the user to
        invoice_id: Local draft Invoice ID
        amount: Plan amount in major currency units
        currency: ISO 4217 currency code (lowercase)
    """

    session_id: str
    checkout_url: str
    invoice_id: uuid.UUID
    amount: Decimal
    currency: str


class CheckoutService(BaseService):
    """Checkout session initiation."""

    @classmethod
    def create_checkout_session(
        cls,
        user: User,
        plan_type: str,
        billing_cycle: str = BillingCycle.MONTHLY,
        adapter: StripeAdapter | None = None,
    ) -> CheckoutResult:
        """
        Open a subscription checkout for a plan.

        Plan and billing cycle are validated before anything is sent to
        Stripe.

        Raises:
            InvalidPlanError: Unknown plan
            PaymentValidationError: Unknown billing cycle
            CustomerCreationError: The user's Stripe customer is unavailable
            CheckoutSessionError: Stripe rejected the session
        """
        plan = get_plan(plan_type)
        validate_billing_cycle(billing_cycle)

        adapter = adapter or StripeAdapter.from_settings()
        logger = cls.get_logger()

        customer = CustomerService.get_or_create_customer(user, adapter=adapter)

        checkout_request_id = str(uuid.uuid4())
        metadata = {
            "user_id": str(user.pk),
            "plan_type": plan.plan_type,
            "billing_cycle": billing_cycle,
            "checkout_request_id": checkout_request_id,
        }
        subscription_data = {"metadata": dict(metadata)}
        if billing_cycle != BillingCycle.MONTHLY:
            subscription_data["proration_behavior"] = "create_prorations"

        try:
            session = adapter.create_checkout_session(
                customer_id=customer.id,
                price_id=plan.price_id,
                success_url=(
                    f"{settings.FRONTEND_URL}/payment/success"
                    "?session_id={CHECKOUT_SESSION_ID}"
                ),
                cancel_url=f"{settings.FRONTEND_URL}/payment/cancel",
                metadata=metadata,
                subscription_data=subscription_data,
                idempotency_key=IdempotencyKeyGenerator.generate(
                    "create_checkout_session", checkout_request_id
                ),
            )
        except StripeError as e:
            logger.error(
                "Checkout session creation failed",
                extra={
                    "user_id": str(user.pk),
                    "plan_type": plan.plan_type,
                    "error_code": e.error_code,
                },
            )
            raise CheckoutSessionError(
                "Could not create the checkout session",
                details={
                    "plan_type": plan.plan_type,
                    "stripe_error": e.error_code,
                    "retryable": is_retryable_stripe_error(e),
                },
            ) from e

        invoice = Invoice.objects.create(
            user=user,
            amount=plan.major_amount,
            currency=plan.currency,
            status=InvoiceStatus.DRAFT,
            due_date=timezone.now() + timedelta(days=settings.BILLING_INVOICE_DUE_DAYS),
            metadata={
                "session_id": session.id,
                "plan_type": plan.plan_type,
                "billing_cycle": billing_cycle,
                "checkout_request_id": checkout_request_id,
            },
        )

        record_audit_event(
            AuditAction.INVOICE_CREATED,
            entity=AuditEntity.for_instance(invoice),
            session_id=session.id,
            plan_type=plan.plan_type,
            amount=invoice.amount,
        )
        logger.info(
            "Checkout session created",
            extra={
                "user_id": str(user.pk),
                "session_id": session.id,
                "invoice_id": str(invoice.id),
            },
        )

        return CheckoutResult(
            session_id=session.id,
            checkout_url=session.url,
            invoice_id=invoice.id,
            amount=invoice.amount,
            currency=invoice.currency,
        )
