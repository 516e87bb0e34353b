"""
Customer and payment method synchronization with Stripe.

Services:
    CustomerService: Stripe customer resolution and default payment method

A user is linked to exactly one Stripe customer for life. Creation runs
under a distributed lock and with an idempotency key derived from the
user id, so concurrent or retried requests converge on one customer.

Usage:
    from payments.services import CustomerService

    customer = CustomerService.get_or_create_customer(user)
    method = CustomerService.update_payment_method(user, "pm_123")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from redis.exceptions import RedisError

from core.services import BaseService

from payments.adapters import (
    CustomerResult,
    IdempotencyKeyGenerator,
    StripeAdapter,
    is_retryable_stripe_error,
)
from payments.audit import AuditAction, AuditEntity, record_audit_event
from payments.exceptions import (
    CustomerCreationError,
    LockAcquisitionError,
    PaymentMethodMismatchError,
    StripeError,
)
from payments.locks import DistributedLock, lock_user
from payments.models import PaymentMethod
from payments.models.payment_method import normalize_payment_method_type

if TYPE_CHECKING:
    from authentication.models import User


class CustomerService(BaseService):
    """
    Keeps a user's Stripe customer and default payment method in sync.

    Methods:
        get_or_create_customer: Resolve the user's customer, creating it once
        update_payment_method: Make a payment method the user's default
    """

    CUSTOMER_LOCK_TTL = 30
    CUSTOMER_LOCK_TIMEOUT = 10.0

    @classmethod
    def get_or_create_customer(
        cls,
        user: User,
        adapter: StripeAdapter | None = None,
    ) -> CustomerResult:
        """
        Return the user's Stripe customer, creating it on first use.

        An existing stripe_customer_id is always reused. When two requests
        race to create the customer, the id stored first wins.

        Raises:
            CustomerCreationError: If Stripe fails to create or return the customer
        """
        adapter = adapter or StripeAdapter.from_settings()

        if user.stripe_customer_id:
            return cls._retrieve(adapter, user, user.stripe_customer_id)

        try:
            with DistributedLock(
                f"customer:create:{user.pk}",
                ttl=cls.CUSTOMER_LOCK_TTL,
                timeout=cls.CUSTOMER_LOCK_TIMEOUT,
            ):
                return cls._create_customer(adapter, user)
        except (LockAcquisitionError, RedisError) as e:
            cls.get_logger().warning(
                "Stripe customer creation lock unavailable",
                extra={"user_id": str(user.pk), "error": str(e)},
            )
            raise CustomerCreationError(
                "Customer creation is busy, try again",
                details={"user_id": str(user.pk), "retryable": True},
            ) from e

    @classmethod
    def _create_customer(cls, adapter: StripeAdapter, user: User) -> CustomerResult:
        """Create and link the customer. Caller holds the creation lock."""
        user.refresh_from_db(fields=["stripe_customer_id"])
        if user.stripe_customer_id:
            return cls._retrieve(adapter, user, user.stripe_customer_id)

        try:
            customer = adapter.create_customer(
                email=user.email,
                name=user.name or None,
                metadata={"user_id": str(user.pk)},
                idempotency_key=IdempotencyKeyGenerator.generate(
                    "create_customer", user.pk
                ),
            )
        except StripeError as e:
            cls.get_logger().error(
                "Stripe customer creation failed",
                extra={"user_id": str(user.pk), "error_code": e.error_code},
            )
            raise CustomerCreationError(
                "Could not create the Stripe customer",
                details={
                    "user_id": str(user.pk),
                    "stripe_error": e.error_code,
                    "retryable": is_retryable_stripe_error(e),
                },
            ) from e

        with cls.atomic():
            locked = lock_user(user.pk)
            if locked.stripe_customer_id and locked.stripe_customer_id != customer.id:
                cls.get_logger().warning(
                    "Another request linked a Stripe customer first",
                    extra={
                        "user_id": str(user.pk),
                        "stored_customer_id": locked.stripe_customer_id,
                        "created_customer_id": customer.id,
                    },
                )
                user.stripe_customer_id = locked.stripe_customer_id
                return CustomerResult(
                    id=locked.stripe_customer_id,
                    email=user.email,
                    name=user.name or None,
                    metadata={"user_id": str(user.pk)},
                )
            locked.assign_stripe_customer(customer.id)

        user.stripe_customer_id = customer.id
        record_audit_event(
            AuditAction.CUSTOMER_CREATED,
            entity=AuditEntity.for_instance(user),
            stripe_customer_id=customer.id,
        )
        cls.get_logger().info(
            "Created Stripe customer",
            extra={"user_id": str(user.pk), "stripe_customer_id": customer.id},
        )
        return customer

    @classmethod
    def _retrieve(cls, adapter: StripeAdapter, user: User, customer_id: str) -> CustomerResult:
        try:
            return adapter.retrieve_customer(customer_id)
        except StripeError as e:
            raise CustomerCreationError(
                "Could not retrieve the Stripe customer",
                details={
                    "user_id": str(user.pk),
                    "stripe_customer_id": customer_id,
                    "stripe_error": e.error_code,
                    "retryable": is_retryable_stripe_error(e),
                },
            ) from e

    @classmethod
    def update_payment_method(
        cls,
        user: User,
        payment_method_id: str,
        adapter: StripeAdapter | None = None,
    ) -> PaymentMethod:
        """
        Make a Stripe payment method the user's default.

        The payment method must already be attached to the user's customer.
        The local default is committed first; the customer's invoice default
        is set at Stripe afterwards with an idempotency key, so a failed
        call can simply be repeated.

        Raises:
            PaymentMethodMismatchError: If the method belongs to another customer
            StripeError: If Stripe cannot be reached
        """
        adapter = adapter or StripeAdapter.from_settings()
        logger = cls.get_logger()
        customer_id = user.stripe_customer_id

        if not customer_id:
            raise PaymentMethodMismatchError(
                "User has no Stripe customer",
                details={"user_id": str(user.pk), "payment_method_id": payment_method_id},
            )

        details = adapter.retrieve_payment_method(payment_method_id)
        if details.customer_id != customer_id:
            logger.warning(
                "Payment method does not belong to the user's customer",
                extra={
                    "user_id": str(user.pk),
                    "payment_method_id": payment_method_id,
                    "payment_method_customer": details.customer_id,
                },
            )
            raise PaymentMethodMismatchError(
                "Payment method does not belong to this customer",
                details={"payment_method_id": payment_method_id},
            )

        with cls.atomic():
            owner = lock_user(user.pk)
            payment_method, _ = PaymentMethod.objects.update_or_create(
                stripe_payment_method_id=details.id,
                defaults={
                    "user": owner,
                    "type": normalize_payment_method_type(details.type),
                    "last4": details.last4,
                    "brand": details.brand,
                    "metadata": details.details,
                },
            )
            payment_method.set_as_default()
            record_audit_event(
                AuditAction.PAYMENT_METHOD_UPDATED,
                entity=AuditEntity.for_instance(payment_method),
                stripe_payment_method_id=details.id,
            )

        try:
            adapter.set_default_payment_method(
                customer_id,
                details.id,
                idempotency_key=IdempotencyKeyGenerator.generate(
                    "set_default_payment_method", f"{customer_id}:{details.id}"
                ),
            )
        except StripeError as e:
            logger.error(
                "Failed to set default payment method at Stripe",
                extra={
                    "user_id": str(user.pk),
                    "payment_method_id": details.id,
                    "error_code": e.error_code,
                },
            )
            raise

        logger.info(
            "Default payment method updated",
            extra={"user_id": str(user.pk), "payment_method_id": details.id},
        )
        return payment_method
