"""
PaymentMethod model for cards and other instruments stored at Stripe.

Only references and display details are stored locally; the instrument
itself lives at Stripe.

Constraint:
    A user has at most one default payment method. set_as_default() clears
    the previous default in the same transaction, and a partial unique
    constraint backs this up at the database level.

Usage:
    from payments.models import PaymentMethod

    method, _ = PaymentMethod.objects.update_or_create(
        stripe_payment_method_id="pm_123",
        defaults={"user": user, "type": "card", "last4": "4242"},
    )
    method.set_as_default()
"""

from __future__ import annotations

from django.conf import settings
from django.core.validators import RegexValidator
from django.db import models, transaction

from core.managers import BaseManager
from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import PaymentMethodType

last4_validator = RegexValidator(
    regex=r"^\d{4}$",
    message="last4 must be exactly four digits",
)


def normalize_last4(value) -> str | None:
    """
    Reduce a card or account number fragment to its last four digits.

    Returns None when fewer than four digits are present.
    """
    if value is None:
        return None
    digits = "".join(ch for ch in str(value) if ch.isdigit())
    if len(digits) < 4:
        return None
    return digits[-4:]


def normalize_payment_method_type(value: str | None) -> str:
    """Map a Stripe payment method type to a local choice."""
    if value in PaymentMethodType.values:
        return value
    if value == "us_bank_account":
        return PaymentMethodType.BANK_ACCOUNT
    return PaymentMethodType.OTHER


class PaymentMethod(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    A payment instrument attached to a user's Stripe customer.

    Fields:
        user: Owner
        stripe_payment_method_id: Stripe PaymentMethod ID (pm_xxx)
        type: Instrument kind
        last4: Last four digits, when the instrument has them
        brand: Card brand (visa, mastercard, ...)
        is_default: Whether invoices are charged to this instrument
        metadata: fingerprint, country, expiry
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="payment_methods",
        help_text="Owner of the payment method",
    )

    stripe_payment_method_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe PaymentMethod ID (pm_xxx)",
    )

    type = models.CharField(
        max_length=20,
        choices=PaymentMethodType.choices,
        default=PaymentMethodType.CARD,
        help_text="Payment method kind",
    )

    last4 = models.CharField(
        max_length=4,
        null=True,
        blank=True,
        validators=[last4_validator],
        help_text="Last four digits",
    )

    brand = models.CharField(
        max_length=50,
        null=True,
        blank=True,
        help_text="Card brand",
    )

    is_default = models.BooleanField(
        default=False,
        help_text="Whether this is the user's default payment method",
    )

    objects = BaseManager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment Method"
        verbose_name_plural = "Payment Methods"
        indexes = [
            models.Index(fields=["user", "is_default"], name="payments_pa_user_id_e41d7b_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["user"],
                condition=models.Q(is_default=True),
                name="payment_method_one_default_per_user",
            ),
        ]

    def __str__(self) -> str:
        suffix = f" ****{self.last4}" if self.last4 else ""
        return f"PaymentMethod({self.stripe_payment_method_id}, {self.type}{suffix})"

    def save(self, *args, **kwargs):
        self.last4 = normalize_last4(self.last4)
        super().save(*args, **kwargs)

    def set_as_default(self) -> None:
        """
        Make this the user's only default payment method.

        Runs in a transaction; other defaults of the same user are cleared
        before this row is flagged.
        """
        with transaction.atomic():
            PaymentMethod.objects.filter(user_id=self.user_id, is_default=True).exclude(
                pk=self.pk
            ).update(is_default=False)
            if not self.is_default:
                self.is_default = True
                self.save(update_fields=["is_default", "updated_at"])

    @property
    def display_name(self) -> str:
        if self.brand and self.last4:
            return f"{self.brand.title()} ending in {self.last4}"
        return self.get_type_display()
