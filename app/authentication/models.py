"""
Authentication models.

This module defines the User model: email-based authentication plus the
billing identity the user shares with Stripe.

Related files:
    - managers.py: Custom user manager for email-based creation
    - payments.services.customer_service: Creates the Stripe customer lazily

Billing identity:
    stripe_customer_id is empty until the first checkout (or an explicit
    customer creation). Once set it is never reassigned; Stripe webhooks
    resolve the owning user through it.
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager
from core.exceptions import ConflictError


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login
        name: Display name, sent to Stripe when the customer is created
        stripe_customer_id: Stripe Customer ID (cus_xxx), set once
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created
        updated_at: When the user record was last modified

    Usage:
        user = User.objects.create_user(
            email='user@example.com',
            password='securepassword'
        )
        user.assign_stripe_customer("cus_123")
    """

    # Primary identifier (replaces username)
    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )

    name = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="User's display name",
    )

    # ==========================================================================
    # Billing Identity
    # ==========================================================================

    stripe_customer_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Stripe Customer ID (cus_xxx); never reassigned once set",
    )

    # Account status flags
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    # Timestamps
    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    # Configure email as the username field
    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        """Return the user's email as string representation."""
        return self.email

    def get_full_name(self):
        """Return the display name, or the email if none is set."""
        return self.name or self.email

    def get_short_name(self):
        """Return the first word of the name, or the email local part."""
        if self.name:
            return self.name.split()[0]
        return self.email.split("@")[0]

    @property
    def has_stripe_customer(self) -> bool:
        """Check if the user is already linked to a Stripe customer."""
        return bool(self.stripe_customer_id)

    def assign_stripe_customer(self, customer_id: str, save: bool = True) -> None:
        """
        Link the user to a Stripe customer.

        Assigning the ID the user already has is a no-op. Assigning a
        different one raises, since the link is permanent.

        Args:
            customer_id: Stripe Customer ID (cus_xxx)
            save: Whether to persist immediately

        Raises:
            ConflictError: If a different customer is already assigned
        """
        if self.stripe_customer_id == customer_id:
            return
        if self.stripe_customer_id:
            raise ConflictError(
                "User is already linked to a different Stripe customer",
                error_code="CUSTOMER_ALREADY_ASSIGNED",
                details={
                    "user_id": str(self.pk),
                    "stripe_customer_id": self.stripe_customer_id,
                },
            )
        self.stripe_customer_id = customer_id
        if save:
            self.save(update_fields=["stripe_customer_id", "updated_at"])
