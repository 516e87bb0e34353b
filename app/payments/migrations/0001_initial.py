import uuid

import django.core.validators
import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


def _timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
    ]


def _uuid_pk():
    return (
        "id",
        models.UUIDField(
            default=uuid.uuid4,
            editable=False,
            help_text="Unique identifier for this record",
            primary_key=True,
            serialize=False,
        ),
    )


def _metadata():
    return (
        "metadata",
        models.JSONField(
            blank=True,
            default=dict,
            help_text="Flexible key-value metadata storage",
        ),
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                (
                    "stripe_event_id",
                    models.CharField(
                        db_index=True,
                        help_text="Stripe Event ID (evt_xxx) - unique constraint for idempotency",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Stripe event type (e.g., 'invoice.payment_succeeded')",
                        max_length=100,
                    ),
                ),
                (
                    "payload",
                    models.JSONField(help_text="Full webhook payload from Stripe (JSON)"),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current processing status",
                        max_length=20,
                    ),
                ),
                (
                    "outcome",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Handler result status (processed, unchanged, ignored, entity_not_found)",
                        max_length=32,
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When event was successfully processed",
                        null=True,
                    ),
                ),
                (
                    "error_message",
                    models.TextField(
                        blank=True,
                        help_text="Error message if processing failed",
                        null=True,
                    ),
                ),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(
                        default=0, help_text="Number of processing attempts"
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"],
                        name="payments_we_status_2c1f0e_idx",
                    ),
                    models.Index(
                        fields=["event_type", "created_at"],
                        name="payments_we_event_t_8d3a41_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Subscription",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                _metadata(),
                (
                    "stripe_subscription_id",
                    models.CharField(
                        blank=True,
                        help_text="Stripe Subscription ID (sub_xxx)",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "plan_type",
                    models.CharField(
                        choices=[
                            ("basic", "Basic"),
                            ("premium", "Premium"),
                            ("enterprise", "Enterprise"),
                        ],
                        help_text="Plan from the catalog",
                        max_length=20,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Plan amount in major currency units",
                        max_digits=10,
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="mxn",
                        help_text="ISO 4217 currency code (lowercase)",
                        max_length=3,
                    ),
                ),
                (
                    "billing_cycle",
                    models.CharField(
                        choices=[
                            ("monthly", "Monthly"),
                            ("quarterly", "Quarterly"),
                            ("yearly", "Yearly"),
                        ],
                        default="monthly",
                        help_text="Billing cadence",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("active", "Active"),
                            ("cancelled", "Cancelled"),
                            ("expired", "Expired"),
                            ("pending", "Pending"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Local status mirrored from Stripe",
                        max_length=20,
                    ),
                ),
                (
                    "payment_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        default="pending",
                        help_text="Outcome of the latest charge",
                        max_length=20,
                    ),
                ),
                (
                    "auto_renew",
                    models.BooleanField(
                        default=True,
                        help_text="Whether the subscription renews at period end",
                    ),
                ),
                (
                    "start_date",
                    models.DateTimeField(help_text="Start of current billing period"),
                ),
                (
                    "end_date",
                    models.DateTimeField(help_text="End of current billing period"),
                ),
                (
                    "next_billing_date",
                    models.DateTimeField(
                        blank=True,
                        help_text="Next charge date while auto-renew is on",
                        null=True,
                    ),
                ),
                (
                    "transaction_id",
                    models.CharField(
                        blank=True,
                        help_text="Stripe invoice ID of the latest successful charge",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "features",
                    models.JSONField(
                        blank=True, default=dict, help_text="Plan features snapshot"
                    ),
                ),
                (
                    "notes",
                    models.TextField(blank=True, default="", help_text="Operator notes"),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="User subscribed to the plan",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="subscriptions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Subscription",
                "verbose_name_plural": "Subscriptions",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["user", "status"],
                        name="payments_su_user_id_5b7e2a_idx",
                    ),
                    models.Index(
                        fields=["status", "end_date"],
                        name="payments_su_status_91c4d8_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(status="active"),
                        fields=("user",),
                        name="subscription_one_active_per_user",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(amount__gte=0),
                        name="subscription_amount_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                _metadata(),
                (
                    "stripe_invoice_id",
                    models.CharField(
                        blank=True,
                        help_text="Stripe Invoice ID (in_xxx)",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Invoice amount in major currency units",
                        max_digits=10,
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="mxn",
                        help_text="ISO 4217 currency code (lowercase)",
                        max_length=3,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("draft", "Draft"),
                            ("open", "Open"),
                            ("paid", "Paid"),
                            ("void", "Void"),
                            ("uncollectible", "Uncollectible"),
                        ],
                        db_index=True,
                        default="draft",
                        help_text="Current state of the invoice (managed by FSM)",
                        max_length=50,
                    ),
                ),
                ("due_date", models.DateTimeField(help_text="When payment is due")),
                (
                    "paid_at",
                    models.DateTimeField(
                        blank=True, help_text="When payment was confirmed", null=True
                    ),
                ),
                (
                    "subscription",
                    models.ForeignKey(
                        blank=True,
                        help_text="Subscription this invoice pays for",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="invoices",
                        to="payments.subscription",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="User who owes this invoice",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="invoices",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Invoice",
                "verbose_name_plural": "Invoices",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["user", "status"],
                        name="payments_in_user_id_0a9f3c_idx",
                    ),
                    models.Index(
                        fields=["status", "due_date"],
                        name="payments_in_status_6e2b17_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(amount__gte=0),
                        name="invoice_amount_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentMethod",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                _metadata(),
                (
                    "stripe_payment_method_id",
                    models.CharField(
                        help_text="Stripe PaymentMethod ID (pm_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("card", "Card"),
                            ("bank_account", "Bank Account"),
                            ("sepa_debit", "SEPA Debit"),
                            ("oxxo", "OXXO"),
                            ("other", "Other"),
                        ],
                        default="card",
                        help_text="Payment method kind",
                        max_length=20,
                    ),
                ),
                (
                    "last4",
                    models.CharField(
                        blank=True,
                        help_text="Last four digits",
                        max_length=4,
                        null=True,
                        validators=[
                            django.core.validators.RegexValidator(
                                message="last4 must be exactly four digits",
                                regex="^\\d{4}$",
                            )
                        ],
                    ),
                ),
                (
                    "brand",
                    models.CharField(
                        blank=True, help_text="Card brand", max_length=50, null=True
                    ),
                ),
                (
                    "is_default",
                    models.BooleanField(
                        default=False,
                        help_text="Whether this is the user's default payment method",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="Owner of the payment method",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payment_methods",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment Method",
                "verbose_name_plural": "Payment Methods",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["user", "is_default"],
                        name="payments_pa_user_id_e41d7b_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(is_default=True),
                        fields=("user",),
                        name="payment_method_one_default_per_user",
                    ),
                ],
            },
        ),
    ]
