from django.db import migrations

BILLING_NOTIFICATION_TYPES = [
    {
        "key": "payment_successful",
        "display_name": "Payment Successful",
        "title_template": "Payment received",
        "body_template": (
            "We received your payment of {amount} {currency} for {plan_name}. "
            "Thank you!"
        ),
    },
    {
        "key": "payment_failed",
        "display_name": "Payment Failed",
        "title_template": "Payment failed",
        "body_template": (
            "Your payment of {amount} {currency} for {plan_name} could not be "
            "processed: {reason}. Please update your payment method."
        ),
    },
    {
        "key": "subscription_renewal_reminder",
        "display_name": "Subscription Renewal Reminder",
        "title_template": "Your subscription renews soon",
        "body_template": (
            "Your {plan_name} subscription renews on {renewal_date}."
        ),
    },
]


def seed_types(apps, schema_editor):
    NotificationType = apps.get_model("notifications", "NotificationType")
    for definition in BILLING_NOTIFICATION_TYPES:
        NotificationType.objects.update_or_create(
            key=definition["key"],
            defaults={**definition, "is_active": True, "supports_email": True},
        )


def remove_types(apps, schema_editor):
    NotificationType = apps.get_model("notifications", "NotificationType")
    NotificationType.objects.filter(
        key__in=[definition["key"] for definition in BILLING_NOTIFICATION_TYPES]
    ).delete()


class Migration(migrations.Migration):

    dependencies = [
        ("notifications", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(seed_types, remove_types),
    ]
