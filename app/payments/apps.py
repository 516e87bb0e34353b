"""
Payments app configuration.

This app provides the billing core:
- Invoices, subscriptions and payment methods
- Stripe webhook verification and reconciliation
- Checkout sessions and customer synchronization
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"

    def ready(self):
        """
        Configure the Stripe HTTP client.

        The API key and version are passed per request by StripeAdapter;
        only transport settings are process-wide.
        """
        import stripe
        from django.conf import settings

        # Registers the webhook handlers
        from payments.webhooks import handlers  # noqa: F401

        stripe.default_http_client = stripe.RequestsClient(
            timeout=settings.STRIPE_API_TIMEOUT_SECONDS
        )
        stripe.max_network_retries = settings.STRIPE_MAX_RETRIES
