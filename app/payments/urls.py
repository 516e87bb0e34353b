"""
URL configuration for the payments app.

Routes:
    - GET /plans/ - Plan catalog
    - POST /checkout/ - Create checkout session
    - GET /payment-methods/ - Own payment methods
    - POST /payment-methods/default/ - Set default payment method
    - GET /invoices/ - Own invoices
    - GET /subscription/ - Current subscription
    - POST /webhooks/stripe/ - Stripe webhook endpoint

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments import views
from payments.webhooks.views import stripe_webhook

app_name = "payments"

urlpatterns = [
    path("plans/", views.PlanListView.as_view(), name="plans"),
    path("checkout/", views.CheckoutView.as_view(), name="checkout"),
    path(
        "payment-methods/",
        views.PaymentMethodListView.as_view(),
        name="payment_methods",
    ),
    path(
        "payment-methods/default/",
        views.DefaultPaymentMethodView.as_view(),
        name="default_payment_method",
    ),
    path("invoices/", views.InvoiceListView.as_view(), name="invoices"),
    path("subscription/", views.SubscriptionView.as_view(), name="subscription"),
    # Webhook endpoints
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
]
