"""
Tests for payments app.

This package contains test modules for:
- test_models.py: Invoice, Subscription, PaymentMethod, WebhookEvent
- test_customer_service.py / test_checkout_service.py: Billing services
- test_views.py: API endpoint tests
- test_integration.py: Full checkout-to-webhook lifecycle scenarios

Webhook and adapter tests live beside their packages.

Usage:
    pytest payments/tests/
    pytest -m e2e
"""
