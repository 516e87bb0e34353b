"""
Payments app: Stripe-driven billing lifecycle.

This app handles:
- Stripe customer creation and default payment method sync
- Hosted checkout sessions with a local draft invoice
- Webhook verification and reconciliation of invoices, subscriptions
  and payment methods
- Subscription expiry and renewal reminders

Related apps:
    - authentication: User model and its Stripe customer link
    - notifications: Payment and renewal notifications

Usage:
    from payments.services import CheckoutService

    checkout = CheckoutService.create_checkout_session(user, "premium")
"""
