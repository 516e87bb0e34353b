"""
Authentication app.

Provides the email-based User model. Besides credentials, the user row
carries the billing identity shared with Stripe (stripe_customer_id).
"""
