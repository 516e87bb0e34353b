"""
Stripe webhook signature verification.

The signature is checked over the exact raw request bytes before anything
is parsed. Every rejection (missing secret or header, malformed header,
signature mismatch, stale timestamp, a body that is not a Stripe event)
raises InvalidSignatureError and nothing downstream runs.

Usage:
    from payments.webhooks.verifier import WebhookVerifier

    verifier = WebhookVerifier.from_settings()
    event = verifier.verify(request.body, request.headers["Stripe-Signature"])
"""

from __future__ import annotations

import json
import logging

import stripe
from django.conf import settings

from payments.exceptions import InvalidSignatureError
from payments.webhooks.events import VerifiedEvent, timestamp_to_datetime


logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300


class WebhookVerifier:
    """
    Authenticates Stripe webhook deliveries.

    Args:
        secret: Endpoint signing secret (whsec_xxx)
        tolerance: Maximum age of the signed timestamp, in seconds
    """

    def __init__(self, secret: str, tolerance: int = DEFAULT_TOLERANCE_SECONDS):
        self.secret = secret
        self.tolerance = tolerance

    @classmethod
    def from_settings(cls) -> WebhookVerifier:
        return cls(
            secret=settings.STRIPE_WEBHOOK_SECRET,
            tolerance=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
        )

    def verify(self, payload: bytes, signature: str) -> VerifiedEvent:
        """
        Verify a delivery and parse its envelope.

        Args:
            payload: Raw request body
            signature: Value of the Stripe-Signature header

        Returns:
            VerifiedEvent for the delivery

        Raises:
            InvalidSignatureError: If the delivery cannot be authenticated
        """
        if not self.secret:
            raise InvalidSignatureError(
                "Webhook signing secret is not configured",
                details={"reason": "missing_secret"},
            )
        if not signature:
            raise InvalidSignatureError(
                "Missing Stripe-Signature header",
                details={"reason": "missing_header"},
            )

        try:
            body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        except UnicodeDecodeError as e:
            raise InvalidSignatureError(
                "Webhook body is not valid UTF-8",
                details={"reason": "invalid_encoding"},
            ) from e

        try:
            stripe.WebhookSignature.verify_header(
                body, signature, self.secret, tolerance=self.tolerance
            )
        except stripe.SignatureVerificationError as e:
            logger.warning(
                "Webhook signature verification failed",
                extra={"error": str(e)},
            )
            raise InvalidSignatureError(
                "Webhook signature verification failed",
                details={"reason": "signature_mismatch"},
            ) from e

        return self._parse(body)

    def _parse(self, body: str) -> VerifiedEvent:
        try:
            envelope = json.loads(body)
        except ValueError as e:
            raise InvalidSignatureError(
                "Webhook body is not valid JSON",
                details={"reason": "invalid_json"},
            ) from e

        if not isinstance(envelope, dict):
            raise InvalidSignatureError(
                "Webhook body is not an event object",
                details={"reason": "invalid_envelope"},
            )

        event_id = envelope.get("id")
        event_type = envelope.get("type")
        data = envelope.get("data")
        data_object = data.get("object") if isinstance(data, dict) else None

        if (
            not isinstance(event_id, str)
            or not event_id
            or not isinstance(event_type, str)
            or not event_type
            or not isinstance(data_object, dict)
        ):
            raise InvalidSignatureError(
                "Webhook event is missing id, type or data.object",
                details={"reason": "invalid_envelope"},
            )

        return VerifiedEvent(
            event_id=event_id,
            event_type=event_type,
            data_object=data_object,
            created=timestamp_to_datetime(envelope.get("created")),
            livemode=bool(envelope.get("livemode", False)),
        )


def verify(payload: bytes, signature: str, secret: str) -> VerifiedEvent:
    """Verify a delivery with the default tolerance."""
    return WebhookVerifier(secret).verify(payload, signature)
