"""
Tests for webhook signature verification.

Tests cover:
- Accepting correctly signed deliveries
- Rejecting tampered, stale, unsigned and malformed deliveries
- Typed access to the verified event's data object
"""

import json
import time
from datetime import datetime, timezone as dt_timezone

import pytest

from payments.exceptions import InvalidSignatureError
from payments.webhooks.events import EventType, VerifiedEvent
from payments.webhooks.verifier import WebhookVerifier, verify

SECRET = "whsec_test_secret"


@pytest.fixture
def payload():
    return json.dumps(
        {
            "id": "evt_test_1",
            "type": "invoice.payment_succeeded",
            "created": 1767225600,
            "livemode": False,
            "data": {"object": {"id": "in_1", "amount_paid": 29900}},
        }
    ).encode()


class TestWebhookVerifier:
    """Tests for WebhookVerifier.verify."""

    def test_valid_signature(self, payload, sign_payload):
        """A correctly signed delivery yields the parsed event."""
        event = WebhookVerifier(SECRET).verify(payload, sign_payload(payload, SECRET))

        assert event.event_id == "evt_test_1"
        assert event.event_type == "invoice.payment_succeeded"
        assert event.kind is EventType.INVOICE_PAYMENT_SUCCEEDED
        assert event.object_id == "in_1"
        assert event.created == datetime(2026, 1, 1, tzinfo=dt_timezone.utc)
        assert event.livemode is False

    def test_accepts_str_payload(self, payload, sign_payload):
        event = verify(payload.decode(), sign_payload(payload, SECRET), SECRET)

        assert event.event_id == "evt_test_1"

    def test_wrong_secret(self, payload, sign_payload):
        """A signature made with another secret is rejected."""
        with pytest.raises(InvalidSignatureError) as exc_info:
            WebhookVerifier(SECRET).verify(payload, sign_payload(payload, "whsec_other"))

        assert exc_info.value.details["reason"] == "signature_mismatch"

    def test_tampered_body(self, payload, sign_payload):
        """Changing a single byte invalidates the signature."""
        signature = sign_payload(payload, SECRET)
        tampered = payload.replace(b"29900", b"29901")

        with pytest.raises(InvalidSignatureError):
            WebhookVerifier(SECRET).verify(tampered, signature)

    def test_stale_timestamp(self, payload, sign_payload):
        """Deliveries signed outside the tolerance window are rejected."""
        signature = sign_payload(payload, SECRET, timestamp=int(time.time()) - 600)

        with pytest.raises(InvalidSignatureError):
            WebhookVerifier(SECRET, tolerance=300).verify(payload, signature)

    @pytest.mark.parametrize("header", ["garbage", "t=abc,v1=def", "v1=deadbeef"])
    def test_malformed_header(self, payload, header):
        with pytest.raises(InvalidSignatureError):
            WebhookVerifier(SECRET).verify(payload, header)

    def test_missing_header(self, payload):
        with pytest.raises(InvalidSignatureError) as exc_info:
            WebhookVerifier(SECRET).verify(payload, "")

        assert exc_info.value.details["reason"] == "missing_header"

    def test_missing_secret(self, payload, sign_payload):
        """An unconfigured endpoint rejects everything."""
        with pytest.raises(InvalidSignatureError) as exc_info:
            WebhookVerifier("").verify(payload, sign_payload(payload, SECRET))

        assert exc_info.value.details["reason"] == "missing_secret"

    def test_invalid_utf8(self, sign_payload):
        body = b"\xff\xfe not utf-8"

        with pytest.raises(InvalidSignatureError) as exc_info:
            WebhookVerifier(SECRET).verify(body, sign_payload(body, SECRET))

        assert exc_info.value.details["reason"] == "invalid_encoding"

    @pytest.mark.parametrize(
        "body,reason",
        [
            (b"not json", "invalid_json"),
            (b"[1, 2, 3]", "invalid_envelope"),
            (b'{"id": "evt_1", "type": "invoice.paid"}', "invalid_envelope"),
            (b'{"type": "invoice.paid", "data": {"object": {}}}', "invalid_envelope"),
        ],
    )
    def test_signed_but_not_an_event(self, sign_payload, body, reason):
        """Authentic bodies that are not Stripe events are still rejected."""
        with pytest.raises(InvalidSignatureError) as exc_info:
            WebhookVerifier(SECRET).verify(body, sign_payload(body, SECRET))

        assert exc_info.value.details["reason"] == reason

    def test_from_settings(self, settings):
        settings.STRIPE_WEBHOOK_SECRET = "whsec_configured"
        settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS = 60

        verifier = WebhookVerifier.from_settings()

        assert verifier.secret == "whsec_configured"
        assert verifier.tolerance == 60


class TestVerifiedEvent:
    """Tests for VerifiedEvent typed accessors."""

    @pytest.fixture
    def event(self):
        return VerifiedEvent(
            event_id="evt_1",
            event_type="customer.subscription.updated",
            data_object={
                "id": "sub_1",
                "customer": {"id": "cus_1", "object": "customer"},
                "status": "active",
                "cancel_at_period_end": True,
                "quantity": 2,
                "flag": 1,
                "current_period_end": 1767225600,
                "metadata": {"plan_type": "premium"},
                "items": {"data": [{"id": "si_1"}]},
            },
        )

    def test_kind_for_unknown_type(self):
        assert VerifiedEvent("evt_1", "charge.refunded").kind is None

    def test_get_str(self, event):
        """Strings and expanded objects read as ids; anything else is absent."""
        assert event.get_str("status") == "active"
        assert event.get_str("customer") == "cus_1"
        assert event.get_str("quantity") is None
        assert event.get_str("missing.path") is None

    def test_get_int_rejects_bool(self, event):
        assert event.get_int("quantity") == 2
        assert event.get_int("cancel_at_period_end") is None

    def test_get_bool(self, event):
        assert event.get_bool("cancel_at_period_end") is True
        assert event.get_bool("flag") is False
        assert event.get_bool("missing", default=True) is True

    def test_containers(self, event):
        assert event.metadata == {"plan_type": "premium"}
        assert event.get_list("items.data") == [{"id": "si_1"}]
        assert event.get_dict("status") == {}
        assert event.get_list("metadata") == []

    def test_get_timestamp(self, event):
        assert event.get_timestamp("current_period_end") == datetime(
            2026, 1, 1, tzinfo=dt_timezone.utc
        )
        assert event.get_timestamp("cancel_at_period_end") is None

    def test_to_payload(self, event):
        payload = event.to_payload()

        assert payload["id"] == "evt_1"
        assert payload["type"] == "customer.subscription.updated"
        assert payload["created"] is None
        assert payload["data"]["object"]["id"] == "sub_1"
