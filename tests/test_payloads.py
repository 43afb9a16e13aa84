"""
Webhook payload classification
"""
from datetime import date, datetime
from decimal import Decimal

import pytest

from daycare_messaging.domain.webhooks.payloads import (
    DeliveryStatusEvent,
    PaymentEvent,
    SignatureEvent,
    SubscriptionEvent,
    UnrecognizedDeliveryEvent,
    UnrecognizedEvent,
    UnrecognizedSignatureEvent,
    parse_asaas_payload,
    parse_ghl_delivery_payload,
    parse_timestamp,
    parse_zapsign_payload,
)

pytestmark = pytest.mark.unit


class TestAsaasPayload:

    def test_payment_event(self):
        event = parse_asaas_payload({
            "event": "PAYMENT_RECEIVED",
            "payment": {
                "id": "pay_1",
                "status": "RECEIVED",
                "value": 850.5,
                "dueDate": "2026-03-10",
                "paymentDate": "2026-03-09",
                "billingType": "PIX",
                "unknownField": "ignored",
            },
        })

        assert isinstance(event, PaymentEvent)
        assert event.payment_id == "pay_1"
        assert event.payment.value == Decimal("850.5")
        assert event.payment.due_date == date(2026, 3, 10)
        assert event.payment.payment_date == date(2026, 3, 9)
        assert event.payment.billing_type == "PIX"

    def test_subscription_event(self):
        event = parse_asaas_payload({
            "event": "SUBSCRIPTION_DELETED",
            "subscription": {"id": "sub_1", "status": "INACTIVE"},
        })

        assert isinstance(event, SubscriptionEvent)
        assert event.subscription_id == "sub_1"

    @pytest.mark.parametrize(
        "raw,reason",
        [
            ([], "payload is not a JSON object"),
            ({}, "missing event"),
            ({"event": "PAYMENT_RECEIVED", "payment": {}}, "missing payment id"),
            ({"event": "SUBSCRIPTION_UPDATED"}, "missing subscription id"),
            ({"event": "TRANSFER_DONE"}, "unhandled event type"),
        ],
    )
    def test_unrecognized(self, raw, reason):
        event = parse_asaas_payload(raw)
        assert isinstance(event, UnrecognizedEvent)
        assert event.reason == reason

    def test_invalid_field_types_are_unrecognized(self):
        event = parse_asaas_payload({
            "event": "PAYMENT_CONFIRMED",
            "payment": {"id": "pay_1", "dueDate": "not-a-date"},
        })
        assert isinstance(event, UnrecognizedEvent)
        assert event.reason.startswith("invalid payload")


class TestZapSignPayload:

    def test_signed_uses_triggering_signer_time(self):
        event = parse_zapsign_payload({
            "event_type": "doc_signed",
            "token": "doc-1",
            "signer_who_signed": {"signed_at": "2026-03-10T15:00:00Z"},
            "signers": [{"signed_at": "2026-03-09T10:00:00Z"}],
            "signed_at": "2026-03-08T10:00:00Z",
        })

        assert isinstance(event, SignatureEvent)
        assert event.outcome == "signed"
        assert event.signed_at == datetime(2026, 3, 10, 15, 0, 0)

    def test_signed_falls_back_to_first_signer(self):
        event = parse_zapsign_payload({
            "event_type": "signer_signed",
            "doc_token": "doc-1",
            "signers": [{"signed_at": "2026-03-09T10:00:00-03:00"}],
        })
        assert event.signed_at == datetime(2026, 3, 9, 13, 0, 0)

    @pytest.mark.parametrize(
        "event_type,outcome",
        [("doc_refused", "refused"), ("signer_refused", "refused"), ("doc_expired", "expired")],
    )
    def test_other_outcomes(self, event_type, outcome):
        event = parse_zapsign_payload({"event_type": event_type, "token": "doc-1"})
        assert isinstance(event, SignatureEvent)
        assert event.outcome == outcome
        assert event.signed_at is None

    def test_missing_token(self):
        event = parse_zapsign_payload({"event_type": "doc_signed"})
        assert isinstance(event, UnrecognizedSignatureEvent)
        assert event.reason == "missing document token"

    def test_unhandled_event_type(self):
        event = parse_zapsign_payload({"event_type": "doc_created", "token": "doc-1"})
        assert isinstance(event, UnrecognizedSignatureEvent)
        assert event.reason == "Event type not handled"
        assert event.event_type == "doc_created"

    @pytest.mark.parametrize("event_type", [["doc_signed"], {"type": "doc_signed"}, 5, True])
    def test_non_string_event_type_is_unrecognized(self, event_type):
        event = parse_zapsign_payload({"event_type": event_type, "token": "doc-1"})
        assert isinstance(event, UnrecognizedSignatureEvent)
        assert event.event_type is None
        assert event.doc_token == "doc-1"

    def test_non_string_event_type_without_token(self):
        event = parse_zapsign_payload({"event_type": 5})
        assert isinstance(event, UnrecognizedSignatureEvent)
        assert event.reason == "missing document token"

    @pytest.mark.parametrize("value", [None, "", 123, "yesterday"])
    def test_parse_timestamp_rejects_garbage(self, value):
        assert parse_timestamp(value) is None

    def test_parse_timestamp_keeps_naive(self):
        assert parse_timestamp("2026-03-10T08:30:00") == datetime(2026, 3, 10, 8, 30)


class TestGhlDeliveryPayload:

    def test_flat_payload(self):
        event = parse_ghl_delivery_payload(
            {"messageId": "m-1", "status": "delivered", "direction": "outbound"}
        )
        assert event == DeliveryStatusEvent(message_id="m-1", status="delivered")

    def test_nested_message(self):
        event = parse_ghl_delivery_payload(
            {"message": {"id": 77, "status": "failed", "direction": "outbound"}}
        )
        assert isinstance(event, DeliveryStatusEvent)
        assert event.message_id == "77"
        assert event.status == "failed"

    @pytest.mark.parametrize(
        "raw,reason",
        [
            ("text", "payload is not a JSON object"),
            ({"messageId": "m-1", "status": "delivered", "direction": "inbound"}, "Skipped inbound message"),
            ({"status": "delivered", "direction": "outbound"}, "Missing message ID"),
            ({"messageId": "m-1", "direction": "outbound"}, "Missing status"),
        ],
    )
    def test_unrecognized(self, raw, reason):
        event = parse_ghl_delivery_payload(raw)
        assert isinstance(event, UnrecognizedDeliveryEvent)
        assert event.reason == reason
