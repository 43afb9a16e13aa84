"""
Inbound webhook payloads

Provider payloads are parsed once, at the boundary, into small tagged
unions. Everything downstream matches on the variant instead of probing
optional fields of a raw dict. A payload that cannot be understood becomes
an ``Unrecognized*`` variant carrying the reason, which the routes
acknowledge with 200 so the provider does not redeliver it forever.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class _ProviderModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ---------------------------------------------------------------------------
# Payment gateway (Asaas)
# ---------------------------------------------------------------------------

class AsaasPayment(_ProviderModel):
    id: Optional[str] = None
    status: Optional[str] = None
    subscription: Optional[str] = None
    customer: Optional[str] = None
    billing_type: Optional[str] = Field(None, alias="billingType")
    value: Optional[Decimal] = None
    description: Optional[str] = None
    due_date: Optional[date] = Field(None, alias="dueDate")
    payment_date: Optional[date] = Field(None, alias="paymentDate")
    invoice_url: Optional[str] = Field(None, alias="invoiceUrl")
    bank_slip_url: Optional[str] = Field(None, alias="bankSlipUrl")


class AsaasSubscription(_ProviderModel):
    id: Optional[str] = None
    status: Optional[str] = None
    next_due_date: Optional[date] = Field(None, alias="nextDueDate")


class PaymentEvent(BaseModel):
    kind: Literal["payment"] = "payment"
    event: str
    payment: AsaasPayment

    @property
    def payment_id(self) -> str:
        return self.payment.id  # type: ignore[return-value]


class SubscriptionEvent(BaseModel):
    kind: Literal["subscription"] = "subscription"
    event: str
    subscription: AsaasSubscription

    @property
    def subscription_id(self) -> str:
        return self.subscription.id  # type: ignore[return-value]


class UnrecognizedEvent(BaseModel):
    kind: Literal["unrecognized"] = "unrecognized"
    event: Optional[str] = None
    reason: str


AsaasEvent = Union[PaymentEvent, SubscriptionEvent, UnrecognizedEvent]


def parse_asaas_payload(raw: Any) -> AsaasEvent:
    """Classify an Asaas webhook body"""
    if not isinstance(raw, dict):
        return UnrecognizedEvent(reason="payload is not a JSON object")

    event = raw.get("event")
    if not isinstance(event, str) or not event:
        return UnrecognizedEvent(reason="missing event")

    try:
        if event.startswith("SUBSCRIPTION_"):
            subscription = AsaasSubscription.model_validate(raw.get("subscription") or {})
            if not subscription.id:
                return UnrecognizedEvent(event=event, reason="missing subscription id")
            return SubscriptionEvent(event=event, subscription=subscription)

        if event.startswith("PAYMENT_"):
            payment = AsaasPayment.model_validate(raw.get("payment") or {})
            if not payment.id:
                return UnrecognizedEvent(event=event, reason="missing payment id")
            return PaymentEvent(event=event, payment=payment)
    except ValidationError as exc:
        return UnrecognizedEvent(event=event, reason=f"invalid payload: {exc.error_count()} errors")

    return UnrecognizedEvent(event=event, reason="unhandled event type")


# ---------------------------------------------------------------------------
# E-signature (ZapSign)
# ---------------------------------------------------------------------------

SIGNED_EVENTS = {"doc_signed", "signer_signed"}
REFUSED_EVENTS = {"doc_refused", "signer_refused"}
EXPIRED_EVENTS = {"doc_expired"}


class SignatureEvent(BaseModel):
    kind: Literal["signature"] = "signature"
    event_type: str
    doc_token: str
    outcome: Literal["signed", "refused", "expired"]
    signed_at: Optional[datetime] = None


class UnrecognizedSignatureEvent(BaseModel):
    kind: Literal["unrecognized"] = "unrecognized"
    event_type: Optional[str] = None
    doc_token: Optional[str] = None
    reason: str


ZapSignEvent = Union[SignatureEvent, UnrecognizedSignatureEvent]


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        # stored as naive UTC
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _signed_at(raw: dict[str, Any]) -> Optional[datetime]:
    """Signature time from the signer who triggered the event, the first signer, or the document"""
    candidates: list[Any] = []
    signer = raw.get("signer_who_signed")
    if isinstance(signer, dict):
        candidates.append(signer.get("signed_at"))
    signers = raw.get("signers")
    if isinstance(signers, list) and signers and isinstance(signers[0], dict):
        candidates.append(signers[0].get("signed_at"))
    candidates.append(raw.get("signed_at"))
    for candidate in candidates:
        parsed = parse_timestamp(candidate)
        if parsed:
            return parsed
    return None


def parse_zapsign_payload(raw: Any) -> ZapSignEvent:
    """Classify a ZapSign webhook body"""
    if not isinstance(raw, dict):
        return UnrecognizedSignatureEvent(reason="payload is not a JSON object")

    event_type = raw.get("event_type")
    if not isinstance(event_type, str):
        event_type = None
    doc_token = raw.get("token") or raw.get("doc_token")
    if not doc_token or not isinstance(doc_token, str):
        return UnrecognizedSignatureEvent(event_type=event_type, reason="missing document token")

    if event_type in SIGNED_EVENTS:
        return SignatureEvent(
            event_type=event_type, doc_token=doc_token, outcome="signed", signed_at=_signed_at(raw)
        )
    if event_type in REFUSED_EVENTS:
        return SignatureEvent(event_type=event_type, doc_token=doc_token, outcome="refused")
    if event_type in EXPIRED_EVENTS:
        return SignatureEvent(event_type=event_type, doc_token=doc_token, outcome="expired")

    return UnrecognizedSignatureEvent(
        event_type=event_type, doc_token=doc_token, reason="Event type not handled"
    )


# ---------------------------------------------------------------------------
# Messaging provider delivery callbacks (GHL)
# ---------------------------------------------------------------------------

class DeliveryStatusEvent(BaseModel):
    kind: Literal["delivery_status"] = "delivery_status"
    message_id: str
    status: str


class UnrecognizedDeliveryEvent(BaseModel):
    kind: Literal["unrecognized"] = "unrecognized"
    reason: str


DeliveryEvent = Union[DeliveryStatusEvent, UnrecognizedDeliveryEvent]


def parse_ghl_delivery_payload(raw: Any) -> DeliveryEvent:
    """Classify a GHL message-status callback; only outbound messages are tracked"""
    if not isinstance(raw, dict):
        return UnrecognizedDeliveryEvent(reason="payload is not a JSON object")

    nested = raw.get("message") if isinstance(raw.get("message"), dict) else {}
    message_id = raw.get("messageId") or nested.get("id")
    status = raw.get("status") or nested.get("status")
    direction = raw.get("direction") or nested.get("direction")

    if direction != "outbound":
        return UnrecognizedDeliveryEvent(reason="Skipped inbound message")
    if not message_id:
        return UnrecognizedDeliveryEvent(reason="Missing message ID")
    if not status:
        return UnrecognizedDeliveryEvent(reason="Missing status")
    return DeliveryStatusEvent(message_id=str(message_id), status=str(status))
