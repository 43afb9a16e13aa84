"""
Asaas Webhook Handler

Payment and subscription events from the payment gateway. Every delivery the
service could not act on is still acknowledged with 200 so the gateway stops
redelivering it; only persistence failures surface as 500.
"""
from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from daycare_messaging.api.dependencies.webhook_auth import verify_asaas_token
from daycare_messaging.api.webhooks._body import read_json_body
from daycare_messaging.core.config import Settings, get_settings
from daycare_messaging.core.logging import get_logger
from daycare_messaging.db.database import get_db
from daycare_messaging.domain.services.notification_service import NotificationService
from daycare_messaging.domain.services.payment_reconciliation_service import (
    PaymentReconciliationService,
)
from daycare_messaging.domain.webhooks.payloads import (
    PaymentEvent,
    SubscriptionEvent,
    parse_asaas_payload,
)

logger = get_logger(__name__)

router = APIRouter()


@router.post("/asaas-webhook")
async def asaas_webhook(
    request: Request,
    _: None = Depends(verify_asaas_token),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    event = parse_asaas_payload(await read_json_body(request, "asaas"))
    service = PaymentReconciliationService(db, NotificationService(db, settings))

    if isinstance(event, PaymentEvent):
        result = await service.apply_payment_event(event)
    elif isinstance(event, SubscriptionEvent):
        result = await service.apply_subscription_event(event)
    else:
        logger.info(
            "asaas_event_ignored",
            extra_data={"event": event.event, "reason": event.reason},
        )
        return {"received": True}

    logger.info(
        "asaas_event_processed",
        extra_data={
            "event": event.event,
            "action": result.action,
            "target_id": result.target_id,
            "changed": result.changed,
        },
    )
    return {"received": True}
