"""
GHL Message Webhook Handler

Delivery status callbacks for outbound messages. The provider message id is
looked up in the WhatsApp log first, then in the email log.
"""
from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from daycare_messaging.api.webhooks._body import read_json_body
from daycare_messaging.core.config import Settings, get_settings
from daycare_messaging.core.logging import get_logger
from daycare_messaging.db.database import get_db
from daycare_messaging.db.models.message_log import EmailLog, WhatsAppMessageLog
from daycare_messaging.domain.services.message_log_service import MessageLogService
from daycare_messaging.domain.webhooks.payloads import DeliveryStatusEvent, parse_ghl_delivery_payload

logger = get_logger(__name__)

router = APIRouter()


@router.post("/ghl-message-webhook")
async def ghl_message_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    event = parse_ghl_delivery_payload(await read_json_body(request, "ghl"))

    if not isinstance(event, DeliveryStatusEvent):
        logger.info("ghl_event_ignored", extra_data={"reason": event.reason})
        return {"success": True, "updated": False, "message": event.reason}

    for model in (WhatsAppMessageLog, EmailLog):
        message = await MessageLogService(db, model, settings).apply_delivery_status(
            event.message_id, event.status
        )
        if message is not None:
            logger.info(
                "delivery_status_applied",
                extra_data={
                    "table": model.__tablename__,
                    "message_id": message.id,
                    "provider_status": event.status,
                    "status": message.status.value,
                },
            )
            return {"success": True, "updated": True}

    logger.info(
        "delivery_status_unmatched",
        extra_data={"provider_message_id": event.message_id, "provider_status": event.status},
    )
    return {"success": True, "updated": False}
