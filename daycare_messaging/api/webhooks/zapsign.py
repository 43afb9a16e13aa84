"""
ZapSign Webhook Handler

Signature outcomes for enrollment contracts.
"""
from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from daycare_messaging.api.dependencies.webhook_auth import verify_zapsign_secret
from daycare_messaging.api.webhooks._body import read_json_body
from daycare_messaging.core.config import Settings, get_settings
from daycare_messaging.core.logging import get_logger
from daycare_messaging.db.database import get_db
from daycare_messaging.domain.services.contract_reconciliation_service import (
    ContractReconciliationService,
)
from daycare_messaging.domain.services.notification_service import NotificationService
from daycare_messaging.domain.webhooks.payloads import SignatureEvent, parse_zapsign_payload

logger = get_logger(__name__)

router = APIRouter()


@router.post("/zapsign-webhook")
async def zapsign_webhook(
    request: Request,
    _: None = Depends(verify_zapsign_secret),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    event = parse_zapsign_payload(await read_json_body(request, "zapsign"))

    if not isinstance(event, SignatureEvent):
        logger.info(
            "zapsign_event_ignored",
            extra_data={"event_type": event.event_type, "reason": event.reason},
        )
        return {"received": True, "message": event.reason, "event_type": event.event_type}

    service = ContractReconciliationService(db, NotificationService(db, settings))
    result = await service.apply_signature_event(event)
    if result.action == "ignored":
        return {"received": True, "message": "Contract not found"}

    return {
        "success": True,
        "message": f"Contract status updated to {result.new_status}",
        "contractId": result.target_id,
    }
