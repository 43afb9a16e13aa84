"""
Contract API Routes
"""
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from daycare_messaging.api.dependencies.auth import require_admin
from daycare_messaging.api.dependencies.providers import get_zapsign_client
from daycare_messaging.core.auth import TokenPayload
from daycare_messaging.core.config import Settings, get_settings
from daycare_messaging.core.logging import get_logger, get_request_id
from daycare_messaging.db.database import get_db
from daycare_messaging.domain.services.contract_reconciliation_service import (
    ContractReconciliationService,
)
from daycare_messaging.domain.services.notification_service import NotificationService
from daycare_messaging.domain.services.zapsign_client import ZapSignClient

logger = get_logger(__name__)

router = APIRouter()


class SyncStatusRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    contract_id: int = Field(alias="contractId")


@router.post("/zapsign-sync-status")
async def zapsign_sync_status(
    data: SyncStatusRequest,
    operator: TokenPayload = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    zapsign: ZapSignClient = Depends(get_zapsign_client),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Pull the document status from ZapSign and reconcile the contract"""
    service = ContractReconciliationService(db, NotificationService(db, settings), zapsign)
    result = await service.sync_status(data.contract_id)

    if result.changed:
        return {
            "success": True,
            "message": f"Status synced: {result.previous_status} -> {result.new_status}",
            "previousStatus": result.previous_status,
            "newStatus": result.new_status,
            "requestId": get_request_id(),
        }
    return {
        "success": True,
        "message": "Status is already up to date",
        "status": result.new_status,
        "requestId": get_request_id(),
    }
