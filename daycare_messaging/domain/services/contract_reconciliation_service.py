"""
Contract Reconciliation Service - e-signature outcomes for enrollment contracts

Two entry points reach the same transition logic: the provider's webhook
(push) and an operator-triggered status lookup (pull). Either way the parent
and every operator are notified only when the stored status changes.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from daycare_messaging.core.clock import utcnow
from daycare_messaging.core.exceptions import ErrorCode, NotFoundException
from daycare_messaging.core.logging import get_logger
from daycare_messaging.db.models.enrollment_contract import ContractStatus, EnrollmentContract
from daycare_messaging.domain.services.notification_service import NotificationService
from daycare_messaging.domain.services.payment_reconciliation_service import ReconciliationResult
from daycare_messaging.domain.services.zapsign_client import ZapSignClient
from daycare_messaging.domain.webhooks.payloads import SignatureEvent, parse_timestamp

logger = get_logger(__name__)

PARENT_CONTRACT_LINK = "/painel-responsavel"
ADMIN_CONTRACT_LINK = "/painel/contratos"

# Document status reported by the provider's API -> contract status
DOCUMENT_STATUS_MAP: dict[str, ContractStatus] = {
    "signed": ContractStatus.SIGNED,
    "refused": ContractStatus.REFUSED,
    "expired": ContractStatus.EXPIRED,
    "pending": ContractStatus.SENT,
}

NOTICES: dict[ContractStatus, tuple[str, str, str]] = {
    ContractStatus.SIGNED: (
        "✅ Contrato Assinado!",
        "O contrato de matrícula de {child_name} foi assinado com sucesso.",
        "contract_signed",
    ),
    ContractStatus.REFUSED: (
        "❌ Contrato Recusado",
        "O contrato de matrícula de {child_name} foi recusado.",
        "contract_refused",
    ),
    ContractStatus.EXPIRED: (
        "⏰ Contrato Expirado",
        "O contrato de matrícula de {child_name} expirou sem assinatura.",
        "contract_expired",
    ),
}


class ContractReconciliationService:
    def __init__(
        self,
        db: AsyncSession,
        notifications: NotificationService,
        zapsign: Optional[ZapSignClient] = None,
    ):
        self.db = db
        self.notifications = notifications
        self.zapsign = zapsign

    async def find_by_doc_token(self, doc_token: str) -> Optional[EnrollmentContract]:
        result = await self.db.execute(
            select(EnrollmentContract).where(EnrollmentContract.zapsign_doc_token == doc_token)
        )
        return result.scalar_one_or_none()

    async def apply_signature_event(self, event: SignatureEvent) -> ReconciliationResult:
        contract = await self.find_by_doc_token(event.doc_token)
        if contract is None:
            logger.info(
                "contract_not_found",
                extra_data={"doc_token": event.doc_token, "event_type": event.event_type},
            )
            return ReconciliationResult(action="ignored")

        new_status = ContractStatus(event.outcome)
        signed_at = (event.signed_at or utcnow()) if new_status == ContractStatus.SIGNED else None
        return await self._transition(contract, new_status, signed_at, source=event.event_type)

    async def sync_status(self, contract_id: int) -> ReconciliationResult:
        """Pull the current document status from the provider and reconcile"""
        contract = await self.db.get(EnrollmentContract, contract_id)
        if contract is None:
            raise NotFoundException("Contract", contract_id, error_code=ErrorCode.CONTRACT_NOT_FOUND)
        if not contract.zapsign_doc_token:
            raise NotFoundException(
                "Contract document", contract_id, error_code=ErrorCode.CONTRACT_NOT_FOUND
            )
        if self.zapsign is None:
            raise RuntimeError("ContractReconciliationService.sync_status requires a ZapSignClient")

        document = await self.zapsign.get_document(contract.zapsign_doc_token)
        new_status = DOCUMENT_STATUS_MAP.get(document.get("status") or "", contract.status)

        signed_at = None
        if new_status == ContractStatus.SIGNED:
            signers = document.get("signers") or []
            first = signers[0] if signers and isinstance(signers[0], dict) else {}
            signed_at = parse_timestamp(first.get("signed_at")) or contract.signed_at

        return await self._transition(contract, new_status, signed_at, source="sync")

    async def _transition(
        self,
        contract: EnrollmentContract,
        new_status: ContractStatus,
        signed_at: Optional[datetime],
        *,
        source: str,
    ) -> ReconciliationResult:
        previous_status = contract.status
        contract.status = new_status
        if new_status == ContractStatus.SIGNED and signed_at and contract.signed_at is None:
            contract.signed_at = signed_at
        await self.db.commit()

        logger.info(
            "contract_reconciled",
            extra_data={
                "contract_id": contract.id,
                "source": source,
                "previous_status": previous_status.value,
                "new_status": new_status.value,
            },
        )

        if previous_status != new_status:
            await self._notify(contract, new_status)

        return ReconciliationResult(
            action="updated",
            target_id=contract.id,
            previous_status=previous_status.value,
            new_status=new_status.value,
        )

    async def _notify(self, contract: EnrollmentContract, status: ContractStatus) -> None:
        notice = NOTICES.get(status)
        if notice is None:
            return
        title, template, notification_type = notice
        message = template.format(child_name=contract.child_name)

        await self.notifications.notify_user(
            contract.parent_id, title, message, notification_type, PARENT_CONTRACT_LINK
        )
        await self.notifications.push(contract.parent_id, title, message, PARENT_CONTRACT_LINK)
        await self.notifications.notify_admins(title, message, notification_type, ADMIN_CONTRACT_LINK)
