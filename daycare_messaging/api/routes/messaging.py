"""
Messaging API Routes

Direct (first-attempt) sends. Every attempt is logged, so a provider failure
here is retried later by the retry sweep.
"""
from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from daycare_messaging.api.dependencies.auth import get_current_user, require_admin
from daycare_messaging.api.dependencies.providers import get_ghl_client
from daycare_messaging.core.auth import TokenPayload
from daycare_messaging.core.config import Settings, get_settings
from daycare_messaging.core.exceptions import DeliveryFailedError, ValidationException
from daycare_messaging.core.logging import get_logger, get_request_id
from daycare_messaging.core.validation import EmailValidator
from daycare_messaging.db.database import get_db
from daycare_messaging.domain.services.channels import GhlClient
from daycare_messaging.domain.services.invite_service import InviteRequest, InviteService
from daycare_messaging.domain.services.outbound_message_service import OutboundMessageService

logger = get_logger(__name__)

router = APIRouter()


class SendEmailRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to: Optional[str] = None
    to_name: Optional[str] = Field(None, alias="toName")
    subject: Optional[str] = None
    html: Optional[str] = None
    template_type: Optional[str] = Field(None, alias="templateType")
    metadata: dict[str, Any] = Field(default_factory=dict)


class ResendInviteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    invite_type: Literal["parent", "employee"] = Field(alias="inviteType")
    invite_code: Optional[str] = Field(None, alias="inviteCode")
    phone: Optional[str] = None
    parent_name: Optional[str] = Field(None, alias="parentName")
    employee_name: Optional[str] = Field(None, alias="employeeName")
    role: Optional[str] = None
    coupon_code: Optional[str] = Field(None, alias="couponCode")
    is_pre_enrollment: bool = Field(False, alias="isPreEnrollment")


@router.post("/send-email")
async def send_email(
    data: SendEmailRequest,
    user: TokenPayload = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    client: GhlClient = Depends(get_ghl_client),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Send one transactional email through GHL and log the attempt"""
    if not data.to or not data.subject or not data.html:
        raise ValidationException("Missing required fields: to, subject, html")
    if not EmailValidator.validate(data.to):
        raise ValidationException("Invalid email address", field="to")

    outcome = await OutboundMessageService(db, client, settings).send_email(
        to=data.to,
        to_name=data.to_name,
        subject=data.subject,
        html=data.html,
        template_type=data.template_type,
        metadata=data.metadata,
    )
    if not outcome.success:
        raise DeliveryFailedError(outcome.result.error or "Email send failed", log_id=outcome.log.id)

    return {
        "success": True,
        "message": "Email enviado com sucesso via GHL",
        "ghlContactId": outcome.contact_id,
        "messageId": outcome.result.provider_message_id,
        "logId": outcome.log.id,
        "requestId": get_request_id(),
    }


@router.post("/resend-invite-whatsapp")
async def resend_invite_whatsapp(
    data: ResendInviteRequest,
    operator: TokenPayload = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    client: GhlClient = Depends(get_ghl_client),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Resend a parent or employee invitation over WhatsApp (operators only)"""
    logger.info(
        "request_parsed",
        extra_data={
            "invite_type": data.invite_type,
            "invite_code": data.invite_code,
            "has_phone": bool(data.phone),
            "pre_enrollment": data.is_pre_enrollment,
            "operator_id": operator.sub,
        },
    )
    service = InviteService(OutboundMessageService(db, client, settings), settings)
    await service.resend(
        InviteRequest(
            invite_type=data.invite_type,
            invite_code=data.invite_code or "",
            phone=data.phone or "",
            parent_name=data.parent_name,
            employee_name=data.employee_name,
            role=data.role,
            coupon_code=data.coupon_code,
            is_pre_enrollment=data.is_pre_enrollment,
        )
    )
    return {
        "success": True,
        "message": "WhatsApp reenviado com sucesso!",
        "requestId": get_request_id(),
    }
