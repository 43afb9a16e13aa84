"""
Invite Service - resend a parent or employee invitation over WhatsApp
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional
from urllib.parse import quote

from daycare_messaging.core.config import Settings
from daycare_messaging.core.exceptions import DeliveryFailedError, ValidationException
from daycare_messaging.core.logging import get_logger
from daycare_messaging.core.validation import PhoneNumberValidator
from daycare_messaging.domain.services.outbound_message_service import (
    OutboundMessageService,
    SendOutcome,
)

logger = get_logger(__name__)

PARENT_TEMPLATE_TYPE = "parent_invite_resend"
EMPLOYEE_TEMPLATE_TYPE = "employee_invite_resend"

ROLE_LABELS = {
    "admin": "Administrador(a)",
    "teacher": "Professor(a)",
    "cook": "Cozinheira",
    "nutritionist": "Nutricionista",
    "pedagogue": "Pedagoga",
    "auxiliar": "Auxiliar de Sala",
}
DEFAULT_ROLE_LABEL = "Funcionário"


@dataclass
class InviteRequest:
    invite_type: Literal["parent", "employee"]
    invite_code: str
    phone: str
    parent_name: Optional[str] = None
    employee_name: Optional[str] = None
    role: Optional[str] = None
    coupon_code: Optional[str] = None
    is_pre_enrollment: bool = False


def role_label(role: Optional[str]) -> str:
    return ROLE_LABELS.get(role or "teacher") or role or DEFAULT_ROLE_LABEL


def _greeting(name: Optional[str]) -> str:
    return f"🎈 *Olá, {name}!*" if name else "🎈 *Olá!*"


def build_parent_invite(invite: InviteRequest, settings: Settings) -> str:
    signup_url = f"{settings.APP_PUBLIC_URL}/auth?mode=signup&invite={invite.invite_code}"
    if invite.coupon_code:
        signup_url += f"&cupom={quote(invite.coupon_code, safe='')}"

    status_line = "\n✅ Sua pré-matrícula foi *aprovada*! 🎉\n" if invite.is_pre_enrollment else ""
    coupon_line = (
        f"\n🎁 Use o cupom *{invite.coupon_code}* para um desconto especial!\n"
        if invite.coupon_code else ""
    )

    return (
        f"{_greeting(invite.parent_name)}\n\n"
        f"Você foi convidado(a) para a *{settings.SCHOOL_NAME}*!\n"
        f"{status_line}{coupon_line}\n"
        f"👉 *Clique para completar seu cadastro:*\n"
        f"{signup_url}\n\n"
        f"📋 Use o código *{invite.invite_code}* se solicitado.\n\n"
        f"💜 {settings.SCHOOL_NAME}"
    )


def build_employee_invite(invite: InviteRequest, settings: Settings) -> str:
    registration_url = f"{settings.APP_PUBLIC_URL}/cadastro-funcionario?code={invite.invite_code}"
    return (
        f"{_greeting(invite.employee_name)}\n\n"
        f"Você foi convidado(a) para fazer parte da equipe da *{settings.SCHOOL_NAME}* "
        f"como *{role_label(invite.role)}*!\n\n"
        f"👉 *Clique para completar seu cadastro:*\n"
        f"{registration_url}\n\n"
        f"📋 Código: *{invite.invite_code}*\n\n"
        f"💜 {settings.SCHOOL_NAME}"
    )


class InviteService:
    def __init__(self, outbound: OutboundMessageService, settings: Settings):
        self.outbound = outbound
        self.settings = settings

    def render(self, invite: InviteRequest) -> tuple[str, str]:
        """Message text and template type for an invitation"""
        if invite.invite_type == "parent":
            return build_parent_invite(invite, self.settings), PARENT_TEMPLATE_TYPE
        return build_employee_invite(invite, self.settings), EMPLOYEE_TEMPLATE_TYPE

    async def resend(self, invite: InviteRequest) -> SendOutcome:
        """
        Send the invitation once and log it.

        Raises:
            ValidationException: invite code or phone missing
            DeliveryFailedError: provider did not accept the message (the
                attempt is logged and eligible for the retry sweep)
        """
        if not invite.invite_code or not invite.phone:
            raise ValidationException("Código do convite e telefone são obrigatórios")
        if not PhoneNumberValidator.validate(invite.phone):
            raise ValidationException("Telefone inválido", field="phone")

        message, template_type = self.render(invite)
        outcome = await self.outbound.send_whatsapp(
            phone=invite.phone,
            message=message,
            template_type=template_type,
            metadata={
                "invite_code": invite.invite_code,
                "invite_type": invite.invite_type,
                "resent": True,
            },
        )

        logger.info(
            "invite_resent" if outcome.success else "invite_resend_failed",
            extra_data={
                "invite_type": invite.invite_type,
                "invite_code": invite.invite_code,
                "pre_enrollment": invite.is_pre_enrollment,
                "log_id": outcome.log.id,
            },
        )
        if not outcome.success:
            raise DeliveryFailedError(
                outcome.result.error or "Erro ao enviar WhatsApp", log_id=outcome.log.id
            )
        return outcome
