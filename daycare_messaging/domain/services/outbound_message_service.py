"""
Outbound Message Service - the direct (first-attempt) send path

Every send goes through the provider exactly once and is recorded in the
message log whatever the outcome, so a failed first attempt is picked up by
the next retry sweep.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from daycare_messaging.core.config import Settings
from daycare_messaging.core.exceptions import ProviderError
from daycare_messaging.core.logging import get_logger
from daycare_messaging.core.validation import EmailValidator, PhoneNumberValidator, preview
from daycare_messaging.db.models.message_log import EmailLog, WhatsAppMessageLog
from daycare_messaging.domain.services.channels import (
    ContactRef,
    DispatchResult,
    EmailChannel,
    GhlClient,
    WhatsAppChannel,
)
from daycare_messaging.domain.services.message_log_service import MessageLogService
from daycare_messaging.domain.services.retry_scheduler import CONTACT_NOT_FOUND_REASON

logger = get_logger(__name__)

CONTACT_SOURCE = "Sistema Pimpolinhos"
CONTACT_TAGS = ["sistema", "transacional"]
DEFAULT_CONTACT_FIRST_NAME = "Usuário"


@dataclass
class SendOutcome:
    log: Any
    result: DispatchResult
    contact_id: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.result.success


def split_name(full_name: Optional[str]) -> tuple[str, str]:
    parts = (full_name or "").split()
    if not parts:
        return DEFAULT_CONTACT_FIRST_NAME, ""
    return parts[0], " ".join(parts[1:])


class OutboundMessageService:
    def __init__(self, db: AsyncSession, client: GhlClient, settings: Settings):
        self.db = db
        self.client = client
        self.settings = settings
        self.email_channel = EmailChannel(client)
        self.whatsapp_channel = WhatsAppChannel(client)

    async def send_email(
        self,
        *,
        to: str,
        subject: str,
        html: str,
        to_name: Optional[str] = None,
        template_type: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> SendOutcome:
        """Find or create the contact, send once, log the attempt"""
        self.settings.require_ghl_credentials()
        address = EmailValidator.normalize(to)
        started = time.monotonic()

        contact_id: Optional[str] = None
        try:
            contact_id = await self.client.search_duplicate(email=address)
            if not contact_id:
                first_name, last_name = split_name(to_name or (metadata or {}).get("name"))
                contact_id = await self.client.create_contact(
                    email=address,
                    first_name=first_name,
                    last_name=last_name,
                    source=CONTACT_SOURCE,
                    tags=CONTACT_TAGS,
                )
                logger.info("ghl_contact_created", extra_data={"to": EmailValidator.mask(address)})
            result = await self.email_channel.dispatch(
                ContactRef(contact_id=contact_id), address, {"subject": subject, "html": html}
            )
        except ProviderError as exc:
            result = DispatchResult.failed(exc.message)

        duration_ms = int((time.monotonic() - started) * 1000)
        log = await MessageLogService(self.db, EmailLog, self.settings).log_send(
            result,
            contact_id=contact_id,
            to_address=address,
            to_name=to_name,
            subject=subject,
            body_html=html,
            template_type=template_type,
            meta={**(metadata or {}), "duration": duration_ms},
        )
        self._log_outcome("email", EmailValidator.mask(address), template_type, result, log.id)
        return SendOutcome(log=log, result=result, contact_id=contact_id)

    async def send_whatsapp(
        self,
        *,
        phone: str,
        message: str,
        template_type: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> SendOutcome:
        """Resolve the contact by phone, send once, log the attempt"""
        self.settings.require_ghl_credentials()
        started = time.monotonic()

        contact_id: Optional[str] = None
        try:
            contact = await self.whatsapp_channel.resolve_contact(phone)
            if contact is None:
                result = DispatchResult.failed(CONTACT_NOT_FOUND_REASON)
            else:
                contact_id = contact.contact_id
                result = await self.whatsapp_channel.dispatch(contact, phone, {"message": message})
        except ProviderError as exc:
            result = DispatchResult.failed(exc.message)

        duration_ms = int((time.monotonic() - started) * 1000)
        log = await MessageLogService(self.db, WhatsAppMessageLog, self.settings).log_send(
            result,
            contact_id=contact_id,
            phone=phone,
            message_preview=preview(message),
            template_type=template_type,
            meta={"full_message": message, **(metadata or {}), "duration": duration_ms},
        )
        self._log_outcome(
            "whatsapp",
            PhoneNumberValidator.mask(PhoneNumberValidator.normalize(phone)),
            template_type,
            result,
            log.id,
        )
        return SendOutcome(log=log, result=result, contact_id=contact_id)

    @staticmethod
    def _log_outcome(
        channel: str,
        masked_destination: str,
        template_type: Optional[str],
        result: DispatchResult,
        log_id: int,
    ) -> None:
        if result.success:
            logger.info(
                f"{channel}_sent",
                extra_data={
                    "to": masked_destination,
                    "template_type": template_type,
                    "provider_message_id": result.provider_message_id,
                    "log_id": log_id,
                },
            )
        else:
            logger.warning(
                f"{channel}_send_failed",
                extra_data={
                    "to": masked_destination,
                    "template_type": template_type,
                    "error": result.error,
                    "log_id": log_id,
                },
            )
