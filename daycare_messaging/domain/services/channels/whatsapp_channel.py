"""
WhatsApp channel over the messaging provider's conversations API
"""
from __future__ import annotations

from typing import Any, Optional

from daycare_messaging.core.validation import PhoneNumberValidator
from daycare_messaging.db.models.message_log import WhatsAppMessageLog
from daycare_messaging.domain.services.channels.base_channel import ContactRef, RetryableChannel


class WhatsAppChannel(RetryableChannel):
    name = "whatsapp"
    model = WhatsAppMessageLog

    def destination(self, record: WhatsAppMessageLog) -> Optional[str]:
        return record.phone

    @staticmethod
    def message_text(record: WhatsAppMessageLog) -> str:
        """Full text from metadata, falling back to the stored preview"""
        meta = record.meta or {}
        return meta.get("full_message") or record.message_preview or ""

    def is_complete(self, record: WhatsAppMessageLog) -> bool:
        return bool(record.phone and PhoneNumberValidator.normalize(record.phone) and self.message_text(record))

    def content(self, record: WhatsAppMessageLog) -> dict[str, Any]:
        return {"message": self.message_text(record)}

    def normalize_destination(self, destination: str) -> str:
        return PhoneNumberValidator.normalize(destination)

    def mask(self, destination: str) -> str:
        return PhoneNumberValidator.mask(destination)

    async def _search_contact(self, normalized_destination: str) -> Optional[str]:
        return await self._client.search_duplicate(phone=normalized_destination)

    def build_payload(
        self, contact: ContactRef, destination: str, content: dict[str, Any]
    ) -> dict[str, Any]:
        return {
            "type": "WhatsApp",
            "contactId": contact.contact_id,
            "message": content["message"],
        }
