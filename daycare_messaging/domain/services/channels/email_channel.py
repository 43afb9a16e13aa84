"""
E-mail channel over the messaging provider's conversations API
"""
from __future__ import annotations

from typing import Any, Optional

from daycare_messaging.core.validation import EmailValidator
from daycare_messaging.db.models.message_log import EmailLog
from daycare_messaging.domain.services.channels.base_channel import ContactRef, RetryableChannel


class EmailChannel(RetryableChannel):
    name = "email"
    model = EmailLog

    def destination(self, record: EmailLog) -> Optional[str]:
        return record.to_address

    def is_complete(self, record: EmailLog) -> bool:
        return bool(record.to_address and record.subject and record.body_html)

    def content(self, record: EmailLog) -> dict[str, Any]:
        return {"subject": record.subject, "html": record.body_html}

    def normalize_destination(self, destination: str) -> str:
        return EmailValidator.normalize(destination)

    def mask(self, destination: str) -> str:
        return EmailValidator.mask(destination)

    async def _search_contact(self, normalized_destination: str) -> Optional[str]:
        return await self._client.search_duplicate(email=normalized_destination)

    def build_payload(
        self, contact: ContactRef, destination: str, content: dict[str, Any]
    ) -> dict[str, Any]:
        return {
            "type": "Email",
            "contactId": contact.contact_id,
            "emailTo": destination,
            "subject": content["subject"],
            "html": content["html"],
        }
