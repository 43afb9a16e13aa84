"""
Channel interface used by the retry scheduler.

Every outbound channel (e-mail, WhatsApp) implements this interface so that
retry, backoff and bookkeeping are written once. The scheduler depends only
on the interface, never on a concrete provider payload.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from daycare_messaging.core.logging import get_logger
from daycare_messaging.db.models.message_log import MessageLogMixin
from daycare_messaging.domain.services.channels.ghl_client import DispatchResult, GhlClient

logger = get_logger(__name__)


@dataclass
class ContactRef:
    """Resolved provider contact"""
    contact_id: str
    cached: bool = False


class RetryableChannel(ABC):
    """
    Channel contract:

    - ``destination`` / ``content`` read the fields a send needs from a record
    - ``is_complete`` tells malformed records apart (they are never sent)
    - ``resolve_contact`` maps a destination to a provider contact
    - ``dispatch`` performs exactly one send attempt
    """

    name: str = ""
    model: type[MessageLogMixin]

    def __init__(self, client: GhlClient) -> None:
        self._client = client

    @abstractmethod
    def destination(self, record: MessageLogMixin) -> Optional[str]:
        """Raw destination stored on the record (e-mail address or phone)."""

    @abstractmethod
    def is_complete(self, record: MessageLogMixin) -> bool:
        """Whether the record carries every field required to send."""

    @abstractmethod
    def content(self, record: MessageLogMixin) -> dict[str, Any]:
        """Message content in channel terms, rebuilt from the record."""

    @abstractmethod
    def normalize_destination(self, destination: str) -> str:
        """Provider-facing form of the destination."""

    @abstractmethod
    def build_payload(
        self, contact: ContactRef, destination: str, content: dict[str, Any]
    ) -> dict[str, Any]:
        """Provider request body for a single send."""

    @abstractmethod
    async def _search_contact(self, normalized_destination: str) -> Optional[str]:
        """Exact-match provider lookup."""

    @abstractmethod
    def mask(self, destination: str) -> str:
        """Destination rendering safe for logs."""

    async def resolve_contact(
        self,
        destination: str,
        cached_contact_id: Optional[str] = None,
    ) -> Optional[ContactRef]:
        """
        Resolve a destination to a provider contact.

        A cached id short-circuits the lookup. Returns None when the provider
        has no matching contact; lookup failures raise ``ProviderError``.
        """
        if cached_contact_id:
            return ContactRef(contact_id=cached_contact_id, cached=True)

        normalized = self.normalize_destination(destination)
        contact_id = await self._search_contact(normalized)
        if not contact_id:
            logger.warning(
                "contact_not_found",
                extra_data={"channel": self.name, "destination": self.mask(normalized)},
            )
            return None
        return ContactRef(contact_id=contact_id)

    async def dispatch(
        self,
        contact: ContactRef,
        destination: str,
        content: dict[str, Any],
    ) -> DispatchResult:
        payload = self.build_payload(contact, self.normalize_destination(destination), content)
        return await self._client.send_message(payload)
