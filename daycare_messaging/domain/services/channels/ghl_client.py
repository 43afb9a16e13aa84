"""
GoHighLevel (LeadConnector) HTTP client

The only component that talks HTTP to the messaging provider. It holds no
persisted state: contact caching and status bookkeeping belong to the
message log.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

import httpx

from daycare_messaging.core.config import Settings
from daycare_messaging.core.exceptions import ProviderError, ErrorCode
from daycare_messaging.core.logging import get_logger

logger = get_logger(__name__)

# The provider versions each API family independently
CONTACTS_API_VERSION = "2021-07-28"
CONVERSATIONS_API_VERSION = "2021-04-15"


@dataclass
class DispatchResult:
    """Outcome of a single provider send. Failures are values, not exceptions."""
    success: bool
    provider_message_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, provider_message_id: Optional[str]) -> "DispatchResult":
        return cls(success=True, provider_message_id=provider_message_id)

    @classmethod
    def failed(cls, error: str) -> "DispatchResult":
        return cls(success=False, error=error)


class GhlClient:
    """
    Thin async wrapper over the three provider operations this service uses:
    exact-match contact search, contact creation and message send.

    Pass ``http_client`` to share a connection pool (or a mock transport in
    tests); otherwise a short-lived client is opened per call.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._settings = settings
        self._base_url = settings.GHL_BASE_URL
        self._http_client = http_client

    @property
    def location_id(self) -> str:
        return self._settings.GHL_LOCATION_ID

    def _headers(self, version: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._settings.GHL_API_KEY}",
            "Version": version,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self._settings.GHL_TIMEOUT_SECONDS) as client:
            yield client

    async def search_duplicate(
        self,
        *,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Optional[str]:
        """
        Exact-match contact lookup by e-mail or normalized phone.

        Returns:
            The provider contact id, or None when no contact matches.

        Raises:
            ProviderError: non-2xx response or transport failure.
        """
        self._settings.require_ghl_credentials()
        params: dict[str, str] = {"locationId": self.location_id}
        if email:
            params["email"] = email
        if phone:
            params["phone"] = phone

        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self._base_url}/contacts/search/duplicate",
                    params=params,
                    headers=self._headers(CONTACTS_API_VERSION),
                )
        except httpx.RequestError as exc:
            raise ProviderError(
                f"contact search network error: {exc}",
                error_code=ErrorCode.EXTERNAL_SERVICE_UNAVAILABLE,
            ) from exc

        if not response.is_success:
            raise ProviderError.from_response("contact search", response)

        contact = (response.json() or {}).get("contact") or {}
        return contact.get("id")

    async def create_contact(
        self,
        *,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        first_name: str = "",
        last_name: str = "",
        source: str = "daycare-messaging",
        tags: Optional[list[str]] = None,
    ) -> str:
        """Create a contact and return its id."""
        self._settings.require_ghl_credentials()
        payload: dict[str, Any] = {
            "locationId": self.location_id,
            "firstName": first_name,
            "lastName": last_name,
            "source": source,
            "tags": tags or [],
        }
        if email:
            payload["email"] = email
        if phone:
            payload["phone"] = phone

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self._base_url}/contacts/",
                    json=payload,
                    headers=self._headers(CONTACTS_API_VERSION),
                )
        except httpx.RequestError as exc:
            raise ProviderError(f"contact create network error: {exc}") from exc

        if not response.is_success:
            raise ProviderError.from_response("contact create", response)

        contact = (response.json() or {}).get("contact") or {}
        contact_id = contact.get("id")
        if not contact_id:
            raise ProviderError("contact create returned no id", details={"response": response.text[:500]})
        return contact_id

    async def send_message(self, payload: dict[str, Any]) -> DispatchResult:
        """
        Exactly one send attempt. Never retries; never raises for provider
        or transport failures.
        """
        self._settings.require_ghl_credentials()
        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self._base_url}/conversations/messages",
                    json=payload,
                    headers=self._headers(CONVERSATIONS_API_VERSION),
                )
        except httpx.RequestError as exc:
            logger.warning(
                "GHL send transport error",
                extra_data={"type": payload.get("type"), "error": str(exc)},
            )
            return DispatchResult.failed(f"GHL request failed: {exc}")

        if not response.is_success:
            logger.warning(
                "GHL send rejected",
                extra_data={
                    "type": payload.get("type"),
                    "status_code": response.status_code,
                    "response": response.text[:500],
                },
            )
            return DispatchResult.failed(f"GHL error: {response.status_code}")

        try:
            body = response.json() or {}
        except ValueError:
            body = {}
        return DispatchResult.ok(body.get("messageId") or body.get("id"))
