"""
ZapSign HTTP client - read-only document lookups for status reconciliation
"""
from __future__ import annotations

from typing import Any, Optional

import httpx

from daycare_messaging.core.config import Settings
from daycare_messaging.core.exceptions import ErrorCode, ProviderError
from daycare_messaging.core.logging import get_logger

logger = get_logger(__name__)


class ZapSignClient:
    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._settings = settings
        self._http_client = http_client

    async def get_document(self, doc_token: str) -> dict[str, Any]:
        """
        Fetch a document by token.

        Raises:
            ConfigurationError: API key not configured.
            ProviderError: non-2xx response or transport failure.
        """
        self._settings.require_zapsign_credentials()
        url = f"{self._settings.ZAPSIGN_BASE_URL}/docs/{doc_token}/"
        headers = {"Authorization": f"Bearer {self._settings.ZAPSIGN_API_KEY}"}

        try:
            if self._http_client is not None:
                response = await self._http_client.get(url, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=30.0) as client:
                    response = await client.get(url, headers=headers)
        except httpx.RequestError as exc:
            raise ProviderError(
                f"ZapSign document fetch network error: {exc}",
                error_code=ErrorCode.ZAPSIGN_ERROR,
            ) from exc

        if not response.is_success:
            raise ProviderError.from_response(
                "ZapSign document fetch", response, error_code=ErrorCode.ZAPSIGN_ERROR
            )
        return response.json()
