"""
Shared-secret verification for inbound provider webhooks.

Asaas sends the token configured in its dashboard in ``asaas-access-token``;
ZapSign is configured to send ``x-webhook-secret``. When the corresponding
secret is not configured the check is skipped (a warning is emitted when the
settings load).
"""
import hmac

from fastapi import Depends, Header

from daycare_messaging.core.config import Settings, get_settings
from daycare_messaging.core.exceptions import AuthenticationError
from daycare_messaging.core.logging import get_logger

logger = get_logger(__name__)


def _verify(provider: str, received: str | None, expected: str) -> None:
    if not expected:
        return

    if not received:
        logger.warning("webhook_secret_missing", extra_data={"provider": provider})
        raise AuthenticationError("Missing webhook token")

    # constant-time comparison
    if not hmac.compare_digest(received.encode(), expected.encode()):
        logger.warning("webhook_secret_mismatch", extra_data={"provider": provider})
        raise AuthenticationError("Invalid webhook token")


async def verify_asaas_token(
    asaas_access_token: str | None = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    _verify("asaas", asaas_access_token, settings.ASAAS_WEBHOOK_TOKEN)


async def verify_zapsign_secret(
    x_webhook_secret: str | None = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    _verify("zapsign", x_webhook_secret, settings.ZAPSIGN_WEBHOOK_SECRET)
