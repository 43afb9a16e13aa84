"""
Raw webhook body reading shared by the provider endpoints
"""
from typing import Any

from fastapi import Request

from daycare_messaging.core.logging import get_logger

logger = get_logger(__name__)


async def read_json_body(request: Request, provider: str) -> Any:
    """Parsed JSON body, or None when it is not valid JSON (acknowledged by the caller)"""
    try:
        return await request.json()
    except ValueError:
        logger.warning("webhook_invalid_json", extra_data={"provider": provider})
        return None
