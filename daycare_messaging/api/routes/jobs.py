"""
Job API Routes

Cron-triggered endpoints: retry sweeps for each channel and the email
delivery health check. The Celery beat tasks run the same services.
"""
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from daycare_messaging.api.dependencies.providers import get_ghl_client
from daycare_messaging.core.config import Settings, get_settings
from daycare_messaging.core.logging import get_logger, get_request_id
from daycare_messaging.db.database import get_db
from daycare_messaging.domain.services.channels import GhlClient, get_channel
from daycare_messaging.domain.services.delivery_health_service import (
    DeliveryHealthMonitor,
    HealthCheckConfig,
)
from daycare_messaging.domain.services.notification_service import NotificationService
from daycare_messaging.domain.services.retry_scheduler import RetryScheduler

logger = get_logger(__name__)

router = APIRouter()

_NOTHING_TO_RETRY = {
    "email": "No emails to retry",
    "whatsapp": "No WhatsApp messages to retry",
}


async def _run_retry_sweep(
    channel_name: str,
    db: AsyncSession,
    client: GhlClient,
    settings: Settings,
) -> dict[str, Any]:
    scheduler = RetryScheduler(db, get_channel(channel_name, client), settings)
    result = await scheduler.run_sweep()

    if result.processed == 0 and result.skipped_count == 0:
        return {
            "success": True,
            "message": _NOTHING_TO_RETRY[channel_name],
            "processed": 0,
            "requestId": get_request_id(),
        }

    return {
        "success": True,
        "processed": result.processed,
        "successCount": result.success_count,
        "failCount": result.fail_count,
        "skippedCount": result.skipped_count,
        "requestId": get_request_id(),
    }


@router.post("/retry-failed-emails")
async def retry_failed_emails(
    db: AsyncSession = Depends(get_db),
    client: GhlClient = Depends(get_ghl_client),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Retry failed email sends whose backoff has elapsed"""
    return await _run_retry_sweep("email", db, client, settings)


@router.post("/retry-failed-whatsapp")
async def retry_failed_whatsapp(
    db: AsyncSession = Depends(get_db),
    client: GhlClient = Depends(get_ghl_client),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Retry failed WhatsApp sends whose backoff has elapsed"""
    return await _run_retry_sweep("whatsapp", db, client, settings)


async def _health_config(request: Request, settings: Settings) -> HealthCheckConfig:
    """Settings defaults, overridden per key by the request body; any invalid body means defaults"""
    defaults = HealthCheckConfig.from_settings(settings)
    try:
        body = await request.json()
    except ValueError:
        return defaults
    if not isinstance(body, dict):
        return defaults

    overrides = {
        key: body[key]
        for key in ("errorRateThreshold", "minEmailsForAlert", "timeWindowMinutes")
        if body.get(key)
    }
    if not overrides:
        return defaults
    try:
        return HealthCheckConfig.model_validate({**defaults.model_dump(by_alias=True), **overrides})
    except ValidationError as e:
        logger.warning("config_invalid", extra_data={"errors": e.error_count()})
        return defaults


@router.post("/check-email-health")
async def check_email_health(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Compute email delivery metrics and alert operators when the error rate is high"""
    config = await _health_config(request, settings)
    logger.info("config_loaded", extra_data={"config": config.model_dump(by_alias=True)})

    monitor = DeliveryHealthMonitor(db, NotificationService(db, settings), settings)
    result = await monitor.run_check(config)

    return {
        "success": True,
        "healthStatus": result.health_status,
        "alertCreated": result.alert_created,
        "metrics": result.metrics.to_dict(),
        "config": result.config.model_dump(by_alias=True),
        "requestId": get_request_id(),
    }
