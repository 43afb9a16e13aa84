"""
Celery Tasks for scheduled delivery jobs

Beat runs the same services as the job endpoints, so a deployment without an
external cron still retries failed sends and watches delivery health.
"""
from __future__ import annotations

import asyncio
from contextlib import contextmanager

from daycare_messaging.workers.celery_app import celery_app
from daycare_messaging.core.config import settings
from daycare_messaging.core.logging import get_logger, log_async_operation, set_request_id
from daycare_messaging.db.database import get_task_session
from daycare_messaging.domain.services.channels import GhlClient, get_channel
from daycare_messaging.domain.services.delivery_health_service import DeliveryHealthMonitor
from daycare_messaging.domain.services.notification_service import NotificationService
from daycare_messaging.domain.services.retry_scheduler import RetryScheduler

logger = get_logger(__name__)


@contextmanager
def get_event_loop():
    """
    Context manager for proper event loop handling in Celery tasks.
    Creates a new event loop and ensures proper cleanup to prevent resource leaks.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        yield loop
    finally:
        try:
            # Cancel all pending tasks
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        finally:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()


def run_async(coro):
    """Helper to run async code in sync Celery task with proper cleanup"""
    # One request id per task run, so its log lines can be grouped
    set_request_id()

    with get_event_loop() as loop:
        return loop.run_until_complete(coro)


@log_async_operation("retry_sweep")
async def _retry_sweep(channel_name: str) -> dict:
    async with get_task_session() as db:
        channel = get_channel(channel_name, GhlClient(settings))
        result = await RetryScheduler(db, channel, settings).run_sweep()
        return {"channel": channel_name, **result.to_dict()}


@log_async_operation("email_health_check")
async def _check_email_health() -> dict:
    async with get_task_session() as db:
        monitor = DeliveryHealthMonitor(db, NotificationService(db, settings), settings)
        result = await monitor.run_check()
        return {
            "healthStatus": result.health_status,
            "alertCreated": result.alert_created,
            "metrics": result.metrics.to_dict(),
        }


@celery_app.task(name="daycare_messaging.workers.tasks.retry_failed_emails")
def retry_failed_emails():
    """Retry failed email sends whose backoff has elapsed"""
    return run_async(_retry_sweep("email"))


@celery_app.task(name="daycare_messaging.workers.tasks.retry_failed_whatsapp")
def retry_failed_whatsapp():
    """Retry failed WhatsApp sends whose backoff has elapsed"""
    return run_async(_retry_sweep("whatsapp"))


@celery_app.task(name="daycare_messaging.workers.tasks.check_email_health")
def check_email_health():
    """Alert operators when the email error rate crosses the threshold"""
    return run_async(_check_email_health())
