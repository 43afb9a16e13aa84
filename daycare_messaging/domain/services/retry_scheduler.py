"""
Retry Scheduler - one sweep over failed messages of a single channel

Invoked by the retry endpoints and the Celery beat tasks. A sweep is
sequential: at most ``RETRY_BATCH_SIZE`` records, oldest first, with a fixed
delay between provider calls to stay under provider rate limits.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from daycare_messaging.core.clock import utcnow
from daycare_messaging.core.config import Settings
from daycare_messaging.core.logging import get_logger
from daycare_messaging.db.models.message_log import MessageLogMixin, MessageStatus
from daycare_messaging.domain.services.channels import DispatchResult, RetryableChannel
from daycare_messaging.domain.services.message_log_service import MessageLogService

logger = get_logger(__name__)

MALFORMED_REASON = "Missing required fields for retry"
CONTACT_NOT_FOUND_REASON = "Contact not found in GHL"


@dataclass
class SweepResult:
    processed: int = 0
    success_count: int = 0
    fail_count: int = 0
    skipped_count: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class RetryScheduler:
    """
    Drives failed records of one channel through another attempt.

    Per record: malformed check, claim, contact resolution (cached id first),
    one dispatch, outcome bookkeeping. A failure on one record is recorded
    against that record and never aborts the batch.
    """

    def __init__(
        self,
        db: AsyncSession,
        channel: RetryableChannel,
        settings: Settings,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.channel = channel
        self.settings = settings
        self.messages = MessageLogService(db, channel.model, settings)
        self._sleep = sleep
        self._clock = clock
        self._provider_calls = 0

    async def run_sweep(self) -> SweepResult:
        # a misconfigured deployment fails every call, before any record is read
        self.settings.require_ghl_credentials()

        result = SweepResult()
        self._provider_calls = 0
        now = self._clock()
        records = await self.messages.select_eligible_for_retry(
            limit=self.settings.RETRY_BATCH_SIZE, now=now
        )
        record_ids = [record.id for record in records]

        logger.info(
            "job_started",
            extra_data={"channel": self.channel.name, "eligible": len(records)},
        )
        if not records:
            return result

        rolled_back = False
        for record_id, record in zip(record_ids, records):
            try:
                if rolled_back:
                    await self.db.refresh(record)
                outcome = await self._process_record(record)
            except Exception as exc:
                # persistence failure on this record only
                await self.db.rollback()
                rolled_back = True
                logger.error(
                    "retry_record_failed",
                    extra_data={"channel": self.channel.name, "message_id": record_id, "error": str(exc)},
                    exc_info=True,
                )
                outcome = False

            if outcome is None:
                result.skipped_count += 1
                continue
            result.processed += 1
            if outcome:
                result.success_count += 1
            else:
                result.fail_count += 1

        logger.info(
            "job_completed",
            extra_data={"channel": self.channel.name, **result.to_dict()},
        )
        return result

    async def _process_record(self, record: MessageLogMixin) -> Optional[bool]:
        """True on success, False on failure, None when another sweep owns the record"""
        record_id = record.id

        if not self.channel.is_complete(record):
            await self.messages.mark_failed_permanent(record, MALFORMED_REASON)
            logger.warning(
                f"{self.channel.name}_malformed",
                extra_data={"message_id": record_id, "retry_count": record.retry_count},
            )
            return False

        if not await self.messages.claim_for_retry(record, now=self._clock()):
            return None

        try:
            dispatch_result, contact_id = await self._attempt(record)
        except Exception as exc:
            logger.error(
                "retry_attempt_exception",
                extra_data={"channel": self.channel.name, "message_id": record_id, "error": str(exc)},
                exc_info=True,
            )
            dispatch_result, contact_id = DispatchResult.failed(str(exc) or type(exc).__name__), None

        await self.messages.record_attempt(
            record, dispatch_result, contact_id=contact_id, now=self._clock()
        )
        self._log_outcome(record, dispatch_result)
        return dispatch_result.success

    async def _attempt(self, record: MessageLogMixin) -> tuple[DispatchResult, Optional[str]]:
        # the delay separates provider calls, so records without one do not wait
        if self._provider_calls and self.settings.RETRY_INTER_RECORD_DELAY_SECONDS > 0:
            await self._sleep(self.settings.RETRY_INTER_RECORD_DELAY_SECONDS)
        self._provider_calls += 1

        destination = self.channel.destination(record)
        contact = await self.channel.resolve_contact(destination, record.ghl_contact_id)
        if contact is None:
            return DispatchResult.failed(CONTACT_NOT_FOUND_REASON), None
        result = await self.channel.dispatch(contact, destination, self.channel.content(record))
        return result, contact.contact_id

    def _log_outcome(self, record: MessageLogMixin, result: DispatchResult) -> None:
        if result.success:
            logger.info(
                "retry_send_success",
                extra_data={
                    "channel": self.channel.name,
                    "message_id": record.id,
                    "retry_count": record.retry_count,
                    "provider_message_id": result.provider_message_id,
                },
            )
        elif record.status == MessageStatus.FAILED_PERMANENT:
            logger.warning(
                f"{self.channel.name}_max_retries",
                extra_data={
                    "message_id": record.id,
                    "retry_count": record.retry_count,
                    "error": result.error,
                },
            )
        else:
            logger.info(
                "retry_scheduled",
                extra_data={
                    "channel": self.channel.name,
                    "message_id": record.id,
                    "retry_count": record.retry_count,
                    "next_retry_at": record.next_retry_at,
                    "error": result.error,
                },
            )
