"""
Message Log Service - durable record of every outbound send

Owns every status transition of a message row:

    pending -> sent | error
    error   -> sent | error | failed_permanent

``failed_permanent`` and ``sent`` are terminal for the retry scheduler.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Generic, Optional, TypeVar

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from daycare_messaging.core.clock import utcnow
from daycare_messaging.core.config import Settings, settings as default_settings
from daycare_messaging.core.logging import get_logger
from daycare_messaging.db.models.message_log import MessageLogMixin, MessageStatus
from daycare_messaging.domain.services.channels.ghl_client import DispatchResult

logger = get_logger(__name__)

BACKOFF_BASE = 3
BACKOFF_MULTIPLIER_MINUTES = 5

# Provider delivery callbacks, mapped onto our statuses
DELIVERED_STATUSES = {"delivered", "read"}
SENT_STATUSES = {"sent"}
FAILED_STATUSES = {"failed", "undelivered", "error"}

M = TypeVar("M", bound=MessageLogMixin)


def calculate_backoff_minutes(retry_count: int) -> int:
    """
    Minutes until the next attempt after ``retry_count`` failed retries.

        backoff = 3 ** retry_count * 5   ->  15, 45, 135
    """
    if retry_count < 0:
        retry_count = 0
    return (BACKOFF_BASE ** retry_count) * BACKOFF_MULTIPLIER_MINUTES


class MessageLogService(Generic[M]):
    """
    Service for reading and transitioning message log rows of one channel.

    Every mutating method commits, so each record's outcome is durable on
    its own and a later failure in the same batch never rolls it back.
    """

    def __init__(
        self,
        db: AsyncSession,
        model: type[M],
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.model = model
        self.settings = settings or default_settings

    @property
    def max_retries(self) -> int:
        return self.settings.MAX_RETRIES

    async def get(self, message_id: int) -> Optional[M]:
        return await self.db.get(self.model, message_id)

    async def get_by_provider_message_id(self, provider_message_id: str) -> Optional[M]:
        result = await self.db.execute(
            select(self.model).where(self.model.ghl_message_id == provider_message_id)
        )
        return result.scalars().first()

    async def log_send(
        self,
        result: DispatchResult,
        *,
        contact_id: Optional[str] = None,
        now: Optional[datetime] = None,
        **fields: Any,
    ) -> M:
        """
        Record the first attempt of a logical send.

        A failed first attempt lands in ``error`` with ``retry_count = 0`` and
        no ``next_retry_at``, which makes it eligible on the next sweep.
        """
        now = now or utcnow()
        message = self.model(**fields)
        message.ghl_contact_id = contact_id
        message.retry_count = 0
        message.next_retry_at = None
        if result.success:
            message.status = MessageStatus.SENT
            message.ghl_message_id = result.provider_message_id
            message.sent_at = now
            message.error_message = None
        else:
            message.status = MessageStatus.ERROR
            message.error_message = result.error
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message)

        logger.info(
            "message_logged",
            extra_data={
                "table": self.model.__tablename__,
                "message_id": message.id,
                "status": message.status.value,
                "template_type": message.template_type,
            },
        )
        return message

    async def select_eligible_for_retry(
        self,
        limit: int,
        now: Optional[datetime] = None,
    ) -> list[M]:
        """Records in ``error`` with budget left and a due ``next_retry_at``, oldest first"""
        now = now or utcnow()
        result = await self.db.execute(
            select(self.model)
            .where(
                self.model.status == MessageStatus.ERROR,
                self.model.retry_count < self.max_retries,
                or_(self.model.next_retry_at.is_(None), self.model.next_retry_at <= now),
            )
            .order_by(self.model.created_at.asc(), self.model.id.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def claim_for_retry(self, message: M, now: Optional[datetime] = None) -> bool:
        """
        Lease a record for this sweep.

        Conditional update on the values the record was selected with; a
        concurrent sweep that already claimed or finished it makes this a no-op.
        The lease pushes ``next_retry_at`` forward so the record is not
        selected again while the attempt is in flight.
        """
        now = now or utcnow()
        lease_until = now + timedelta(seconds=self.settings.RETRY_CLAIM_LEASE_SECONDS)
        result = await self.db.execute(
            update(self.model)
            .where(
                self.model.id == message.id,
                self.model.status == MessageStatus.ERROR,
                self.model.retry_count == message.retry_count,
                or_(self.model.next_retry_at.is_(None), self.model.next_retry_at <= now),
            )
            .values(next_retry_at=lease_until)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        if result.rowcount != 1:
            logger.info(
                "retry_claim_lost",
                extra_data={"table": self.model.__tablename__, "message_id": message.id},
            )
            return False

        await self.db.refresh(message)
        return True

    async def record_attempt(
        self,
        message: M,
        result: DispatchResult,
        *,
        contact_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> M:
        """
        Apply the outcome of one retry attempt.

        Every attempt increments ``retry_count``. A failure that exhausts the
        budget moves the record to ``failed_permanent``; otherwise it is
        rescheduled ``3 ** retry_count * 5`` minutes out.
        """
        now = now or utcnow()
        message.retry_count = (message.retry_count or 0) + 1
        message.last_retry_at = now
        if contact_id:
            message.ghl_contact_id = contact_id

        if result.success:
            message.status = MessageStatus.SENT
            message.ghl_message_id = result.provider_message_id
            message.sent_at = now
            message.error_message = None
            message.next_retry_at = None
        elif message.retry_count >= self.max_retries:
            message.status = MessageStatus.FAILED_PERMANENT
            message.error_message = result.error
            message.next_retry_at = None
        else:
            message.status = MessageStatus.ERROR
            message.error_message = result.error
            message.next_retry_at = now + timedelta(
                minutes=calculate_backoff_minutes(message.retry_count)
            )

        await self.db.commit()
        return message

    async def mark_failed_permanent(self, message: M, reason: str) -> M:
        """Terminal failure without an attempt; ``retry_count`` is left as is"""
        message.status = MessageStatus.FAILED_PERMANENT
        message.error_message = reason
        message.next_retry_at = None
        await self.db.commit()
        return message

    async def apply_delivery_status(
        self,
        provider_message_id: str,
        provider_status: str,
        now: Optional[datetime] = None,
    ) -> Optional[M]:
        """
        Apply a provider delivery callback to the matching record.

        Returns the updated record, or None when no record matches or the
        status carries no transition.
        """
        now = now or utcnow()
        status = (provider_status or "").strip().lower()
        message = await self.get_by_provider_message_id(provider_message_id)
        if message is None:
            return None

        if status in DELIVERED_STATUSES:
            message.status = MessageStatus.SENT
            message.delivered_at = message.delivered_at or now
            message.sent_at = message.sent_at or now
            message.error_message = None
            message.next_retry_at = None
        elif status in SENT_STATUSES:
            if message.status != MessageStatus.SENT:
                message.status = MessageStatus.SENT
                message.sent_at = message.sent_at or now
                message.next_retry_at = None
        elif status in FAILED_STATUSES:
            message.error_message = f"GHL status: {provider_status}"
            if (message.retry_count or 0) >= self.max_retries:
                message.status = MessageStatus.FAILED_PERMANENT
                message.next_retry_at = None
            else:
                # immediately eligible for the next sweep
                message.status = MessageStatus.ERROR
                message.next_retry_at = None
        else:
            return None

        meta = dict(message.meta or {})
        meta["provider_status"] = status
        message.meta = meta

        await self.db.commit()
        return message
