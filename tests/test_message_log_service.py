"""
Tests for the message log - backoff schedule and status transitions
"""
from datetime import datetime, timedelta

import pytest
from hypothesis import given, strategies as st

from daycare_messaging.db.models.message_log import EmailLog, MessageStatus, WhatsAppMessageLog
from daycare_messaging.domain.services.channels import DispatchResult
from daycare_messaging.domain.services.message_log_service import (
    MessageLogService,
    calculate_backoff_minutes,
)

NOW = datetime(2026, 3, 10, 12, 0, 0)


class TestBackoff:
    """Backoff schedule: 3 ** n * 5 minutes"""

    @pytest.mark.unit
    @pytest.mark.parametrize("retry_count,expected", [(1, 15), (2, 45), (3, 135)])
    def test_backoff_schedule(self, retry_count, expected):
        assert calculate_backoff_minutes(retry_count) == expected

    @pytest.mark.unit
    def test_negative_count_treated_as_zero(self):
        assert calculate_backoff_minutes(-1) == 5

    @pytest.mark.unit
    @given(st.integers(min_value=0, max_value=20))
    def test_backoff_triples_each_attempt(self, n):
        assert calculate_backoff_minutes(n + 1) == 3 * calculate_backoff_minutes(n)


class TestLogSend:
    """First attempt of a logical send"""

    @pytest.mark.asyncio
    async def test_successful_send_is_sent_with_no_retry_state(self, db_session, test_settings):
        service = MessageLogService(db_session, EmailLog, test_settings)

        log = await service.log_send(
            DispatchResult.ok("msg-1"),
            contact_id="c-1",
            now=NOW,
            to_address="parent@example.com",
            subject="Oi",
            body_html="<p>Oi</p>",
        )

        assert log.id is not None
        assert log.status == MessageStatus.SENT
        assert log.retry_count == 0
        assert log.next_retry_at is None
        assert log.ghl_message_id == "msg-1"
        assert log.ghl_contact_id == "c-1"
        assert log.sent_at == NOW
        assert log.provider == "ghl"
        assert log.direction == "outbound"

    @pytest.mark.asyncio
    async def test_failed_send_is_immediately_eligible(self, db_session, test_settings):
        service = MessageLogService(db_session, EmailLog, test_settings)

        log = await service.log_send(
            DispatchResult.failed("GHL error: 503"),
            to_address="parent@example.com",
            subject="Oi",
            body_html="<p>Oi</p>",
        )

        assert log.status == MessageStatus.ERROR
        assert log.error_message == "GHL error: 503"
        assert log.retry_count == 0
        eligible = await service.select_eligible_for_retry(limit=10)
        assert [m.id for m in eligible] == [log.id]


class TestSelectEligible:
    """Retry candidate selection"""

    @pytest.mark.asyncio
    async def test_excludes_terminal_exhausted_and_not_due(
        self, db_session, test_settings, email_log_factory
    ):
        due = await email_log_factory(retry_count=1, next_retry_at=NOW - timedelta(minutes=1))
        never_scheduled = await email_log_factory()
        await email_log_factory(retry_count=1, next_retry_at=NOW + timedelta(minutes=5))
        await email_log_factory(retry_count=3)
        await email_log_factory(status=MessageStatus.SENT)
        await email_log_factory(status=MessageStatus.FAILED_PERMANENT, retry_count=3)

        service = MessageLogService(db_session, EmailLog, test_settings)
        eligible = await service.select_eligible_for_retry(limit=10, now=NOW)

        assert {m.id for m in eligible} == {due.id, never_scheduled.id}

    @pytest.mark.asyncio
    async def test_oldest_first_and_limited(self, db_session, test_settings, email_log_factory):
        newest = await email_log_factory(created_at=NOW - timedelta(minutes=1))
        oldest = await email_log_factory(created_at=NOW - timedelta(minutes=30))
        middle = await email_log_factory(created_at=NOW - timedelta(minutes=10))

        service = MessageLogService(db_session, EmailLog, test_settings)
        eligible = await service.select_eligible_for_retry(limit=2, now=NOW)

        assert [m.id for m in eligible] == [oldest.id, middle.id]
        assert newest.id not in [m.id for m in eligible]


class TestClaim:
    """Per-record lease"""

    @pytest.mark.asyncio
    async def test_second_claim_is_a_noop(self, db_session, test_settings, email_log_factory):
        log = await email_log_factory()
        service = MessageLogService(db_session, EmailLog, test_settings)

        assert await service.claim_for_retry(log, now=NOW) is True
        assert log.next_retry_at == NOW + timedelta(seconds=test_settings.RETRY_CLAIM_LEASE_SECONDS)
        assert await service.claim_for_retry(log, now=NOW) is False

    @pytest.mark.asyncio
    async def test_claimed_record_is_not_selected_again(
        self, db_session, test_settings, email_log_factory
    ):
        log = await email_log_factory()
        service = MessageLogService(db_session, EmailLog, test_settings)
        await service.claim_for_retry(log, now=NOW)

        assert await service.select_eligible_for_retry(limit=10, now=NOW) == []

    @pytest.mark.asyncio
    async def test_claim_fails_after_status_changed(self, db_session, test_settings, email_log_factory):
        log = await email_log_factory()
        service = MessageLogService(db_session, EmailLog, test_settings)
        await service.mark_failed_permanent(log, "gone")

        assert await service.claim_for_retry(log, now=NOW) is False


class TestRecordAttempt:
    """Outcome bookkeeping for one retry"""

    @pytest.mark.asyncio
    async def test_failure_schedules_backoff(self, db_session, test_settings, email_log_factory):
        log = await email_log_factory()
        service = MessageLogService(db_session, EmailLog, test_settings)

        await service.record_attempt(log, DispatchResult.failed("GHL error: 500"), now=NOW)

        assert log.status == MessageStatus.ERROR
        assert log.retry_count == 1
        assert log.last_retry_at == NOW
        assert log.next_retry_at == NOW + timedelta(minutes=15)
        assert log.error_message == "GHL error: 500"

    @pytest.mark.asyncio
    async def test_failure_on_last_attempt_is_terminal(
        self, db_session, test_settings, email_log_factory
    ):
        log = await email_log_factory(retry_count=2)
        service = MessageLogService(db_session, EmailLog, test_settings)

        await service.record_attempt(log, DispatchResult.failed("GHL error: 429"), now=NOW)

        assert log.status == MessageStatus.FAILED_PERMANENT
        assert log.retry_count == 3
        assert log.next_retry_at is None
        assert log.error_message == "GHL error: 429"

    @pytest.mark.asyncio
    async def test_success_clears_error_and_caches_contact(
        self, db_session, test_settings, email_log_factory
    ):
        log = await email_log_factory(retry_count=1, next_retry_at=NOW)
        service = MessageLogService(db_session, EmailLog, test_settings)

        await service.record_attempt(log, DispatchResult.ok("msg-9"), contact_id="c-9", now=NOW)

        assert log.status == MessageStatus.SENT
        assert log.retry_count == 2
        assert log.error_message is None
        assert log.next_retry_at is None
        assert log.ghl_message_id == "msg-9"
        assert log.ghl_contact_id == "c-9"
        assert log.sent_at == NOW

    @pytest.mark.asyncio
    async def test_mark_failed_permanent_keeps_retry_count(
        self, db_session, test_settings, email_log_factory
    ):
        log = await email_log_factory(retry_count=1)
        service = MessageLogService(db_session, EmailLog, test_settings)

        await service.mark_failed_permanent(log, "Missing required fields for retry")

        assert log.status == MessageStatus.FAILED_PERMANENT
        assert log.retry_count == 1
        assert log.is_terminal


class TestDeliveryStatus:
    """Provider delivery callbacks"""

    @pytest.mark.asyncio
    async def test_delivered_marks_sent_and_delivered(
        self, db_session, test_settings, whatsapp_log_factory
    ):
        log = await whatsapp_log_factory(status=MessageStatus.SENT, ghl_message_id="m-1")
        service = MessageLogService(db_session, WhatsAppMessageLog, test_settings)

        updated = await service.apply_delivery_status("m-1", "delivered", now=NOW)

        assert updated.id == log.id
        assert updated.status == MessageStatus.SENT
        assert updated.delivered_at == NOW
        assert updated.meta["provider_status"] == "delivered"

    @pytest.mark.asyncio
    async def test_failed_callback_makes_record_eligible(
        self, db_session, test_settings, whatsapp_log_factory
    ):
        await whatsapp_log_factory(status=MessageStatus.SENT, ghl_message_id="m-2")
        service = MessageLogService(db_session, WhatsAppMessageLog, test_settings)

        updated = await service.apply_delivery_status("m-2", "undelivered", now=NOW)

        assert updated.status == MessageStatus.ERROR
        assert updated.error_message == "GHL status: undelivered"
        assert updated.next_retry_at is None

    @pytest.mark.asyncio
    async def test_failed_callback_with_spent_budget_is_terminal(
        self, db_session, test_settings, whatsapp_log_factory
    ):
        await whatsapp_log_factory(status=MessageStatus.SENT, retry_count=3, ghl_message_id="m-3")
        service = MessageLogService(db_session, WhatsAppMessageLog, test_settings)

        updated = await service.apply_delivery_status("m-3", "failed", now=NOW)

        assert updated.status == MessageStatus.FAILED_PERMANENT

    @pytest.mark.asyncio
    async def test_unknown_status_or_id_is_ignored(
        self, db_session, test_settings, whatsapp_log_factory
    ):
        await whatsapp_log_factory(status=MessageStatus.SENT, ghl_message_id="m-4")
        service = MessageLogService(db_session, WhatsAppMessageLog, test_settings)

        assert await service.apply_delivery_status("m-4", "queued", now=NOW) is None
        assert await service.apply_delivery_status("nope", "delivered", now=NOW) is None
