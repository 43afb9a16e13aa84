"""
Tests for NotificationService - in-app rows and operator push fan-out
"""
import json

import httpx
import pytest
from sqlalchemy import select

from daycare_messaging.core.clock import utcnow
from daycare_messaging.db.models import AppRole, Notification, UserRole
from daycare_messaging.domain.services.notification_service import NotificationService
from tests.helpers import PARENT_USER_ID, make_settings, minutes_ago


def _push_client(status_code: int = 200, seen: list | None = None) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json={})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestNotifyUser:

    @pytest.mark.asyncio
    async def test_creates_unread_row(self, db_session):
        service = NotificationService(db_session, settings=make_settings())

        notification = await service.notify_user(
            PARENT_USER_ID, "Pagamento Confirmado", "Recebemos seu pagamento", "payment_confirmed",
            link="/financeiro",
        )

        assert notification.id is not None
        assert notification.read is False
        assert notification.link == "/financeiro"


class TestNotifyAdmins:

    @pytest.mark.asyncio
    async def test_one_row_per_admin(self, db_session, admin_user):
        db_session.add(UserRole(user_id="admin-2", role=AppRole.ADMIN))
        db_session.add(UserRole(user_id=PARENT_USER_ID, role=AppRole.PARENT))
        await db_session.commit()
        service = NotificationService(db_session, settings=make_settings())

        notifications = await service.notify_admins("Alerta", "texto", "email_health_alert")

        assert sorted(n.user_id for n in notifications) == sorted([admin_user, "admin-2"])
        rows = (await db_session.execute(select(Notification))).scalars().all()
        assert len(rows) == 2

    @pytest.mark.asyncio
    async def test_no_admins(self, db_session):
        service = NotificationService(db_session, settings=make_settings())

        assert await service.notify_admins("Alerta", "texto", "email_health_alert") == []

    @pytest.mark.asyncio
    async def test_push_failure_does_not_block_rows(self, db_session, admin_user):
        settings = make_settings(PUSH_NOTIFICATION_URL="https://push.test/send")
        service = NotificationService(db_session, settings=settings, http_client=_push_client(503))

        notifications = await service.notify_admins("Alerta", "texto", "email_health_alert")

        assert len(notifications) == 1


class TestPush:

    @pytest.mark.asyncio
    async def test_disabled_without_url(self, db_session):
        service = NotificationService(db_session, settings=make_settings())

        assert await service.push("u-1", "t", "m") is False

    @pytest.mark.asyncio
    async def test_sends_payload_with_token(self, db_session):
        seen: list[httpx.Request] = []
        settings = make_settings(
            PUSH_NOTIFICATION_URL="https://push.test/send",
            PUSH_NOTIFICATION_TOKEN="push-token",
        )
        service = NotificationService(db_session, settings=settings, http_client=_push_client(seen=seen))

        assert await service.push("u-1", "Contrato Assinado", "ok", "/contratos") is True

        request = seen[0]
        assert request.headers["Authorization"] == "Bearer push-token"
        assert json.loads(request.content) == {
            "userId": "u-1",
            "title": "Contrato Assinado",
            "body": "ok",
            "url": "/contratos",
        }

    @pytest.mark.asyncio
    async def test_rejected_returns_false(self, db_session):
        settings = make_settings(PUSH_NOTIFICATION_URL="https://push.test/send")
        service = NotificationService(db_session, settings=settings, http_client=_push_client(500))

        assert await service.push("u-1", "t", "m") is False

    @pytest.mark.asyncio
    async def test_transport_error_returns_false(self, db_session):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        settings = make_settings(PUSH_NOTIFICATION_URL="https://push.test/send")
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        service = NotificationService(db_session, settings=settings, http_client=client)

        assert await service.push("u-1", "t", "m") is False


class TestHasRecent:

    @pytest.mark.asyncio
    async def test_window(self, db_session):
        db_session.add(Notification(
            user_id="a", title="t", message="m", type="email_health_alert",
            created_at=minutes_ago(30),
        ))
        await db_session.commit()
        service = NotificationService(db_session, settings=make_settings())

        assert await service.has_recent("email_health_alert", minutes_ago(60)) is True
        assert await service.has_recent("email_health_alert", utcnow()) is False
        assert await service.has_recent("other", minutes_ago(60)) is False
