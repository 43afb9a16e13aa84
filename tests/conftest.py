"""
Pytest Configuration and Fixtures

Provides fixtures for:
- Database sessions (async, in-memory SQLite)
- The FastAPI app with database, settings and provider clients overridden
- A fake GHL client and test data factories
"""
# Secrets are set before the app is imported; Settings is cached on first use
import os
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-for-testing-only")
os.environ.setdefault("ASAAS_WEBHOOK_TOKEN", "asaas-test-token")
os.environ.setdefault("ZAPSIGN_WEBHOOK_SECRET", "zapsign-test-secret")
os.environ.setdefault("GHL_API_KEY", "ghl-test-key")
os.environ.setdefault("GHL_LOCATION_ID", "loc-test")

import itertools
from datetime import datetime
from typing import AsyncGenerator, Optional

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from daycare_messaging.core.auth import create_access_token
from daycare_messaging.core.config import Settings, get_settings
from daycare_messaging.db.database import Base, get_db
from daycare_messaging.db.models import (
    EmailLog,
    MessageStatus,
    WhatsAppMessageLog,
    UserRole,
    AppRole,
)
from daycare_messaging.api.dependencies.providers import get_ghl_client, get_zapsign_client
from daycare_messaging.main import app
from tests.helpers import (
    ADMIN_USER_ID,
    PARENT_USER_ID,
    TEST_DATABASE_URL,
    FakeGhlClient,
    FakeZapSignClient,
    make_settings,
)


_ids = itertools.count(1)


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests"""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def test_settings() -> Settings:
    return make_settings()


@pytest.fixture
def fake_ghl() -> FakeGhlClient:
    return FakeGhlClient()


@pytest.fixture
def fake_zapsign() -> FakeZapSignClient:
    return FakeZapSignClient()


@pytest.fixture(scope="function")
async def test_client(db_session: AsyncSession, test_settings: Settings, fake_ghl, fake_zapsign):
    """Create test client with database, settings and provider overrides"""
    from httpx import AsyncClient, ASGITransport

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_ghl_client] = lambda: fake_ghl
    app.dependency_overrides[get_zapsign_client] = lambda: fake_zapsign

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ============================================================================
# Test Data Factories
# ============================================================================

@pytest.fixture
def email_log_factory(db_session: AsyncSession):
    """Factory for persisted email log rows"""

    async def _create(
        *,
        status: MessageStatus = MessageStatus.ERROR,
        retry_count: int = 0,
        next_retry_at: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
        to_address: Optional[str] = None,
        subject: Optional[str] = "Bem-vindo",
        body_html: Optional[str] = "<p>Olá</p>",
        ghl_contact_id: Optional[str] = None,
        ghl_message_id: Optional[str] = None,
        meta: Optional[dict] = None,
        error_message: Optional[str] = "GHL error: 500",
    ) -> EmailLog:
        n = next(_ids)
        log = EmailLog(
            to_address=to_address if to_address is not None else f"parent{n}@example.com",
            to_name="Maria Souza",
            subject=subject,
            body_html=body_html,
            template_type="welcome",
            status=status,
            retry_count=retry_count,
            next_retry_at=next_retry_at,
            ghl_contact_id=ghl_contact_id,
            ghl_message_id=ghl_message_id,
            meta=meta,
            error_message=error_message if status == MessageStatus.ERROR else None,
        )
        if created_at is not None:
            log.created_at = created_at
        db_session.add(log)
        await db_session.commit()
        await db_session.refresh(log)
        return log

    return _create


@pytest.fixture
def whatsapp_log_factory(db_session: AsyncSession):
    """Factory for persisted WhatsApp log rows"""

    async def _create(
        *,
        status: MessageStatus = MessageStatus.ERROR,
        retry_count: int = 0,
        next_retry_at: Optional[datetime] = None,
        phone: Optional[str] = "(11) 98765-4321",
        message: Optional[str] = "Olá! Sua fatura está disponível.",
        ghl_contact_id: Optional[str] = None,
        ghl_message_id: Optional[str] = None,
    ) -> WhatsAppMessageLog:
        log = WhatsAppMessageLog(
            phone=phone,
            message_preview=(message or "")[:200] or None,
            meta={"full_message": message} if message else {},
            template_type="invoice_notice",
            status=status,
            retry_count=retry_count,
            next_retry_at=next_retry_at,
            ghl_contact_id=ghl_contact_id,
            ghl_message_id=ghl_message_id,
            error_message="GHL error: 500" if status == MessageStatus.ERROR else None,
        )
        db_session.add(log)
        await db_session.commit()
        await db_session.refresh(log)
        return log

    return _create


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> str:
    db_session.add(UserRole(user_id=ADMIN_USER_ID, role=AppRole.ADMIN))
    await db_session.commit()
    return ADMIN_USER_ID


@pytest.fixture
def admin_headers(admin_user: str, test_settings: Settings) -> dict[str, str]:
    token = create_access_token(admin_user, test_settings)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def parent_headers(test_settings: Settings) -> dict[str, str]:
    token = create_access_token(PARENT_USER_ID, test_settings)
    return {"Authorization": f"Bearer {token}"}

