"""
Shared test helpers: settings factory and an in-memory GHL client
"""
from datetime import datetime, timedelta
from typing import Any, Optional

from daycare_messaging.core.clock import utcnow
from daycare_messaging.core.config import Settings
from daycare_messaging.domain.services.channels import DispatchResult

# SQLite in memory for fast tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ADMIN_USER_ID = "00000000-0000-0000-0000-00000000a001"
PARENT_USER_ID = "00000000-0000-0000-0000-00000000b001"


def make_settings(**overrides: Any) -> Settings:
    """Settings for tests: real credentials shape, no inter-record delay"""
    values: dict[str, Any] = {
        "DATABASE_URL": TEST_DATABASE_URL,
        "GHL_API_KEY": "ghl-test-key",
        "GHL_LOCATION_ID": "loc-test",
        "GHL_BASE_URL": "https://ghl.test",
        "ZAPSIGN_API_KEY": "zapsign-test-key",
        "ZAPSIGN_BASE_URL": "https://zapsign.test/api/v1",
        "ZAPSIGN_WEBHOOK_SECRET": "zapsign-test-secret",
        "ASAAS_WEBHOOK_TOKEN": "asaas-test-token",
        "JWT_SECRET_KEY": "test-jwt-secret-key-for-testing-only",
        "PUSH_NOTIFICATION_URL": "",
        "APP_PUBLIC_URL": "https://app.test",
        "RETRY_INTER_RECORD_DELAY_SECONDS": 0,
    }
    values.update(overrides)
    return Settings(**values)


class FakeGhlClient:
    """
    In-memory stand-in for GhlClient.

    ``contacts`` maps an e-mail address or normalized phone to a contact id;
    ``send_results`` is consumed in order, then ``default_result`` is used.
    """

    def __init__(
        self,
        contacts: Optional[dict[str, str]] = None,
        send_results: Optional[list[DispatchResult]] = None,
        default_result: Optional[DispatchResult] = None,
    ):
        self.contacts = dict(contacts or {})
        self.send_results = list(send_results or [])
        self.default_result = default_result or DispatchResult.ok("msg-default")
        self.searches: list[dict[str, Any]] = []
        self.created: list[dict[str, Any]] = []
        self.sent: list[dict[str, Any]] = []

    async def search_duplicate(self, *, email: Optional[str] = None, phone: Optional[str] = None):
        self.searches.append({"email": email, "phone": phone})
        return self.contacts.get(email or phone or "")

    async def create_contact(self, **kwargs: Any) -> str:
        self.created.append(kwargs)
        contact_id = f"created-{len(self.created)}"
        key = kwargs.get("email") or kwargs.get("phone")
        if key:
            self.contacts[key] = contact_id
        return contact_id

    async def send_message(self, payload: dict[str, Any]) -> DispatchResult:
        self.sent.append(payload)
        if self.send_results:
            return self.send_results.pop(0)
        return self.default_result


class FakeZapSignClient:
    """Returns ``document`` for every lookup"""

    def __init__(self, document: Optional[dict[str, Any]] = None):
        self.document: dict[str, Any] = document or {"status": "pending", "signers": []}
        self.requested: list[str] = []

    async def get_document(self, doc_token: str) -> dict[str, Any]:
        self.requested.append(doc_token)
        return self.document


def minutes_ago(minutes: int) -> datetime:
    return utcnow() - timedelta(minutes=minutes)
