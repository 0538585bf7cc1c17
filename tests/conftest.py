"""
Test fixtures for the security monitor.

Provides:
- Fixed clock inside business hours (and one outside)
- In-memory audit store and notification client fakes
- httpx MockTransport that records outbound channel calls
- Async SQLite (aiosqlite, in-memory) engine + session factory
"""

import json
import uuid
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional, Sequence

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from secmonitor.db.engine import Base
from secmonitor.db.models import (  # noqa: F401  register all models
    ComplianceSetting,
    SecurityAlertRuleModel,
    SecurityAuditLog,
)
from secmonitor.monitor.schemas import AuditEvent, ChannelSettings, Severity

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

# 15:00 UTC is inside business hours; 02:00 UTC is not
BUSINESS_HOURS_NOW = datetime(2026, 10, 18, 15, 0, tzinfo=timezone.utc)
AFTER_HOURS_NOW = datetime(2026, 10, 18, 2, 0, tzinfo=timezone.utc)

SLACK_URL = "https://hooks.slack.test/services/T000/B000/XXXX"
WEBHOOK_URL = "https://siem.test/hooks/security"


# ── Fakes ──────────────────────────────────────────────────────────────


class InMemoryAuditStore:
    """AuditStore over a list; records every feedback write."""

    def __init__(self, events: Sequence[AuditEvent] = ()):
        self.events: list[AuditEvent] = list(events)
        self.recorded: list[AuditEvent] = []

    def add(self, event_type: str, at: datetime, severity: Severity = Severity.INFO, **kwargs):
        event = AuditEvent(
            id=str(uuid.uuid4()),
            event_type=event_type,
            severity=severity,
            created_at=at,
            **kwargs,
        )
        self.events.append(event)
        return event

    async def find_events(self, event_types, since):
        matched = [
            e for e in self.events
            if e.event_type in event_types and e.created_at >= since
        ]
        return sorted(matched, key=lambda e: e.created_at, reverse=True)

    async def record_event(self, event):
        stored = event.model_copy(update={"id": str(uuid.uuid4())})
        self.recorded.append(stored)
        return stored

    async def count_events(self, since, *, event_types=None, severity=None):
        return sum(
            1 for e in self.events
            if e.created_at >= since
            and (not event_types or e.event_type in event_types)
            and (severity is None or e.severity == severity)
        )


class RecordingNotificationClient:
    def __init__(self, fail: bool = False):
        self.sent: list[dict] = []
        self.fail = fail

    async def send_email(self, to, subject, html_body):
        if self.fail:
            raise ConnectionError("SMTP unavailable")
        self.sent.append({"to": to, "subject": subject, "html": html_body})


class RecordingTransport:
    """MockTransport wrapper: records requests, answers per host."""

    def __init__(self, status_by_host: Optional[dict[str, int]] = None):
        self.status_by_host = status_by_host or {}
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status = self.status_by_host.get(request.url.host, 200)
        return httpx.Response(status, json={"status": "ok" if status < 400 else "error"})

    def hosts(self) -> list[str]:
        return [r.url.host for r in self.requests]

    def body_for(self, host: str) -> dict:
        for r in self.requests:
            if r.url.host == host:
                return json.loads(r.content)
        raise AssertionError(f"no request sent to {host}")


# ── Fixtures ───────────────────────────────────────────────────────────


@pytest.fixture
def now() -> datetime:
    return BUSINESS_HOURS_NOW


@pytest.fixture
def audit_store() -> InMemoryAuditStore:
    return InMemoryAuditStore()


@pytest.fixture
def notifier() -> RecordingNotificationClient:
    return RecordingNotificationClient()


@pytest.fixture
def recorder() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def channel_settings() -> ChannelSettings:
    return ChannelSettings(
        slack_webhook_url=SLACK_URL,
        pagerduty_routing_key="R0UT1NGKEY0000000000000000000000",
        security_officer_email="officer@example.com",
        security_alert_webhook=WEBHOOK_URL,
    )


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine with all tables."""
    eng = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def after_hours_now() -> datetime:
    return AFTER_HOURS_NOW
