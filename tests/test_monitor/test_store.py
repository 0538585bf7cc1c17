"""
Tests for the SQLAlchemy store adapters (in-memory SQLite).

Covers:
- Audit events: insert with checksum, windowed reads newest first, counts
- Alert rules: upsert, list, enabled filter, toggle, delete
- Channel settings: key/value upsert and partial updates
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from secmonitor.db.models import SecurityAuditLog
from secmonitor.monitor.schemas import (
    AlertChannel,
    AlertRule,
    AuditEvent,
    ChannelSettings,
    Severity,
)
from secmonitor.monitor.store import (
    SqlAuditStore,
    SqlRuleStore,
    SqlSettingsStore,
    compute_checksum,
)

NOW = datetime(2026, 10, 18, 15, 0, tzinfo=timezone.utc)


def _event(event_type: str, minutes_ago: float, severity=Severity.INFO, **kwargs) -> AuditEvent:
    return AuditEvent(
        event_type=event_type,
        severity=severity,
        created_at=NOW - timedelta(minutes=minutes_ago),
        **kwargs,
    )


def _make_rule(rule_id: str = "failed-logins", **overrides) -> AlertRule:
    data = dict(
        id=rule_id,
        name="Multiple Failed Login Attempts",
        description="5+ failed logins in 15 minutes",
        event_types=("LOGIN_FAILED",),
        threshold=5,
        time_window_minutes=15,
        severity=Severity.CRITICAL,
        channels=(AlertChannel.SLACK, AlertChannel.PAGERDUTY),
    )
    data.update(overrides)
    return AlertRule(**data)


# ── Audit store ────────────────────────────────────────────────────────


class TestSqlAuditStore:
    @pytest.mark.asyncio
    async def test_record_assigns_id_and_checksum(self, session_factory):
        store = SqlAuditStore(session_factory)
        event = _event("SECURITY_ALERT", 0, Severity.CRITICAL, details={"rule_id": "x"})

        stored = await store.record_event(event)

        assert stored.id is not None
        assert stored.details == {"rule_id": "x"}
        async with session_factory() as session:
            row = (await session.execute(select(SecurityAuditLog))).scalar_one()
        assert row.checksum == compute_checksum(event)
        assert len(row.checksum) == 64

    @pytest.mark.asyncio
    async def test_uuid_key_and_json_details_round_trip(self, session_factory):
        store = SqlAuditStore(session_factory)
        details = {"rule_id": "x", "channels": ["slack", "pagerduty"], "count": 3}
        stored = await store.record_event(_event("SECURITY_ALERT", 0, details=details))

        async with session_factory() as session:
            row = (await session.execute(select(SecurityAuditLog))).scalar_one()
        assert isinstance(row.id, uuid.UUID)
        assert str(row.id) == stored.id
        assert row.details == details

        found = await store.find_events(["SECURITY_ALERT"], NOW - timedelta(hours=1))
        assert found[0].details == details

    @pytest.mark.asyncio
    async def test_find_filters_type_and_window(self, session_factory):
        store = SqlAuditStore(session_factory)
        await store.record_event(_event("LOGIN_FAILED", 5))
        await store.record_event(_event("LOGIN_FAILED", 30))
        await store.record_event(_event("LOGIN_SUCCESS", 1))
        await store.record_event(_event("PHI_VIEW", 2))

        events = await store.find_events(
            ["LOGIN_FAILED", "PHI_VIEW"], NOW - timedelta(minutes=15)
        )

        assert [e.event_type for e in events] == ["PHI_VIEW", "LOGIN_FAILED"]

    @pytest.mark.asyncio
    async def test_find_returns_aware_utc_newest_first(self, session_factory):
        store = SqlAuditStore(session_factory)
        for minutes in (10, 1, 5):
            await store.record_event(_event("LOGIN_FAILED", minutes))

        events = await store.find_events(["LOGIN_FAILED"], NOW - timedelta(hours=1))

        assert [e.created_at for e in events] == [
            NOW - timedelta(minutes=1),
            NOW - timedelta(minutes=5),
            NOW - timedelta(minutes=10),
        ]
        assert all(e.created_at.tzinfo is not None for e in events)

    @pytest.mark.asyncio
    async def test_since_in_other_timezone(self, session_factory):
        store = SqlAuditStore(session_factory)
        await store.record_event(_event("LOGIN_FAILED", 5))

        plus_two = timezone(timedelta(hours=2))
        since = (NOW - timedelta(minutes=10)).astimezone(plus_two)
        assert len(await store.find_events(["LOGIN_FAILED"], since)) == 1

    @pytest.mark.asyncio
    async def test_count_events(self, session_factory):
        store = SqlAuditStore(session_factory)
        await store.record_event(_event("LOGIN_FAILED", 1, Severity.WARNING))
        await store.record_event(_event("LOGIN_FAILED", 2, Severity.WARNING))
        await store.record_event(_event("EMERGENCY_ACCESS", 3, Severity.CRITICAL))
        await store.record_event(_event("EMERGENCY_ACCESS", 60 * 30, Severity.CRITICAL))

        since = NOW - timedelta(hours=24)
        assert await store.count_events(since) == 3
        assert await store.count_events(since, severity=Severity.CRITICAL) == 1
        assert await store.count_events(since, event_types=["LOGIN_FAILED"]) == 2


def test_checksum_ignores_id_and_timestamp():
    a = _event("PHI_EXPORT", 1, actor_id="u1")
    b = a.model_copy(update={"id": "other", "created_at": NOW})
    c = a.model_copy(update={"actor_id": "u2"})
    assert compute_checksum(a) == compute_checksum(b)
    assert compute_checksum(a) != compute_checksum(c)


# ── Rule store ─────────────────────────────────────────────────────────


class TestSqlRuleStore:
    @pytest.mark.asyncio
    async def test_save_and_list_round_trip(self, session_factory):
        store = SqlRuleStore(session_factory)
        rule = _make_rule()

        await store.save_rule(rule)

        assert await store.list_rules() == [rule]

    @pytest.mark.asyncio
    async def test_save_upserts(self, session_factory):
        store = SqlRuleStore(session_factory)
        await store.save_rule(_make_rule())
        await store.save_rule(_make_rule(threshold=10, channels=(AlertChannel.WEBHOOK,)))

        rules = await store.list_rules()
        assert len(rules) == 1
        assert rules[0].threshold == 10
        assert rules[0].channels == (AlertChannel.WEBHOOK,)

    @pytest.mark.asyncio
    async def test_load_enabled_and_toggle(self, session_factory):
        store = SqlRuleStore(session_factory)
        await store.save_rule(_make_rule("a"))
        await store.save_rule(_make_rule("b", enabled=False))

        assert [r.id for r in await store.load_enabled_rules()] == ["a"]

        toggled = await store.set_enabled("b", True)
        assert toggled.enabled is True
        assert {r.id for r in await store.load_enabled_rules()} == {"a", "b"}

    @pytest.mark.asyncio
    async def test_toggle_missing_rule(self, session_factory):
        assert await SqlRuleStore(session_factory).set_enabled("nope", True) is None

    @pytest.mark.asyncio
    async def test_delete(self, session_factory):
        store = SqlRuleStore(session_factory)
        await store.save_rule(_make_rule())

        assert await store.delete_rule("failed-logins") is True
        assert await store.delete_rule("failed-logins") is False
        assert await store.list_rules() == []

    @pytest.mark.asyncio
    async def test_immediate_rule_keeps_null_threshold(self, session_factory):
        store = SqlRuleStore(session_factory)
        await store.save_rule(_make_rule(threshold=None, time_window_minutes=None))

        (rule,) = await store.list_rules()
        assert rule.threshold is None
        assert rule.is_threshold_rule is False


# ── Settings store ─────────────────────────────────────────────────────


class TestSqlSettingsStore:
    @pytest.mark.asyncio
    async def test_empty_table(self, session_factory):
        assert await SqlSettingsStore(session_factory).get_channel_settings() == ChannelSettings()

    @pytest.mark.asyncio
    async def test_save_and_partial_update(self, session_factory):
        store = SqlSettingsStore(session_factory)
        await store.save_channel_settings(ChannelSettings(
            slack_webhook_url="https://hooks.slack.test/a",
            security_officer_email="officer@example.com",
        ))

        result = await store.save_channel_settings(
            ChannelSettings(slack_webhook_url="https://hooks.slack.test/b")
        )

        assert result.slack_webhook_url == "https://hooks.slack.test/b"
        assert result.security_officer_email == "officer@example.com"
        assert result.pagerduty_routing_key is None
