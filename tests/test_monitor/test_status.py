"""
Tests for the Status Reporter.

Covers:
- critical / warning / healthy classification
- 24h lookback
- rules_active
- Threat level scoring and level boundaries
- Hanging and failing audit stores
"""

import asyncio
from datetime import timedelta

import pytest

from secmonitor.monitor.catalog import DEFAULT_RULES
from secmonitor.monitor.errors import FatalError
from secmonitor.monitor.schemas import (
    HealthStatus,
    Severity,
    ThreatLevelName,
)
from secmonitor.monitor.status import StatusReporter


def _reporter(store, now) -> StatusReporter:
    return StatusReporter(store, clock=lambda: now)


def _seed(store, now, count: int, event_type: str = "PHI_VIEW", severity=Severity.INFO):
    for i in range(count):
        store.add(event_type, now - timedelta(minutes=i + 1), severity=severity)


# ── Classification ─────────────────────────────────────────────────────


class TestStatus:
    @pytest.mark.asyncio
    async def test_one_critical_is_critical(self, audit_store, now):
        _seed(audit_store, now, 1, "EMERGENCY_ACCESS", Severity.CRITICAL)

        result = await _reporter(audit_store, now).status(DEFAULT_RULES)

        assert result.status is HealthStatus.CRITICAL
        assert result.last_24h.critical == 1

    @pytest.mark.asyncio
    async def test_six_warnings_is_warning(self, audit_store, now):
        _seed(audit_store, now, 6, severity=Severity.WARNING)

        result = await _reporter(audit_store, now).status(DEFAULT_RULES)
        assert result.status is HealthStatus.WARNING
        assert result.last_24h.warning == 6

    @pytest.mark.asyncio
    async def test_five_warnings_is_healthy(self, audit_store, now):
        _seed(audit_store, now, 5, severity=Severity.WARNING)

        result = await _reporter(audit_store, now).status(DEFAULT_RULES)
        assert result.status is HealthStatus.HEALTHY

    @pytest.mark.asyncio
    async def test_counts_and_rules_active(self, audit_store, now):
        _seed(audit_store, now, 3)
        _seed(audit_store, now, 2, severity=Severity.WARNING)
        rules = [DEFAULT_RULES[0], DEFAULT_RULES[1].model_copy(update={"enabled": False})]

        result = await _reporter(audit_store, now).status(rules)

        assert result.rules_active == 1
        assert result.last_24h.total == 5
        assert result.last_24h.warning == 2
        assert result.last_24h.critical == 0

    @pytest.mark.asyncio
    async def test_events_older_than_24h_ignored(self, audit_store, now):
        audit_store.add("EMERGENCY_ACCESS", now - timedelta(hours=25), severity=Severity.CRITICAL)

        result = await _reporter(audit_store, now).status(DEFAULT_RULES)
        assert result.status is HealthStatus.HEALTHY
        assert result.last_24h.total == 0

    @pytest.mark.asyncio
    async def test_warning_threshold_configurable(self, audit_store, now):
        _seed(audit_store, now, 3, severity=Severity.WARNING)
        reporter = StatusReporter(audit_store, warning_threshold=2, clock=lambda: now)
        assert (await reporter.status(DEFAULT_RULES)).status is HealthStatus.WARNING


# ── Threat level ───────────────────────────────────────────────────────


class TestThreatLevel:
    @pytest.mark.asyncio
    async def test_quiet_system_is_low(self, audit_store, now):
        level = await _reporter(audit_store, now).threat_level()
        assert level.level is ThreatLevelName.LOW
        assert level.score == 0
        assert level.factors == []

    @pytest.mark.asyncio
    async def test_critical_events_capped_at_forty(self, audit_store, now):
        _seed(audit_store, now, 3, "EMERGENCY_ACCESS", Severity.CRITICAL)

        level = await _reporter(audit_store, now).threat_level()

        assert level.score == 40
        assert level.level is ThreatLevelName.HIGH
        assert level.factors[0].name == "Critical Events"

    @pytest.mark.asyncio
    async def test_warnings_above_five_are_medium(self, audit_store, now):
        _seed(audit_store, now, 12, severity=Severity.WARNING)

        level = await _reporter(audit_store, now).threat_level()

        assert level.score == 20
        assert level.level is ThreatLevelName.MEDIUM

    @pytest.mark.asyncio
    async def test_failed_logins_above_ten(self, audit_store, now):
        _seed(audit_store, now, 15, "LOGIN_FAILED")

        level = await _reporter(audit_store, now).threat_level()

        assert level.score == 10
        assert level.level is ThreatLevelName.LOW
        assert [f.name for f in level.factors] == ["Failed Logins"]

    @pytest.mark.asyncio
    async def test_all_factors_reach_critical(self, audit_store, now):
        _seed(audit_store, now, 3, "EMERGENCY_ACCESS", Severity.CRITICAL)
        _seed(audit_store, now, 20, "PHI_VIEW", Severity.WARNING)
        _seed(audit_store, now, 30, "LOGIN_FAILED")
        _seed(audit_store, now, 20, "PHI_EXPORT")

        level = await _reporter(audit_store, now).threat_level()

        assert level.score == 100
        assert level.level is ThreatLevelName.CRITICAL
        assert {f.name: f.impact for f in level.factors} == {
            "Critical Events": 40,
            "Warning Events": 20,
            "Failed Logins": 25,
            "Data Exports": 15,
        }


# ── Store failures ─────────────────────────────────────────────────────


class HangingCountStore:
    async def count_events(self, since, *, event_types=None, severity=None):
        await asyncio.sleep(3600)
        return 0


class BrokenCountStore:
    async def count_events(self, since, *, event_types=None, severity=None):
        raise ConnectionError("database unavailable")


class TestStoreFailures:
    @pytest.mark.asyncio
    async def test_hanging_count_bounds_status(self, now):
        reporter = StatusReporter(HangingCountStore(), clock=lambda: now, query_timeout=0.05)

        with pytest.raises(FatalError, match="Audit store unavailable"):
            await asyncio.wait_for(reporter.status(DEFAULT_RULES), timeout=2)

    @pytest.mark.asyncio
    async def test_broken_store_fails_status(self, now):
        reporter = StatusReporter(BrokenCountStore(), clock=lambda: now)

        with pytest.raises(FatalError):
            await reporter.status(DEFAULT_RULES)

    @pytest.mark.asyncio
    async def test_hanging_count_degrades_threat_level(self, now):
        reporter = StatusReporter(HangingCountStore(), clock=lambda: now, query_timeout=0.05)

        level = await asyncio.wait_for(reporter.threat_level(), timeout=2)

        assert level.level is ThreatLevelName.LOW
        assert level.score == 0
        assert level.factors == []

    @pytest.mark.asyncio
    async def test_broken_store_degrades_threat_level(self, now):
        level = await StatusReporter(BrokenCountStore(), clock=lambda: now).threat_level()
        assert (level.level, level.score) == (ThreatLevelName.LOW, 0)
