"""
Store adapters — the monitor's only paths into persistence.

- AuditStore: read events by type/time window, append SECURITY_ALERT
  feedback entries, count events for status reporting
- RuleStore: alert rule configuration (overrides the built-in catalog)
- SettingsStore: channel credentials from compliance_settings

Protocols describe the contracts; the Sql* classes implement them over
SQLAlchemy async sessions. All timestamps are stored as naive UTC.
"""

import hashlib
import json
from datetime import datetime, timezone
from typing import Optional, Protocol, Sequence

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from secmonitor.db.models import ComplianceSetting, SecurityAlertRuleModel, SecurityAuditLog
from secmonitor.monitor.schemas import (
    AlertChannel,
    AlertRule,
    AuditEvent,
    ChannelSettings,
    Severity,
)

logger = structlog.get_logger(__name__)


CHANNEL_SETTING_KEYS = tuple(ChannelSettings.model_fields)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def compute_checksum(event: AuditEvent) -> str:
    """SHA-256 over the canonical entry (id and created_at excluded)."""
    data = event.model_dump(mode="json", exclude={"id", "created_at"})
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


# ── Contracts ──────────────────────────────────────────────────────────


class AuditStore(Protocol):
    """Read/append contract with the security audit log."""

    async def find_events(
        self, event_types: Sequence[str], since: datetime
    ) -> list[AuditEvent]:
        """Events of the given types created at or after `since`, newest first."""
        ...

    async def record_event(self, event: AuditEvent) -> AuditEvent:
        ...

    async def count_events(
        self,
        since: datetime,
        *,
        event_types: Optional[Sequence[str]] = None,
        severity: Optional[Severity] = None,
    ) -> int:
        ...


class RuleStore(Protocol):
    async def load_enabled_rules(self) -> list[AlertRule]:
        ...

    async def list_rules(self) -> list[AlertRule]:
        ...

    async def save_rule(self, rule: AlertRule) -> AlertRule:
        ...

    async def delete_rule(self, rule_id: str) -> bool:
        ...

    async def set_enabled(self, rule_id: str, enabled: bool) -> Optional[AlertRule]:
        ...


class SettingsStore(Protocol):
    async def get_channel_settings(self) -> ChannelSettings:
        ...

    async def save_channel_settings(self, values: ChannelSettings) -> ChannelSettings:
        ...


# ── SQLAlchemy implementations ─────────────────────────────────────────


class SqlAuditStore:
    """AuditStore over the security_audit_log table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def find_events(
        self, event_types: Sequence[str], since: datetime
    ) -> list[AuditEvent]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SecurityAuditLog)
                .where(
                    SecurityAuditLog.event_type.in_(list(event_types)),
                    SecurityAuditLog.created_at >= _naive_utc(since),
                )
                .order_by(SecurityAuditLog.created_at.desc())
            )
            return [self._row_to_event(row) for row in result.scalars().all()]

    async def record_event(self, event: AuditEvent) -> AuditEvent:
        async with self._session_factory() as session:
            row = SecurityAuditLog(
                event_type=event.event_type,
                severity=event.severity.value,
                actor_id=event.actor_id,
                actor_email=event.actor_email,
                action=event.action,
                resource_type=event.resource_type,
                resource_id=event.resource_id,
                details=event.details or None,
                checksum=compute_checksum(event),
                created_at=_naive_utc(event.created_at),
            )
            session.add(row)
            await session.commit()
            await session.refresh(row)

            logger.info(
                "audit_event_recorded",
                event_type=event.event_type,
                severity=event.severity.value,
            )
            return self._row_to_event(row)

    async def count_events(
        self,
        since: datetime,
        *,
        event_types: Optional[Sequence[str]] = None,
        severity: Optional[Severity] = None,
    ) -> int:
        stmt = select(func.count(SecurityAuditLog.id)).where(
            SecurityAuditLog.created_at >= _naive_utc(since)
        )
        if event_types:
            stmt = stmt.where(SecurityAuditLog.event_type.in_(list(event_types)))
        if severity is not None:
            stmt = stmt.where(SecurityAuditLog.severity == severity.value)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return int(result.scalar_one() or 0)

    @staticmethod
    def _row_to_event(row: SecurityAuditLog) -> AuditEvent:
        return AuditEvent(
            id=str(row.id),
            event_type=row.event_type,
            severity=Severity(row.severity),
            created_at=row.created_at,
            actor_id=row.actor_id,
            actor_email=row.actor_email,
            action=row.action or "",
            resource_type=row.resource_type,
            resource_id=row.resource_id,
            details=row.details or {},
        )


class SqlRuleStore:
    """RuleStore over the security_alert_rules table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def load_enabled_rules(self) -> list[AlertRule]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SecurityAlertRuleModel)
                .where(SecurityAlertRuleModel.enabled.is_(True))
                .order_by(SecurityAlertRuleModel.created_at)
            )
            return [self._row_to_rule(r) for r in result.scalars().all()]

    async def list_rules(self) -> list[AlertRule]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SecurityAlertRuleModel).order_by(SecurityAlertRuleModel.created_at)
            )
            return [self._row_to_rule(r) for r in result.scalars().all()]

    async def save_rule(self, rule: AlertRule) -> AlertRule:
        """Insert or update by rule id."""
        async with self._session_factory() as session:
            row = await session.get(SecurityAlertRuleModel, rule.id)
            if row is None:
                row = SecurityAlertRuleModel(id=rule.id)
                session.add(row)
            row.name = rule.name
            row.description = rule.description
            row.event_types = list(rule.event_types)
            row.threshold = rule.threshold
            row.time_window_minutes = rule.time_window_minutes
            row.severity = rule.severity.value
            row.enabled = rule.enabled
            row.channels = [c.value for c in rule.channels]
            row.updated_at = datetime.utcnow()
            await session.commit()

        logger.info("alert_rule_saved", rule_id=rule.id, enabled=rule.enabled)
        return rule

    async def delete_rule(self, rule_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(SecurityAlertRuleModel).where(SecurityAlertRuleModel.id == rule_id)
            )
            await session.commit()
        deleted = result.rowcount > 0
        if deleted:
            logger.info("alert_rule_deleted", rule_id=rule_id)
        return deleted

    async def set_enabled(self, rule_id: str, enabled: bool) -> Optional[AlertRule]:
        async with self._session_factory() as session:
            row = await session.get(SecurityAlertRuleModel, rule_id)
            if row is None:
                return None
            row.enabled = enabled
            row.updated_at = datetime.utcnow()
            await session.commit()
            rule = self._row_to_rule(row)

        logger.info("alert_rule_toggled", rule_id=rule_id, enabled=enabled)
        return rule

    @staticmethod
    def _row_to_rule(row: SecurityAlertRuleModel) -> AlertRule:
        return AlertRule(
            id=row.id,
            name=row.name,
            description=row.description or "",
            event_types=tuple(row.event_types or ()),
            threshold=row.threshold,
            time_window_minutes=row.time_window_minutes,
            severity=Severity(row.severity),
            enabled=row.enabled,
            channels=tuple(AlertChannel(c) for c in (row.channels or ())),
        )


class SqlSettingsStore:
    """SettingsStore over the compliance_settings key/value table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_channel_settings(self) -> ChannelSettings:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ComplianceSetting).where(
                    ComplianceSetting.key.in_(CHANNEL_SETTING_KEYS)
                )
            )
            values = {row.key: row.value for row in result.scalars().all()}
        return ChannelSettings(**values)

    async def save_channel_settings(self, values: ChannelSettings) -> ChannelSettings:
        """Upsert every key that is set; unset keys are left untouched."""
        updates = values.model_dump(exclude_none=True)
        async with self._session_factory() as session:
            for key, value in updates.items():
                row = await session.get(ComplianceSetting, key)
                if row is None:
                    session.add(ComplianceSetting(key=key, value=value))
                else:
                    row.value = value
                    row.updated_at = datetime.utcnow()
            await session.commit()

        logger.info("channel_settings_saved", keys=sorted(updates))
        return await self.get_channel_settings()
