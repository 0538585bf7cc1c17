"""
Alert Dispatcher — fans one alert out to its channels.

1. Resolve channel settings (compliance_settings first, environment second)
2. Send to every channel concurrently; each attempt is bounded and isolated
3. Record a SECURITY_ALERT entry in the audit log (best effort)
"""

import asyncio
from typing import Optional

import structlog

from secmonitor.monitor.channels import ChannelRegistry
from secmonitor.monitor.errors import ChannelDispatchError, FeedbackWriteError
from secmonitor.monitor.schemas import (
    AlertChannel,
    AlertInstance,
    AuditEvent,
    ChannelResult,
    ChannelSettings,
    DispatchReport,
)
from secmonitor.monitor.store import AuditStore, SettingsStore

logger = structlog.get_logger(__name__)


FEEDBACK_EVENT_TYPE = "SECURITY_ALERT"


class AlertDispatcher:
    """Delivers alerts; never raises for channel or feedback failures."""

    def __init__(
        self,
        registry: ChannelRegistry,
        audit_store: AuditStore,
        settings_store: Optional[SettingsStore] = None,
        fallback: Optional[ChannelSettings] = None,
        channel_timeout: float = 10.0,
        feedback_timeout: float = 10.0,
    ):
        self._registry = registry
        self._audit_store = audit_store
        self._settings_store = settings_store
        self._fallback = fallback or ChannelSettings()
        self._channel_timeout = channel_timeout
        self._feedback_timeout = feedback_timeout

    async def resolve_channel_settings(self) -> ChannelSettings:
        if self._settings_store is None:
            return self._fallback
        try:
            stored = await asyncio.wait_for(
                self._settings_store.get_channel_settings(),
                timeout=self._feedback_timeout,
            )
        except Exception as e:
            logger.warning("channel_settings_load_failed", error=str(e))
            return self._fallback
        return stored.merged_over(self._fallback)

    async def dispatch(
        self,
        alert: AlertInstance,
        channel_settings: Optional[ChannelSettings] = None,
    ) -> DispatchReport:
        settings = channel_settings or await self.resolve_channel_settings()

        results = await asyncio.gather(
            *(self._send_one(channel, alert, settings) for channel in alert.rule.channels)
        )
        report = DispatchReport(alert=alert, results=list(results))
        report.feedback_recorded = await self._record_feedback(alert)

        logger.info(
            "alert_dispatched",
            rule_id=alert.rule.id,
            delivered=report.delivered,
            failed=report.failed,
            feedback_recorded=report.feedback_recorded,
        )
        return report

    async def _send_one(
        self,
        channel: AlertChannel,
        alert: AlertInstance,
        settings: ChannelSettings,
    ) -> ChannelResult:
        name = getattr(channel, "value", str(channel))
        sender = self._registry.get(channel)
        if sender is None:
            logger.warning("unknown_channel", channel=name, rule_id=alert.rule.id)
            return ChannelResult(channel=name, success=False, detail=f"Unknown channel: {name}")

        if not sender.is_configured(settings):
            logger.debug("channel_not_configured", channel=name, rule_id=alert.rule.id)
            return ChannelResult(
                channel=name, success=True, skipped=True, detail="Not configured"
            )

        try:
            return await asyncio.wait_for(
                sender.send(alert, settings), timeout=self._channel_timeout
            )
        except Exception as e:
            error = ChannelDispatchError(f"{name} send failed: {e!r}", channel=name, cause=e)
            logger.error("channel_dispatch_error", channel=name, rule_id=alert.rule.id, error=str(error))
            return ChannelResult(channel=name, success=False, detail=str(error))

    async def _record_feedback(self, alert: AlertInstance) -> bool:
        rule = alert.rule
        event = AuditEvent(
            event_type=FEEDBACK_EVENT_TYPE,
            severity=rule.severity,
            action=f"Alert triggered: {rule.name}",
            details={
                "rule_id": rule.id,
                "message": alert.message,
                "event_count": alert.event_count,
                "channels": [c.value for c in rule.channels],
            },
        )
        try:
            await asyncio.wait_for(
                self._audit_store.record_event(event), timeout=self._feedback_timeout
            )
        except Exception as e:
            error = FeedbackWriteError(f"Failed to record alert for rule {rule.id}: {e!r}", cause=e)
            logger.error("feedback_write_failed", rule_id=rule.id, error=str(error))
            return False
        return True
