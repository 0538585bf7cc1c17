"""
Security Monitor service — one tick end to end, plus the invocation contract.

check:     load rules → evaluate → dispatch every triggered alert → summary
status:    health summary over the last 24h
configure: persist caller-supplied rules to the rule store
"""

from typing import Optional, Sequence, Union

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from secmonitor.config import Settings
from secmonitor.monitor.catalog import RuleCatalog
from secmonitor.monitor.channels import NotificationClient, build_default_registry
from secmonitor.monitor.dispatcher import AlertDispatcher
from secmonitor.monitor.errors import FatalError, InvalidInvocationError
from secmonitor.monitor.evaluator import AfterHoursWindow, Clock, RuleEvaluator
from secmonitor.monitor.schemas import (
    AlertRule,
    AlertSummary,
    ChannelSettings,
    CheckResponse,
    ConfigureResponse,
    MonitorAction,
    MonitorRequest,
    StatusResponse,
    ThreatLevel,
)
from secmonitor.monitor.status import StatusReporter
from secmonitor.monitor.store import (
    RuleStore,
    SqlAuditStore,
    SqlRuleStore,
    SqlSettingsStore,
)

logger = structlog.get_logger(__name__)


MonitorResponse = Union[CheckResponse, StatusResponse, ConfigureResponse]


class SecurityMonitor:
    """Orchestrates catalog, evaluator, dispatcher and status reporter."""

    def __init__(
        self,
        catalog: RuleCatalog,
        evaluator: RuleEvaluator,
        dispatcher: AlertDispatcher,
        reporter: StatusReporter,
        rule_store: Optional[RuleStore] = None,
    ):
        self.catalog = catalog
        self.evaluator = evaluator
        self.dispatcher = dispatcher
        self.reporter = reporter
        self.rule_store = rule_store

    async def check(self, override: Optional[Sequence[AlertRule]] = None) -> CheckResponse:
        """Run one evaluation tick and dispatch every triggered alert."""
        rules = await self.catalog.load_rules(override)
        outcomes = await self.evaluator.evaluate(rules)
        alerts = [o.alert for o in outcomes if o.alert is not None]

        if alerts:
            channel_settings = await self.dispatcher.resolve_channel_settings()
            for alert in alerts:
                await self.dispatcher.dispatch(alert, channel_settings)

        logger.info(
            "monitor_check_complete",
            checked_rules=len(rules),
            alerts_triggered=len(alerts),
        )
        return CheckResponse(
            checked_rules=len(rules),
            alerts_triggered=len(alerts),
            alerts=[
                AlertSummary(
                    rule=a.rule.name,
                    severity=a.rule.severity,
                    message=a.message,
                    event_count=a.event_count,
                )
                for a in alerts
            ],
        )

    async def status(self, override: Optional[Sequence[AlertRule]] = None) -> StatusResponse:
        rules = await self.catalog.load_rules(override)
        return await self.reporter.status(rules)

    async def threat_level(self) -> ThreatLevel:
        return await self.reporter.threat_level()

    async def configure(self, rules: Optional[Sequence[AlertRule]]) -> ConfigureResponse:
        """Persist rules; they replace the defaults on subsequent ticks."""
        if rules is None:
            raise InvalidInvocationError("'rules' is required for action 'configure'")
        if self.rule_store is None:
            raise FatalError("No rule store configured")

        for rule in rules:
            await self.rule_store.save_rule(rule)

        logger.info("rules_configured", count=len(rules))
        return ConfigureResponse(rules_saved=len(rules))

    async def handle(self, request: MonitorRequest) -> MonitorResponse:
        if request.action == MonitorAction.STATUS:
            return await self.status(request.rules)
        if request.action == MonitorAction.CONFIGURE:
            return await self.configure(request.rules)
        return await self.check(request.rules)


def build_monitor(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    clock: Optional[Clock] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    notification_client: Optional[NotificationClient] = None,
) -> SecurityMonitor:
    """Wire a SecurityMonitor over the SQL stores and the built-in channels."""
    audit_store = SqlAuditStore(session_factory)
    rule_store = SqlRuleStore(session_factory)

    fallback = ChannelSettings(
        slack_webhook_url=settings.slack_webhook_url or None,
        pagerduty_routing_key=settings.pagerduty_routing_key or None,
        security_officer_email=settings.security_officer_email or None,
        security_alert_webhook=settings.security_alert_webhook_url or None,
    )

    return SecurityMonitor(
        catalog=RuleCatalog(
            store=rule_store,
            query_timeout=settings.query_timeout_seconds,
        ),
        evaluator=RuleEvaluator(
            audit_store,
            clock=clock,
            after_hours=AfterHoursWindow(
                start_hour=settings.after_hours_start_hour,
                end_hour=settings.after_hours_end_hour,
                tz=settings.after_hours_timezone,
            ),
            recent_seconds=settings.recent_event_seconds,
            query_timeout=settings.query_timeout_seconds,
            default_window_minutes=settings.default_time_window_minutes,
        ),
        dispatcher=AlertDispatcher(
            build_default_registry(
                settings,
                transport=transport,
                notification_client=notification_client,
            ),
            audit_store,
            settings_store=SqlSettingsStore(session_factory),
            fallback=fallback,
            channel_timeout=settings.channel_timeout_seconds,
            feedback_timeout=settings.query_timeout_seconds,
        ),
        reporter=StatusReporter(
            audit_store,
            lookback_hours=settings.status_lookback_hours,
            warning_threshold=settings.status_warning_threshold,
            clock=clock,
            query_timeout=settings.query_timeout_seconds,
        ),
        rule_store=rule_store,
    )
