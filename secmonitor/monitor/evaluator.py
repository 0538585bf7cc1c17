"""
Rule Evaluator — matches audit events against alert rules.

Per rule (sequential, order-independent):
1. Query the rule's event types over its time window
2. After-hours rule: any match while off-hours triggers with all events
3. Threshold rules: trigger when count >= threshold
4. Immediate-trigger rules: trigger on events from the last minute

Each rule yields a RuleOutcome; a failed query only affects its own rule.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Sequence
from zoneinfo import ZoneInfo

import structlog

from secmonitor.monitor.catalog import AFTER_HOURS_RULE_ID
from secmonitor.monitor.errors import QueryError
from secmonitor.monitor.schemas import (
    DEFAULT_TIME_WINDOW_MINUTES,
    AlertInstance,
    AlertRule,
    AuditEvent,
    RuleOutcome,
)
from secmonitor.monitor.store import AuditStore

logger = structlog.get_logger(__name__)


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AfterHoursWindow:
    """
    Off-hours as an hour range in a reference timezone.

    start > end wraps midnight (hour >= start or hour < end);
    start < end means start <= hour < end.
    """

    def __init__(self, start_hour: int = 23, end_hour: int = 13, tz: str = "UTC"):
        self.start_hour = start_hour
        self.end_hour = end_hour
        self.tz = ZoneInfo(tz)

    def contains(self, moment: datetime) -> bool:
        hour = moment.astimezone(self.tz).hour
        if self.start_hour > self.end_hour:
            return hour >= self.start_hour or hour < self.end_hour
        return self.start_hour <= hour < self.end_hour


class RuleEvaluator:
    """Evaluates enabled rules against the audit store for one tick."""

    def __init__(
        self,
        store: AuditStore,
        clock: Optional[Clock] = None,
        after_hours: Optional[AfterHoursWindow] = None,
        recent_seconds: int = 60,
        query_timeout: float = 10.0,
        default_window_minutes: int = DEFAULT_TIME_WINDOW_MINUTES,
    ):
        self._store = store
        self._clock = clock or utc_now
        self._after_hours = after_hours or AfterHoursWindow()
        self._recent = timedelta(seconds=recent_seconds)
        self._query_timeout = query_timeout
        self._default_window = default_window_minutes

    def is_after_hours(self, now: Optional[datetime] = None) -> bool:
        return self._after_hours.contains(now or self._clock())

    async def evaluate(self, rules: Sequence[AlertRule]) -> list[RuleOutcome]:
        """Evaluate every enabled rule. Never raises for per-rule failures."""
        now = self._clock()
        outcomes = [
            await self.evaluate_rule(rule, now=now)
            for rule in rules
            if rule.enabled
        ]

        logger.info(
            "rules_evaluated",
            checked=len(outcomes),
            triggered=sum(1 for o in outcomes if o.triggered),
            failed=sum(1 for o in outcomes if o.failed),
        )
        return outcomes

    async def evaluate_rule(
        self, rule: AlertRule, now: Optional[datetime] = None
    ) -> RuleOutcome:
        now = now or self._clock()
        window = rule.time_window_minutes or self._default_window
        since = now - timedelta(minutes=window)

        try:
            events = await asyncio.wait_for(
                self._store.find_events(rule.event_types, since),
                timeout=self._query_timeout,
            )
        except Exception as e:
            error = QueryError(
                f"Audit query failed for rule {rule.id}: {e!r}",
                rule_id=rule.id,
                cause=e,
            )
            logger.error("rule_query_failed", rule_id=rule.id, error=str(error))
            return RuleOutcome(rule=rule, error=str(error))

        alert = self._match(rule, events, now, window)
        if alert is not None:
            logger.info(
                "rule_triggered",
                rule_id=rule.id,
                severity=rule.severity.value,
                event_count=alert.event_count,
            )
        return RuleOutcome(rule=rule, alert=alert)

    def _match(
        self,
        rule: AlertRule,
        events: list[AuditEvent],
        now: datetime,
        window: int,
    ) -> Optional[AlertInstance]:
        if not events:
            return None

        if rule.id == AFTER_HOURS_RULE_ID and self.is_after_hours(now):
            return AlertInstance(
                rule=rule,
                events=events,
                message=f"{len(events)} PHI access event(s) detected outside business hours",
                triggered_at=now,
            )

        if rule.is_threshold_rule:
            if len(events) < rule.threshold:
                return None
            return AlertInstance(
                rule=rule,
                events=events[: rule.threshold],
                message=(
                    f"Threshold exceeded: {len(events)} events in the last "
                    f"{window} minutes (threshold: {rule.threshold})"
                ),
                triggered_at=now,
            )

        cutoff = now - self._recent
        recent = [e for e in events if e.created_at >= cutoff]
        if not recent:
            return None
        return AlertInstance(
            rule=rule,
            events=recent,
            message=f"{len(recent)} {'/'.join(rule.event_types)} event(s) detected",
            triggered_at=now,
        )
