"""
Rule Catalog — resolves the set of alert rules for one tick.

Resolution order:
1. Explicit override supplied by the caller (used even when empty)
2. Enabled rules from the configuration store (only when non-empty)
3. Built-in DEFAULT_RULES
"""

import asyncio
from typing import Optional, Sequence

import structlog

from secmonitor.monitor.errors import FatalError
from secmonitor.monitor.schemas import AlertChannel, AlertRule, Severity
from secmonitor.monitor.store import RuleStore

logger = structlog.get_logger(__name__)


AFTER_HOURS_RULE_ID = "after-hours-phi"


DEFAULT_RULES: tuple[AlertRule, ...] = (
    AlertRule(
        id="failed-logins",
        name="Multiple Failed Login Attempts",
        description="Alert when 5+ failed logins occur within 15 minutes",
        event_types=("LOGIN_FAILED",),
        threshold=5,
        time_window_minutes=15,
        severity=Severity.CRITICAL,
        channels=(AlertChannel.SLACK, AlertChannel.PAGERDUTY),
    ),
    AlertRule(
        id="phi-bulk-export",
        name="PHI Bulk Export",
        description="Alert when more than 100 PHI records are exported",
        event_types=("PHI_EXPORT",),
        threshold=100,
        time_window_minutes=60,
        severity=Severity.WARNING,
        channels=(AlertChannel.SLACK,),
    ),
    AlertRule(
        id=AFTER_HOURS_RULE_ID,
        name="After-Hours PHI Access",
        description="Alert on PHI access outside business hours",
        event_types=("PHI_VIEW", "PHI_EXPORT", "PHI_MODIFY"),
        severity=Severity.WARNING,
        channels=(AlertChannel.SLACK,),
    ),
    AlertRule(
        id="admin-role-change",
        name="Administrative Role Change",
        description="Alert when admin or security roles are modified",
        event_types=("ROLE_CHANGE",),
        severity=Severity.INFO,
        channels=(AlertChannel.SLACK,),
    ),
    AlertRule(
        id="emergency-access",
        name="Emergency Access Invoked",
        description="Alert when break-glass emergency access is used",
        event_types=("EMERGENCY_ACCESS",),
        severity=Severity.CRITICAL,
        channels=(AlertChannel.SLACK, AlertChannel.PAGERDUTY, AlertChannel.EMAIL),
    ),
    AlertRule(
        id="security-alert",
        name="Security Alert Triggered",
        description="Alert on any security alert event",
        event_types=("SECURITY_ALERT", "ACCESS_DENIED"),
        severity=Severity.CRITICAL,
        channels=(AlertChannel.SLACK, AlertChannel.PAGERDUTY),
    ),
    AlertRule(
        id="rate-limit",
        name="Rate Limit Exceeded",
        description="Alert when rate limiting is triggered",
        event_types=("RATE_LIMIT",),
        severity=Severity.CRITICAL,
        channels=(AlertChannel.SLACK, AlertChannel.PAGERDUTY),
    ),
)


class RuleCatalog:
    """Loads enabled rules from an override, the rule store, or the defaults."""

    def __init__(
        self,
        store: Optional[RuleStore] = None,
        defaults: Sequence[AlertRule] = DEFAULT_RULES,
        query_timeout: float = 10.0,
    ):
        self._store = store
        self._defaults = tuple(defaults)
        self._query_timeout = query_timeout

    async def load_rules(
        self, override: Optional[Sequence[AlertRule]] = None
    ) -> list[AlertRule]:
        """
        Resolve the rules for this tick and keep only the enabled ones.

        Raises:
            FatalError: store unavailable and no default catalog to fall back on
        """
        if override is not None:
            rules = list(override)
            source = "override"
        else:
            rules, source = await self._load_configured()

        enabled = [r for r in rules if r.enabled]
        logger.debug(
            "rules_loaded",
            source=source,
            total=len(rules),
            enabled=len(enabled),
        )
        return enabled

    async def _load_configured(self) -> tuple[list[AlertRule], str]:
        if self._store is None:
            return list(self._defaults), "defaults"

        try:
            stored = await asyncio.wait_for(
                self._store.load_enabled_rules(),
                timeout=self._query_timeout,
            )
        except Exception as e:
            if not self._defaults:
                raise FatalError("Rule catalog unavailable", cause=e) from e
            logger.warning("rule_store_load_failed", error=repr(e))
            return list(self._defaults), "defaults"

        if stored:
            return stored, "store"
        return list(self._defaults), "defaults"
