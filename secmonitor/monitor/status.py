"""
Status Reporter — read-only health summary over a rolling window.

status(): critical if any CRITICAL event, warning above the WARNING
threshold, healthy otherwise.

threat_level(): additive score from four factors, capped at 100. Degrades to
LOW/0 when the audit store cannot be read.

Every count is bounded by query_timeout. A failed count makes status() raise
FatalError.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Sequence

import structlog

from secmonitor.monitor.errors import FatalError, QueryError
from secmonitor.monitor.schemas import (
    AlertRule,
    EventCounts,
    HealthStatus,
    Severity,
    StatusResponse,
    ThreatFactor,
    ThreatLevel,
    ThreatLevelName,
)
from secmonitor.monitor.store import AuditStore

logger = structlog.get_logger(__name__)


# (minimum score, level), checked top-down
THREAT_LEVELS = (
    (70, ThreatLevelName.CRITICAL),
    (40, ThreatLevelName.HIGH),
    (20, ThreatLevelName.MEDIUM),
)


class StatusReporter:
    def __init__(
        self,
        store: AuditStore,
        lookback_hours: int = 24,
        warning_threshold: int = 5,
        clock: Optional[Callable[[], datetime]] = None,
        query_timeout: float = 10.0,
    ):
        self._store = store
        self._query_timeout = query_timeout
        self._lookback = timedelta(hours=lookback_hours)
        self._warning_threshold = warning_threshold
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _since(self) -> datetime:
        return self._clock() - self._lookback

    async def _count(self, since: datetime, **filters) -> int:
        try:
            return await asyncio.wait_for(
                self._store.count_events(since, **filters),
                timeout=self._query_timeout,
            )
        except Exception as e:
            raise QueryError(f"Audit count failed: {e!r}", cause=e) from e

    async def counts(self) -> EventCounts:
        since = self._since()
        return EventCounts(
            total=await self._count(since),
            critical=await self._count(since, severity=Severity.CRITICAL),
            warning=await self._count(since, severity=Severity.WARNING),
        )

    def classify(self, counts: EventCounts) -> HealthStatus:
        if counts.critical > 0:
            return HealthStatus.CRITICAL
        if counts.warning > self._warning_threshold:
            return HealthStatus.WARNING
        return HealthStatus.HEALTHY

    async def status(self, rules: Sequence[AlertRule]) -> StatusResponse:
        """
        Raises:
            FatalError: the audit store failed or timed out
        """
        try:
            counts = await self.counts()
        except QueryError as e:
            logger.error("status_query_failed", **e.to_dict())
            raise FatalError("Audit store unavailable", cause=e) from e
        status = self.classify(counts)
        logger.debug("status_computed", status=status.value, total=counts.total)
        return StatusResponse(
            status=status,
            rules_active=sum(1 for r in rules if r.enabled),
            last_24h=counts,
        )

    async def threat_level(self) -> ThreatLevel:
        """Score the current threat level from recent audit activity."""
        since = self._since()
        try:
            counts = await self.counts()
            failed_logins = await self._count(since, event_types=["LOGIN_FAILED"])
            exports = await self._count(since, event_types=["PHI_EXPORT"])
        except QueryError as e:
            logger.warning("threat_level_query_failed", **e.to_dict())
            return ThreatLevel(level=ThreatLevelName.LOW, score=0, factors=[])

        factors: list[ThreatFactor] = []
        if counts.critical > 0:
            factors.append(ThreatFactor(
                name="Critical Events",
                impact=min(counts.critical * 15, 40),
                description=f"{counts.critical} critical security events in last 24h",
            ))
        if counts.warning > 5:
            factors.append(ThreatFactor(
                name="Warning Events",
                impact=min((counts.warning - 5) * 3, 20),
                description=f"{counts.warning} warning events in last 24h",
            ))
        if failed_logins > 10:
            factors.append(ThreatFactor(
                name="Failed Logins",
                impact=min((failed_logins - 10) * 2, 25),
                description=f"{failed_logins} failed login attempts",
            ))
        if exports > 5:
            factors.append(ThreatFactor(
                name="Data Exports",
                impact=min((exports - 5) * 3, 15),
                description=f"{exports} PHI exports in last 24h",
            ))

        score = min(sum(f.impact for f in factors), 100)
        level = next(
            (name for floor, name in THREAT_LEVELS if score >= floor),
            ThreatLevelName.LOW,
        )
        return ThreatLevel(level=level, score=score, factors=factors)
