"""
Monitor Scheduler — periodic external trigger for security monitor ticks.

Runs in its own process (see scheduler_main), never inside the API.
One job: `check` every TICK_INTERVAL_SECONDS, never overlapping.
"""

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from secmonitor.monitor.service import SecurityMonitor

logger = structlog.get_logger(__name__)


class MonitorScheduler:
    def __init__(self, monitor: SecurityMonitor, interval_seconds: int = 60):
        self.monitor = monitor
        self.interval_seconds = interval_seconds
        self.scheduler = AsyncIOScheduler()

    def start(self):
        """Register the tick job and start the scheduler."""
        self.scheduler.add_job(
            self.run_tick,
            IntervalTrigger(seconds=self.interval_seconds),
            id="security_monitor_tick",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info("monitor_scheduler_started", interval_seconds=self.interval_seconds)

    def stop(self):
        """Gracefully stop the scheduler."""
        self.scheduler.shutdown(wait=True)
        logger.info("monitor_scheduler_stopped")

    async def run_tick(self) -> bool:
        """One check tick. Failures are logged; the next tick still runs."""
        try:
            result = await self.monitor.check()
        except Exception as e:
            logger.error("monitor_tick_failed", error=str(e))
            return False

        logger.info(
            "monitor_tick_completed",
            checked_rules=result.checked_rules,
            alerts_triggered=result.alerts_triggered,
        )
        return True
