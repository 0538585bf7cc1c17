"""
Scheduler Entry Point — runs in a separate container.

Usage:
    python -m secmonitor.scheduler_main

This does NOT run a web server. It runs the APScheduler loop that
invokes a security monitor check on a fixed interval.
"""

import asyncio
import signal

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from secmonitor.config import settings
from secmonitor.monitor.service import build_monitor
from secmonitor.observability import configure_logging
from secmonitor.scheduler import MonitorScheduler

logger = structlog.get_logger(__name__)


async def main():
    """Initialize and run the scheduler."""
    configure_logging(settings.log_level, settings.log_format)
    logger.info("scheduler_starting", version=settings.app_version)

    engine = create_async_engine(settings.async_database_url, echo=settings.debug)
    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    scheduler = MonitorScheduler(
        build_monitor(session_factory, settings),
        interval_seconds=settings.tick_interval_seconds,
    )

    # First tick on startup
    await scheduler.run_tick()
    scheduler.start()

    stop_event = asyncio.Event()

    def _handle_signal(signum, frame):
        logger.info("shutdown_signal_received", signal=signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    logger.info("scheduler_running", msg="Waiting for jobs... Ctrl+C to stop.")
    await stop_event.wait()

    scheduler.stop()
    await engine.dispose()
    logger.info("scheduler_shutdown_complete")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
