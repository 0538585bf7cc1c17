"""
FastAPI dependencies for the security monitor routes.

Tests override `get_session_maker` (and `get_monitor` when they need fake
channels or a fixed clock) through `app.dependency_overrides`.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from secmonitor.config import settings
from secmonitor.db.engine import get_session_factory
from secmonitor.monitor.service import SecurityMonitor, build_monitor
from secmonitor.monitor.store import SqlRuleStore, SqlSettingsStore


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    return get_session_factory()


def get_monitor(
    request: Request,
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
) -> SecurityMonitor:
    """The process-wide SecurityMonitor, built on first use."""
    monitor = getattr(request.app.state, "monitor", None)
    if monitor is None:
        monitor = build_monitor(factory, settings)
        request.app.state.monitor = monitor
    return monitor


def get_rule_store(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
) -> SqlRuleStore:
    return SqlRuleStore(factory)


def get_settings_store(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
) -> SqlSettingsStore:
    return SqlSettingsStore(factory)
