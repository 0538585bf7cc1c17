"""
Security Monitor invocation endpoints.

POST /security-monitor               — {action: check | status | configure, rules?}
GET  /security-monitor/status        — health summary over the last 24h
GET  /security-monitor/threat-level  — scored threat level with factors
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends

from secmonitor.api.deps import get_monitor
from secmonitor.monitor.schemas import (
    CheckResponse,
    ConfigureResponse,
    MonitorRequest,
    StatusResponse,
    ThreatLevel,
)
from secmonitor.monitor.service import SecurityMonitor

router = APIRouter(prefix="/security-monitor", tags=["security-monitor"])


@router.post(
    "",
    response_model=CheckResponse | StatusResponse | ConfigureResponse,
)
async def invoke(
    body: Optional[MonitorRequest] = Body(default=None),
    monitor: SecurityMonitor = Depends(get_monitor),
):
    """Run one action. An empty body is a `check`."""
    return await monitor.handle(body or MonitorRequest())


@router.get("/status", response_model=StatusResponse)
async def get_status(monitor: SecurityMonitor = Depends(get_monitor)):
    return await monitor.status()


@router.get("/threat-level", response_model=ThreatLevel)
async def get_threat_level(monitor: SecurityMonitor = Depends(get_monitor)):
    return await monitor.threat_level()
