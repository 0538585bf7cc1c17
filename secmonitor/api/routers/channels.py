"""
Channel configuration (compliance_settings).

GET /security-monitor/channels — current values, secrets masked
PUT /security-monitor/channels — upsert the supplied keys
"""

from typing import Optional

from fastapi import APIRouter, Depends

from secmonitor.api.deps import get_settings_store
from secmonitor.monitor.schemas import ChannelSettings
from secmonitor.monitor.store import SqlSettingsStore

router = APIRouter(prefix="/security-monitor/channels", tags=["channels"])


@router.get("", response_model=dict[str, Optional[str]])
async def get_channels(store: SqlSettingsStore = Depends(get_settings_store)):
    values = await store.get_channel_settings()
    return values.masked()


@router.put("", response_model=dict[str, Optional[str]])
async def save_channels(
    body: ChannelSettings,
    store: SqlSettingsStore = Depends(get_settings_store),
):
    saved = await store.save_channel_settings(body)
    return saved.masked()
