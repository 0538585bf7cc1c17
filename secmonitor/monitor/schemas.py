"""
Security Monitor Schemas.

Defines audit events, alert rules, alert instances, channel settings,
per-tick outcome records, and the invocation request/response shapes.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_TIME_WINDOW_MINUTES = 60


# ── Enums ──────────────────────────────────────────────────────────────


class Severity(StrEnum):
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class AlertChannel(StrEnum):
    SLACK = "slack"
    PAGERDUTY = "pagerduty"
    EMAIL = "email"
    WEBHOOK = "webhook"


class MonitorAction(StrEnum):
    CHECK = "check"
    STATUS = "status"
    CONFIGURE = "configure"


class HealthStatus(StrEnum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


class ThreatLevelName(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are UTC; aware ones are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ── Audit Event ────────────────────────────────────────────────────────


class AuditEvent(BaseModel):
    """
    One entry of the security audit log.

    Immutable. Written by external collaborators (auth, data access);
    the monitor only reads, apart from SECURITY_ALERT feedback entries.
    """
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    event_type: str
    severity: Severity = Severity.INFO
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    actor_id: Optional[str] = None
    actor_email: Optional[str] = None
    action: str = ""
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


# ── Alert Rule ─────────────────────────────────────────────────────────


class AlertRule(BaseModel):
    """
    A declarative alert rule.

    With `threshold` set it is a threshold rule (count within a sliding
    window); without it, an immediate-trigger rule (any new event fires).
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    event_types: tuple[str, ...] = Field(..., min_length=1)
    threshold: Optional[int] = Field(default=None, ge=1)
    time_window_minutes: Optional[int] = Field(default=None, ge=1)
    severity: Severity = Severity.WARNING
    enabled: bool = True
    channels: tuple[AlertChannel, ...] = ()

    @field_validator("event_types", "channels", mode="after")
    @classmethod
    def _dedupe(cls, value: tuple) -> tuple:
        # Order is kept: event types are rendered joined by '/'
        return tuple(dict.fromkeys(value))

    @property
    def is_threshold_rule(self) -> bool:
        return self.threshold is not None


# ── Alert Instance ─────────────────────────────────────────────────────


class AlertInstance(BaseModel):
    """A triggered rule together with its evidence sample. Never persisted."""

    rule: AlertRule
    events: list[AuditEvent] = Field(default_factory=list)
    message: str
    triggered_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def event_count(self) -> int:
        return len(self.events)


# ── Channel configuration ──────────────────────────────────────────────


class ChannelSettings(BaseModel):
    """Channel credentials/endpoints, resolved at dispatch time."""
    slack_webhook_url: Optional[str] = None
    pagerduty_routing_key: Optional[str] = None
    security_officer_email: Optional[str] = None
    security_alert_webhook: Optional[str] = None

    def merged_over(self, fallback: "ChannelSettings") -> "ChannelSettings":
        """Values set here win; empty ones fall back."""
        data = {
            key: getattr(self, key) or getattr(fallback, key)
            for key in ChannelSettings.model_fields
        }
        return ChannelSettings(**data)

    def masked(self) -> dict[str, Optional[str]]:
        """Presentation form: secrets shortened, e-mail shown as is."""
        out: dict[str, Optional[str]] = {}
        for key in ChannelSettings.model_fields:
            value = getattr(self, key)
            if not value or key == "security_officer_email":
                out[key] = value
            else:
                out[key] = value[:8] + "…" if len(value) > 8 else "…"
        return out


# ── Per-tick outcomes ──────────────────────────────────────────────────


@dataclass(frozen=True)
class RuleOutcome:
    """Result of evaluating one rule: an alert, nothing, or an error."""
    rule: AlertRule
    alert: Optional[AlertInstance] = None
    error: Optional[str] = None

    @property
    def triggered(self) -> bool:
        return self.alert is not None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class ChannelResult:
    """Result of one channel attempt."""
    channel: str
    success: bool
    skipped: bool = False
    detail: str = ""


@dataclass
class DispatchReport:
    """All channel results for one alert, plus the feedback write outcome."""
    alert: AlertInstance
    results: list[ChannelResult] = field(default_factory=list)
    feedback_recorded: bool = False

    @property
    def delivered(self) -> list[str]:
        return [r.channel for r in self.results if r.success and not r.skipped]

    @property
    def failed(self) -> list[str]:
        return [r.channel for r in self.results if not r.success]


# ── Invocation contract ────────────────────────────────────────────────


class MonitorRequest(BaseModel):
    """Body of one invocation. `rules` overrides the catalog for this call only."""
    action: MonitorAction = MonitorAction.CHECK
    rules: Optional[list[AlertRule]] = None


class AlertSummary(BaseModel):
    rule: str
    severity: Severity
    message: str
    event_count: int


class CheckResponse(BaseModel):
    success: bool = True
    checked_rules: int
    alerts_triggered: int
    alerts: list[AlertSummary] = Field(default_factory=list)


class EventCounts(BaseModel):
    total: int = 0
    critical: int = 0
    warning: int = 0


class StatusResponse(BaseModel):
    status: HealthStatus
    rules_active: int
    last_24h: EventCounts


class ConfigureResponse(BaseModel):
    success: bool = True
    rules_saved: int


class ThreatFactor(BaseModel):
    name: str
    impact: int
    description: str


class ThreatLevel(BaseModel):
    level: ThreatLevelName
    score: int = Field(..., ge=0, le=100)
    factors: list[ThreatFactor] = Field(default_factory=list)


class RuleToggleRequest(BaseModel):
    enabled: bool
