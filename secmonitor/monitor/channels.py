"""
Alert Channels — Slack, PagerDuty, e-mail and generic webhook senders.

Each sender is independent and fault-tolerant: `send` reports the outcome
as a ChannelResult instead of raising. Senders are looked up through a
ChannelRegistry keyed by AlertChannel.
"""

import html
from datetime import datetime, timezone
from email.message import EmailMessage
from typing import Any, Iterable, Optional, Protocol

import aiosmtplib
import httpx
import structlog

from secmonitor.config import Settings
from secmonitor.monitor.errors import ChannelDispatchError, ConfigurationError
from secmonitor.monitor.schemas import (
    AlertChannel,
    AlertInstance,
    ChannelResult,
    ChannelSettings,
    Severity,
)

logger = structlog.get_logger(__name__)


SLACK_COLORS = {
    Severity.CRITICAL: "#dc3545",
    Severity.WARNING: "#ffc107",
    Severity.INFO: "#17a2b8",
}

PAGERDUTY_SEVERITY = {
    Severity.CRITICAL: "critical",
    Severity.WARNING: "warning",
}

FOOTER = "Security Monitor"
PAGERDUTY_SOURCE = "security-monitor"


class ChannelSender(Protocol):
    """Protocol for alert channel senders."""

    channel: AlertChannel

    def is_configured(self, settings: ChannelSettings) -> bool:
        ...

    async def send(self, alert: AlertInstance, settings: ChannelSettings) -> ChannelResult:
        """
        Deliver an alert via this channel.

        Returns:
            ChannelResult; failures are reported, never raised
        """
        ...


class NotificationClient(Protocol):
    """Outbound e-mail collaborator."""

    async def send_email(self, to: str, subject: str, html_body: str) -> None:
        ...


# ── HTTP senders ───────────────────────────────────────────────────────


class _HttpSender:
    """Shared POST-JSON plumbing for webhook-style channels."""

    channel: AlertChannel

    def __init__(
        self,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._timeout = timeout
        self._transport = transport

    def target_url(self, settings: ChannelSettings) -> Optional[str]:
        raise NotImplementedError

    def build_payload(self, alert: AlertInstance, settings: ChannelSettings) -> dict[str, Any]:
        raise NotImplementedError

    def is_configured(self, settings: ChannelSettings) -> bool:
        return bool(self.target_url(settings))

    async def send(self, alert: AlertInstance, settings: ChannelSettings) -> ChannelResult:
        url = self.target_url(settings)
        if not url:
            error = ConfigurationError(
                f"No {self.channel.value} target configured", channel=self.channel.value
            )
            return ChannelResult(channel=self.channel.value, success=False, detail=str(error))

        payload = self.build_payload(alert, settings)
        try:
            status = await self._post(url, payload)
        except (ChannelDispatchError, httpx.HTTPError) as e:
            logger.warning(
                f"{self.channel.value}_alert_failed",
                rule_id=alert.rule.id,
                error=str(e),
            )
            return ChannelResult(channel=self.channel.value, success=False, detail=str(e))

        logger.info(
            f"{self.channel.value}_alert_sent",
            rule_id=alert.rule.id,
            status=status,
        )
        return ChannelResult(channel=self.channel.value, success=True, detail=f"HTTP {status}")

    async def _post(self, url: str, payload: dict[str, Any]) -> int:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(
                url, json=payload, headers={"Content-Type": "application/json"}
            )
        if not response.is_success:
            raise ChannelDispatchError(
                f"HTTP {response.status_code}",
                channel=self.channel.value,
                status_code=response.status_code,
            )
        return response.status_code


class SlackSender(_HttpSender):
    """Slack incoming-webhook message with one colored attachment."""

    channel = AlertChannel.SLACK

    def target_url(self, settings: ChannelSettings) -> Optional[str]:
        return settings.slack_webhook_url

    def build_payload(self, alert: AlertInstance, settings: ChannelSettings) -> dict[str, Any]:
        rule = alert.rule
        return {
            "attachments": [
                {
                    "color": SLACK_COLORS[rule.severity],
                    "title": f"Security Alert: {rule.name}",
                    "text": alert.message,
                    "fields": [
                        {"title": "Severity", "value": rule.severity.value, "short": True},
                        {"title": "Event Count", "value": str(alert.event_count), "short": True},
                    ],
                    "footer": FOOTER,
                    "ts": int(alert.triggered_at.timestamp()),
                }
            ]
        }


class PagerDutySender(_HttpSender):
    """PagerDuty Events API v2 trigger."""

    channel = AlertChannel.PAGERDUTY

    def __init__(
        self,
        events_url: str = "https://events.pagerduty.com/v2/enqueue",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self._events_url = events_url

    def is_configured(self, settings: ChannelSettings) -> bool:
        return bool(settings.pagerduty_routing_key)

    def target_url(self, settings: ChannelSettings) -> Optional[str]:
        return self._events_url if settings.pagerduty_routing_key else None

    def build_payload(self, alert: AlertInstance, settings: ChannelSettings) -> dict[str, Any]:
        rule = alert.rule
        return {
            "routing_key": settings.pagerduty_routing_key,
            "event_action": "trigger",
            "payload": {
                "summary": f"{rule.name}: {alert.message}",
                "severity": PAGERDUTY_SEVERITY.get(rule.severity, "info"),
                "source": PAGERDUTY_SOURCE,
                "component": "security-audit",
                "group": "compliance",
                "custom_details": {
                    "rule_id": rule.id,
                    "event_count": alert.event_count,
                },
            },
        }


class WebhookSender(_HttpSender):
    """Generic JSON webhook carrying a sample of the evidence events."""

    channel = AlertChannel.WEBHOOK

    def __init__(
        self,
        event_limit: int = 10,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self._event_limit = event_limit

    def target_url(self, settings: ChannelSettings) -> Optional[str]:
        return settings.security_alert_webhook

    def build_payload(self, alert: AlertInstance, settings: ChannelSettings) -> dict[str, Any]:
        rule = alert.rule
        return {
            "type": "security_alert",
            "rule": {
                "id": rule.id,
                "name": rule.name,
                "severity": rule.severity.value,
            },
            "message": alert.message,
            "event_count": alert.event_count,
            "events": [
                e.model_dump(mode="json") for e in alert.events[: self._event_limit]
            ],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


# ── E-mail ─────────────────────────────────────────────────────────────


class SmtpNotificationClient:
    """Sends HTML e-mail through SMTP (aiosmtplib)."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        start_tls: bool = True,
        from_email: str = "security-monitor@localhost",
        timeout: float = 10.0,
    ):
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._start_tls = start_tls
        self._from_email = from_email
        self._timeout = timeout

    async def send_email(self, to: str, subject: str, html_body: str) -> None:
        if not self._host:
            raise ConfigurationError("SMTP host not configured", channel=AlertChannel.EMAIL.value)

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self._from_email
        msg["To"] = to
        msg.set_content("This alert requires an HTML-capable mail client.")
        msg.add_alternative(html_body, subtype="html")

        await aiosmtplib.send(
            msg,
            hostname=self._host,
            port=self._port,
            username=self._username or None,
            password=self._password or None,
            start_tls=self._start_tls,
            timeout=self._timeout,
        )


class EmailSender:
    """E-mails the configured security officer via a NotificationClient."""

    channel = AlertChannel.EMAIL

    def __init__(self, client: NotificationClient):
        self._client = client

    def is_configured(self, settings: ChannelSettings) -> bool:
        return bool(settings.security_officer_email)

    async def send(self, alert: AlertInstance, settings: ChannelSettings) -> ChannelResult:
        to = settings.security_officer_email
        if not to:
            logger.info("email_alert_skipped", reason="no security officer email")
            return ChannelResult(
                channel=self.channel.value, success=True, skipped=True,
                detail="No security officer email configured",
            )

        subject = f"[SECURITY ALERT] {alert.rule.name}"
        try:
            await self._client.send_email(to, subject, self.render(alert))
        except Exception as e:
            logger.error("email_dispatch_error", rule_id=alert.rule.id, error=str(e))
            return ChannelResult(channel=self.channel.value, success=False, detail=str(e))

        logger.info("email_alert_sent", rule_id=alert.rule.id)
        return ChannelResult(channel=self.channel.value, success=True, detail="Sent")

    @staticmethod
    def render(alert: AlertInstance) -> str:
        rule = alert.rule
        return (
            f"<h2>Security Alert: {html.escape(rule.name)}</h2>\n"
            f"<p><strong>Severity:</strong> {rule.severity.value}</p>\n"
            f"<p><strong>Description:</strong> {html.escape(rule.description)}</p>\n"
            f"<p>{html.escape(alert.message)}</p>\n"
            f"<p><strong>Event Count:</strong> {alert.event_count}</p>\n"
            "<hr>\n"
            "<p>This is an automated alert from the Security Monitor.</p>\n"
        )


# ── Registry ───────────────────────────────────────────────────────────


class ChannelRegistry:
    """Maps AlertChannel to its sender."""

    def __init__(self, senders: Iterable[ChannelSender] = ()):
        self._senders: dict[AlertChannel, ChannelSender] = {}
        for sender in senders:
            self.register(sender)

    def register(self, sender: ChannelSender) -> None:
        self._senders[sender.channel] = sender

    def get(self, channel: AlertChannel) -> Optional[ChannelSender]:
        return self._senders.get(channel)

    @property
    def channels(self) -> list[AlertChannel]:
        return list(self._senders)


def build_default_registry(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    notification_client: Optional[NotificationClient] = None,
) -> ChannelRegistry:
    """Registry with all four built-in senders wired from settings."""
    timeout = settings.channel_timeout_seconds
    if notification_client is None:
        notification_client = SmtpNotificationClient(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            start_tls=settings.smtp_start_tls,
            from_email=settings.alert_from_email,
            timeout=timeout,
        )
    return ChannelRegistry([
        SlackSender(timeout=timeout, transport=transport),
        PagerDutySender(
            events_url=settings.pagerduty_events_url,
            timeout=timeout,
            transport=transport,
        ),
        EmailSender(notification_client),
        WebhookSender(
            event_limit=settings.webhook_event_limit,
            timeout=timeout,
            transport=transport,
        ),
    ])
