"""
Logging setup.

structlog on top of stdlib logging. Secrets (webhook URLs, routing keys,
SMTP passwords) are redacted before rendering.
"""

import logging
import sys

import structlog


class SecretFilter:
    """
    structlog processor that redacts sensitive values.

    Matches on key names, recursively through nested dicts.
    """

    SENSITIVE_KEYS = {
        "password", "secret", "token", "routing_key", "webhook_url",
        "smtp_password", "pagerduty_routing_key", "slack_webhook_url",
        "security_alert_webhook", "api_key", "authorization",
    }

    REDACTED = "[REDACTED]"

    def __call__(self, logger, method_name, event_dict):
        return self._redact_dict(event_dict)

    def _redact_dict(self, d: dict) -> dict:
        result = {}
        for key, value in d.items():
            if isinstance(key, str) and key.lower() in self.SENSITIVE_KEYS and value:
                result[key] = self.REDACTED
            elif isinstance(value, dict):
                result[key] = self._redact_dict(value)
            else:
                result[key] = value
        return result


def configure_logging(level: str = "INFO", fmt: str = "console") -> None:
    """Configure stdlib logging and structlog for the process."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            SecretFilter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if fmt == "json"
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
