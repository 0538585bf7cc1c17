"""Tests for log secret redaction."""

from secmonitor.observability import SecretFilter


def test_redacts_channel_secrets():
    event = SecretFilter()(None, "info", {
        "event": "channel_settings_saved",
        "slack_webhook_url": "https://hooks.slack.test/services/SECRET",
        "routing_key": "abc123",
        "rule_id": "failed-logins",
    })
    assert event["slack_webhook_url"] == "[REDACTED]"
    assert event["routing_key"] == "[REDACTED]"
    assert event["rule_id"] == "failed-logins"


def test_redacts_nested_dicts():
    event = SecretFilter()(None, "info", {
        "event": "x",
        "config": {"smtp_password": "hunter2", "smtp_host": "mail.test"},
    })
    assert event["config"] == {"smtp_password": "[REDACTED]", "smtp_host": "mail.test"}


def test_empty_values_left_alone():
    event = SecretFilter()(None, "info", {"event": "x", "password": ""})
    assert event["password"] == ""
