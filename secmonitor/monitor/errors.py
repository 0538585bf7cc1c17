"""
Security Monitor exceptions.

Only FatalError reaches the caller of a tick. The others are raised at the
point of failure and folded into outcome records by the evaluator and the
dispatcher.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Standard error codes."""
    CONFIGURATION_ERROR = "E1002"
    QUERY_ERROR = "E2004"
    CHANNEL_DISPATCH_ERROR = "E4003"
    FEEDBACK_WRITE_ERROR = "E2005"
    FATAL_ERROR = "E1000"
    INVALID_INVOCATION = "E1001"


class MonitorError(Exception):
    """Base exception for the security monitor."""

    error_code: ErrorCode = ErrorCode.FATAL_ERROR

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/API responses."""
        return {
            "error_code": self.error_code.value,
            "message": self.message,
        }

    def __str__(self) -> str:
        return f"[{self.error_code.value}] {self.message}"


class ConfigurationError(MonitorError):
    """A channel the rule asks for has no credential configured."""

    error_code = ErrorCode.CONFIGURATION_ERROR

    def __init__(self, message: str, channel: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.channel = channel


class QueryError(MonitorError):
    """Audit store read failed for one rule."""

    error_code = ErrorCode.QUERY_ERROR

    def __init__(self, message: str, rule_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.rule_id = rule_id


class ChannelDispatchError(MonitorError):
    """A single channel send failed (transport error or non-2xx)."""

    error_code = ErrorCode.CHANNEL_DISPATCH_ERROR

    def __init__(
        self,
        message: str,
        channel: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.channel = channel
        self.status_code = status_code


class FeedbackWriteError(MonitorError):
    """Writing the SECURITY_ALERT record back to the audit store failed."""

    error_code = ErrorCode.FEEDBACK_WRITE_ERROR


class FatalError(MonitorError):
    """Malformed invocation or rule catalog entirely unavailable."""

    error_code = ErrorCode.FATAL_ERROR


class InvalidInvocationError(FatalError):
    """The invocation body is malformed or incomplete."""

    error_code = ErrorCode.INVALID_INVOCATION
