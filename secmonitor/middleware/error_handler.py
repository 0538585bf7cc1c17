"""
Last-resort error handler for the monitor API.

FatalError and validation errors are mapped by exception handlers in
secmonitor.main. Anything else that escapes a route (a store exception from
the rule admin endpoints, a bug in a sender) lands here and is reported with
the same top-level ``error`` key as the invocation contract, plus an
``error_id`` and the caller's ``request_id`` for log correlation.
"""

import traceback
import uuid
from typing import Optional

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from secmonitor.config import settings
from secmonitor.monitor.errors import MonitorError

logger = structlog.get_logger(__name__)

GENERIC_MESSAGE = "Security monitor failed to process the request."


def error_body(exc: Exception, error_id: str, request_id: Optional[str]) -> dict:
    body: dict = {
        "error": GENERIC_MESSAGE,
        "error_id": error_id,
        "status": 500,
    }
    if request_id:
        body["request_id"] = request_id
    # Codes are safe to expose; messages may carry store details
    if isinstance(exc, MonitorError):
        body["error_code"] = exc.error_code.value
    if settings.debug:
        body["debug_hint"] = type(exc).__name__
    return body


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Outermost application middleware; never returns a traceback."""

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            error_id = str(uuid.uuid4())
            request_id = getattr(request.state, "request_id", None)

            context = exc.to_dict() if isinstance(exc, MonitorError) else {"error": repr(exc)}
            logger.error(
                "unhandled_exception",
                error_id=error_id,
                request_id=request_id,
                path=request.url.path,
                method=request.method,
                traceback=traceback.format_exc(),
                **context,
            )

            return JSONResponse(
                status_code=500,
                content=error_body(exc, error_id, request_id),
                headers={"X-Error-ID": error_id},
            )
