"""
Security Monitor — FastAPI Application.

Run: uvicorn secmonitor.main:app --host 0.0.0.0 --port 8002

  - POST /security-monitor              ← external scheduler / operators
  - GET  /security-monitor/status
  - GET  /security-monitor/threat-level
  - /security-monitor/rules, /security-monitor/channels  ← administration
  - GET  /health, /ready
"""

import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from secmonitor.api.routers.channels import router as channels_router
from secmonitor.api.routers.monitor import router as monitor_router
from secmonitor.api.routers.rules import router as rules_router
from secmonitor.config import settings
from secmonitor.db.engine import close_db, get_engine, get_session_factory, init_db
from secmonitor.middleware.error_handler import ErrorHandlerMiddleware
from secmonitor.middleware.request_context import RequestContextMiddleware
from secmonitor.monitor.errors import FatalError, InvalidInvocationError
from secmonitor.monitor.service import build_monitor
from secmonitor.observability import configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — startup and shutdown."""
    configure_logging(settings.log_level, settings.log_format)
    logger.info("secmonitor_starting", version=settings.app_version)
    await init_db()
    app.state.monitor = build_monitor(get_session_factory(), settings)
    yield
    await close_db()
    logger.info("secmonitor_shutdown")


def _format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "Invalid request: " + "; ".join(parts)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description=(
            "Evaluates the security audit log against alert rules and fans "
            "alerts out to Slack, PagerDuty, e-mail and webhooks."
        ),
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_tags=[
            {"name": "health", "description": "Liveness and readiness probes"},
            {"name": "security-monitor", "description": "Check, status and threat level"},
            {"name": "rules", "description": "Alert rule administration"},
            {"name": "channels", "description": "Notification channel configuration"},
        ],
    )

    # ── Middleware (last added = outermost) ──
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Error mapping: {error} with 400 for bad invocations, 500 for fatal ──
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        message = _format_validation_errors(exc)
        logger.warning("invalid_invocation", path=request.url.path, error=message)
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(FatalError)
    async def fatal_error_handler(request: Request, exc: FatalError):
        status_code = 400 if isinstance(exc, InvalidInvocationError) else 500
        logger.error(
            "monitor_invocation_failed",
            path=request.url.path,
            status=status_code,
            **exc.to_dict(),
        )
        return JSONResponse(status_code=status_code, content={"error": exc.message})

    # ── Routes ──
    app.include_router(monitor_router)
    app.include_router(rules_router)
    app.include_router(channels_router)

    @app.get("/health", tags=["health"])
    async def health():
        """Liveness probe. Does NOT check dependencies."""
        return {
            "status": "ok",
            "version": settings.app_version,
            "service": "secmonitor",
        }

    @app.get("/ready", tags=["health"])
    async def readiness():
        """Readiness probe: 200 when the audit store answers, 503 otherwise."""
        try:
            async with get_engine().connect() as conn:
                await asyncio.wait_for(
                    conn.execute(text("SELECT 1")),
                    timeout=settings.query_timeout_seconds,
                )
        except Exception as e:
            logger.warning("readiness_check_failed", error=str(e))
            return JSONResponse(
                status_code=503,
                content={"status": "not_ready", "checks": {"database": "unavailable"}},
            )
        return {"status": "ready", "checks": {"database": "ok"}}

    return app


app = create_app()
