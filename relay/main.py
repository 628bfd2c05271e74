"""
Minerva Relay - FastAPI Application

Holds the latest tracker sample and the pending tracker settings in memory and
serves them over an authenticated HTTPS surface. Every request, on every path,
passes the Basic Auth gate before routing.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import Depends, FastAPI, Request, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from relay.config import Settings, get_settings
from relay.errors import AuthenticationFailure, RelayError
from relay.routes import fallback, settings as settings_routes, telemetry
from relay.schemas import HealthResponse
from relay.services.auth import authenticate, client_address, reject_request
from relay.state import SettingsStatus, TrackerState, get_tracker_state

logger = structlog.get_logger()


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging on top of stdlib logging."""
    logging.basicConfig(format="%(message)s", level=level.upper())
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def create_app(settings: Optional[Settings] = None, state: Optional[TrackerState] = None) -> FastAPI:
    """Build the relay application around one tracker state."""
    settings = settings or get_settings()
    state = state or TrackerState.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifecycle: startup and shutdown."""
        logger.info(
            "Starting Minerva Relay",
            version=settings.app_version,
            legacy_paths=settings.legacy_paths,
        )
        yield
        logger.info("Shutting down Minerva Relay")

    # No OpenAPI or docs routes: they would advertise the endpoint list
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        # A trailing-slash redirect would confirm the path exists
        redirect_slashes=False,
    )
    app.state.settings = settings
    app.state.tracker = state

    @app.middleware("http")
    async def authentication_gate(request: Request, call_next):
        """Reject anything without valid Basic Auth before it reaches a route."""
        try:
            authenticate(request, settings)
        except AuthenticationFailure as exc:
            logger.warning(
                "Failed to authenticate",
                client=client_address(request),
                method=request.method,
                path=request.url.path,
                reason=exc.reason,
            )
            return await reject_request(request, settings)
        return await call_next(request)

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError):
        """Bare status for rejected bodies; close the connection if bytes remain unread."""
        logger.warning(
            "Request rejected",
            client=client_address(request),
            path=request.url.path,
            status=exc.status_code,
            reason=exc.reason,
        )
        headers = {} if exc.body_consumed else {"Connection": "close"}
        return Response(status_code=exc.status_code, headers=headers)

    # Unknown paths (404) and unknown methods (405), whatever the verb
    app.add_exception_handler(StarletteHTTPException, fallback.unrouted_request_handler)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Last line of defence: log and reject with a bare 500."""
        logger.exception("Unhandled exception", path=request.url.path)
        return Response(status_code=500, headers={"Connection": "close"})

    app.include_router(telemetry.router)
    app.include_router(settings_routes.router)
    if settings.legacy_paths:
        app.include_router(telemetry.legacy_router)
        app.include_router(settings_routes.legacy_router)

    @app.get("/health", response_model=HealthResponse)
    async def health_check(tracker: TrackerState = Depends(get_tracker_state)):
        """Health check for supervisors; behind the gate like everything else."""
        snapshot = tracker.snapshot()
        return HealthResponse(
            status="healthy",
            version=settings.app_version,
            settings_pending=snapshot.status is SettingsStatus.PENDING,
            last_signal_ms=snapshot.elapsed_ms,
        )

    return app
