"""
Tracker settings exchange routes.

A viewer pushes a new blob (PENDING), the tracker learns about it from the
telemetry POST status, fetches it, and confirms with GET /settings/applied
(APPLIED). Viewers poll /settings/status for the approved/pending indicator.
"""
import structlog
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import PlainTextResponse

from relay.body import drain_body, read_bounded_body
from relay.config import Settings, get_app_settings
from relay.services.auth import client_address
from relay.services.payloads import parse_settings
from relay.state import SettingsStatus, TrackerState, get_tracker_state

logger = structlog.get_logger("settings")

STATUS_SETTINGS_PENDING = 202
STATUS_SETTINGS_APPLIED = 203

router = APIRouter(tags=["settings"])
legacy_router = APIRouter(tags=["legacy"], include_in_schema=False)


async def push_settings(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    state: TrackerState = Depends(get_tracker_state),
) -> Response:
    """Replace the settings blob and mark it pending (last write wins)."""
    raw = await read_bounded_body(request, settings.settings_max_bytes, settings.body_timeout_s)
    payload = parse_settings(raw, settings)

    state.push_settings(payload)
    logger.info("Settings pushed", client=client_address(request), settings=payload)
    return Response(status_code=200)


async def get_settings_blob(
    state: TrackerState = Depends(get_tracker_state),
) -> PlainTextResponse:
    """Current blob, pending or not."""
    return PlainTextResponse(state.current_settings())


async def settings_applied(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    state: TrackerState = Depends(get_tracker_state),
) -> Response:
    """Tracker confirms it adopted the blob."""
    drained = await drain_body(request, settings.max_body_bytes, settings.body_timeout_s)
    state.acknowledge_settings()
    logger.info("Settings applied", client=client_address(request))
    headers = {} if drained else {"Connection": "close"}
    return Response(status_code=200, headers=headers)


async def settings_status(
    state: TrackerState = Depends(get_tracker_state),
) -> Response:
    if state.settings_status() is SettingsStatus.PENDING:
        return Response(status_code=STATUS_SETTINGS_PENDING)
    return Response(status_code=STATUS_SETTINGS_APPLIED)


# Specific paths first
router.add_api_route("/settings/applied", settings_applied, methods=["GET"])
router.add_api_route("/settings/status", settings_status, methods=["GET"])
router.add_api_route("/settings", push_settings, methods=["POST"])
router.add_api_route("/settings", get_settings_blob, methods=["GET"])

legacy_router.add_api_route("/settings/tracker/applied", settings_applied, methods=["GET"])
legacy_router.add_api_route("/settings/tracker/status", settings_status, methods=["GET"])
legacy_router.add_api_route("/settings/tracker", push_settings, methods=["POST"])
legacy_router.add_api_route("/settings/tracker", get_settings_blob, methods=["GET"])
