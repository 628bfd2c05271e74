"""
Telemetry API routes.

The tracker POSTs its latest sample; viewers GET it back prefixed with the
milliseconds since it arrived. The tracker cannot be contacted by the server,
so the POST response status doubles as the "settings changed" notification.
"""
import structlog
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import PlainTextResponse

from relay.body import read_bounded_body
from relay.config import Settings, get_app_settings
from relay.services.auth import client_address
from relay.services.payloads import parse_telemetry
from relay.state import TrackerState, get_tracker_state

logger = structlog.get_logger("telemetry")

STATUS_SETTINGS_CHANGED = 201

router = APIRouter(tags=["telemetry"])
legacy_router = APIRouter(tags=["legacy"], include_in_schema=False)


async def ingest_telemetry(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    state: TrackerState = Depends(get_tracker_state),
) -> Response:
    """Store a sample; answer 201 instead of 200 while new settings wait for the tracker."""
    raw = await read_bounded_body(request, settings.telemetry_max_bytes, settings.body_timeout_s)
    payload = parse_telemetry(raw, settings)

    pending = state.record_sample(payload)
    if pending:
        logger.info("Sample stored, settings pending", client=client_address(request))
        return Response(status_code=STATUS_SETTINGS_CHANGED)
    return Response(status_code=200)


async def latest_telemetry(
    state: TrackerState = Depends(get_tracker_state),
) -> PlainTextResponse:
    """Return `<elapsed_ms>,<sample>`."""
    elapsed_ms, payload = state.latest_sample()
    return PlainTextResponse(f"{elapsed_ms},{payload}")


router.add_api_route("/telemetry", ingest_telemetry, methods=["POST"])
router.add_api_route("/telemetry", latest_telemetry, methods=["GET"])

# Older tracker/viewer builds talk to /info
legacy_router.add_api_route("/info", ingest_telemetry, methods=["POST"])
legacy_router.add_api_route("/info", latest_telemetry, methods=["GET"])
