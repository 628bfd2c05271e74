"""
Fallback for requests no route serves.

Starlette answers an unknown path with 404 and a known path with an unknown
method (PROPFIND, TRACE, custom verbs, ...) with 405. Both are answered
exactly like a failed login, so a caller learns nothing about which endpoints
or methods exist. Any other HTTP error keeps FastAPI's default handling.
"""
from fastapi import Request, Response
from fastapi.exception_handlers import http_exception_handler
from starlette.exceptions import HTTPException as StarletteHTTPException

from relay.services.auth import reject_request

UNROUTED_STATUSES = (404, 405)


async def unrouted_request_handler(request: Request, exc: StarletteHTTPException) -> Response:
    if exc.status_code in UNROUTED_STATUSES:
        return await reject_request(request, request.app.state.settings)
    return await http_exception_handler(request, exc)
