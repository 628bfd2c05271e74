"""
Bounded request body handling.

Bodies are read chunk by chunk into a buffer that never grows past the
endpoint limit. A declared Content-Length over the limit is refused before a
single byte is read, and an undeclared (chunked) body is cut off as soon as it
crosses the limit. Reads are also bounded in time, so a sender that stalls
mid-body cannot park a handler forever.
"""
import asyncio
from typing import Optional

from starlette.requests import ClientDisconnect, Request

from relay.errors import MalformedBody, OversizedBody


def declared_length(request: Request) -> Optional[int]:
    """Content-Length header as an int, None when absent."""
    value = request.headers.get("content-length")
    if value is None:
        return None
    try:
        length = int(value)
    except ValueError:
        raise MalformedBody("invalid Content-Length")
    if length < 0:
        raise MalformedBody("invalid Content-Length")
    return length


async def _read_into(request: Request, buffer: bytearray, limit: int) -> None:
    async for chunk in request.stream():
        if len(buffer) + len(chunk) > limit:
            raise OversizedBody(f"body exceeds {limit} bytes")
        buffer.extend(chunk)


async def read_bounded_body(request: Request, limit: int, timeout: float = 10.0) -> bytes:
    """
    Read the whole request body, refusing anything longer than limit bytes.

    Raises OversizedBody when the body is (or claims to be) too long and
    MalformedBody when it is truncated by a disconnect or does not arrive
    within timeout seconds.
    """
    length = declared_length(request)
    if length is not None and length > limit:
        raise OversizedBody(f"declared length {length} exceeds {limit} bytes")

    buffer = bytearray()
    try:
        await asyncio.wait_for(_read_into(request, buffer, limit), timeout)
    except ClientDisconnect:
        raise MalformedBody("client disconnected mid-body", body_consumed=False)
    except asyncio.TimeoutError:
        raise MalformedBody("body not received in time", body_consumed=False)

    if length is not None and len(buffer) != length:
        raise MalformedBody("body shorter than declared length", body_consumed=False)
    return bytes(buffer)


async def _discard(request: Request, limit: int) -> bool:
    seen = 0
    async for chunk in request.stream():
        seen += len(chunk)
        if seen > limit:
            return False
    return True


async def drain_body(request: Request, limit: int, timeout: float = 10.0) -> bool:
    """
    Discard an unread request body.

    Returns True when the body was consumed completely, False when draining
    stopped early (too long, too slow, or the client went away). Callers close
    the connection in the False case instead of reading on.
    """
    try:
        length = declared_length(request)
    except MalformedBody:
        return False
    if length is not None and length > limit:
        return False
    try:
        return await asyncio.wait_for(_discard(request, limit), timeout)
    except (ClientDisconnect, asyncio.TimeoutError):
        return False
