"""
HTTP Basic authentication gate.

Every request passes through here before routing. The password candidate is
digested with SHA-512 and both the username and the digest are compared in
constant time against the configured credential. Rejected requests are held
for a random delay so credential guessing stays slow without any lockout
store; the delay is an asyncio sleep, so other connections keep being served
and no state lock is held while waiting.
"""
import asyncio
import base64
import binascii
import hashlib
import hmac
import random
from typing import Optional

from fastapi import Request, Response

from relay.body import drain_body
from relay.config import Settings
from relay.errors import AuthenticationFailure

_rng = random.SystemRandom()


def hash_password(password: str) -> str:
    """SHA-512 hex digest of a password, as stored in RELAY_AUTH_PASSWORD_HASH."""
    return hashlib.sha512(password.encode("utf-8")).hexdigest()


def parse_basic_credentials(authorization: Optional[str]) -> Optional[tuple[str, str]]:
    """
    Decode an `Authorization: Basic ...` header into (username, password).

    Returns None for a missing header, another scheme, bad base64 or a
    decoded value without a colon.
    """
    if not authorization:
        return None
    scheme, _, encoded = authorization.partition(" ")
    if scheme.lower() != "basic" or not encoded.strip():
        return None
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    return username, password


def verify_credentials(username: str, password: str, settings: Settings) -> bool:
    """Constant-time check of a username/password pair against the configured credential."""
    digest = hash_password(password)
    # Both comparisons always run
    user_ok = hmac.compare_digest(username.encode("utf-8"), settings.auth_username.encode("utf-8"))
    hash_ok = hmac.compare_digest(digest.encode("ascii"), settings.auth_password_hash.lower().encode("ascii"))
    return user_ok and hash_ok


def authenticate(request: Request, settings: Settings) -> str:
    """
    Return the authenticated username.

    Raises AuthenticationFailure; its reason is for the server log only and
    never reaches the client.
    """
    credentials = parse_basic_credentials(request.headers.get("authorization"))
    if credentials is None:
        raise AuthenticationFailure("missing or malformed credentials")
    if not settings.auth_password_hash:
        # Debug mode without a configured credential: nothing can authenticate
        raise AuthenticationFailure("no credential configured")
    username, password = credentials
    if not verify_credentials(username, password, settings):
        raise AuthenticationFailure("wrong credentials")
    return username


def failure_delay(settings: Settings) -> float:
    """Random hold time in seconds for a rejected request."""
    return _rng.uniform(settings.auth_delay_min_s, settings.auth_delay_max_s)


async def reject_request(request: Request, settings: Settings) -> Response:
    """
    Answer a request the relay will not serve.

    Used for failed authentication and for unknown routes alike, so the two
    are indistinguishable from outside: body drained, random delay, 401,
    empty body.
    """
    drained = await drain_body(request, settings.max_body_bytes, settings.body_timeout_s)
    await asyncio.sleep(failure_delay(settings))
    headers = {} if drained else {"Connection": "close"}
    return Response(status_code=401, headers=headers)


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"
