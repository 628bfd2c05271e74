"""
Telemetry and settings payload validation.

Payloads are stored and served verbatim; validation only guarantees the shape
(field count, numeric fields, length) so a malformed or truncated upload is
rejected as a whole instead of being half accepted.
"""
import re

from relay.config import Settings
from relay.errors import MalformedBody

_DECIMAL = re.compile(r"-?\d+(?:\.\d+)?", re.ASCII)
_UNSIGNED = re.compile(r"\d+", re.ASCII)


def _decode(raw: bytes) -> str:
    try:
        text = raw.decode("ascii")
    except UnicodeDecodeError:
        raise MalformedBody("payload is not ASCII")
    # Devices commonly terminate the line
    return text.rstrip("\r\n")


def parse_telemetry(raw: bytes, settings: Settings) -> str:
    """
    Validate a telemetry sample such as `49.02536179,11.95466600,436,10`.

    Accepts telemetry_min_fields..telemetry_max_fields decimal fields
    (`lat,lng,alt,kmh` or `battery,lat,lng,alt,kmh`). Returns the payload text.
    """
    text = _decode(raw)
    fields = text.split(",")
    if not settings.telemetry_min_fields <= len(fields) <= settings.telemetry_max_fields:
        raise MalformedBody(f"expected {settings.telemetry_min_fields}-{settings.telemetry_max_fields} fields, got {len(fields)}")
    for field in fields:
        if not _DECIMAL.fullmatch(field):
            raise MalformedBody("telemetry field is not a number")
    return text


def parse_settings(raw: bytes, settings: Settings) -> str:
    """
    Validate a settings blob such as `45000,1000,3,3000`.

    Exactly settings_fields non-negative integers. Range checks are left to
    the viewer that composes the blob.
    """
    text = _decode(raw)
    fields = text.split(",")
    if len(fields) != settings.settings_fields:
        raise MalformedBody(f"expected {settings.settings_fields} fields, got {len(fields)}")
    for field in fields:
        if not _UNSIGNED.fullmatch(field):
            raise MalformedBody("settings field is not a non-negative integer")
    return text
