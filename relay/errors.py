"""
Request-level failures.

Each error carries the HTTP status it is answered with. The response body is
always empty so a caller learns nothing beyond the status code.
"""


class RelayError(Exception):
    """Base class for failures that end a request with a bare status code."""

    status_code = 400

    def __init__(self, reason: str = "", body_consumed: bool = True):
        super().__init__(reason)
        self.reason = reason
        self.body_consumed = body_consumed


class AuthenticationFailure(RelayError):
    """Missing, malformed or wrong credentials."""

    status_code = 401


class MalformedBody(RelayError):
    """Body has the wrong shape, unparsable fields, or was cut short."""

    status_code = 400


class OversizedBody(RelayError):
    """Body exceeds the endpoint limit; the rest of it is never read."""

    status_code = 413

    def __init__(self, reason: str = "", body_consumed: bool = False):
        super().__init__(reason, body_consumed)


class ConfigurationError(Exception):
    """Startup configuration cannot be used (e.g. missing TLS material)."""
