"""Exceptions raised by the bridge.

Per-request errors (`Unauthorized`, `NotFound`) never leave the request
handler: they are turned into the standardized error pages. `StartupFailure`
is fatal and propagates to whoever called `schemebridge.bridge.setup`.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for schemebridge errors."""


class RequestError(BridgeError):
    code = 500
    status = "Internal Server Error"

    @property
    def status_line(self) -> str:
        return f"{self.code} {self.status}"


class Unauthorized(RequestError):
    """The request token is missing or does not match."""

    code = 403
    status = "Forbidden"


class NotFound(RequestError):
    """No route matched, or the matched resource could not be produced."""

    code = 404
    status = "Not Found"


class StartupFailure(BridgeError):
    """Scheme registration was refused or the server could not bind."""
