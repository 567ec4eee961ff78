"""Scheme registrar — sends every internal-scheme request to the bridge server.

The host runtime owns the networking layer; the registrar only asks it to
intercept one scheme and hands it a function that rewrites each intercepted
request into a loopback request carrying the original URL and the token::

    beaker:start  ->  http://127.0.0.1:<port>/?url=beaker%3Astart&token=<token>

`UrllibProtocolHost` is an in-process host built on `urllib.request`, used by
the CLI and the tests. Embedders supply their own `ProtocolHost`.
"""

from __future__ import annotations

import logging
import re
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import quote

from schemebridge.config import LOOPBACK_HOST, BridgeConfig
from schemebridge.errors import StartupFailure

_log = logging.getLogger("schemebridge")


@dataclass(frozen=True)
class InterceptedRequest:
    method: str
    url: str


@dataclass(frozen=True)
class RedirectRequest:
    method: str
    url: str


RedirectHandler = Callable[[InterceptedRequest], RedirectRequest]


class ProtocolHost(Protocol):
    def register_http_protocol(self, scheme: str, handler: RedirectHandler) -> None:
        """Intercept `scheme` and redirect via `handler`; raise if refused."""
        ...


# ── Redirects ──────────────────────────────────────────────────────


def redirect_url(config: BridgeConfig, url: str) -> str:
    return (
        f"http://{LOOPBACK_HOST}:{config.port}/"
        f"?url={quote(url, safe='')}&token={quote(config.token, safe='')}"
    )


def redirect_for(config: BridgeConfig, req: InterceptedRequest) -> RedirectRequest:
    return RedirectRequest(method=req.method, url=redirect_url(config, req.url))


def register(scheme: str, config: BridgeConfig, host: ProtocolHost) -> None:
    """Route all `scheme` traffic of `host` to the bridge described by `config`.

    A refusal from the host is fatal: it raises StartupFailure and is not
    retried.
    """

    def handler(req: InterceptedRequest) -> RedirectRequest:
        return redirect_for(config, req)

    try:
        host.register_http_protocol(scheme, handler)
    except Exception as e:
        raise StartupFailure(f"Failed to create protocol: {scheme}. {e}") from e
    _log.info("Scheme %s: is now served by the bridge on port %d", scheme, config.port)


# ── urllib host ────────────────────────────────────────────────────

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*$")
_RESERVED_SCHEMES = frozenset({"http", "https", "file", "ftp", "data"})


class _SchemeHandler(urllib.request.BaseHandler):
    """urllib handler answering `<scheme>_open` by re-issuing the request."""

    def __init__(self, scheme: str, redirect: RedirectHandler):
        self.scheme = scheme
        self.redirect = redirect
        # OpenerDirector discovers handlers by method name
        setattr(self, f"{scheme}_open", self.forward)

    def forward(self, req: urllib.request.Request) -> Any:
        target = self.redirect(InterceptedRequest(req.get_method(), req.full_url))
        headers = dict(req.header_items())
        forwarded = urllib.request.Request(
            target.url,
            data=req.data,
            headers=headers,
            method=target.method,
        )
        return self.parent.open(forwarded, timeout=req.timeout)


class UrllibProtocolHost:
    """In-process networking layer backed by a private urllib opener."""

    def __init__(self) -> None:
        # never route loopback traffic through environment proxies
        self._opener = urllib.request.build_opener(urllib.request.ProxyHandler({}))
        self._schemes: dict[str, _SchemeHandler] = {}

    @property
    def schemes(self) -> frozenset[str]:
        return frozenset(self._schemes)

    def register_http_protocol(self, scheme: str, handler: RedirectHandler) -> None:
        if not _SCHEME_RE.match(scheme):
            raise ValueError(f"invalid scheme name {scheme!r}")
        if scheme in _RESERVED_SCHEMES:
            raise ValueError(f"scheme {scheme!r} is already handled by urllib")
        if scheme in self._schemes:
            raise ValueError(f"scheme {scheme!r} is already registered")
        scheme_handler = _SchemeHandler(scheme, handler)
        self._opener.add_handler(scheme_handler)
        self._schemes[scheme] = scheme_handler

    def open(
        self,
        url: str,
        data: bytes | None = None,
        method: str | None = None,
        timeout: float = 30.0,
    ) -> Any:
        return self._opener.open(urllib.request.Request(url, data=data, method=method), timeout=timeout)

    def install(self) -> None:
        """Make this host's opener the process-wide `urllib.request.urlopen` opener."""
        urllib.request.install_opener(self._opener)
