"""Bridge server — loopback HTTP endpoint behind the internal scheme.

Every request must carry the process token; anything else gets the 403 page
before routing is even looked at. Authorized requests are resolved through
the route table and answered with the matched file, literal body or
generated page, or with the 404 page.

Only 200, 403 and 404 are ever produced. Every response carries the same
Content-Security-Policy and a wildcard Access-Control-Allow-Origin.
"""

from __future__ import annotations

import logging
import socketserver
import threading
from collections.abc import Callable
from typing import Any, cast
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

import bottle  # type: ignore

from schemebridge.config import LOOPBACK_HOST, REQUEST_TIMEOUT, BridgeConfig
from schemebridge.error_page import render_error_page
from schemebridge.errors import NotFound, RequestError, StartupFailure, Unauthorized
from schemebridge.routes import (
    HTML,
    Generated,
    InlineBytes,
    RouteTable,
    Source,
    StaticFile,
)

Bottle = cast(Any, bottle.Bottle)
request = cast(Any, bottle.request)
HTTPResponse = cast(Any, bottle.HTTPResponse)

_log = logging.getLogger("schemebridge")

# hash of the inline script in the editor page
INLINE_SCRIPT_HASH = "sha256-/GH4WWPZSUCyeIShYuNnaB4V7PpybVDcxvRnWx1GRDE="


def content_security_policy(scheme: str) -> str:
    return " ".join([
        f"default-src 'self' {scheme}:;",
        f"img-src {scheme}-favicon: data: dat: http: https:;",
        f"script-src 'self' {scheme}: '{INLINE_SCRIPT_HASH}';",
        f"media-src 'self' {scheme}: dat:;",
        f"style-src 'self' 'unsafe-inline' {scheme}:;",
    ])


# ── Bottle app ─────────────────────────────────────────────────────


def create_app(
    config: BridgeConfig,
    table: RouteTable,
    error_page: Callable[[str], bytes] = render_error_page,
) -> Any:
    """Build the WSGI application answering bridge requests for `config`."""
    app = Bottle()
    csp = content_security_policy(config.scheme)

    def _headers(content_type: str | None) -> dict[str, str]:
        return {
            "Content-Type": content_type or HTML,
            "Content-Security-Policy": csp,
            "Access-Control-Allow-Origin": "*",
        }

    def _error(err: RequestError) -> Any:
        return HTTPResponse(
            status=err.status_line,
            body=error_page(err.status_line),
            headers=_headers(None),
        )

    def _serve() -> Any:
        # token first, before the url is even read
        if not config.check_token(request.query.getunicode("token")):
            raise Unauthorized()

        url = request.query.getunicode("url")
        route = table.resolve(url)
        if route is None:
            _log.debug("No route for %s", url)
            raise NotFound()

        body = _open_body(route.source)
        _log.debug("%s %s -> %s (%s)", request.method, url, route.rule, route.content_type)
        return HTTPResponse(
            status=f"{route.code} {route.status}",
            body=body,
            headers=_headers(route.content_type),
        )

    # The path is not significant; the target travels in the query string.
    @app.route("/", method="ANY")
    @app.route("/<path:path>", method="ANY")
    def handle_bridge(path: str = "") -> Any:
        try:
            return _serve()
        except Unauthorized as e:
            _log.info("Rejected %s request with a missing or invalid token", request.method)
            return _error(e)
        except RequestError as e:
            return _error(e)

    return app


def _open_body(source: Source) -> Any:
    """Return the response body for `source`, raising NotFound if unavailable."""
    if isinstance(source, StaticFile):
        try:
            # bottle streams file objects through the WSGI file wrapper
            return open(source.path, "rb")
        except (OSError, ValueError) as e:
            _log.debug("Cannot open %s: %s", source.path, e)
            raise NotFound() from e
    if isinstance(source, InlineBytes):
        return source.content
    if isinstance(source, Generated):
        try:
            return source.render()
        except Exception as e:
            _log.exception("Generated page failed")
            raise NotFound() from e
    raise NotFound()


# ── Server ─────────────────────────────────────────────────────────


class _ThreadingWSGIServer(socketserver.ThreadingMixIn, WSGIServer):
    daemon_threads = True

    def handle_error(self, request: Any, client_address: Any) -> None:
        _log.debug("Connection from %s failed", client_address, exc_info=True)


class _BridgeRequestHandler(WSGIRequestHandler):
    timeout = REQUEST_TIMEOUT

    def log_message(self, format: str, *args: Any) -> None:
        _log.debug("%s - %s", self.address_string(), format % args)


class BridgeServer:
    """Threaded wsgiref server bound once to an ephemeral loopback port."""

    def __init__(self, host: str = LOOPBACK_HOST):
        self.host = host
        self._httpd: _ThreadingWSGIServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def port(self) -> int:
        if self._httpd is None:
            raise RuntimeError("bridge server is not bound")
        return self._httpd.server_address[1]

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def bind(self) -> int:
        """Bind the listening socket (once) and return the assigned port."""
        if self._httpd is None:
            try:
                self._httpd = make_server(
                    self.host,
                    0,
                    None,
                    server_class=_ThreadingWSGIServer,
                    handler_class=_BridgeRequestHandler,
                )
            except OSError as e:
                raise StartupFailure(f"Failed to bind bridge server on {self.host}: {e}") from e
        return self.port

    def serve(self, app: Any) -> None:
        """Start answering requests with `app` on a daemon thread."""
        port = self.bind()
        httpd = self._httpd
        if httpd is None:
            raise RuntimeError("bridge server is not bound")
        if self._thread is not None:
            raise RuntimeError("bridge server is already serving")
        httpd.set_app(app)
        self._thread = threading.Thread(
            target=httpd.serve_forever,
            name=f"schemebridge-{port}",
            daemon=True,
        )
        self._thread.start()
        _log.info("Bridge server listening on http://%s:%d", self.host, port)

    def shutdown(self) -> None:
        if self._httpd is None:
            return
        if self._thread is not None:
            self._httpd.shutdown()
            self._thread.join()
        self._httpd.server_close()
        _log.info("Bridge server on port %d stopped", self.port)
