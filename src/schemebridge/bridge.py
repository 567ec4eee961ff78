"""One-time setup tying the bridge server and the scheme registrar together."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from schemebridge.config import DEFAULT_SCHEME, BridgeConfig, default_app_dir, generate_token
from schemebridge.errors import StartupFailure
from schemebridge.registrar import ProtocolHost, UrllibProtocolHost, register
from schemebridge.routes import RouteTable, build_route_table
from schemebridge.server import BridgeServer, create_app

_log = logging.getLogger("schemebridge")


class Bridge:
    """A running bridge: config, route table, server and the host it serves."""

    def __init__(
        self,
        config: BridgeConfig,
        table: RouteTable,
        server: BridgeServer,
        host: ProtocolHost,
    ):
        self.config = config
        self.table = table
        self.server = server
        self.host = host

    @property
    def origin(self) -> str:
        return self.config.origin

    def fetch(self, url: str, timeout: float = 30.0) -> Any:
        """Open a scheme URL through the host (urllib hosts only)."""
        opener = getattr(self.host, "open", None)
        if opener is None:
            raise TypeError(f"{type(self.host).__name__} cannot open URLs")
        return opener(url, timeout=timeout)

    def close(self) -> None:
        self.server.shutdown()

    def __enter__(self) -> Bridge:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def setup(
    app_dir: Path | None = None,
    *,
    scheme: str = DEFAULT_SCHEME,
    host: ProtocolHost | None = None,
    archives_page: Callable[[], bytes | str] | None = None,
    token: str | None = None,
    table: RouteTable | None = None,
) -> Bridge:
    """Start the bridge server and register `scheme` with `host`.

    Binds an ephemeral loopback port, fixes the configuration for the rest
    of the process, and installs the scheme interception. Raises
    StartupFailure if the port cannot be bound or the host refuses the
    scheme; the socket is released in either case.
    """
    if host is None:
        host = UrllibProtocolHost()
    if table is None:
        table = build_route_table(app_dir or default_app_dir(), scheme, archives_page)

    server = BridgeServer()
    port = server.bind()
    config = BridgeConfig(scheme=scheme, token=token or generate_token(), port=port)
    try:
        server.serve(create_app(config, table))
        register(scheme, config, host)
    except StartupFailure:
        server.shutdown()
        raise
    except Exception as e:
        server.shutdown()
        raise StartupFailure(f"Failed to start bridge for {scheme}: {e}") from e
    _log.debug("Bridge ready at %s with %d rules", config.origin, len(table))
    return Bridge(config, table, server, host)
