"""Process-lifetime configuration shared by the bridge server and the scheme registrar."""

from __future__ import annotations

import hmac
import secrets
from dataclasses import dataclass
from pathlib import Path

DEFAULT_SCHEME = "beaker"
LOOPBACK_HOST = "127.0.0.1"

# Socket timeout applied to every bridge connection (seconds)
REQUEST_TIMEOUT = 30.0


# ── Path helpers ───────────────────────────────────────────────────


def default_app_dir() -> Path:
    """Return the directory holding the bundled interface assets.
    These ship as package data inside the schemebridge package."""
    return Path(__file__).resolve().parent / "assets"


# ── Token ──────────────────────────────────────────────────────────


def generate_token() -> str:
    """Return a fresh request token (32 random bits, decimal)."""
    return str(secrets.randbits(32))


@dataclass(frozen=True)
class BridgeConfig:
    """Immutable settings fixed once the bridge socket is bound."""

    scheme: str
    token: str
    port: int

    @property
    def origin(self) -> str:
        return f"http://{LOOPBACK_HOST}:{self.port}"

    def check_token(self, candidate: str | None) -> bool:
        if not candidate:
            return False
        return hmac.compare_digest(candidate.encode("utf-8"), self.token.encode("utf-8"))
