"""Route table for the internal scheme.

A table maps scheme URLs (``beaker:start``, ``beaker:editor/min/vs/loader.js``)
to a response source and a content type. Lookups are pure: the same URL
always resolves to the same `Route`, and nothing outside the application
directory can be reached.

Exact rules are consulted first, then prefix rules in declaration order.
The third-party asset prefix strips the URL fragment and every ``..`` from
the remainder before joining it onto its asset root, and the joined path must
still canonicalize to somewhere inside that root.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from schemebridge.config import DEFAULT_SCHEME

HTML = "text/html"
JS = "application/javascript"
CSS = "text/css"
SVG = "image/svg+xml"
PNG = "image/png"
WOFF = "font/woff"
WOFF2 = "font/woff2"

MONACO_ROOT = "node_modules/monaco-editor/min"


# ── Response sources ───────────────────────────────────────────────


@dataclass(frozen=True)
class StaticFile:
    """File on disk, streamed to the client."""

    path: Path


@dataclass(frozen=True)
class InlineBytes:
    """Literal body held in memory."""

    content: bytes


@dataclass(frozen=True)
class Generated:
    """Body produced by calling `producer()` when the request is served."""

    producer: Callable[[], bytes | str] = field(compare=False)

    def render(self) -> bytes:
        body = self.producer()
        if isinstance(body, str):
            return body.encode("utf-8")
        if not isinstance(body, bytes):
            raise TypeError(f"page producer returned {type(body).__name__}, expected bytes or str")
        return body


Source = StaticFile | InlineBytes | Generated


@dataclass(frozen=True)
class Page:
    """Response descriptor attached to a rule."""

    source: Source
    content_type: str = HTML


@dataclass(frozen=True)
class Route:
    """Outcome of a successful lookup."""

    rule: str
    source: Source
    content_type: str
    code: int = 200
    status: str = "OK"


# ── Matchers ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class Prefix:
    """Every URL starting with `prefix` maps to the same page."""

    prefix: str
    page: Page

    @property
    def name(self) -> str:
        return f"{self.prefix}*"

    def match(self, url: str) -> Route | None:
        if not url.startswith(self.prefix):
            return None
        return Route(self.name, self.page.source, self.page.content_type)


@dataclass(frozen=True)
class AssetPrefix:
    """URLs under `prefix` map onto files beneath `root`."""

    prefix: str
    root: Path

    @property
    def name(self) -> str:
        return f"{self.prefix}**"

    def match(self, url: str) -> Route | None:
        if not url.startswith(self.prefix):
            return None
        subpath = sanitize_subpath(url[len(self.prefix):])
        path = confine(self.root, subpath)
        if path is None:
            return None
        return Route(self.name, StaticFile(path), asset_content_type(subpath))


PrefixRule = Prefix | AssetPrefix


def sanitize_subpath(subpath: str) -> str:
    """Drop the fragment and every ``..`` from a sub-path, then make it relative."""
    subpath = subpath.split("#", 1)[0]
    subpath = subpath.replace("..", "")
    return subpath.lstrip("/\\")


def confine(root: Path, subpath: str) -> Path | None:
    """Join `subpath` onto `root`, or return None if the result escapes `root`."""
    try:
        base = os.path.realpath(root)
        candidate = os.path.realpath(os.path.join(base, subpath))
    except (OSError, ValueError):
        # embedded NUL bytes and the like
        return None
    if os.path.commonpath([base, candidate]) != base:
        return None
    return Path(candidate)


def asset_content_type(subpath: str) -> str:
    if subpath.endswith(".css"):
        return CSS
    if subpath.endswith(".svg"):
        return SVG
    return JS


# ── Table ──────────────────────────────────────────────────────────


class RouteTable:
    """Immutable, ordered set of exact and prefix rules."""

    def __init__(self, exact: Mapping[str, Page], prefixes: tuple[PrefixRule, ...] = ()):
        self._exact = MappingProxyType(dict(exact))
        self._prefixes = tuple(prefixes)

    @property
    def exact(self) -> Mapping[str, Page]:
        return self._exact

    @property
    def prefixes(self) -> tuple[PrefixRule, ...]:
        return self._prefixes

    def __len__(self) -> int:
        return len(self._exact) + len(self._prefixes)

    def resolve(self, url: str | None) -> Route | None:
        if not url:
            return None
        page = self._exact.get(url)
        if page is not None:
            return Route(url, page.source, page.content_type)
        # the first prefix that matches owns the URL, even if its rule refuses it
        for rule in self._prefixes:
            if url.startswith(rule.prefix):
                return rule.match(url)
        return None

    def rules(self) -> Iterator[tuple[str, str, Source | Path, str]]:
        """Yield ``(matcher, name, target, content_type)`` for every rule."""
        for url, page in self._exact.items():
            yield "exact", url, page.source, page.content_type
        for rule in self._prefixes:
            if isinstance(rule, AssetPrefix):
                yield "asset", rule.name, rule.root, "by extension"
            else:
                yield "prefix", rule.name, rule.page.source, rule.page.content_type


# ── Built-in table ─────────────────────────────────────────────────


def build_route_table(
    app_dir: Path,
    scheme: str = DEFAULT_SCHEME,
    archives_page: Callable[[], bytes | str] | None = None,
) -> RouteTable:
    """Build the table of the application's built-in pages and assets."""
    if archives_page is None:
        from schemebridge.debug import ArchivesDebugPage

        archives_page = ArchivesDebugPage()

    app_dir = Path(app_dir)

    def f(rel: str, content_type: str = HTML) -> Page:
        return Page(StaticFile(app_dir / rel), content_type)

    exact = {
        # browser ui
        "shell-window": f("shell-window.html"),
        "shell-window.js": f("shell-window.build.js", JS),
        "shell-window.css": f("stylesheets/shell-window.css", CSS),
        "icons.css": f("stylesheets/icons.css", CSS),
        "font-awesome.css": f("stylesheets/fonts/font-awesome/css/font-awesome.min.css", CSS),
        "fontawesome-webfont.woff2": f("assets/fonts/fontawesome-webfont.woff2", WOFF2),
        "fontawesome-webfont.woff": f("assets/fonts/fontawesome-webfont.woff", WOFF),
        "fontawesome-webfont.svg": f("assets/fonts/fontawesome-webfont.svg", SVG),
        # builtin pages
        "builtin-pages.css": f("stylesheets/builtin-pages.css", CSS),
        "start": f("builtin-pages/start.html"),
        "start.css": f("stylesheets/builtin-pages/start.css", CSS),
        "bookmarks": f("builtin-pages/bookmarks.html"),
        "library.css": f("stylesheets/builtin-pages/library.css", CSS),
        "history": f("builtin-pages/history.html"),
        "downloads": f("builtin-pages/downloads.html"),
        "settings": f("builtin-pages/settings.html"),
        "builtin-pages/bookmarks.js": f("builtin-pages/bookmarks.build.js", JS),
        "builtin-pages/library.js": f("builtin-pages/library.build.js", JS),
        "builtin-pages/history.js": f("builtin-pages/history.build.js", JS),
        "builtin-pages/downloads.js": f("builtin-pages/downloads.build.js", JS),
        "builtin-pages/settings.js": f("builtin-pages/settings.build.js", JS),
        "builtin-pages/start.js": f("builtin-pages/start.build.js", JS),
        # editor
        "editor": f("builtin-pages/editor.html"),
        "editor.js": f("builtin-pages/editor.build.js", JS),
        "editor-worker-proxy.js": f("builtin-pages/editor-worker-proxy.js", JS),
        "editor.css": f("stylesheets/builtin-pages/editor.css", CSS),
        # modals
        "create-archive-modal": f("builtin-pages/create-archive-modal.html"),
        "create-archive-modal.css": f("stylesheets/builtin-pages/create-archive-modal.css", CSS),
        "create-archive-modal.js": f("builtin-pages/create-archive-modal.build.js", JS),
        "fork-archive-modal": f("builtin-pages/fork-archive-modal.html"),
        "fork-archive-modal.css": f("stylesheets/builtin-pages/fork-archive-modal.css", CSS),
        "fork-archive-modal.js": f("builtin-pages/fork-archive-modal.build.js", JS),
        # common assets
        "font-photon-entypo": f("assets/fonts/photon-entypo.woff", WOFF),
        "font-source-sans-pro": f("assets/fonts/source-sans-pro.woff2", WOFF2),
        "font-source-sans-pro-le": f("assets/fonts/source-sans-pro-le.woff2", WOFF2),
        # debugging
        "internal-archives": Page(Generated(archives_page), HTML),
    }

    # editor/min/ must precede editor/
    prefixes: tuple[PrefixRule, ...] = (
        Prefix(f"{scheme}:library", f("builtin-pages/library.html")),
        AssetPrefix(f"{scheme}:editor/min/", app_dir / MONACO_ROOT),
        Prefix(f"{scheme}:editor/", f("builtin-pages/editor.html")),
        Prefix(f"{scheme}:logo", f("assets/img/logo.png", PNG)),
    )

    return RouteTable({f"{scheme}:{name}": page for name, page in exact.items()}, prefixes)
