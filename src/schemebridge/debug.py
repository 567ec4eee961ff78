"""Diagnostic pages generated on request (``beaker:internal-archives``)."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from bottle import SimpleTemplate  # type: ignore

_ARCHIVES_SRC = r"""<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>Archives</title></head>
<body>
<h1>Archives</h1>
% if not archives:
<p>No archives are loaded.</p>
% else:
<table>
<tr><th>Key</th><th>Title</th><th>Peers</th></tr>
% for a in archives:
<tr><td><code>{{a.get("key", "")}}</code></td><td>{{a.get("title", "")}}</td><td>{{a.get("peers", 0)}}</td></tr>
% end
</table>
% end
</body>
</html>
"""

_ARCHIVES_TPL = SimpleTemplate(source=_ARCHIVES_SRC)


def render_archives_debug_page(archives: Iterable[Mapping[str, Any]]) -> bytes:
    return _ARCHIVES_TPL.render(archives=list(archives)).encode("utf-8")


class ArchivesDebugPage:
    """Zero-argument page producer for the archives debug page.

    `source` is asked for the current archive summaries every time the page
    is served; without one the page lists nothing.
    """

    def __init__(self, source: Callable[[], Iterable[Mapping[str, Any]]] | None = None):
        self._source = source

    def __call__(self) -> bytes:
        archives = self._source() if self._source is not None else ()
        return render_archives_debug_page(archives)
