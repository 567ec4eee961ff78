"""Standardized error page shown for 403 and 404 responses."""

from __future__ import annotations

from bottle import SimpleTemplate  # type: ignore

_ERROR_SRC = r"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{{message}}</title>
<style>
body { background: #f0f0f0; color: #333; font-family: system-ui, -apple-system, Segoe UI, Roboto, Arial, sans-serif; }
.box { margin: 120px auto; max-width: 420px; padding: 24px 32px; background: #fff; border: 1px solid #ddd; border-radius: 4px; }
h1 { font-size: 22px; font-weight: 500; margin: 0 0 8px; }
p { color: #777; margin: 0; }
</style>
</head>
<body>
<div class="box">
<h1>{{message}}</h1>
<p>{{hint}}</p>
</div>
</body>
</html>
"""

_ERROR_TPL = SimpleTemplate(source=_ERROR_SRC)

_HINTS = {
    "403": "This page is only available to the application itself.",
    "404": "The page you requested does not exist.",
}


def render_error_page(message: str) -> bytes:
    """Render `message` (e.g. ``"404 Not Found"``) as an HTML page."""
    code = message.split(" ", 1)[0]
    # SimpleTemplate escapes {{...}} values itself
    html = _ERROR_TPL.render(message=message, hint=_HINTS.get(code, ""))
    return html.encode("utf-8")