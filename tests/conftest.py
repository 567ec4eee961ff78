from pathlib import Path

import pytest

from schemebridge.config import BridgeConfig
from schemebridge.routes import build_route_table
from schemebridge.server import create_app

TOKEN = "123456"

APP_FILES = {
    "builtin-pages/start.html": b"<!DOCTYPE html><html><body>start page</body></html>",
    "builtin-pages/library.html": b"<html>library</html>",
    "builtin-pages/editor.html": b"<html>editor</html>",
    "builtin-pages/start.build.js": b"console.log('start')",
    "stylesheets/builtin-pages/start.css": b"body { color: red; }",
    "stylesheets/builtin-pages/library.css": b".library {}",
    "assets/img/logo.png": b"\x89PNG\r\n\x1a\nlogo",
    "assets/fonts/source-sans-pro.woff2": b"wOF2font",
    "node_modules/monaco-editor/min/vs/editor/editor.main.css": b".monaco-editor { display: block; }",
    "node_modules/monaco-editor/min/vs/loader.js": b"var require = {};",
    "node_modules/monaco-editor/min/vs/icons/close.svg": b"<svg></svg>",
}

SECRET = b"top secret, outside the app dir"


@pytest.fixture
def app_dir(tmp_path: Path) -> Path:
    root = tmp_path / "app"
    for rel, content in APP_FILES.items():
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(content)
    (tmp_path / "secret.txt").write_bytes(SECRET)
    return root


@pytest.fixture
def monaco_root(app_dir: Path) -> Path:
    return app_dir / "node_modules" / "monaco-editor" / "min"


@pytest.fixture
def config() -> BridgeConfig:
    return BridgeConfig(scheme="beaker", token=TOKEN, port=0)


@pytest.fixture
def table(app_dir: Path):
    return build_route_table(app_dir)


@pytest.fixture
def wsgi_app(config, table):
    return create_app(config, table)
