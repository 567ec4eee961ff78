"""End-to-end tests over a real loopback socket."""

import urllib.request
from concurrent.futures import ThreadPoolExecutor
from urllib.error import HTTPError
from urllib.parse import urlencode

import pytest

from schemebridge.bridge import setup
from schemebridge.config import LOOPBACK_HOST
from schemebridge.error_page import render_error_page
from schemebridge.errors import StartupFailure
from schemebridge.registrar import UrllibProtocolHost
from schemebridge.server import BridgeServer

from conftest import APP_FILES, TOKEN


@pytest.fixture
def bridge(app_dir):
    with setup(app_dir, token=TOKEN) as b:
        yield b


def _fetch(bridge, url):
    with bridge.fetch(url, timeout=10) as resp:
        return resp.status, resp.headers.get("Content-Type"), resp.read()


def _direct(bridge, params):
    opener = urllib.request.build_opener(urllib.request.ProxyHandler({}))
    return opener.open(f"{bridge.origin}/?{urlencode(params)}", timeout=10)


def test_bound_to_loopback(bridge):
    assert bridge.server.host == LOOPBACK_HOST
    assert bridge.config.port == bridge.server.port > 0
    assert bridge.origin == f"http://127.0.0.1:{bridge.config.port}"
    assert bridge.server.running


def test_start_page(bridge):
    status, content_type, body = _fetch(bridge, "beaker:start")
    assert status == 200
    assert content_type == "text/html"
    assert body == APP_FILES["builtin-pages/start.html"]


def test_wrong_token(bridge):
    with pytest.raises(HTTPError) as exc:
        _direct(bridge, {"url": "beaker:start", "token": "wrong"})
    assert exc.value.code == 403
    assert exc.value.read() == render_error_page("403 Forbidden")
    exc.value.close()


def test_unknown_page(bridge):
    with pytest.raises(HTTPError) as exc:
        _fetch(bridge, "beaker:does-not-exist")
    assert exc.value.code == 404
    assert exc.value.read() == render_error_page("404 Not Found")
    exc.value.close()


def test_monaco_stylesheet(bridge):
    status, content_type, body = _fetch(bridge, "beaker:editor/min/vs/editor/editor.main.css")
    assert status == 200
    assert content_type == "text/css"
    assert body == APP_FILES["node_modules/monaco-editor/min/vs/editor/editor.main.css"]


def test_post_is_forwarded(bridge):
    with bridge.host.open("beaker:start", data=b"payload", timeout=10) as resp:
        assert resp.status == 200
        assert resp.read() == APP_FILES["builtin-pages/start.html"]


def test_large_file_is_streamed_intact(bridge, monaco_root):
    blob = bytes(range(256)) * 8192  # 2 MiB
    (monaco_root / "vs" / "big.js").write_bytes(blob)
    status, _, body = _fetch(bridge, "beaker:editor/min/vs/big.js")
    assert status == 200
    assert body == blob


def test_concurrent_requests(bridge):
    urls = ["beaker:start", "beaker:start.css", "beaker:editor/min/vs/loader.js", "beaker:logo"] * 8
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda u: _fetch(bridge, u), urls))
    for url, (status, _, body) in zip(urls, results):
        assert status == 200
        assert body == _fetch(bridge, url)[2]


def test_install_makes_urlopen_work(bridge):
    default = urllib.request._opener  # type: ignore[attr-defined]
    bridge.host.install()
    try:
        with urllib.request.urlopen("beaker:start.css", timeout=10) as resp:
            assert resp.read() == APP_FILES["stylesheets/builtin-pages/start.css"]
    finally:
        urllib.request.install_opener(default)


def test_generated_token(app_dir):
    with setup(app_dir) as b:
        assert b.config.token.isdigit()
        status, _, _ = _fetch(b, "beaker:start")
        assert status == 200


def test_two_bridges_do_not_share_tokens(app_dir):
    with setup(app_dir) as a, setup(app_dir) as b:
        assert a.config.port != b.config.port
        if a.config.token == b.config.token:
            pytest.skip("token collision")
        with pytest.raises(HTTPError) as exc:
            _direct(a, {"url": "beaker:start", "token": b.config.token})
        assert exc.value.code == 403
        exc.value.close()


def test_refused_registration_is_fatal(app_dir):
    class RefusingHost:
        def register_http_protocol(self, scheme, handler):
            raise RuntimeError("no")

    with pytest.raises(StartupFailure, match="Failed to create protocol: beaker"):
        setup(app_dir, host=RefusingHost())


def test_custom_scheme(app_dir):
    host = UrllibProtocolHost()
    with setup(app_dir, scheme="shell", host=host) as b:
        assert host.schemes == frozenset({"shell"})
        status, _, body = _fetch(b, "shell:start")
        assert status == 200
        assert body == APP_FILES["builtin-pages/start.html"]


def test_close_stops_server(app_dir):
    b = setup(app_dir)
    b.close()
    assert not b.server.running


def _refuse_bind(*args, **kwargs):
    raise OSError("address unavailable")


def test_bind_failure_is_fatal(monkeypatch):
    monkeypatch.setattr("schemebridge.server.make_server", _refuse_bind)
    server = BridgeServer()
    with pytest.raises(StartupFailure, match="Failed to bind bridge server on 127.0.0.1"):
        server.bind()
    assert not server.running


def test_setup_propagates_bind_failure(app_dir, monkeypatch):
    monkeypatch.setattr("schemebridge.server.make_server", _refuse_bind)
    host = UrllibProtocolHost()
    with pytest.raises(StartupFailure, match="Failed to bind"):
        setup(app_dir, host=host)
    assert host.schemes == frozenset()


def test_serve_twice_is_refused(bridge):
    with pytest.raises(RuntimeError, match="already serving"):
        bridge.server.serve(lambda environ, start_response: [])
