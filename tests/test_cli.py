from typer.testing import CliRunner

from schemebridge.cli import app

from conftest import APP_FILES

runner = CliRunner()


def test_routes(app_dir):
    result = runner.invoke(app, ["routes", "--app-dir", str(app_dir)], env={"COLUMNS": "400"})
    assert result.exit_code == 0
    assert "beaker:start" in result.output
    assert "beaker:internal-archives" in result.output


def test_resolve(app_dir):
    result = runner.invoke(app, ["resolve", "beaker:editor/min/vs/loader.js#x", "--app-dir", str(app_dir)])
    assert result.exit_code == 0
    assert "200 OK" in result.output
    assert "application/javascript" in result.output
    assert "loader.js" in result.output


def test_resolve_missing_file(app_dir):
    result = runner.invoke(app, ["resolve", "beaker:settings", "--app-dir", str(app_dir)])
    assert result.exit_code == 0
    assert "file missing" in result.output


def test_resolve_unknown(app_dir):
    result = runner.invoke(app, ["resolve", "beaker:nope", "--app-dir", str(app_dir)])
    assert result.exit_code == 1
    assert "404 Not Found" in result.output


def test_resolve_other_scheme(app_dir):
    result = runner.invoke(app, ["resolve", "shell:start", "--scheme", "shell", "--app-dir", str(app_dir)])
    assert result.exit_code == 0


def test_fetch_to_file(app_dir, tmp_path):
    out = tmp_path / "start.html"
    result = runner.invoke(app, ["fetch", "beaker:start", "--app-dir", str(app_dir), "-o", str(out)])
    assert result.exit_code == 0
    assert out.read_bytes() == APP_FILES["builtin-pages/start.html"]


def test_fetch_not_found(app_dir, tmp_path):
    out = tmp_path / "nope.html"
    result = runner.invoke(app, ["fetch", "beaker:nope", "--app-dir", str(app_dir), "-o", str(out)])
    assert result.exit_code == 1
    assert "404" in result.output
    assert not out.exists()


def test_fetch_bad_app_dir(tmp_path):
    result = runner.invoke(app, ["fetch", "beaker:start", "--app-dir", str(tmp_path / "missing")])
    assert result.exit_code == 1
    assert "app directory not found" in result.output
