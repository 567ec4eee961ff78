"""Typer CLI for schemebridge — run and inspect the internal-scheme bridge."""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path
from typing import Optional
from urllib.error import HTTPError

import typer

from schemebridge.config import DEFAULT_SCHEME, default_app_dir

app = typer.Typer(
    help="Authenticated loopback bridge serving a host application's internal URL scheme.",
    add_completion=False,
)


# ── Helpers ────────────────────────────────────────────────────────


def _setup_logging(verbose: bool) -> None:
    if not verbose:
        return
    from rich.logging import RichHandler

    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
    )


def _app_dir(app_dir: Optional[Path]) -> Path:
    p = app_dir or default_app_dir()
    if not p.is_dir():
        typer.secho(f"Error: app directory not found at {p}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    return p


def _describe(target: object) -> str:
    from schemebridge.routes import Generated, InlineBytes, StaticFile

    if isinstance(target, StaticFile):
        return str(target.path)
    if isinstance(target, InlineBytes):
        return f"<{len(target.content)} bytes>"
    if isinstance(target, Generated):
        return f"<generated: {type(target.producer).__name__}>"
    return str(target)


AppDirOption = typer.Option(None, "--app-dir", "-d", help="Directory holding the built-in pages")
SchemeOption = typer.Option(DEFAULT_SCHEME, "--scheme", help="Internal URL scheme name")


# ── Commands ───────────────────────────────────────────────────────


@app.command()
def serve(
    app_dir: Optional[Path] = AppDirOption,
    scheme: str = SchemeOption,
    show_token: bool = typer.Option(False, "--show-token", help="Print the request token"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every request"),
) -> None:
    """Start the bridge and keep serving until interrupted."""
    from schemebridge.bridge import setup
    from schemebridge.errors import StartupFailure

    _setup_logging(verbose)
    root = _app_dir(app_dir)
    try:
        bridge = setup(root, scheme=scheme)
    except StartupFailure as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    typer.echo(f"Serving {scheme}: at {bridge.origin}")
    typer.echo(f"  App dir: {root}")
    typer.echo(f"  Rules: {len(bridge.table)}")
    if show_token:
        typer.echo(f"  Token: {bridge.config.token}")
    typer.echo("  Stop: Ctrl+C")

    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        bridge.close()


@app.command()
def routes(
    app_dir: Optional[Path] = AppDirOption,
    scheme: str = SchemeOption,
) -> None:
    """Print the route table."""
    from rich.console import Console
    from rich.table import Table

    from schemebridge.routes import build_route_table

    table = build_route_table(app_dir or default_app_dir(), scheme)

    out = Table(show_header=True, header_style="bold")
    out.add_column("Match", style="cyan")
    out.add_column("URL")
    out.add_column("Content-Type", style="green")
    out.add_column("Target")
    for matcher, name, target, content_type in table.rules():
        out.add_row(matcher, name, content_type, _describe(target))

    Console().print(out)


@app.command()
def resolve(
    url: str = typer.Argument(..., help="Scheme URL, e.g. beaker:start"),
    app_dir: Optional[Path] = AppDirOption,
    scheme: str = SchemeOption,
) -> None:
    """Show which rule a scheme URL resolves to, without serving it."""
    from schemebridge.routes import StaticFile, build_route_table

    table = build_route_table(app_dir or default_app_dir(), scheme)
    route = table.resolve(url)
    if route is None:
        typer.secho(f"404 Not Found: {url}", fg=typer.colors.RED)
        raise typer.Exit(1)

    typer.secho(f"{route.code} {route.status}", fg=typer.colors.GREEN)
    typer.echo(f"  Rule: {route.rule}")
    typer.echo(f"  Content-Type: {route.content_type}")
    typer.echo(f"  Target: {_describe(route.source)}")
    if isinstance(route.source, StaticFile) and not route.source.path.is_file():
        typer.secho("  (file missing: would be served as 404)", fg=typer.colors.YELLOW)


@app.command()
def fetch(
    url: str = typer.Argument(..., help="Scheme URL, e.g. beaker:start"),
    app_dir: Optional[Path] = AppDirOption,
    scheme: str = SchemeOption,
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the body to a file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log bridge activity"),
) -> None:
    """Fetch a scheme URL through an in-process bridge."""
    from schemebridge.bridge import setup
    from schemebridge.errors import StartupFailure

    _setup_logging(verbose)
    try:
        bridge = setup(_app_dir(app_dir), scheme=scheme)
    except StartupFailure as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    with bridge:
        try:
            with bridge.fetch(url) as resp:
                content_type = resp.headers.get("Content-Type", "")
                body = resp.read()
        except HTTPError as e:
            e.close()
            typer.secho(f"{e.code} {e.reason}: {url}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)

    typer.secho(f"200 OK ({content_type}, {len(body)} bytes)", fg=typer.colors.GREEN, err=True)
    if output is not None:
        output.write_bytes(body)
    else:
        sys.stdout.buffer.write(body)
        sys.stdout.flush()


def main() -> None:
    app()
