"""Unified CLI entry point for shopscrape.

Config precedence: settings.default.toml -> settings.{env}.toml -> settings.local.toml -> env vars (SHOPSCRAPE_* with double underscores) -> CLI flags.
"""

from __future__ import annotations

import typer

from shopscrape import __version__
from shopscrape.cli.scrape_cmd import scrape_app
from shopscrape.cli.settings_cmd import settings_app
from shopscrape.cli.solver_cmd import solver_app

APP_HELP = (
    "shopscrape: retrieve product pages from bot-protected storefronts. "
    "Config precedence: settings.default.toml -> settings.{env}.toml -> settings.local.toml "
    "-> env vars (SHOPSCRAPE_* with __) -> CLI flags."
)

app = typer.Typer(add_completion=True, help=APP_HELP)

app.add_typer(scrape_app, name="scrape")
app.add_typer(solver_app, name="solver")
app.add_typer(settings_app, name="settings")


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context, version: bool = typer.Option(False, "--version", help="Show version and exit.")) -> None:
    """Show help when no subcommand is provided."""
    if version:
        typer.echo(f"shopscrape {__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


if __name__ == "__main__":
    app()
