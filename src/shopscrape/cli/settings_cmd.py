"""CLI commands for inspecting and validating shopscrape settings."""

from __future__ import annotations

import json

import typer
from pydantic import ValidationError
from rich.console import Console

settings_app = typer.Typer(help="Inspect and validate shopscrape configuration.")
console = Console()

_SECRET_FIELDS = {("proxy", "password"), ("captcha", "api_key")}


@settings_app.command("show")
def show_settings() -> None:
    """Display the currently resolved settings (secrets masked)."""
    from shopscrape.settings import get_settings

    data = get_settings().model_dump(mode="json")
    for section, field in _SECRET_FIELDS:
        if data.get(section, {}).get(field):
            data[section][field] = "***"
    console.print_json(json.dumps(data, indent=2, default=str))


@settings_app.command("validate")
def validate_settings() -> None:
    """Validate settings and report any issues."""
    from shopscrape.settings import get_settings

    try:
        settings = get_settings()
    except ValidationError as e:
        console.print(f"[red]✗[/red] Settings validation failed: {e}")
        raise typer.Exit(code=1)

    console.print("[green]✓[/green] Settings are valid.")
    console.print(f"  Environment: {settings.env}")
    console.print(f"  Browser: {'headless' if settings.browser.headless else 'headed'}")
    console.print(f"  Proxy: {settings.proxy.host + ':' + str(settings.proxy.port) if settings.proxy.enabled else 'disabled'}")
    console.print(f"  Captcha auto-solve: {'on (' + settings.captcha.service + ')' if settings.captcha.api_key else 'off'}")
    console.print(f"  Cache backend: {settings.cache.backend}")
