"""CLI commands for the captcha-solving service."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console

from shopscrape.exceptions import CaptchaServiceError

solver_app = typer.Typer(help="Inspect the captcha-solving service.")
console = Console()


@solver_app.command("balance")
def show_balance() -> None:
    """Print the remaining balance of the configured solving account."""
    from shopscrape.settings import get_settings
    from shopscrape.solver.factory import create_captcha_service

    service = create_captcha_service(get_settings().captcha)
    if service is None:
        console.print("[yellow]⚠[/yellow] No captcha API key configured (SHOPSCRAPE_CAPTCHA__API_KEY).")
        raise typer.Exit(code=1)

    async def _balance() -> float:
        try:
            return await service.get_balance()
        finally:
            await service.aclose()

    try:
        balance = asyncio.run(_balance())
    except CaptchaServiceError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)
    console.print(f"{service.name} balance: [bold]{balance:.2f}[/bold]")
