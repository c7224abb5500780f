"""CLI commands for scraping product pages."""

from __future__ import annotations

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from shopscrape.exceptions import ScrapeFailed
from shopscrape.models.scrape import ScrapeAttempt

scrape_app = typer.Typer(help="Scrape product pages.")
console = Console()


def _setup() -> None:
    from shopscrape.logging_config import configure_logging
    from shopscrape.settings import get_settings

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)


def _attempt_table(attempts: list[ScrapeAttempt]) -> Table:
    table = Table(title="Attempts", show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("Method")
    table.add_column("Outcome")
    table.add_column("Seconds", justify="right")
    table.add_column("Reason", overflow="fold")
    for attempt in attempts:
        outcome = "[green]success[/green]" if attempt.succeeded else f"[red]{attempt.kind.value}[/red]"  # type: ignore[union-attr]
        table.add_row(str(attempt.index), attempt.method.value, outcome, f"{attempt.duration_s:.1f}", attempt.reason)
    return table


@scrape_app.command("url")
def scrape_url(
    url: str = typer.Argument(..., help="Product page URL."),
    no_browser: bool = typer.Option(False, "--no-browser", help="Skip the browser and fetch directly."),
    retries: Optional[int] = typer.Option(None, "--retries", "-r", min=1, help="Browser attempts before falling back."),
    force_refresh: bool = typer.Option(False, "--force-refresh", help="Ignore any cached record."),
    headless: Optional[bool] = typer.Option(None, "--headless/--headed", help="Override the configured browser mode."),
    as_json: bool = typer.Option(False, "--json", help="Print the full result as JSON."),
) -> None:
    """Scrape one product page, retrying and falling back as needed."""
    from shopscrape.models.scrape import ScrapeRequest
    from shopscrape.service import build_service
    from shopscrape.settings import get_settings

    _setup()
    settings = get_settings()
    request = ScrapeRequest(
        url=url,
        use_browser=not no_browser,
        retries=retries or settings.scrape.retries,
        headless=headless,
        force_refresh=force_refresh,
    )

    async def _run():
        service = build_service(settings)
        try:
            if request.use_browser:
                await service.start()
            return await service.scrape(request)
        finally:
            await service.shutdown()

    try:
        result = asyncio.run(_run())
    except ScrapeFailed as e:
        console.print(f"[red]✗[/red] Scrape failed ({e.kind.value}): {e.reason}")
        if e.attempts:
            console.print(_attempt_table(e.attempts))
        raise typer.Exit(code=1)

    if as_json:
        console.print_json(result.to_json())
        return

    record = result.record
    source = "cache" if result.cached else result.method.value if result.method else "-"
    console.print(f"[green]✓[/green] {record.get('title')}  [dim]({source})[/dim]")
    price = record.get("price")
    if price:
        console.print(f"  Price: {price.get('currency', '')}{price.get('min')} - {price.get('max')}")
    console.print(f"  Images: {len(record.get('images') or [])}")
    if result.attempts:
        console.print(_attempt_table(result.attempts))


@scrape_app.command("forget")
def forget_url(url: str = typer.Argument(..., help="Product page URL to drop from the cache.")) -> None:
    """Delete the cached record for a URL."""
    from shopscrape.exceptions import InvalidRequest
    from shopscrape.service import build_service

    _setup()

    async def _run() -> str:
        service = build_service()
        try:
            return await service.forget(url)
        finally:
            await service.shutdown()

    try:
        key = asyncio.run(_run())
    except InvalidRequest as e:
        console.print(f"[red]✗[/red] {e.reason}")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] Removed {key}")
