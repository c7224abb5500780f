"""Service assembly: builds every collaborator from settings once.

Usage::

    async with build_service() as service:
        result = await service.scrape(ScrapeRequest(url="https://shop.example/item/1"))
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shopscrape.browser.captcha import CaptchaCoordinator
from shopscrape.browser.detection import DetectionLayer
from shopscrape.browser.lifecycle import BrowserLifecycleManager, Launcher
from shopscrape.browser.session import PageSessionController
from shopscrape.exceptions import BrowserUnavailable
from shopscrape.extraction import Extractor, ProductExtractor
from shopscrape.models.proxy import ProxyConfig
from shopscrape.scraper.browser import BrowserScraper
from shopscrape.scraper.fetch import FetchScraper
from shopscrape.scraper.orchestrator import ScrapeOrchestrator
from shopscrape.solver.factory import create_captcha_service
from shopscrape.store.record_cache import RecordCache, build_record_cache

if TYPE_CHECKING:
    from shopscrape.models.scrape import ScrapeRequest, ScrapeResult
    from shopscrape.settings.config import Settings
    from shopscrape.solver.base import CaptchaService

logger = logging.getLogger(__name__)


class ScraperService:
    """Owns the shared browser, captcha service, cache and orchestrator."""

    def __init__(
        self,
        lifecycle: BrowserLifecycleManager,
        orchestrator: ScrapeOrchestrator,
        captcha_service: CaptchaService | None = None,
    ) -> None:
        self.lifecycle = lifecycle
        self.orchestrator = orchestrator
        self.captcha_service = captcha_service

    async def start(self) -> None:
        """Start the automation driver; the browser itself launches on first use."""
        try:
            await self.lifecycle.start()
        except BrowserUnavailable as exc:
            # Browser attempts will fail fast and fall back to fetching.
            logger.warning("Browser driver unavailable: %s", exc.reason)

    async def scrape(self, request: ScrapeRequest) -> ScrapeResult:
        return await self.orchestrator.scrape(request)

    async def forget(self, url: str) -> str:
        return await self.orchestrator.forget(url)

    async def shutdown(self) -> None:
        """Close the browser, HTTP clients and cache connections."""
        await self.lifecycle.shutdown()
        await self.orchestrator.fetch.aclose()
        if self.captcha_service is not None:
            await self.captcha_service.aclose()
        await self.orchestrator.cache.close()
        logger.info("Scraper service stopped")

    async def __aenter__(self) -> ScraperService:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.shutdown()


def build_service(
    settings: Settings | None = None,
    *,
    launcher: Launcher | None = None,
    extractor: Extractor | None = None,
    cache: RecordCache | None = None,
    captcha_service: CaptchaService | None = None,
) -> ScraperService:
    """Wire up a ``ScraperService`` from settings.

    Keyword arguments replace the collaborator built from settings.
    """
    if settings is None:
        from shopscrape.settings import get_settings

        settings = get_settings()

    proxy = ProxyConfig.from_settings(settings.proxy)
    extractor = extractor or ProductExtractor()
    captcha_service = captcha_service or create_captcha_service(settings.captcha)

    lifecycle = BrowserLifecycleManager(settings.browser, proxy=proxy, launcher=launcher)
    detection = DetectionLayer(settings.browser)
    browser = BrowserScraper(
        lifecycle=lifecycle,
        sessions=PageSessionController(settings.browser),
        detection=detection,
        captcha=CaptchaCoordinator(detection, settings.captcha, captcha_service),
        extractor=extractor,
        browser_settings=settings.browser,
        captcha_settings=settings.captcha,
    )
    fetch = FetchScraper(
        extractor,
        timeout=settings.scrape.fetch_timeout_seconds,
        min_content_chars=settings.browser.min_content_chars,
        proxy=proxy,
    )
    orchestrator = ScrapeOrchestrator(
        browser=browser,
        fetch=fetch,
        cache=cache or build_record_cache(settings.cache),
        settings=settings.scrape,
        cache_settings=settings.cache,
    )
    logger.info(
        "Scraper service built (env=%s, proxy=%s, auto-captcha=%s)",
        settings.env,
        proxy.server if proxy else "none",
        "on" if captcha_service else "off",
    )
    return ScraperService(lifecycle, orchestrator, captcha_service)
