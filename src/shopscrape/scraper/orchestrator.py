"""Retry and fallback orchestration for a single scrape request.

``ScrapeOrchestrator.scrape`` is the only entry point:

1. Validate and normalise the URL (``InvalidRequest`` fails immediately).
2. Serve from the record cache unless a refresh is forced.
3. Run up to ``retries`` browser attempts with linear backoff.
4. Fall back to the direct-fetch path exactly once, with its own bounded
   retry loop, when the browser path is exhausted or unavailable.
5. Cache and return the record, or raise ``ScrapeFailed`` carrying the
   kind and reason of the last attempt plus the full attempt history.

Decisions are taken from the policy tables in ``scraper.policy``; error
messages are never inspected.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from shopscrape.exceptions import ScrapeError, ScrapeFailed
from shopscrape.models.scrape import AttemptMethod, ScrapeAttempt, ScrapeRequest, ScrapeResult
from shopscrape.scraper.policy import Action, browser_action, fetch_action
from shopscrape.store.record_cache import cache_key
from shopscrape.urls import validate_url

if TYPE_CHECKING:
    from shopscrape.scraper.browser import BrowserScraper
    from shopscrape.scraper.fetch import FetchScraper
    from shopscrape.settings.config import CacheSettings, ScrapeSettings
    from shopscrape.store.record_cache import RecordCache

logger = logging.getLogger(__name__)


class ScrapeOrchestrator:
    """Chooses between the browser and fetch paths for each request.

    Args:
        browser: Browser attempt runner, or ``None`` when the browser path is
            disabled for this process.
        fetch: Direct-fetch attempt runner.
        cache: Record cache.
        settings: The ``scrape`` settings section (backoff, fetch budget).
        cache_settings: The ``cache`` settings section (key prefix, TTL).
    """

    def __init__(
        self,
        browser: BrowserScraper | None,
        fetch: FetchScraper,
        cache: RecordCache,
        settings: ScrapeSettings,
        cache_settings: CacheSettings,
    ) -> None:
        self.browser = browser
        self.fetch = fetch
        self.cache = cache
        self._settings = settings
        self._cache_settings = cache_settings

    async def scrape(self, request: ScrapeRequest) -> ScrapeResult:
        """Return the record for ``request.url``.

        Raises:
            ScrapeFailed: No attempt produced a record.
        """
        attempts: list[ScrapeAttempt] = []
        try:
            url = validate_url(request.url)
        except ScrapeError as exc:
            logger.warning("Rejected request: %s", exc.reason)
            raise ScrapeFailed(exc.kind, exc.reason, attempts) from exc

        key = cache_key(url, self._cache_settings.key_prefix)
        if not request.force_refresh:
            cached = await self._cache_get(key)
            if cached is not None:
                logger.info("Cache hit for %s", url)
                return ScrapeResult(url=url, record=cached, cached=True)

        record: dict[str, Any] | None = None
        method = AttemptMethod.FETCH
        if request.use_browser and self.browser is not None:
            record = await self._browser_path(url, request, attempts)
            method = AttemptMethod.BROWSER
        if record is None:
            if attempts:
                logger.warning("Browser path exhausted for %s; falling back to direct fetch", url)
            record = await self._fetch_path(url, attempts)
            method = AttemptMethod.FETCH

        await self._cache_set(key, record)
        logger.info("Scraped %s via %s after %d attempt(s)", url, method.value, len(attempts))
        return ScrapeResult(url=url, record=record, method=method, attempts=attempts)

    async def forget(self, url: str) -> str:
        """Delete the cached record for *url*; return the key removed."""
        key = cache_key(validate_url(url), self._cache_settings.key_prefix)
        await self.cache.delete(key)
        logger.info("Removed cached record for %s", url)
        return key

    # -- paths --------------------------------------------------------------

    async def _browser_path(
        self, url: str, request: ScrapeRequest, attempts: list[ScrapeAttempt]
    ) -> dict[str, Any] | None:
        """Run browser attempts; ``None`` means fall back to fetching."""
        assert self.browser is not None
        browser = self.browser
        retries = max(1, request.retries)
        for n in range(1, retries + 1):
            if n > 1:
                await self._backoff(self._settings.backoff_seconds * (n - 1))
            try:
                return await self._run_attempt(
                    attempts, AttemptMethod.BROWSER, lambda: browser.attempt(url, headless=request.headless)
                )
            except ScrapeError as exc:
                action = browser_action(exc.kind)
                if action is Action.ABORT:
                    raise ScrapeFailed(exc.kind, exc.reason, attempts) from exc
                if action is Action.FALLBACK:
                    return None
                if n < retries:
                    logger.info("Retrying %s in the browser (%d/%d)", url, n + 1, retries)
        return None

    async def _fetch_path(self, url: str, attempts: list[ScrapeAttempt]) -> dict[str, Any]:
        retries = max(1, self._settings.fetch_retries)
        last: ScrapeError | None = None
        for n in range(1, retries + 1):
            if n > 1:
                await self._backoff(self._settings.fetch_backoff_seconds * (n - 1))
            try:
                return await self._run_attempt(attempts, AttemptMethod.FETCH, lambda: self.fetch.attempt(url, index=n))
            except ScrapeError as exc:
                last = exc
                if fetch_action(exc.kind) is not Action.RETRY:
                    break
        assert last is not None
        raise ScrapeFailed(last.kind, last.reason, attempts) from last

    async def _run_attempt(
        self,
        attempts: list[ScrapeAttempt],
        method: AttemptMethod,
        run: Callable[[], Awaitable[dict[str, Any]]],
    ) -> dict[str, Any]:
        attempt = ScrapeAttempt(index=len(attempts) + 1, method=method)
        attempts.append(attempt)
        started = time.monotonic()
        try:
            return await run()
        except ScrapeError as exc:
            attempt.kind = exc.kind
            attempt.reason = exc.reason
            logger.warning("Attempt %d (%s) failed: %s", attempt.index, method.value, exc)
            raise
        finally:
            attempt.duration_s = time.monotonic() - started

    async def _backoff(self, seconds: float) -> None:
        if seconds > 0:
            logger.debug("Backing off %.1fs", seconds)
            await asyncio.sleep(seconds)

    # -- cache --------------------------------------------------------------

    async def _cache_get(self, key: str) -> dict[str, Any] | None:
        try:
            return await self.cache.get(key)
        except Exception as exc:
            logger.warning("Cache read failed, treating as miss: %s", exc)
            return None

    async def _cache_set(self, key: str, record: dict[str, Any]) -> None:
        try:
            await self.cache.set(key, record, ttl_seconds=self._cache_settings.ttl_seconds)
        except Exception as exc:
            logger.warning("Cache write failed: %s", exc)
