"""One browser-path scrape attempt.

Sequence inside a single page session:

1. Navigate (human-like pause first, render wait after).
2. Pointer move and incremental scrolling.
3. Early detection check once body text appears; resolve challenges.
4. Final detection check after a settle period; resolve challenges.
5. Thin-content check with one extra wait.
6. Extract the record while the session is still open.

The session is closed on every exit path.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from playwright.async_api import Error as PlaywrightError

from shopscrape.exceptions import BlockedByAntiBot, CaptchaUnsolved, NavigationFailed, ScrapeError, ThinContent
from shopscrape.extraction import extract_record
from shopscrape.models.detection import BlockReason, DetectionPhase

if TYPE_CHECKING:
    from shopscrape.browser.captcha import CaptchaCoordinator
    from shopscrape.browser.detection import DetectionLayer
    from shopscrape.browser.lifecycle import BrowserLifecycleManager
    from shopscrape.browser.session import PageSession, PageSessionController
    from shopscrape.extraction import Extractor
    from shopscrape.models.detection import DetectionVerdict
    from shopscrape.settings.config import BrowserSettings, CaptchaSettings

logger = logging.getLogger(__name__)


class BrowserScraper:
    """Runs browser attempts against the shared browser."""

    def __init__(
        self,
        lifecycle: BrowserLifecycleManager,
        sessions: PageSessionController,
        detection: DetectionLayer,
        captcha: CaptchaCoordinator,
        extractor: Extractor,
        browser_settings: BrowserSettings,
        captcha_settings: CaptchaSettings,
    ) -> None:
        self.lifecycle = lifecycle
        self.sessions = sessions
        self.detection = detection
        self.captcha = captcha
        self.extractor = extractor
        self._browser_settings = browser_settings
        self._captcha_settings = captcha_settings

    async def attempt(self, url: str, *, headless: bool | None = None) -> dict[str, Any]:
        """Scrape *url* once through the browser.

        Raises:
            ScrapeError: Classified failure of this attempt.
        """
        handle = await self.lifecycle.acquire(headless)
        async with self.sessions.session(handle, self.lifecycle.proxy) as session:
            try:
                return await self._run(session, url)
            except ScrapeError as exc:
                await self._capture_debug(session, exc.kind.value)
                raise
            except PlaywrightError as exc:
                await self._capture_debug(session, "playwright_error")
                raise NavigationFailed(f"browser error on {url}: {str(exc).splitlines()[0] if str(exc) else exc}") from exc

    def interactive(self, session: PageSession) -> bool:
        """A human can solve challenges only in a visible window."""
        return self._captcha_settings.allow_manual and not session.headless

    async def _run(self, session: PageSession, url: str) -> dict[str, Any]:
        await self.sessions.navigate(session, url)
        await self.sessions.simulate_human(session)

        verdict = await self._clear(session, await self.detection.early_check(session))
        verdict = await self._clear(session, await self.detection.final_check(session))

        if verdict.text_length < self._browser_settings.min_content_chars:
            logger.warning("Page has very little content (%d chars); waiting once more", verdict.text_length)
            await asyncio.sleep(self._browser_settings.thin_content_wait_seconds)
            verdict = await self._clear(session, await self.detection.evaluate(session, DetectionPhase.RECHECK))
            if verdict.text_length < self._browser_settings.min_content_chars:
                raise ThinContent(f"only {verdict.text_length} chars of text rendered on {url}")

        page = session.require_page()
        html = await page.content()
        record = extract_record(self.extractor, html, page.url or url)
        logger.info("Scraped %r from %s", record.get("title"), url)
        return record

    async def _clear(self, session: PageSession, verdict: DetectionVerdict) -> DetectionVerdict:
        """Return a non-blocked verdict, resolving a challenge if needed."""
        if verdict.reason == BlockReason.EVALUATION_FAILED:
            raise NavigationFailed(f"page could not be inspected: {verdict.detail}")
        if not verdict.blocked:
            return verdict

        resolution = await self.captcha.resolve(session, verdict, interactive=self.interactive(session))
        if resolution.solved:
            cleared = await self.detection.evaluate(session, DetectionPhase.RECHECK)
            if cleared.reason == BlockReason.EVALUATION_FAILED:
                raise NavigationFailed(f"page could not be inspected: {cleared.detail}")
            if not cleared.blocked:
                return cleared
            raise CaptchaUnsolved(f"challenge reappeared after resolution: {cleared.detail}")
        if resolution.attempted:
            raise CaptchaUnsolved(resolution.error)
        raise BlockedByAntiBot(verdict.detail)

    async def _capture_debug(self, session: PageSession, label: str) -> None:
        """Save a screenshot of the failing page when a debug directory is configured."""
        directory = self._browser_settings.screenshot_dir
        if not directory or session.page is None or session.closed:
            return
        path = Path(directory) / f"{time.strftime('%Y%m%d-%H%M%S')}-{label}.png"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await session.page.screenshot(path=str(path))
            logger.info("Debug screenshot saved to %s", path)
        except (PlaywrightError, OSError) as exc:
            logger.debug("Debug screenshot failed: %s", exc)
