"""Unit tests for single browser-path attempts."""

from __future__ import annotations

from typing import Any

import pytest
from playwright.async_api import Error as PlaywrightError

from helpers import (
    FakeCaptchaService,
    FakeLauncher,
    FakePage,
    blocked_snapshot,
    build_browser_scraper,
    snapshot,
)
from shopscrape.browser.detection import SNAPSHOT_SCRIPT
from shopscrape.exceptions import (
    BlockedByAntiBot,
    CaptchaUnsolved,
    ContentShapeChanged,
    NavigationFailed,
    ThinContent,
)
from shopscrape.models.detection import ChallengeType
from shopscrape.solver.base import PollResult

URL = "https://shop.example/item/1"


class UninspectablePage(FakePage):
    """Page whose DOM cannot be read (detached frame)."""

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script == SNAPSHOT_SCRIPT:
            raise PlaywrightError("Execution context was destroyed")
        return await super().evaluate(script, arg)


class RecordingPage(FakePage):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.screenshots: list[str] = []

    async def screenshot(self, path: str) -> bytes:
        self.screenshots.append(path)
        return b""


# ---------------------------------------------------------------------------
# Clean pages
# ---------------------------------------------------------------------------


class TestCleanPage:
    @pytest.mark.anyio
    async def test_returns_record_and_closes_session(self, browser_settings, captcha_settings) -> None:
        launcher = FakeLauncher()
        scraper = build_browser_scraper(launcher, browser_settings, captcha_settings)

        record = await scraper.attempt(URL)

        assert record["title"] == "Stainless Steel Water Bottle 750ml"
        assert scraper.sessions.opened_count == 1
        assert scraper.sessions.active_count == 0
        context = launcher.browsers[0].contexts[0]
        assert context.close_count == 1
        assert context.page.goto_calls[0][0] == URL
        assert context.page.scrolls == 2
        assert launcher.browsers[0].close_calls == 0

    @pytest.mark.anyio
    async def test_late_content_accepted_after_extra_wait(self, browser_settings, captcha_settings) -> None:
        short = snapshot("Loading...")
        launcher = FakeLauncher(lambda: FakePage([short, short, snapshot()]))
        scraper = build_browser_scraper(launcher, browser_settings, captcha_settings)

        record = await scraper.attempt(URL)

        assert record["title"].startswith("Stainless")
        assert launcher.browsers[0].contexts[0].page.evaluations == 3


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailedAttempts:
    @pytest.mark.anyio
    async def test_extractor_failure_still_closes_session(self, browser_settings, captcha_settings) -> None:
        launcher = FakeLauncher(lambda: FakePage(html="<html><body><p>no title</p></body></html>"))
        scraper = build_browser_scraper(launcher, browser_settings, captcha_settings)

        with pytest.raises(ContentShapeChanged):
            await scraper.attempt(URL)

        assert launcher.browsers[0].contexts[0].close_count == 1
        assert scraper.sessions.active_count == 0

    @pytest.mark.anyio
    async def test_thin_content(self, browser_settings, captcha_settings) -> None:
        launcher = FakeLauncher(lambda: FakePage([snapshot("Loading...")]))
        scraper = build_browser_scraper(launcher, browser_settings, captcha_settings)

        with pytest.raises(ThinContent):
            await scraper.attempt(URL)

    @pytest.mark.anyio
    async def test_uninspectable_page_is_navigation_failure(self, browser_settings, captcha_settings) -> None:
        launcher = FakeLauncher(UninspectablePage)
        scraper = build_browser_scraper(launcher, browser_settings, captcha_settings)

        with pytest.raises(NavigationFailed, match="could not be inspected"):
            await scraper.attempt(URL)
        assert scraper.sessions.active_count == 0

    @pytest.mark.anyio
    async def test_debug_screenshot_on_failure(self, browser_settings, captcha_settings, tmp_path) -> None:
        settings = browser_settings.model_copy(update={"screenshot_dir": str(tmp_path)})
        launcher = FakeLauncher(lambda: RecordingPage([blocked_snapshot()]))
        scraper = build_browser_scraper(launcher, settings, captcha_settings)

        with pytest.raises(BlockedByAntiBot):
            await scraper.attempt(URL)

        shots = launcher.browsers[0].contexts[0].page.screenshots
        assert len(shots) == 1
        assert shots[0].endswith("blocked_by_anti_bot.png")


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


class TestChallenges:
    @pytest.mark.anyio
    async def test_blocked_without_any_solver(self, browser_settings, captcha_settings) -> None:
        launcher = FakeLauncher(lambda: FakePage([blocked_snapshot()]))
        scraper = build_browser_scraper(launcher, browser_settings, captcha_settings)

        with pytest.raises(BlockedByAntiBot, match="hcaptcha-widget"):
            await scraper.attempt(URL)

    @pytest.mark.anyio
    async def test_auto_solver_clears_challenge(self, browser_settings, captcha_settings) -> None:
        launcher = FakeLauncher(lambda: FakePage([blocked_snapshot(), snapshot()]))
        service = FakeCaptchaService()
        scraper = build_browser_scraper(launcher, browser_settings, captcha_settings, service)

        record = await scraper.attempt(URL)

        assert record["title"].startswith("Stainless")
        assert service.submitted == [(URL, ChallengeType.HCAPTCHA, "site-key-123")]
        assert launcher.browsers[0].contexts[0].page.injected_tokens == ["tok-123"]

    @pytest.mark.anyio
    async def test_auto_solver_failure_is_unsolved(self, browser_settings, captcha_settings) -> None:
        launcher = FakeLauncher(lambda: FakePage([blocked_snapshot()]))
        service = FakeCaptchaService([PollResult(error="ERROR_CAPTCHA_UNSOLVABLE")])
        scraper = build_browser_scraper(launcher, browser_settings, captcha_settings, service)

        with pytest.raises(CaptchaUnsolved, match="ERROR_CAPTCHA_UNSOLVABLE"):
            await scraper.attempt(URL)

    @pytest.mark.anyio
    async def test_manual_solve_in_visible_browser(self, browser_settings, captcha_settings) -> None:
        settings = captcha_settings.model_copy(update={"allow_manual": True})
        launcher = FakeLauncher(lambda: FakePage([blocked_snapshot(), snapshot()]))
        scraper = build_browser_scraper(launcher, browser_settings, settings)

        record = await scraper.attempt(URL, headless=False)

        assert record["title"].startswith("Stainless")
        assert launcher.launches == [False]

    @pytest.mark.anyio
    async def test_manual_not_offered_when_headless(self, browser_settings, captcha_settings) -> None:
        settings = captcha_settings.model_copy(update={"allow_manual": True})
        launcher = FakeLauncher(lambda: FakePage([blocked_snapshot(), snapshot()]))
        scraper = build_browser_scraper(launcher, browser_settings, settings)

        with pytest.raises(BlockedByAntiBot):
            await scraper.attempt(URL, headless=True)

    @pytest.mark.anyio
    async def test_solver_crash_is_classified(self, browser_settings, captcha_settings) -> None:
        launcher = FakeLauncher(lambda: FakePage([blocked_snapshot()]))
        service = FakeCaptchaService(submit_error=RuntimeError("solver client crashed"))
        scraper = build_browser_scraper(launcher, browser_settings, captcha_settings, service)

        with pytest.raises(CaptchaUnsolved, match="solver client crashed"):
            await scraper.attempt(URL)
        assert scraper.sessions.active_count == 0
