"""Shared fakes and page content for shopscrape unit tests.

Stand-ins for the Playwright objects the browser layer drives, a fake
launcher and a scripted captcha service.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from shopscrape.browser.captcha import INJECT_TOKEN_SCRIPT
from shopscrape.browser.detection import SNAPSHOT_SCRIPT
from shopscrape.models.detection import ChallengeType
from shopscrape.settings.config import BrowserSettings, CaptchaSettings
from shopscrape.solver.base import CaptchaService, PollResult


# ---------------------------------------------------------------------------
# Page content
# ---------------------------------------------------------------------------

PRODUCT_TEXT = (
    "Stainless Steel Water Bottle 750ml. Double-wall vacuum insulation keeps drinks cold for 24 hours "
    "and hot for 12. Leak-proof lid, powder-coated finish, dishwasher safe. Ships in 3-5 days."
)

PRODUCT_HTML = f"""
<html>
  <head>
    <title>Water Bottle | Example Shop</title>
    <meta property="og:image" content="https://cdn.shop.example/bottle.jpg">
  </head>
  <body>
    <h1>Stainless Steel Water Bottle 750ml</h1>
    <span class="price">US $12.50 - $15.00</span>
    <p>{PRODUCT_TEXT}</p>
  </body>
</html>
"""

CHALLENGE_HTML = """
<html>
  <head><title>Security Check</title></head>
  <body>
    <p>We have detected unusual traffic from your network.</p>
    <div class="h-captcha" data-sitekey="site-key-123"></div>
  </body>
</html>
"""


def snapshot(
    text: str = PRODUCT_TEXT,
    *,
    title: str = "Water Bottle | Example Shop",
    url: str = "https://shop.example/item/1",
    markers: list[str] | None = None,
    html: str | None = None,
    site_key: str = "",
) -> dict[str, Any]:
    """Build the dict ``SNAPSHOT_SCRIPT`` returns in a real page."""
    return {
        "url": url,
        "title": title,
        "text": text,
        "html": html if html is not None else f"<html><body>{text}</body></html>",
        "markers": markers or [],
        "site_key": site_key,
    }


def blocked_snapshot() -> dict[str, Any]:
    return snapshot(
        "We have detected unusual traffic from your network. Please verify you are human.",
        title="Security Check",
        markers=["hcaptcha-widget"],
        site_key="site-key-123",
    )


# ---------------------------------------------------------------------------
# Fake Playwright objects
# ---------------------------------------------------------------------------


class FakeEmitter:
    """Minimal ``on`` / ``remove_listener`` event emitter."""

    def __init__(self) -> None:
        self.listeners: dict[str, list[Callable[..., Any]]] = {}

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self.listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event: str, handler: Callable[..., Any]) -> None:
        self.listeners.get(event, []).remove(handler)

    def emit(self, event: str, *args: Any) -> None:
        for handler in list(self.listeners.get(event, [])):
            handler(*args)


class FakeResponse:
    def __init__(self, status: int = 200) -> None:
        self.status = status


class FakeMouse:
    def __init__(self) -> None:
        self.moves: list[tuple[int, int]] = []

    async def move(self, x: int, y: int) -> None:
        self.moves.append((x, y))


class FakePage(FakeEmitter):
    """Scriptable stand-in for ``playwright.async_api.Page``.

    ``snapshots`` are returned one per detection pass; the last one repeats.
    """

    def __init__(
        self,
        snapshots: list[dict[str, Any]] | None = None,
        *,
        html: str = PRODUCT_HTML,
        status: int = 200,
        goto_error: Exception | None = None,
    ) -> None:
        super().__init__()
        self.snapshots = list(snapshots or [snapshot()])
        self.html = html
        self.status = status
        self.goto_error = goto_error
        self.url = "about:blank"
        self.mouse = FakeMouse()
        self.goto_calls: list[tuple[str, str]] = []
        self.evaluations = 0
        self.injected_tokens: list[str] = []
        self.scrolls = 0

    def set_default_timeout(self, timeout: float) -> None:
        self.default_timeout = timeout

    async def goto(self, url: str, *, wait_until: str = "load", timeout: float = 0) -> FakeResponse:
        self.goto_calls.append((url, wait_until))
        if self.goto_error is not None:
            raise self.goto_error
        self.url = url
        return FakeResponse(self.status)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script == SNAPSHOT_SCRIPT:
            self.evaluations += 1
            if len(self.snapshots) > 1:
                return self.snapshots.pop(0)
            return self.snapshots[0]
        if script == INJECT_TOKEN_SCRIPT:
            self.injected_tokens.append(arg)
            return 1
        if "scrollBy" in script:
            self.scrolls += 1
        return None

    async def wait_for_function(self, script: str, *, arg: Any = None, timeout: float = 0) -> None:
        return None

    async def content(self) -> str:
        return self.html

    async def screenshot(self, path: str) -> bytes:
        return b""


class FakeContext:
    def __init__(self, page: FakePage, options: dict[str, Any]) -> None:
        self.page = page
        self.options = options
        self.init_scripts: list[str] = []
        self.routes: list[tuple[str, Callable[..., Any]]] = []
        self.close_count = 0

    async def add_init_script(self, script: str) -> None:
        self.init_scripts.append(script)

    async def route(self, pattern: str, handler: Callable[..., Any]) -> None:
        self.routes.append((pattern, handler))

    async def new_page(self) -> FakePage:
        return self.page

    async def close(self) -> None:
        self.close_count += 1


class FakeBrowser(FakeEmitter):
    def __init__(self, page_factory: Callable[[], FakePage], headless: bool = True) -> None:
        super().__init__()
        self.page_factory = page_factory
        self.headless = headless
        self.connected = True
        self.contexts: list[FakeContext] = []
        self.close_calls = 0

    def is_connected(self) -> bool:
        return self.connected

    async def new_context(self, **options: Any) -> FakeContext:
        context = FakeContext(self.page_factory(), options)
        self.contexts.append(context)
        return context

    async def close(self) -> None:
        self.close_calls += 1
        self.connected = False

    def crash(self) -> None:
        """Simulate the browser process dying."""
        self.connected = False
        self.emit("disconnected", self)


class FakeLauncher:
    """Launcher that hands out ``FakeBrowser`` instances and counts launches."""

    def __init__(
        self,
        page_factory: Callable[[], FakePage] | None = None,
        *,
        delay: float = 0.01,
        error: Exception | None = None,
    ) -> None:
        self.page_factory = page_factory or FakePage
        self.delay = delay
        self.error = error
        self.launches: list[bool] = []
        self.browsers: list[FakeBrowser] = []
        self.started = 0
        self.stopped = 0

    async def start(self) -> None:
        self.started += 1

    async def launch(self, headless: bool) -> FakeBrowser:
        self.launches.append(headless)
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        browser = FakeBrowser(self.page_factory, headless)
        self.browsers.append(browser)
        return browser

    async def stop(self) -> None:
        self.stopped += 1


class FakeCaptchaService(CaptchaService):
    """Captcha service returning scripted poll results."""

    name = "fake"

    def __init__(self, results: list[PollResult] | None = None, *, submit_error: Exception | None = None) -> None:
        self.results = list(results or [PollResult(token="tok-123")])
        self.submit_error = submit_error
        self.submitted: list[tuple[str, ChallengeType, str | None]] = []
        self.polls = 0
        self.closed = False

    async def submit(self, page_url: str, challenge_type: ChallengeType, site_key: str | None = None) -> str:
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append((page_url, challenge_type, site_key))
        return "task-1"

    async def poll(self, task_id: str) -> PollResult:
        self.polls += 1
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]

    async def get_balance(self) -> float:
        return 4.2

    async def aclose(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Assembly helpers
# ---------------------------------------------------------------------------


def build_browser_scraper(
    launcher: FakeLauncher,
    browser_settings: BrowserSettings,
    captcha_settings: CaptchaSettings,
    service: CaptchaService | None = None,
):
    """Wire a ``BrowserScraper`` over a fake launcher, as ``build_service`` does."""
    from shopscrape.browser.captcha import CaptchaCoordinator
    from shopscrape.browser.detection import DetectionLayer
    from shopscrape.browser.lifecycle import BrowserLifecycleManager
    from shopscrape.browser.session import PageSessionController
    from shopscrape.extraction import ProductExtractor
    from shopscrape.scraper.browser import BrowserScraper

    detection = DetectionLayer(browser_settings)
    return BrowserScraper(
        lifecycle=BrowserLifecycleManager(browser_settings, launcher=launcher),
        sessions=PageSessionController(browser_settings),
        detection=detection,
        captcha=CaptchaCoordinator(detection, captcha_settings, service),
        extractor=ProductExtractor(),
        browser_settings=browser_settings,
        captcha_settings=captcha_settings,
    )
