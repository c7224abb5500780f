"""Per-request page sessions on the shared browser.

Every scrape attempt gets its own browser context: fresh cookies, its own
proxy credentials, the evasion init script, and a route handler that drops
heavy resources. The context is always closed when the attempt ends; the
shared browser never is.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from playwright.async_api import Error as PlaywrightError

from shopscrape.browser import navigation
from shopscrape.browser.observers import Subscription, detach_all, subscribe
from shopscrape.browser.stealth import STEALTH_SCRIPT, SessionProfile, build_session_profile
from shopscrape.exceptions import NavigationFailed

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext, Page, Response, Route

    from shopscrape.browser.lifecycle import BrowserHandle
    from shopscrape.models.proxy import ProxyConfig
    from shopscrape.settings.config import BrowserSettings

logger = logging.getLogger(__name__)

BLOCKED_RESOURCE_TYPES: frozenset[str] = frozenset({"image", "font", "media"})

# Console chatter that says nothing about the page we are scraping.
_CONSOLE_NOISE: tuple[str, ...] = (
    "Failed to load resource",
    "net::ERR_FAILED",
    "net::ERR_BLOCKED_BY_CLIENT",
    "favicon",
    "Content Security Policy",
    "third-party cookie",
    "Permissions-Policy",
)


def should_block(resource_type: str) -> bool:
    """Return True for resource types the session aborts."""
    return resource_type in BLOCKED_RESOURCE_TYPES


def is_console_noise(text: str) -> bool:
    return any(marker in text for marker in _CONSOLE_NOISE)


@dataclass
class PageSession:
    """One isolated browser context and its page."""

    context: BrowserContext
    profile: SessionProfile
    headless: bool
    page: Page | None = None
    status: int | None = None
    blocked_requests: int = 0
    page_errors: int = 0
    subscriptions: list[Subscription] = field(default_factory=list)
    opened_at: float = field(default_factory=time.monotonic)
    closed: bool = False

    @property
    def url(self) -> str:
        return self.page.url if self.page is not None else ""

    def require_page(self) -> Page:
        if self.page is None or self.closed:
            raise NavigationFailed("page session is closed")
        return self.page


class PageSessionController:
    """Opens, drives and closes page sessions.

    Args:
        settings: The ``browser`` settings section.
    """

    def __init__(self, settings: BrowserSettings) -> None:
        self._settings = settings
        self.opened_count = 0
        self.closed_count = 0

    @property
    def active_count(self) -> int:
        return self.opened_count - self.closed_count

    async def open(self, handle: BrowserHandle, proxy: ProxyConfig | None = None) -> PageSession:
        """Create a context with evasion applied and open its page.

        Raises:
            NavigationFailed: The browser refused to create a context or page.
        """
        profile = build_session_profile(self._settings, proxy)
        try:
            context = await handle.new_context(**profile.context_args)
        except PlaywrightError as exc:
            raise NavigationFailed(f"could not create browser context: {exc}") from exc

        session = PageSession(context=context, profile=profile, headless=handle.headless)
        self.opened_count += 1
        try:
            await context.add_init_script(STEALTH_SCRIPT)
            await context.route("**/*", lambda route: self._route(session, route))
            session.page = await context.new_page()
            session.page.set_default_timeout(self._settings.navigation_timeout_ms)
        except PlaywrightError as exc:
            await self.close(session)
            raise NavigationFailed(f"could not open page: {exc}") from exc

        self._attach_listeners(session)
        logger.debug("Opened page session (ua=%s, proxy=%s)", profile.user_agent, profile.proxy_server or "-")
        return session

    async def close(self, session: PageSession) -> None:
        """Close the session's context. Idempotent and never raises."""
        if session.closed:
            return
        session.closed = True
        self.closed_count += 1
        detach_all(session.subscriptions)
        try:
            await session.context.close()
        except Exception as exc:
            logger.debug("Error closing browser context: %s", exc)
        logger.debug(
            "Closed page session after %.1fs (%d request(s) blocked)",
            time.monotonic() - session.opened_at,
            session.blocked_requests,
        )

    @asynccontextmanager
    async def session(self, handle: BrowserHandle, proxy: ProxyConfig | None = None) -> AsyncIterator[PageSession]:
        """Open a session and close it on exit, whatever happens inside."""
        page_session = await self.open(handle, proxy)
        try:
            yield page_session
        finally:
            await self.close(page_session)

    async def navigate(self, session: PageSession, url: str) -> Response | None:
        """Pause like a human would, navigate, then give the page time to render."""
        page = session.require_page()
        delay = random.uniform(self._settings.human_delay_min_seconds, self._settings.human_delay_max_seconds)
        await asyncio.sleep(delay)

        response = await navigation.goto(
            page,
            url,
            timeout_ms=self._settings.navigation_timeout_ms,
            wait_until=self._settings.wait_until,  # type: ignore[arg-type]
        )
        session.status = response.status if response is not None else None
        logger.info("Loaded %s (status=%s)", url, session.status)

        await asyncio.sleep(self._settings.render_wait_seconds)
        return response

    async def simulate_human(self, session: PageSession) -> None:
        """Move the pointer and scroll down in two steps.

        Interaction failures are logged and ignored; they never fail the
        attempt on their own.
        """
        page = session.require_page()
        pause = self._settings.scroll_pause_seconds
        try:
            await page.mouse.move(random.randint(100, 600), random.randint(100, 600))
            await asyncio.sleep(pause / 2)
            for _ in range(2):
                await page.evaluate("window.scrollBy(0, 300)")
                await asyncio.sleep(pause)
        except PlaywrightError as exc:
            logger.debug("Human interaction skipped: %s", exc)

    # -- internals ----------------------------------------------------------

    async def _route(self, session: PageSession, route: Route) -> None:
        try:
            if should_block(route.request.resource_type):
                session.blocked_requests += 1
                await route.abort()
            else:
                await route.continue_()
        except PlaywrightError as exc:
            # Context closed while a request was in flight.
            logger.debug("Route handling failed: %s", exc)

    def _attach_listeners(self, session: PageSession) -> None:
        page = session.page
        if page is None:
            return

        def on_console(message: Any) -> None:
            if message.type == "error" and not is_console_noise(message.text):
                logger.debug("console error: %s", message.text[:200])

        def on_page_error(error: Any) -> None:
            session.page_errors += 1
            logger.debug("page error: %s", str(error)[:200])

        def on_request_failed(request: Any) -> None:
            if should_block(request.resource_type):
                return
            failure = request.failure or ""
            if not is_console_noise(failure):
                logger.debug("request failed: %s %s", request.url[:120], failure)

        session.subscriptions.extend(
            [
                subscribe(page, "console", on_console),
                subscribe(page, "pageerror", on_page_error),
                subscribe(page, "requestfailed", on_request_failed),
            ]
        )
