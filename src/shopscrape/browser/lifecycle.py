"""Shared Chromium lifecycle.

One ``BrowserLifecycleManager`` owns at most one running browser. Callers
never launch Chromium themselves; they ``acquire()`` a ``BrowserHandle``
and open per-request contexts on it.

Guarantees:

- Concurrent first-time callers share one in-flight launch.
- Requesting a different headless mode tears the running browser down
  once and relaunches it in the new mode.
- A browser that disconnects is forgotten, so the next ``acquire()``
  relaunches it.
- Launch failures surface as ``BrowserUnavailable`` with no internal retry.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from shopscrape.browser.observers import Subscription, subscribe
from shopscrape.exceptions import BrowserUnavailable

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, Playwright

    from shopscrape.models.proxy import ProxyConfig
    from shopscrape.settings.config import BrowserSettings

logger = logging.getLogger(__name__)

LAUNCH_ARGS: list[str] = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
    "--window-size=1920,1080",
]


class BrowserState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LAUNCHING = "launching"
    READY = "ready"
    DISCONNECTED = "disconnected"


class Launcher(Protocol):
    """Starts the automation driver and launches browsers."""

    async def start(self) -> None: ...

    async def launch(self, headless: bool) -> Browser: ...

    async def stop(self) -> None: ...


class ChromiumLauncher:
    """Launches Playwright's Chromium with the anti-automation flag set."""

    def __init__(self, settings: BrowserSettings) -> None:
        self._settings = settings
        self._playwright: Playwright | None = None

    async def start(self) -> None:
        if self._playwright is not None:
            return
        from playwright.async_api import async_playwright

        self._playwright = await async_playwright().start()
        logger.debug("Playwright driver started")

    async def launch(self, headless: bool) -> Browser:
        await self.start()
        assert self._playwright is not None
        kwargs: dict[str, Any] = {"headless": headless, "args": list(LAUNCH_ARGS)}
        executable = self._settings.executable_path
        if executable:
            if Path(executable).is_file():
                kwargs["executable_path"] = executable
            else:
                logger.warning("Browser executable %s not found; using bundled Chromium", executable)
        return await self._playwright.chromium.launch(**kwargs)

    async def stop(self) -> None:
        if self._playwright is None:
            return
        try:
            await self._playwright.stop()
        finally:
            self._playwright = None
            logger.debug("Playwright driver stopped")


class BrowserHandle:
    """A running browser plus the headless mode it was launched in."""

    def __init__(self, browser: Browser, headless: bool) -> None:
        self.browser = browser
        self.headless = headless

    @property
    def is_connected(self) -> bool:
        return self.browser.is_connected()

    async def new_context(self, **kwargs: Any) -> BrowserContext:
        return await self.browser.new_context(**kwargs)

    def on_disconnect(self, handler: Any) -> Subscription:
        return subscribe(self.browser, "disconnected", handler)

    async def close(self) -> None:
        try:
            await self.browser.close()
        except Exception as exc:
            logger.debug("Error while closing browser: %s", exc)

    def __repr__(self) -> str:
        mode = "headless" if self.headless else "headed"
        return f"BrowserHandle({mode}, connected={self.is_connected})"


class BrowserLifecycleManager:
    """Owns the process-wide browser handle.

    Args:
        settings: The ``browser`` settings section.
        proxy: Immutable proxy configuration applied per session.
        launcher: Injectable launcher; defaults to ``ChromiumLauncher``.
    """

    def __init__(
        self,
        settings: BrowserSettings,
        proxy: ProxyConfig | None = None,
        launcher: Launcher | None = None,
    ) -> None:
        self._settings = settings
        self._proxy = proxy
        self._launcher: Launcher = launcher or ChromiumLauncher(settings)
        self._headless = settings.headless
        self._handle: BrowserHandle | None = None
        self._disconnect_sub: Subscription | None = None
        self._launch_task: asyncio.Task[BrowserHandle] | None = None
        self._switch_lock = asyncio.Lock()
        self._started = False
        self.state = BrowserState.UNINITIALIZED
        self.launch_count = 0

    @property
    def proxy(self) -> ProxyConfig | None:
        return self._proxy

    @property
    def headless(self) -> bool:
        """Mode used for launches when no override is given."""
        return self._headless

    @property
    def is_available(self) -> bool:
        return self._handle is not None and self._handle.is_connected

    async def start(self) -> None:
        """Start the automation driver. Idempotent."""
        if self._started:
            return
        try:
            await self._launcher.start()
        except Exception as exc:
            raise BrowserUnavailable(f"Automation driver failed to start: {exc}") from exc
        self._started = True

    async def acquire(self, headless: bool | None = None) -> BrowserHandle:
        """Return a connected browser, launching or switching mode as needed.

        Args:
            headless: Explicit mode override. ``None`` accepts whatever mode
                is running (or launches in the configured default mode).

        Raises:
            BrowserUnavailable: If the browser could not be launched.
        """
        while True:
            handle = self._handle
            if handle is not None and handle.is_connected:
                if headless is None or handle.headless == headless:
                    return handle
                await self._switch(handle, headless)
                continue
            if handle is not None:
                # Dropped before its "disconnected" event was delivered.
                self._on_disconnected(handle)

            task = self._launch_task
            if task is None:
                mode = self._headless if headless is None else headless
                task = asyncio.ensure_future(self._launch(mode))
                self._launch_task = task
            try:
                await asyncio.shield(task)
            finally:
                if task.done() and self._launch_task is task:
                    self._launch_task = None
            # Loop again: the launched mode may differ from the override.

    async def restart(self, headless: bool | None = None) -> BrowserHandle:
        """Close the running browser (if any) and launch a fresh one."""
        async with self._switch_lock:
            if headless is not None:
                self._headless = headless
            await self._teardown()
        return await self.acquire(headless)

    async def shutdown(self) -> None:
        """Close the browser and stop the driver."""
        task = self._launch_task
        if task is not None and not task.done():
            try:
                await asyncio.shield(task)
            except BrowserUnavailable as exc:
                logger.debug("In-flight launch failed during shutdown: %s", exc)
        self._launch_task = None
        await self._teardown()
        if self._started:
            try:
                await self._launcher.stop()
            except Exception as exc:
                logger.warning("Error stopping automation driver: %s", exc)
            self._started = False
        self.state = BrowserState.UNINITIALIZED
        logger.info("Browser lifecycle shut down after %d launch(es)", self.launch_count)

    # -- internals ----------------------------------------------------------

    async def _switch(self, handle: BrowserHandle, headless: bool) -> None:
        async with self._switch_lock:
            if self._handle is not handle:
                # Another caller already tore this handle down.
                return
            logger.info(
                "Switching browser mode: %s -> %s",
                "headless" if handle.headless else "headed",
                "headless" if headless else "headed",
            )
            self._headless = headless
            await self._teardown()

    async def _launch(self, headless: bool) -> BrowserHandle:
        self.state = BrowserState.LAUNCHING
        self.launch_count += 1
        logger.info("Launching browser (headless=%s, launch #%d)", headless, self.launch_count)
        try:
            await self.start()
            browser = await self._launcher.launch(headless)
        except BrowserUnavailable:
            self.state = BrowserState.UNINITIALIZED
            raise
        except Exception as exc:
            self.state = BrowserState.UNINITIALIZED
            logger.error("Browser launch failed: %s", exc)
            raise BrowserUnavailable(f"Browser launch failed: {exc}") from exc

        handle = BrowserHandle(browser, headless)
        self._disconnect_sub = handle.on_disconnect(lambda *_: self._on_disconnected(handle))
        self._handle = handle
        self.state = BrowserState.READY
        logger.info("Browser ready (headless=%s)", headless)
        return handle

    def _on_disconnected(self, handle: BrowserHandle) -> None:
        if self._handle is not handle:
            return
        logger.warning("Browser disconnected; it will be relaunched on next use")
        self._handle = None
        if self._disconnect_sub is not None:
            self._disconnect_sub.detach()
            self._disconnect_sub = None
        self.state = BrowserState.DISCONNECTED

    async def _teardown(self) -> None:
        handle, self._handle = self._handle, None
        if self._disconnect_sub is not None:
            self._disconnect_sub.detach()
            self._disconnect_sub = None
        if handle is None:
            return
        await handle.close()
        self.state = BrowserState.DISCONNECTED
        logger.debug("Browser closed")
