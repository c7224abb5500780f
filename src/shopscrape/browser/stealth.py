"""Browser anti-detection: session fingerprints and evasion scripts.

Provides a ``SessionProfile`` that configures Playwright's
``browser.new_context()`` call with:

- A rotating realistic desktop Chrome user-agent
- A fixed viewport matching the launch window size
- Extra request headers a real browser would send
- Session-level proxy credentials (never shared between contexts)

and the init script that patches the automation tells out of the page
(``navigator.webdriver``, empty plugin list, missing ``window.chrome``).

Usage::

    from shopscrape.browser.stealth import STEALTH_SCRIPT, build_session_profile

    profile = build_session_profile(settings.browser, proxy)
    context = await browser.new_context(**profile.context_args)
    await context.add_init_script(STEALTH_SCRIPT)
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from shopscrape.models.proxy import ProxyConfig
    from shopscrape.settings.config import BrowserSettings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Common user-agent strings (Chrome on desktop)
# ---------------------------------------------------------------------------

USER_AGENTS: list[str] = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36",
]

DEFAULT_HEADERS: dict[str, str] = {
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
}

# Injected via context.add_init_script() so it runs before any page script.
STEALTH_SCRIPT: str = """
// Report a non-automated browser
Object.defineProperty(navigator, 'webdriver', { get: () => false });

// Mimic chrome.runtime (present in real Chrome)
if (!window.chrome) window.chrome = {};
if (!window.chrome.runtime) window.chrome.runtime = {};

// Patch navigator.plugins to look non-empty
Object.defineProperty(navigator, 'plugins', {
    get: () => [1, 2, 3, 4, 5],
});

// Patch navigator.languages
Object.defineProperty(navigator, 'languages', {
    get: () => ['en-US', 'en'],
});

// Prevent detection via permissions API
const originalQuery = window.navigator.permissions.query;
window.navigator.permissions.query = (parameters) =>
    parameters.name === 'notifications'
        ? Promise.resolve({ state: Notification.permission })
        : originalQuery(parameters);
"""


def random_user_agent() -> str:
    return random.choice(USER_AGENTS)


# ---------------------------------------------------------------------------
# Session profile
# ---------------------------------------------------------------------------


@dataclass
class SessionProfile:
    """All Playwright context arguments for a single page session.

    Generated by ``build_session_profile()`` with a randomized user-agent.
    """

    # Arguments for browser.new_context()
    context_args: dict[str, Any] = field(default_factory=dict)

    # Metadata for logging
    user_agent: str = ""
    viewport: dict[str, int] = field(default_factory=dict)
    proxy_server: str = ""


def build_session_profile(
    settings: BrowserSettings,
    proxy: ProxyConfig | None = None,
    *,
    user_agent: str = "",
) -> SessionProfile:
    """Build a ``SessionProfile`` for one isolated browser context.

    Args:
        settings: The ``browser`` settings section (viewport size).
        proxy: Proxy to route this context through, with its credentials.
        user_agent: Force this user-agent (overrides the random pick).

    Returns:
        A ``SessionProfile`` ready for ``browser.new_context()``.
    """
    profile = SessionProfile()
    ctx = profile.context_args

    ua = user_agent or random_user_agent()
    ctx["user_agent"] = ua
    profile.user_agent = ua

    viewport = {"width": settings.viewport_width, "height": settings.viewport_height}
    ctx["viewport"] = viewport
    profile.viewport = viewport

    ctx["locale"] = "en-US"
    ctx["extra_http_headers"] = dict(DEFAULT_HEADERS)

    if proxy is not None:
        ctx["proxy"] = proxy.to_playwright()
        profile.proxy_server = proxy.server
        logger.debug("Session routed through proxy %s", proxy.server)

    return profile


def build_fetch_headers(*, user_agent: str = "", referer: str = "") -> dict[str, str]:
    """Headers for the lightweight HTTP fetch path."""
    headers = {"User-Agent": user_agent or random_user_agent(), **DEFAULT_HEADERS}
    headers["Accept-Encoding"] = "gzip, deflate"
    headers["Connection"] = "keep-alive"
    if referer:
        headers["Referer"] = referer
    return headers
