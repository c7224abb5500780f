"""Resilient page navigation with automatic wait-strategy fallback.

Product pages on heavily instrumented storefronts often never reach
``networkidle`` (long-polling analytics, live chat widgets). This module
wraps Playwright's ``page.goto`` with a fallback chain of progressively
weaker wait strategies and translates every failure into a typed
``ScrapeError`` so callers never parse messages.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from shopscrape.exceptions import InvalidRequest, NavigationFailed, NavigationTimeout, PageNotFound

if TYPE_CHECKING:
    from playwright.async_api import Page, Response

logger = logging.getLogger(__name__)

# Playwright error substrings meaning the URL itself is unusable.
_INVALID_URL_ERRORS: tuple[str, ...] = (
    "Cannot navigate to invalid URL",
    "ERR_INVALID_URL",
    "ERR_UNKNOWN_URL_SCHEME",
)

# Network-level failures worth naming in the reason.
_NETWORK_ERRORS: tuple[str, ...] = (
    "ERR_NAME_NOT_RESOLVED",
    "ERR_CONNECTION_REFUSED",
    "ERR_CONNECTION_RESET",
    "ERR_CONNECTION_CLOSED",
    "ERR_SSL_PROTOCOL_ERROR",
    "ERR_CERT_AUTHORITY_INVALID",
    "ERR_ADDRESS_UNREACHABLE",
    "ERR_TUNNEL_CONNECTION_FAILED",
    "ERR_PROXY_CONNECTION_FAILED",
)

NOT_FOUND_STATUSES: frozenset[int] = frozenset({404, 410})

WaitUntil = Literal["commit", "domcontentloaded", "load", "networkidle"]

_FALLBACK_STRATEGY: list[WaitUntil] = ["networkidle", "load", "domcontentloaded"]


async def goto(
    page: Page,
    url: str,
    *,
    timeout_ms: int = 45_000,
    wait_until: WaitUntil = "domcontentloaded",
) -> Response | None:
    """Navigate to *url* with automatic wait-strategy fallback.

    Tries *wait_until* first. If that times out, retries with the less
    strict strategies after it in the chain, using the same timeout for
    each attempt.

    Args:
        page: Playwright page instance.
        url: Target URL to navigate to.
        timeout_ms: Timeout per attempt in milliseconds.
        wait_until: Preferred initial wait strategy.

    Returns:
        The main-frame ``Response``, or ``None`` if the page produced none.

    Raises:
        NavigationTimeout: Every strategy in the chain timed out.
        InvalidRequest: The browser rejected the URL.
        PageNotFound: The server answered 404 or 410.
        NavigationFailed: Any other navigation error.
    """
    strategies = _build_fallback_chain(wait_until)

    for strategy in strategies:
        try:
            logger.debug("goto %s (wait_until=%s, timeout=%dms)", url, strategy, timeout_ms)
            response = await page.goto(url, wait_until=strategy, timeout=timeout_ms)
        except PlaywrightTimeout:
            logger.warning("Navigation to %s timed out with wait_until=%s", url, strategy)
            continue
        except PlaywrightError as exc:
            raise _classify_error(url, exc) from exc

        if response is not None and response.status in NOT_FOUND_STATUSES:
            raise PageNotFound(f"{url} returned HTTP {response.status}")
        return response

    raise NavigationTimeout(f"{url} did not load within {timeout_ms} ms (tried {', '.join(strategies)})")


def _classify_error(url: str, exc: PlaywrightError) -> Exception:
    message = str(exc)
    for pattern in _INVALID_URL_ERRORS:
        if pattern in message:
            return InvalidRequest(f"Browser rejected URL {url!r}")
    for pattern in _NETWORK_ERRORS:
        if pattern in message:
            reason = pattern.replace("ERR_", "").replace("_", " ").lower()
            logger.warning("Navigation to %s failed: %s", url, pattern)
            return NavigationFailed(f"{reason} while loading {url}")
    first_line = message.splitlines()[0] if message else type(exc).__name__
    return NavigationFailed(f"navigation to {url} failed: {first_line}")


def _build_fallback_chain(preferred: WaitUntil) -> list[WaitUntil]:
    """Return the fallback chain starting from *preferred*.

    If *preferred* is in the default chain, returns from that point onward.
    Otherwise returns ``[preferred]`` followed by the full default chain.
    """
    if preferred in _FALLBACK_STRATEGY:
        idx = _FALLBACK_STRATEGY.index(preferred)
        return _FALLBACK_STRATEGY[idx:]
    return [preferred, *_FALLBACK_STRATEGY]
