"""One direct-fetch attempt: plain HTTP GET, static detection, extraction.

This is the lightweight fallback path. It has no JavaScript, so it only
succeeds where the product page is server-rendered and unprotected.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

import httpx

from shopscrape.browser.detection import classify, snapshot_from_html
from shopscrape.browser.stealth import build_fetch_headers
from shopscrape.exceptions import (
    BlockedByAntiBot,
    InvalidRequest,
    NavigationFailed,
    NavigationTimeout,
    PageNotFound,
    ThinContent,
)
from shopscrape.extraction import extract_record
from shopscrape.models.detection import DetectionPhase

if TYPE_CHECKING:
    from shopscrape.extraction import Extractor
    from shopscrape.models.proxy import ProxyConfig

logger = logging.getLogger(__name__)

NOT_FOUND_STATUSES = frozenset({404, 410})
BLOCKED_STATUSES = frozenset({401, 403, 429})


class FetchScraper:
    """Direct HTTP scraping with ``httpx``.

    Args:
        extractor: Record extractor shared with the browser path.
        timeout: Per-request timeout in seconds.
        min_content_chars: Below this much visible text the page is thin.
        proxy: Optional upstream proxy.
        transport: Custom ``httpx`` transport (tests inject a mock).
    """

    def __init__(
        self,
        extractor: Extractor,
        *,
        timeout: float = 30.0,
        min_content_chars: int = 100,
        proxy: ProxyConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.extractor = extractor
        self._min_content_chars = min_content_chars
        self._client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            proxy=proxy.url if proxy is not None else None,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def attempt(self, url: str, *, index: int = 1) -> dict[str, Any]:
        """Fetch and extract *url* once.

        Args:
            url: Absolute product URL.
            index: 1-based attempt number on the fetch path; retries send a
                ``Referer`` like a visitor arriving from the site itself.

        Raises:
            ScrapeError: Classified failure of this attempt.
        """
        referer = ""
        if index > 1:
            parts = urlsplit(url)
            referer = f"{parts.scheme}://{parts.netloc}/"
        headers = build_fetch_headers(referer=referer)

        try:
            resp = await self._client.get(url, headers=headers)
        except httpx.TimeoutException as exc:
            raise NavigationTimeout(f"fetch of {url} timed out") from exc
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
            raise InvalidRequest(f"cannot fetch {url!r}: {exc}") from exc
        except httpx.HTTPError as exc:
            raise NavigationFailed(f"fetch of {url} failed: {exc}") from exc

        logger.info("Fetched %s (status=%d, %d bytes)", url, resp.status_code, len(resp.content))
        if resp.status_code in NOT_FOUND_STATUSES:
            raise PageNotFound(f"{url} returned HTTP {resp.status_code}")

        snapshot = snapshot_from_html(resp.text, str(resp.url))
        verdict = classify(snapshot, DetectionPhase.FINAL)
        if verdict.blocked:
            raise BlockedByAntiBot(f"fetch blocked: {verdict.detail}")
        if resp.status_code in BLOCKED_STATUSES:
            raise BlockedByAntiBot(f"{url} returned HTTP {resp.status_code}")
        if resp.status_code >= 400:
            raise NavigationFailed(f"{url} returned HTTP {resp.status_code}")
        if verdict.text_length < self._min_content_chars:
            raise ThinContent(f"only {verdict.text_length} chars of text in fetched page")

        return extract_record(self.extractor, resp.text, str(resp.url))
