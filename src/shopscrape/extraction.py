"""Product record extraction from rendered HTML.

The scraper core treats extraction as a pluggable collaborator: anything
implementing ``Extractor.parse(html) -> Record`` will do. ``ProductExtractor``
is the reference implementation; it reads JSON-LD ``Product`` data first and
falls back to common DOM and meta-tag conventions.
"""

from __future__ import annotations

import abc
import json
import logging
import re
from typing import Any
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from shopscrape.exceptions import ContentShapeChanged

logger = logging.getLogger(__name__)

UNKNOWN_TITLE = "Unknown Product"

_TITLE_SELECTORS: list[str] = [
    "h1",
    "[data-product-title]",
    ".product-title",
    ".product-name",
    "[itemprop='name']",
]

_PRICE_SELECTORS: list[str] = [
    "[itemprop='price']",
    "[data-price]",
    ".price",
    ".product-price",
]

_PRICE_RE = re.compile(r"(?:US\s*)?([$€£¥])\s*([\d,]+(?:\.\d+)?)(?:\s*-\s*[$€£¥]?\s*([\d,]+(?:\.\d+)?))?")

_MAX_IMAGES = 20


class Extractor(abc.ABC):
    """Turns final page HTML into a record."""

    @abc.abstractmethod
    def parse(self, html: str, url: str = "") -> dict[str, Any]:
        """Extract a record.

        Raises:
            ContentShapeChanged: Required fields cannot be located.
        """


class ProductExtractor(Extractor):
    """Reference product extractor: title, price range, images, description."""

    def parse(self, html: str, url: str = "") -> dict[str, Any]:
        soup = BeautifulSoup(html, "html.parser")
        ld = _find_product_ld(soup)

        title = _clean(ld.get("name")) or _first_text(soup, _TITLE_SELECTORS) or _meta(soup, "og:title")
        if not title and soup.title:
            title = _clean(soup.title.get_text())

        record: dict[str, Any] = {
            "url": url,
            "title": title or UNKNOWN_TITLE,
            "price": _extract_price(soup, ld),
            "images": _extract_images(soup, ld, url),
            "description": _clean(ld.get("description")) or _meta(soup, "og:description") or _meta(soup, "description"),
        }
        return record


def extract_record(extractor: Extractor, html: str, url: str = "") -> dict[str, Any]:
    """Run *extractor* and reject records without a usable title."""
    record = extractor.parse(html, url)
    title = str(record.get("title") or "").strip()
    if not title or title.lower() == UNKNOWN_TITLE.lower():
        raise ContentShapeChanged(f"no product title found on {url or 'page'}")
    return record


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _clean(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return " ".join(value.split())


def _first_text(soup: BeautifulSoup, selectors: list[str]) -> str:
    for selector in selectors:
        node = soup.select_one(selector)
        if node is not None:
            text = _clean(node.get_text(" "))
            if text:
                return text
    return ""


def _meta(soup: BeautifulSoup, name: str) -> str:
    node = soup.find("meta", attrs={"property": name}) or soup.find("meta", attrs={"name": name})
    if node is None:
        return ""
    return _clean(node.get("content"))


def _find_product_ld(soup: BeautifulSoup) -> dict[str, Any]:
    """Return the first JSON-LD object typed ``Product``, or an empty dict."""
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script.string or "")
        except (TypeError, ValueError):
            continue
        candidates = data if isinstance(data, list) else data.get("@graph", [data]) if isinstance(data, dict) else []
        for item in candidates:
            if not isinstance(item, dict):
                continue
            kind = item.get("@type")
            kinds = kind if isinstance(kind, list) else [kind]
            if "Product" in kinds:
                return item
    return {}


def _extract_price(soup: BeautifulSoup, ld: dict[str, Any]) -> dict[str, Any] | None:
    offers = ld.get("offers")
    if isinstance(offers, list):
        offers = offers[0] if offers else None
    if isinstance(offers, dict):
        low = offers.get("lowPrice") or offers.get("price")
        high = offers.get("highPrice") or low
        if low is not None:
            return {
                "min": _to_float(low),
                "max": _to_float(high),
                "currency": offers.get("priceCurrency", ""),
            }

    for selector in _PRICE_SELECTORS:
        node = soup.select_one(selector)
        if node is None:
            continue
        raw = node.get("content") or node.get("data-price") or node.get_text(" ")
        match = _PRICE_RE.search(str(raw))
        if match:
            low = _to_float(match.group(2))
            high = _to_float(match.group(3)) if match.group(3) else low
            return {"min": low, "max": high, "currency": match.group(1)}
        value = _to_float(raw)
        if value is not None:
            return {"min": value, "max": value, "currency": ""}
    return None


def _extract_images(soup: BeautifulSoup, ld: dict[str, Any], base_url: str) -> list[str]:
    images: list[str] = []
    ld_images = ld.get("image")
    if isinstance(ld_images, str):
        images.append(ld_images)
    elif isinstance(ld_images, list):
        images.extend(i for i in ld_images if isinstance(i, str))

    og_image = _meta(soup, "og:image")
    if og_image:
        images.append(og_image)

    for img in soup.select("img[src], img[data-src]"):
        src = img.get("data-src") or img.get("src") or ""
        if src and not src.startswith("data:"):
            images.append(src)

    seen: set[str] = set()
    result: list[str] = []
    for src in images:
        absolute = urljoin(base_url, src) if base_url else src
        if absolute not in seen:
            seen.add(absolute)
            result.append(absolute)
        if len(result) >= _MAX_IMAGES:
            break
    return result


def _to_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(str(value).replace(",", "").strip())
    except ValueError:
        return None
