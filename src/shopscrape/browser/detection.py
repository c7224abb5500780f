"""Block-page and challenge detection.

A page is judged from a ``PageSnapshot``: visible text, raw markup, title,
URL and the challenge DOM markers present. The snapshot comes either from
the live page (``SNAPSHOT_SCRIPT``) or from static markup parsed with
BeautifulSoup (``snapshot_from_html``), and ``classify`` turns it into a
``DetectionVerdict``. Any single signal marks the page as blocked;
``signal_strength`` counts how many independent signals agreed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from shopscrape.models.detection import BlockReason, ChallengeType, DetectionPhase, DetectionVerdict, PageSnapshot

if TYPE_CHECKING:
    from shopscrape.browser.session import PageSession
    from shopscrape.settings.config import BrowserSettings

logger = logging.getLogger(__name__)

# Phrases shown by block and challenge interstitials (matched lowercase).
BLOCK_PHRASES: tuple[str, ...] = (
    "captcha",
    "verify you are human",
    "verify that you are not a robot",
    "access denied",
    "security check",
    "unusual traffic",
    "please complete the security check",
    "checking your browser",
    "just a moment",
)

# URL fragments of known block/redirect pages.
BLOCKED_URL_FRAGMENTS: tuple[str, ...] = (
    "captcha",
    "/punish",
    "_____tmd_____",
    "/sorry/",
    "access-denied",
)

# (label, CSS selector, reason). Labels are what snapshots report.
CHALLENGE_MARKERS: list[tuple[str, str, BlockReason]] = [
    ("recaptcha-frame", "iframe[src*='recaptcha']", BlockReason.CHALLENGE_FRAME),
    ("hcaptcha-frame", "iframe[src*='hcaptcha.com']", BlockReason.CHALLENGE_FRAME),
    ("turnstile-frame", "iframe[src*='challenges.cloudflare.com']", BlockReason.CHALLENGE_FRAME),
    ("challenge-frame", "iframe[src*='challenge']", BlockReason.CHALLENGE_FRAME),
    ("recaptcha-widget", ".g-recaptcha", BlockReason.CHALLENGE_ELEMENT),
    ("hcaptcha-widget", ".h-captcha", BlockReason.CHALLENGE_ELEMENT),
    ("turnstile-widget", ".cf-turnstile", BlockReason.CHALLENGE_ELEMENT),
    ("captcha-id", "[id*='captcha']", BlockReason.CHALLENGE_ELEMENT),
    ("captcha-class", "[class*='captcha']", BlockReason.CHALLENGE_ELEMENT),
    ("challenge-id", "[id*='challenge']", BlockReason.CHALLENGE_ELEMENT),
    ("challenge-class", "[class*='challenge']", BlockReason.CHALLENGE_ELEMENT),
]

_MARKER_REASONS: dict[str, BlockReason] = {label: reason for label, _, reason in CHALLENGE_MARKERS}

# Strongest evidence first; the verdict reports the first one present.
_REASON_PRIORITY: tuple[BlockReason, ...] = (
    BlockReason.CHALLENGE_FRAME,
    BlockReason.CHALLENGE_ELEMENT,
    BlockReason.BLOCK_PHRASE,
    BlockReason.BLOCKED_URL,
)

# Evaluated in the page with the marker list as argument.
SNAPSHOT_SCRIPT: str = """
(markers) => {
    const body = document.body;
    const found = [];
    for (const [label, selector] of markers) {
        try {
            if (document.querySelector(selector) !== null) found.push(label);
        } catch (e) {}
    }
    const keyed = document.querySelector('[data-sitekey]');
    return {
        url: location.href,
        title: document.title || '',
        text: body ? body.innerText || '' : '',
        html: document.documentElement ? document.documentElement.outerHTML : '',
        markers: found,
        site_key: keyed ? keyed.getAttribute('data-sitekey') || '' : '',
    };
}
"""

_CONTENT_READY_SCRIPT = "(min) => !!document.body && (document.body.innerText || '').length > min"


def classify(snapshot: PageSnapshot, phase: DetectionPhase = DetectionPhase.EARLY) -> DetectionVerdict:
    """Turn a snapshot into a verdict. Pure; never raises."""
    text = snapshot.text.lower()
    html = snapshot.html.lower()
    title = snapshot.title.lower()
    url = snapshot.url.lower()

    found: dict[BlockReason, list[str]] = {}
    for source, haystack in (("text", text), ("title", title), ("markup", html)):
        for phrase in BLOCK_PHRASES:
            if phrase in haystack:
                found.setdefault(BlockReason.BLOCK_PHRASE, []).append(f"phrase {phrase!r} in {source}")
                break
    for fragment in BLOCKED_URL_FRAGMENTS:
        if fragment in url:
            found.setdefault(BlockReason.BLOCKED_URL, []).append(f"url contains {fragment!r}")
            break
    for label in snapshot.markers:
        reason = _MARKER_REASONS.get(label, BlockReason.CHALLENGE_ELEMENT)
        found.setdefault(reason, []).append(f"marker {label}")

    verdict = DetectionVerdict(
        phase=phase,
        text_length=len(snapshot.text.strip()),
        markers=list(snapshot.markers),
        site_key=snapshot.site_key,
    )
    if not found:
        return verdict

    signals = [detail for details in found.values() for detail in details]
    verdict.blocked = True
    verdict.reason = next(r for r in _REASON_PRIORITY if r in found)
    verdict.signal_strength = len(signals)
    verdict.detail = "; ".join(signals)
    return verdict


def snapshot_from_html(html: str, url: str = "") -> PageSnapshot:
    """Build a snapshot from static markup (the fetch path has no live DOM)."""
    soup = BeautifulSoup(html, "html.parser")
    markers = [label for label, selector, _ in CHALLENGE_MARKERS if soup.select_one(selector) is not None]
    keyed = soup.select_one("[data-sitekey]")
    title = soup.title.get_text(strip=True) if soup.title else ""

    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    root = soup.body or soup
    text = root.get_text(" ", strip=True)

    return PageSnapshot(
        url=url,
        title=title,
        text=text,
        html=html,
        markers=markers,
        site_key=str(keyed.get("data-sitekey", "")) if keyed else "",
    )


def detect_challenge_type(verdict: DetectionVerdict, default: ChallengeType = ChallengeType.HCAPTCHA) -> ChallengeType:
    """Pick the challenge family to request from the solving service."""
    markers = " ".join(verdict.markers)
    if "hcaptcha" in markers:
        return ChallengeType.HCAPTCHA
    if "recaptcha" in markers:
        return ChallengeType.RECAPTCHA_V2
    if "turnstile" in markers:
        return ChallengeType.TURNSTILE
    return default


class DetectionLayer:
    """Evaluates live page sessions at the early and final checkpoints.

    Args:
        settings: The ``browser`` settings section (content wait and settle time).
    """

    def __init__(self, settings: BrowserSettings) -> None:
        self._settings = settings

    async def snapshot(self, session: PageSession) -> PageSnapshot:
        page = session.require_page()
        data = await page.evaluate(SNAPSHOT_SCRIPT, [[label, selector] for label, selector, _ in CHALLENGE_MARKERS])
        return PageSnapshot(
            url=data.get("url") or page.url,
            title=data.get("title") or "",
            text=data.get("text") or "",
            html=data.get("html") or "",
            markers=list(data.get("markers") or []),
            site_key=data.get("site_key") or "",
        )

    async def evaluate(self, session: PageSession, phase: DetectionPhase = DetectionPhase.FINAL) -> DetectionVerdict:
        """Snapshot the page and classify it.

        Never raises: a page that cannot be inspected (closed, detached,
        navigating) yields a non-blocked verdict with reason
        ``EVALUATION_FAILED`` for the caller to act on.
        """
        try:
            snap = await self.snapshot(session)
        except Exception as exc:
            logger.warning("Detection %s check could not inspect the page: %s", phase.value, exc)
            return DetectionVerdict(reason=BlockReason.EVALUATION_FAILED, detail=str(exc)[:200], phase=phase)

        verdict = classify(snap, phase)
        if verdict.blocked:
            logger.warning("Detection blocked: %s", verdict.describe())
        else:
            logger.debug("Detection %s", verdict.describe())
        return verdict

    async def early_check(self, session: PageSession) -> DetectionVerdict:
        """Wait (bounded) for body text to appear, then evaluate."""
        try:
            page = session.require_page()
            await page.wait_for_function(
                _CONTENT_READY_SCRIPT,
                arg=self._settings.early_content_chars,
                timeout=self._settings.content_timeout_ms,
            )
        except PlaywrightTimeout:
            logger.info("Page content did not appear within %d ms; checking anyway", self._settings.content_timeout_ms)
        except Exception as exc:
            logger.debug("Content wait failed: %s", exc)
        return await self.evaluate(session, DetectionPhase.EARLY)

    async def final_check(self, session: PageSession) -> DetectionVerdict:
        """Let late scripts settle, then re-evaluate."""
        await asyncio.sleep(self._settings.settle_seconds)
        return await self.evaluate(session, DetectionPhase.FINAL)
