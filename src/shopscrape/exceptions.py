"""shopscrape exception hierarchy.

Every failure inside a scrape attempt is raised as a ``ScrapeError``
subclass whose ``kind`` is fixed at the point the failure is detected.
Retry and fallback decisions are made on ``kind`` alone.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shopscrape.models.scrape import ScrapeAttempt


class ErrorKind(str, Enum):
    """Classified outcome of a failed attempt."""

    BROWSER_UNAVAILABLE = "browser_unavailable"
    NAVIGATION_TIMEOUT = "navigation_timeout"
    NAVIGATION_FAILED = "navigation_failed"
    BLOCKED_BY_ANTI_BOT = "blocked_by_anti_bot"
    CAPTCHA_UNSOLVED = "captcha_unsolved"
    THIN_CONTENT = "thin_content"
    CONTENT_SHAPE_CHANGED = "content_shape_changed"
    NOT_FOUND = "not_found"
    INVALID_REQUEST = "invalid_request"


class ShopscrapeError(Exception):
    """Base exception for all shopscrape-specific errors."""


class ScrapeError(ShopscrapeError):
    """A classified failure of a single scrape attempt.

    Attributes:
        reason: Diagnostic description of what went wrong.
    """

    kind: ErrorKind = ErrorKind.NAVIGATION_FAILED

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"{self.kind.value}: {reason}")


class BrowserUnavailable(ScrapeError):
    """The shared browser could not be launched."""

    kind = ErrorKind.BROWSER_UNAVAILABLE


class NavigationTimeout(ScrapeError):
    """Navigation did not complete within its timeout."""

    kind = ErrorKind.NAVIGATION_TIMEOUT


class NavigationFailed(ScrapeError):
    """Navigation or page interaction failed for a transient reason."""

    kind = ErrorKind.NAVIGATION_FAILED


class BlockedByAntiBot(ScrapeError):
    """The target served a block or challenge page."""

    kind = ErrorKind.BLOCKED_BY_ANTI_BOT


class CaptchaUnsolved(ScrapeError):
    """A challenge was detected and every available resolution mode failed."""

    kind = ErrorKind.CAPTCHA_UNSOLVED


class ThinContent(ScrapeError):
    """The page loaded but rendered too little content to extract from."""

    kind = ErrorKind.THIN_CONTENT


class ContentShapeChanged(ScrapeError):
    """Markup parsed but the required fields are absent."""

    kind = ErrorKind.CONTENT_SHAPE_CHANGED


class PageNotFound(ScrapeError):
    """The target answered with an explicit not-found status."""

    kind = ErrorKind.NOT_FOUND


class InvalidRequest(ScrapeError):
    """The request URL is structurally invalid."""

    kind = ErrorKind.INVALID_REQUEST


class ScrapeFailed(ShopscrapeError):
    """Raised by the orchestrator when no attempt produced a record.

    Attributes:
        kind: Kind of the final, unrecoverable failure.
        reason: Diagnostic reason of the final failure.
        attempts: Full attempt history, in order.
    """

    def __init__(self, kind: ErrorKind, reason: str, attempts: list[ScrapeAttempt] | None = None) -> None:
        self.kind = kind
        self.reason = reason
        self.attempts = list(attempts or [])
        super().__init__(f"Scrape failed after {len(self.attempts)} attempt(s) ({kind.value}): {reason}")


class CaptchaServiceError(ShopscrapeError):
    """The remote captcha-solving service rejected a request or misbehaved."""
