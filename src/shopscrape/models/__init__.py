"""Data models shared across the browser, solver and scraper layers."""

from __future__ import annotations

from shopscrape.models.captcha import CaptchaAttempt, CaptchaMode, CaptchaResolution, CaptchaState
from shopscrape.models.detection import BlockReason, ChallengeType, DetectionPhase, DetectionVerdict, PageSnapshot
from shopscrape.models.proxy import ProxyConfig
from shopscrape.models.scrape import AttemptMethod, Record, ScrapeAttempt, ScrapeRequest, ScrapeResult

__all__ = [
    "AttemptMethod",
    "BlockReason",
    "CaptchaAttempt",
    "CaptchaMode",
    "CaptchaResolution",
    "CaptchaState",
    "ChallengeType",
    "DetectionPhase",
    "DetectionVerdict",
    "PageSnapshot",
    "ProxyConfig",
    "Record",
    "ScrapeAttempt",
    "ScrapeRequest",
    "ScrapeResult",
]
