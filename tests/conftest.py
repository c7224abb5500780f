"""shopscrape test configuration: fixtures shared by unit tests."""

from __future__ import annotations

import pytest

from shopscrape.settings.config import BrowserSettings, CaptchaSettings, CacheSettings, ScrapeSettings


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Clear the settings LRU cache between tests."""
    from shopscrape.settings.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def browser_settings() -> BrowserSettings:
    """Browser settings with every wait shrunk to zero."""
    return BrowserSettings(
        headless=True,
        navigation_timeout_ms=1_000,
        content_timeout_ms=100,
        render_wait_seconds=0,
        settle_seconds=0,
        thin_content_wait_seconds=0,
        human_delay_min_seconds=0,
        human_delay_max_seconds=0,
        scroll_pause_seconds=0,
        screenshot_dir="",
    )


@pytest.fixture()
def captcha_settings() -> CaptchaSettings:
    return CaptchaSettings(
        api_key="",
        solve_timeout_seconds=1.0,
        poll_interval_seconds=0.01,
        token_settle_seconds=0,
        allow_manual=False,
        manual_timeout_seconds=1.0,
        manual_poll_interval_seconds=0.01,
        manual_min_content_chars=50,
    )


@pytest.fixture()
def scrape_settings() -> ScrapeSettings:
    return ScrapeSettings(retries=2, backoff_seconds=0, fetch_retries=2, fetch_backoff_seconds=0)


@pytest.fixture()
def cache_settings() -> CacheSettings:
    return CacheSettings(backend="memory", ttl_seconds=60)


# ---------------------------------------------------------------------------
# Pytest markers
# ---------------------------------------------------------------------------


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests that require external services or real I/O")
    config.addinivalue_line("markers", "slow: marks tests that take more than a few seconds")

