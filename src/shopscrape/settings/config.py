"""Configuration loader for shopscrape using Pydantic settings.

Config precedence (highest wins):
  1. CLI flags (where applicable)
  2. Environment variables (SHOPSCRAPE_* with __ for nesting)
  3. settings.local.toml
  4. settings.{env}.toml
  5. settings.default.toml
"""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

_THIS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = Path(os.getenv("SHOPSCRAPE_PROJECT_ROOT", _THIS_DIR.parents[2]))
CONFIG_DIR = PROJECT_ROOT / "config"

ENV_VAR_NAME = "SHOPSCRAPE_ENV"
DEFAULT_ENV = "local"


def _resolve_env() -> str:
    return (os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()


def _load_toml(path: Path) -> dict[str, Any]:
    if path.is_file():
        with open(path, "rb") as f:
            return tomllib.load(f)
    return {}


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class BrowserSettings(BaseSettings):
    """Shared Chromium instance and per-session page behaviour."""

    model_config = SettingsConfigDict(env_prefix="SHOPSCRAPE_BROWSER__")

    headless: bool = True
    executable_path: str = ""
    navigation_timeout_ms: int = 45_000
    wait_until: str = "domcontentloaded"
    content_timeout_ms: int = 15_000
    early_content_chars: int = 50
    min_content_chars: int = 100
    render_wait_seconds: float = 3.0
    settle_seconds: float = 5.0
    thin_content_wait_seconds: float = 5.0
    viewport_width: int = 1920
    viewport_height: int = 1080
    human_delay_min_seconds: float = 1.0
    human_delay_max_seconds: float = 3.0
    scroll_pause_seconds: float = 1.0
    screenshot_dir: str = ""


class ProxySettings(BaseSettings):
    """Upstream proxy endpoint; credentials are applied per session."""

    model_config = SettingsConfigDict(env_prefix="SHOPSCRAPE_PROXY__")

    enabled: bool = False
    host: str = ""
    port: int = 0
    username: str = ""
    password: str = ""


class CaptchaSettings(BaseSettings):
    """Automatic (remote service) and manual captcha resolution."""

    model_config = SettingsConfigDict(env_prefix="SHOPSCRAPE_CAPTCHA__")

    service: str = "2captcha"
    api_key: str = ""
    solve_timeout_seconds: float = 120.0
    poll_interval_seconds: float = 5.0
    token_settle_seconds: float = 3.0
    challenge_type: str = "hcaptcha"
    allow_manual: bool = False
    manual_timeout_seconds: float = 120.0
    manual_poll_interval_seconds: float = 2.0
    manual_min_content_chars: int = 200


class ScrapeSettings(BaseSettings):
    """Retry and fallback budgets."""

    model_config = SettingsConfigDict(env_prefix="SHOPSCRAPE_SCRAPE__")

    retries: int = 2
    backoff_seconds: float = 3.0
    fetch_retries: int = 3
    fetch_backoff_seconds: float = 2.0
    fetch_timeout_seconds: float = 30.0


class CacheSettings(BaseSettings):
    """Record cache backend."""

    model_config = SettingsConfigDict(env_prefix="SHOPSCRAPE_CACHE__")

    backend: str = "memory"  # memory | redis | none
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "shopscrape:product:"
    ttl_seconds: int = 6 * 60 * 60


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Root shopscrape settings with nested sections."""

    model_config = SettingsConfigDict(
        env_prefix="SHOPSCRAPE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    env: str = Field(default_factory=_resolve_env)
    project_root: Path = Field(default=PROJECT_ROOT)
    log_level: str = "INFO"
    log_format: str = "text"  # text | json

    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    proxy: ProxySettings = Field(default_factory=ProxySettings)
    captcha: CaptchaSettings = Field(default_factory=CaptchaSettings)
    scrape: ScrapeSettings = Field(default_factory=ScrapeSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)

    @model_validator(mode="before")
    @classmethod
    def _merge_toml_files(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Layer TOML config files before env var overrides."""
        defaults = _load_toml(CONFIG_DIR / "settings.default.toml")
        env_name = (values.get("env") or os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()
        env_overrides = _load_toml(CONFIG_DIR / f"settings.{env_name}.toml")
        local_overrides = _load_toml(CONFIG_DIR / "settings.local.toml")

        # Merge: defaults < env-specific < local < explicit values
        merged: dict[str, Any] = {}
        for layer in (defaults, env_overrides, local_overrides, values):
            for key, val in layer.items():
                if isinstance(val, dict) and isinstance(merged.get(key), dict):
                    merged[key] = {**merged[key], **val}
                else:
                    merged[key] = val
        return merged

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        """Normalize relative paths against project_root."""
        shots = self.browser.screenshot_dir
        if shots and not Path(shots).is_absolute():
            self.browser.screenshot_dir = str(self.project_root / shots)
        if self.browser.human_delay_max_seconds < self.browser.human_delay_min_seconds:
            self.browser.human_delay_max_seconds = self.browser.human_delay_min_seconds
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton settings instance (cached)."""
    return Settings()
