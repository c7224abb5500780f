"""Layered configuration (TOML files + SHOPSCRAPE_* environment variables)."""

from __future__ import annotations

from shopscrape.settings.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
