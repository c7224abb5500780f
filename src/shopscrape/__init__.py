"""shopscrape: resilient retrieval of bot-protected e-commerce pages."""

from __future__ import annotations

try:
    from importlib.metadata import version

    __version__ = version("shopscrape")
except Exception:
    __version__ = "0.0.0"
