"""Scrape attempts (browser and direct fetch) and the retry/fallback orchestrator."""

from shopscrape.scraper.orchestrator import ScrapeOrchestrator

__all__ = ["ScrapeOrchestrator"]
