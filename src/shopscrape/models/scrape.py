"""Request, attempt and result models for the scrape orchestrator."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from shopscrape.exceptions import ErrorKind

Record = dict[str, Any]


class AttemptMethod(str, Enum):
    """Retrieval path used by an attempt."""

    BROWSER = "browser"
    FETCH = "fetch"


@dataclass(frozen=True)
class ScrapeRequest:
    """Input for one orchestration run; immutable for its duration."""

    url: str
    use_browser: bool = True
    retries: int = 2
    headless: bool | None = None
    force_refresh: bool = False


@dataclass
class ScrapeAttempt:
    """One iteration of the orchestrator loop."""

    index: int
    method: AttemptMethod
    kind: ErrorKind | None = None
    reason: str = ""
    duration_s: float = 0.0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def succeeded(self) -> bool:
        return self.kind is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "method": self.method.value,
            "outcome": "success" if self.succeeded else self.kind.value,  # type: ignore[union-attr]
            "reason": self.reason,
            "duration_s": round(self.duration_s, 3),
            "started_at": self.started_at.isoformat(),
        }


@dataclass
class ScrapeResult:
    """Successful outcome of ``ScrapeOrchestrator.scrape``."""

    url: str
    record: Record
    cached: bool = False
    method: AttemptMethod | None = None
    attempts: list[ScrapeAttempt] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict suitable for JSON output."""
        return {
            "url": self.url,
            "cached": self.cached,
            "method": self.method.value if self.method else None,
            "record": self.record,
            "attempts": [a.to_dict() for a in self.attempts],
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, default=str)
