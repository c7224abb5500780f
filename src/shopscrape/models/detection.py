"""Detection verdicts for block and challenge pages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class BlockReason(str, Enum):
    """Strongest signal behind a verdict."""

    NONE = "none"
    CHALLENGE_FRAME = "challenge_frame"
    CHALLENGE_ELEMENT = "challenge_element"
    BLOCK_PHRASE = "block_phrase"
    BLOCKED_URL = "blocked_url"
    EVALUATION_FAILED = "evaluation_failed"


class DetectionPhase(str, Enum):
    EARLY = "early"
    FINAL = "final"
    RECHECK = "recheck"


class ChallengeType(str, Enum):
    """Challenge families understood by the solving service."""

    RECAPTCHA_V2 = "recaptcha_v2"
    HCAPTCHA = "hcaptcha"
    TURNSTILE = "turnstile"
    SLIDER = "slider"


@dataclass
class PageSnapshot:
    """What the detection layer looks at: text, markup and matched DOM markers."""

    url: str = ""
    title: str = ""
    text: str = ""
    html: str = ""
    markers: list[str] = field(default_factory=list)
    site_key: str = ""


@dataclass
class DetectionVerdict:
    """Result of one detection pass. Transient, never persisted."""

    blocked: bool = False
    reason: BlockReason = BlockReason.NONE
    signal_strength: int = 0
    detail: str = ""
    phase: DetectionPhase = DetectionPhase.EARLY
    text_length: int = 0
    markers: list[str] = field(default_factory=list)
    site_key: str = ""

    def describe(self) -> str:
        if not self.blocked:
            return f"clear ({self.phase.value}, {self.text_length} chars)"
        return f"{self.reason.value}: {self.detail} ({self.phase.value}, {self.signal_strength} signal(s))"
