"""Captcha resolution attempt records."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class CaptchaMode(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


class CaptchaState(str, Enum):
    """States of the resolution state machine."""

    DETECTED = "detected"
    AUTO_SOLVE_ATTEMPT = "auto_solve_attempt"
    AUTO_FAILED = "auto_failed"
    MANUAL_WAIT = "manual_wait"
    SOLVED = "solved"
    TIMEOUT = "timeout"
    FAILED = "failed"


@dataclass
class CaptchaAttempt:
    """Lifecycle of one resolution attempt, bounded by ``deadline``.

    ``started_at`` and ``deadline`` are event-loop clock readings.
    """

    mode: CaptchaMode
    started_at: float
    deadline: float
    state: CaptchaState = CaptchaState.DETECTED
    task_id: str = ""
    error: str = ""

    @property
    def solved(self) -> bool:
        return self.state == CaptchaState.SOLVED


@dataclass
class CaptchaResolution:
    """Aggregate outcome of a resolution run across modes."""

    attempts: list[CaptchaAttempt] = field(default_factory=list)
    final_state: CaptchaState = CaptchaState.DETECTED

    @property
    def solved(self) -> bool:
        return self.final_state == CaptchaState.SOLVED

    @property
    def attempted(self) -> bool:
        return bool(self.attempts)

    @property
    def error(self) -> str:
        errors = [f"{a.mode.value}: {a.error or a.state.value}" for a in self.attempts if not a.solved]
        return "; ".join(errors) or "no resolution mode available"
