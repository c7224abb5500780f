"""Abstract captcha-solving service interface."""

from __future__ import annotations

import abc
from dataclasses import dataclass

from shopscrape.models.detection import ChallengeType


@dataclass
class PollResult:
    """One poll of a submitted task: pending, solved (token) or failed (error)."""

    token: str = ""
    error: str = ""

    @property
    def pending(self) -> bool:
        return not self.token and not self.error


class CaptchaService(abc.ABC):
    """Submit-then-poll interface of a remote solving service."""

    name: str = ""

    @abc.abstractmethod
    async def submit(self, page_url: str, challenge_type: ChallengeType, site_key: str | None = None) -> str:
        """Submit a challenge and return the service's task id.

        Raises:
            CaptchaServiceError: The service rejected the task or was unreachable.
        """

    @abc.abstractmethod
    async def poll(self, task_id: str) -> PollResult:
        """Check a submitted task once.

        Raises:
            CaptchaServiceError: The service could not be reached.
        """

    @abc.abstractmethod
    async def get_balance(self) -> float:
        """Return the remaining account balance."""

    async def aclose(self) -> None:
        """Clean up resources. Override if needed."""
