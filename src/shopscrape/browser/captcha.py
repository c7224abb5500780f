"""Captcha resolution coordinator.

Implements a two-tier approach once detection reports a challenge:

1. **Auto**: when a solving service is configured, submit the challenge,
   poll for a token, inject it into the page and re-run detection.
2. **Manual**: when the session is visible and manual solving is allowed,
   poll detection until a human clears the challenge or the deadline hits.

Every wait is bounded. Failures of either tier are recorded on the
returned ``CaptchaResolution``; nothing here raises into the caller.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError

from shopscrape.browser.detection import detect_challenge_type
from shopscrape.exceptions import CaptchaServiceError
from shopscrape.models.captcha import CaptchaAttempt, CaptchaMode, CaptchaResolution, CaptchaState
from shopscrape.models.detection import BlockReason, ChallengeType, DetectionPhase

if TYPE_CHECKING:
    from shopscrape.browser.detection import DetectionLayer
    from shopscrape.browser.session import PageSession
    from shopscrape.models.detection import DetectionVerdict
    from shopscrape.settings.config import CaptchaSettings
    from shopscrape.solver.base import CaptchaService

logger = logging.getLogger(__name__)

# Fills every known response field with the token; returns how many were found.
INJECT_TOKEN_SCRIPT: str = """
(token) => {
    const selectors = [
        'input[name="captcha-token"]',
        'textarea[name="g-recaptcha-response"]',
        'textarea[name="h-captcha-response"]',
        'input[name="cf-turnstile-response"]',
    ];
    let filled = 0;
    for (const selector of selectors) {
        for (const field of document.querySelectorAll(selector)) {
            field.value = token;
            field.dispatchEvent(new Event('input', { bubbles: true }));
            field.dispatchEvent(new Event('change', { bubbles: true }));
            filled += 1;
        }
    }
    return filled;
}
"""


class CaptchaCoordinator:
    """Drives the resolution state machine for one blocked page.

    Args:
        detection: Detection layer used to confirm a challenge is gone.
        settings: The ``captcha`` settings section.
        service: Remote solving service, or ``None`` to skip the auto tier.
    """

    def __init__(
        self,
        detection: DetectionLayer,
        settings: CaptchaSettings,
        service: CaptchaService | None = None,
    ) -> None:
        self._detection = detection
        self._settings = settings
        self._service = service

    @property
    def auto_available(self) -> bool:
        return self._service is not None

    def _default_challenge_type(self) -> ChallengeType:
        try:
            return ChallengeType(self._settings.challenge_type)
        except ValueError:
            return ChallengeType.HCAPTCHA

    async def resolve(self, session: PageSession, verdict: DetectionVerdict, *, interactive: bool) -> CaptchaResolution:
        """Try every available mode in order until one clears the page.

        Args:
            session: The open session showing the challenge.
            verdict: The blocking verdict that triggered resolution.
            interactive: Whether a human can solve the challenge in a
                visible window.

        Returns:
            A ``CaptchaResolution``. It has no attempts when neither mode
            was available.
        """
        resolution = CaptchaResolution()

        if self._service is not None:
            attempt = await self._solve_automatically(session, verdict)
            resolution.attempts.append(attempt)
            if attempt.solved:
                resolution.final_state = CaptchaState.SOLVED
                return resolution

        if interactive:
            attempt = await self._wait_for_manual(session)
            resolution.attempts.append(attempt)
            if attempt.solved:
                resolution.final_state = CaptchaState.SOLVED
                return resolution

        if resolution.attempts:
            resolution.final_state = CaptchaState.FAILED
            logger.warning("Captcha unresolved on %s: %s", session.url, resolution.error)
        else:
            logger.info("Challenge on %s and no resolution mode is available", session.url)
        return resolution

    # -- auto tier ----------------------------------------------------------

    async def _solve_automatically(self, session: PageSession, verdict: DetectionVerdict) -> CaptchaAttempt:
        assert self._service is not None
        loop = asyncio.get_running_loop()
        now = loop.time()
        attempt = CaptchaAttempt(
            mode=CaptchaMode.AUTO,
            started_at=now,
            deadline=now + self._settings.solve_timeout_seconds,
            state=CaptchaState.AUTO_SOLVE_ATTEMPT,
        )
        challenge_type = detect_challenge_type(verdict, self._default_challenge_type())
        logger.info("Attempting automatic %s solve via %s", challenge_type.value, self._service.name)

        try:
            page = session.require_page()
            attempt.task_id = await self._service.submit(page.url, challenge_type, verdict.site_key or None)
            token = await self._poll_for_token(attempt)
            if not token:
                return attempt

            filled = await page.evaluate(INJECT_TOKEN_SCRIPT, token)
            logger.info("Injected captcha token into %s field(s)", filled)
            await asyncio.sleep(self._settings.token_settle_seconds)
        except (CaptchaServiceError, PlaywrightError) as exc:
            attempt.state = CaptchaState.AUTO_FAILED
            attempt.error = str(exc)
            logger.warning("Automatic captcha solve failed: %s", exc)
            return attempt
        except Exception as exc:
            # Third-party solver clients raise their own exception types.
            attempt.state = CaptchaState.AUTO_FAILED
            attempt.error = f"{type(exc).__name__}: {exc}"
            logger.warning("Automatic captcha solve failed unexpectedly: %s", attempt.error, exc_info=True)
            return attempt

        recheck = await self._detection.evaluate(session, DetectionPhase.RECHECK)
        if recheck.reason == BlockReason.EVALUATION_FAILED:
            attempt.state = CaptchaState.AUTO_FAILED
            attempt.error = f"page could not be re-checked after token injection: {recheck.detail}"
            logger.warning("Captcha re-check failed: %s", recheck.detail)
            return attempt
        if recheck.blocked:
            attempt.state = CaptchaState.AUTO_FAILED
            attempt.error = "challenge still present after token injection"
            logger.warning("Captcha token injected but page still shows a challenge")
        else:
            attempt.state = CaptchaState.SOLVED
            logger.info("Captcha solved automatically")
        return attempt

    async def _poll_for_token(self, attempt: CaptchaAttempt) -> str:
        assert self._service is not None
        loop = asyncio.get_running_loop()
        while True:
            remaining = attempt.deadline - loop.time()
            if remaining <= 0:
                attempt.state = CaptchaState.AUTO_FAILED
                attempt.error = f"no solution within {self._settings.solve_timeout_seconds:.0f}s"
                logger.warning("Timed out waiting for captcha task %s", attempt.task_id)
                return ""
            await asyncio.sleep(min(self._settings.poll_interval_seconds, remaining))
            result = await self._service.poll(attempt.task_id)
            if result.token:
                return result.token
            if result.error:
                raise CaptchaServiceError(result.error)

    # -- manual tier --------------------------------------------------------

    async def _wait_for_manual(self, session: PageSession) -> CaptchaAttempt:
        loop = asyncio.get_running_loop()
        now = loop.time()
        attempt = CaptchaAttempt(
            mode=CaptchaMode.MANUAL,
            started_at=now,
            deadline=now + self._settings.manual_timeout_seconds,
            state=CaptchaState.MANUAL_WAIT,
        )
        logger.warning(
            "Manual captcha mode: solve the challenge in the browser window (waiting up to %.0fs)",
            self._settings.manual_timeout_seconds,
        )

        while True:
            remaining = attempt.deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(min(self._settings.manual_poll_interval_seconds, remaining))
            verdict = await self._detection.evaluate(session, DetectionPhase.RECHECK)
            if not verdict.blocked and verdict.text_length >= self._settings.manual_min_content_chars:
                attempt.state = CaptchaState.SOLVED
                logger.info("Captcha cleared manually after %.1fs", loop.time() - attempt.started_at)
                return attempt

        attempt.state = CaptchaState.TIMEOUT
        attempt.error = f"not solved within {self._settings.manual_timeout_seconds:.0f}s"
        return attempt
