"""2Captcha client speaking the ``in.php`` / ``res.php`` JSON API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from shopscrape.exceptions import CaptchaServiceError
from shopscrape.models.detection import ChallengeType
from shopscrape.solver.base import CaptchaService, PollResult

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://2captcha.com"

NOT_READY = "CAPCHA_NOT_READY"

# challenge type -> (method, name of the site-key parameter)
_METHODS: dict[ChallengeType, tuple[str, str]] = {
    ChallengeType.RECAPTCHA_V2: ("userrecaptcha", "googlekey"),
    ChallengeType.HCAPTCHA: ("hcaptcha", "sitekey"),
    ChallengeType.TURNSTILE: ("turnstile", "sitekey"),
    # Slider widgets are submitted as hCaptcha-style tasks.
    ChallengeType.SLIDER: ("hcaptcha", "sitekey"),
}


class TwoCaptchaService(CaptchaService):
    """Async 2Captcha client.

    Args:
        api_key: Account API key.
        base_url: API root; overridable for tests.
        timeout: Per-request HTTP timeout in seconds.
        client: Pre-built ``httpx.AsyncClient`` (tests inject a mock transport).
    """

    name = "2captcha"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("2Captcha API key is required")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def submit(self, page_url: str, challenge_type: ChallengeType, site_key: str | None = None) -> str:
        method, key_param = _METHODS.get(challenge_type, _METHODS[ChallengeType.HCAPTCHA])
        params: dict[str, Any] = {"key": self.api_key, "method": method, "pageurl": page_url, "json": 1}
        if site_key:
            params[key_param] = site_key

        body = await self._call("in.php", params)
        if body.get("status") != 1:
            raise CaptchaServiceError(f"2Captcha rejected task: {body.get('request') or 'unknown error'}")
        raw_id = body.get("request")
        if not raw_id:
            raise CaptchaServiceError("2Captcha accepted the task but returned no task id")
        task_id = str(raw_id)
        logger.info("Submitted %s challenge to 2Captcha (task %s)", challenge_type.value, task_id)
        return task_id

    async def poll(self, task_id: str) -> PollResult:
        body = await self._call("res.php", {"key": self.api_key, "action": "get", "id": task_id, "json": 1})
        if body.get("status") == 1:
            token = body.get("request")
            if not token:
                return PollResult(error="2Captcha reported success without a token")
            logger.info("2Captcha task %s solved", task_id)
            return PollResult(token=str(token))
        if body.get("request") == NOT_READY:
            return PollResult()
        return PollResult(error=str(body.get("request") or "failed to get solution"))

    async def get_balance(self) -> float:
        body = await self._call("res.php", {"key": self.api_key, "action": "getbalance", "json": 1})
        try:
            return float(body.get("request") or 0)
        except (TypeError, ValueError) as exc:
            raise CaptchaServiceError(f"Unexpected balance response: {body.get('request')!r}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = await self._client.get(f"{self.base_url}/{endpoint}", params=params)
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPStatusError as e:
            logger.error("2Captcha HTTP error: %s %s", e.response.status_code, e.response.text[:200])
            raise CaptchaServiceError(f"2Captcha returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise CaptchaServiceError(f"2Captcha unreachable: {e}") from e
        except ValueError as e:
            raise CaptchaServiceError("2Captcha returned a non-JSON response") from e
        if not isinstance(body, dict):
            raise CaptchaServiceError("2Captcha returned an unexpected payload")
        return body
