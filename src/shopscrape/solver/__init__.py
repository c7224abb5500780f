"""Remote captcha-solving services."""

from shopscrape.solver.base import CaptchaService, PollResult
from shopscrape.solver.factory import create_captcha_service

__all__ = ["CaptchaService", "PollResult", "create_captcha_service"]
