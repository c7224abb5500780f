"""Factory for creating the captcha service from settings.

Returns ``None`` when no API key is configured: automatic solving is
then simply unavailable and the coordinator falls back to manual mode
(or gives up).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shopscrape.solver.base import CaptchaService

if TYPE_CHECKING:
    from shopscrape.settings.config import CaptchaSettings

logger = logging.getLogger(__name__)


def create_captcha_service(settings: CaptchaSettings | None = None) -> CaptchaService | None:
    """Create the configured captcha service.

    Args:
        settings: The ``captcha`` settings section. If None, reads from
            ``get_settings().captcha``.

    Returns:
        A ``CaptchaService``, or ``None`` when no API key is set.

    Raises:
        ValueError: If the service name is not recognized.
    """
    if settings is None:
        from shopscrape.settings import get_settings

        settings = get_settings().captcha

    if not settings.api_key:
        logger.debug("No captcha API key configured; automatic solving disabled")
        return None

    service_name = settings.service.lower().strip()
    if service_name == "2captcha":
        from shopscrape.solver.two_captcha import TwoCaptchaService

        service = TwoCaptchaService(settings.api_key)
    else:
        raise ValueError(f"Unknown captcha service: {service_name!r}. Supported: 2captcha")

    logger.info("Created captcha service: %s", service_name)
    return service
