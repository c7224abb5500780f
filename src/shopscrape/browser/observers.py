"""Detachable event subscriptions for Playwright emitters.

Playwright objects expose ``on()`` / ``remove_listener()``. Wrapping each
registration in a ``Subscription`` lets the owner detach exactly the
handlers it installed when a session or browser handle goes away.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class Subscription:
    """A single ``(emitter, event, handler)`` registration."""

    def __init__(self, emitter: Any, event: str, handler: Callable[..., Any]) -> None:
        self.emitter = emitter
        self.event = event
        self.handler = handler
        self.active = True

    def detach(self) -> None:
        """Remove the handler. Safe to call more than once."""
        if not self.active:
            return
        self.active = False
        try:
            self.emitter.remove_listener(self.event, self.handler)
        except Exception as exc:
            logger.debug("Failed to detach %s listener: %s", self.event, exc)

    def __repr__(self) -> str:
        state = "active" if self.active else "detached"
        return f"Subscription({self.event!r}, {state})"


def subscribe(emitter: Any, event: str, handler: Callable[..., Any]) -> Subscription:
    """Register *handler* for *event* on *emitter* and return its subscription."""
    emitter.on(event, handler)
    return Subscription(emitter, event, handler)


def detach_all(subscriptions: list[Subscription]) -> None:
    for sub in subscriptions:
        sub.detach()
    subscriptions.clear()
