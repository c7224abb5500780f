"""Retry and fallback policy, keyed on the failure kind of an attempt.

| Kind                  | Browser path | Fetch path |
|-----------------------|--------------|------------|
| navigation_timeout    | retry        | retry      |
| navigation_failed     | retry        | retry      |
| thin_content          | retry        | retry      |
| blocked_by_anti_bot   | retry        | abort      |
| captcha_unsolved      | retry        | abort      |
| browser_unavailable   | fallback     | abort      |
| not_found             | abort        | abort      |
| invalid_request       | abort        | abort      |
| content_shape_changed | abort        | abort      |

Exhausting the browser path's retries also falls back, exactly once.
"""

from __future__ import annotations

from enum import Enum

from shopscrape.exceptions import ErrorKind


class Action(str, Enum):
    RETRY = "retry"
    FALLBACK = "fallback"
    ABORT = "abort"


BROWSER_POLICY: dict[ErrorKind, Action] = {
    ErrorKind.NAVIGATION_TIMEOUT: Action.RETRY,
    ErrorKind.NAVIGATION_FAILED: Action.RETRY,
    ErrorKind.THIN_CONTENT: Action.RETRY,
    ErrorKind.BLOCKED_BY_ANTI_BOT: Action.RETRY,
    ErrorKind.CAPTCHA_UNSOLVED: Action.RETRY,
    ErrorKind.BROWSER_UNAVAILABLE: Action.FALLBACK,
    ErrorKind.NOT_FOUND: Action.ABORT,
    ErrorKind.INVALID_REQUEST: Action.ABORT,
    ErrorKind.CONTENT_SHAPE_CHANGED: Action.ABORT,
}

FETCH_POLICY: dict[ErrorKind, Action] = {
    ErrorKind.NAVIGATION_TIMEOUT: Action.RETRY,
    ErrorKind.NAVIGATION_FAILED: Action.RETRY,
    ErrorKind.THIN_CONTENT: Action.RETRY,
    ErrorKind.BLOCKED_BY_ANTI_BOT: Action.ABORT,
    ErrorKind.CAPTCHA_UNSOLVED: Action.ABORT,
    ErrorKind.BROWSER_UNAVAILABLE: Action.ABORT,
    ErrorKind.NOT_FOUND: Action.ABORT,
    ErrorKind.INVALID_REQUEST: Action.ABORT,
    ErrorKind.CONTENT_SHAPE_CHANGED: Action.ABORT,
}


def browser_action(kind: ErrorKind) -> Action:
    return BROWSER_POLICY.get(kind, Action.ABORT)


def fetch_action(kind: ErrorKind) -> Action:
    return FETCH_POLICY.get(kind, Action.ABORT)
