"""URL normalisation shared by the orchestrator and the record cache."""

from __future__ import annotations

import re
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from shopscrape.exceptions import InvalidRequest

# Query parameters that never change which product a page shows.
TRACKING_PARAMS: frozenset[str] = frozenset({"ref", "source", "spm", "scm"})

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_ANY_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)


def ensure_protocol(url: str) -> str:
    """Prefix ``https://`` when *url* has no scheme."""
    url = url.strip()
    if not url or _SCHEME_RE.match(url):
        return url
    if url.startswith("//"):
        return "https:" + url
    return "https://" + url


def validate_url(url: str) -> str:
    """Return the normalised absolute URL or raise ``InvalidRequest``.

    Only structure is checked: an http(s) scheme and a dotted host
    (or ``localhost``). Reachability is the browser's business.
    """
    if not url or not url.strip():
        raise InvalidRequest("URL is empty")
    if _ANY_SCHEME_RE.match(url.strip()) and not _SCHEME_RE.match(url.strip()):
        raise InvalidRequest(f"Unsupported URL scheme in {url!r}")
    candidate = ensure_protocol(url)
    try:
        parts = urlsplit(candidate)
        port = parts.port
    except ValueError as exc:
        raise InvalidRequest(f"Malformed URL {url!r}: {exc}") from exc
    host = parts.hostname or ""
    if not host or (host != "localhost" and "." not in host) or " " in host:
        raise InvalidRequest(f"URL {url!r} has no valid host")
    if port == 0:
        raise InvalidRequest(f"URL {url!r} has an invalid port")
    return candidate


def strip_tracking(url: str) -> str:
    """Normalise *url* and drop ``utm_*`` and other tracking parameters."""
    candidate = ensure_protocol(url)
    try:
        parts = urlsplit(candidate)
    except ValueError:
        return candidate
    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if not key.lower().startswith("utm_") and key.lower() not in TRACKING_PARAMS
    ]
    path = parts.path or "/"
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, urlencode(query), ""))
