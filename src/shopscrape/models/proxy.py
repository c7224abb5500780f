"""Immutable upstream proxy configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

if TYPE_CHECKING:
    from shopscrape.settings.config import ProxySettings


@dataclass(frozen=True)
class ProxyConfig:
    """Proxy endpoint plus optional credentials.

    Built once at startup and shared by reference; sessions read it but
    never modify it.
    """

    host: str
    port: int
    username: str = ""
    password: str = ""
    scheme: str = "http"

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    @property
    def server(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"

    @property
    def url(self) -> str:
        """Proxy URL with embedded credentials, for plain HTTP clients."""
        if self.has_credentials:
            auth = f"{quote(self.username, safe='')}:{quote(self.password, safe='')}@"
            return f"{self.scheme}://{auth}{self.host}:{self.port}"
        return self.server

    def to_playwright(self) -> dict[str, Any]:
        """Return the ``proxy`` argument for ``browser.new_context()``."""
        proxy: dict[str, Any] = {"server": self.server}
        if self.has_credentials:
            proxy["username"] = self.username
            proxy["password"] = self.password
        return proxy

    def __repr__(self) -> str:
        user = self.username or "-"
        return f"ProxyConfig({self.server}, user={user})"

    @classmethod
    def from_settings(cls, settings: ProxySettings) -> ProxyConfig | None:
        """Build a config from the ``proxy`` settings section.

        Returns ``None`` when the proxy is disabled or incomplete.
        """
        if not settings.enabled or not settings.host or not settings.port:
            return None
        return cls(
            host=settings.host.strip(),
            port=int(settings.port),
            username=settings.username,
            password=settings.password,
        )
