"""Explicit build context shared by the solver and the repository layer.

A ``BuildContext`` owns everything that used to be process-wide state: the
settings, the artifact cache, the ordered repository list, the proxy table,
the property sources handed to every descriptor read and the HTTP clients
(one per proxy, plus one for direct connections).

Use it as an async context manager, or call ``aclose`` when done, so pooled
connections are released.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from .artifact_cache import ArtifactCache
from .config import ProxyDefinition, Settings
from .logging_config import configure_logging
from .pom import PropertySources
from .repository import Repository

_logger = logging.getLogger(__name__)

_DIRECT = ""


class BuildContext:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        cache: Optional[ArtifactCache] = None,
        repositories: Optional[list[Repository]] = None,
        properties: Optional[PropertySources] = None,
        sleep_fn: Any | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.cache = cache or ArtifactCache(self.settings.cache_root)
        self.repositories: list[Repository] = (
            repositories
            if repositories is not None
            else [Repository.from_definition(d) for d in self.settings.REPOSITORIES]
        )
        self.proxies: list[ProxyDefinition] = list(self.settings.PROXIES)
        self.properties = properties or PropertySources(build=dict(self.settings.BUILD_PROPERTIES))
        # injected sleep function for tests to avoid real backoff delays
        self.sleep = sleep_fn or asyncio.sleep
        self._clients: dict[str, httpx.AsyncClient] = {}

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "BuildContext":
        """Build a context and configure logging from ``settings``."""
        s = settings or Settings()
        configure_logging(s.LOG_LEVEL, s.LOG_JSON)
        return cls(s)

    # --- proxies ---
    def proxy_for(self, url: str) -> Optional[ProxyDefinition]:
        """First active proxy whose repository patterns match ``url``."""
        for proxy in self.proxies:
            if proxy.matches(url):
                return proxy
        return None

    def proxy_hint(self, url: str) -> str:
        proxy = self.proxy_for(url)
        if proxy is None:
            return "Do you need to specify a proxy (PROXIES)?"
        return f"Failed to use proxy {proxy.display_url} ({proxy.id}); check PROXIES."

    # --- HTTP ---
    def client_for(self, url: str) -> httpx.AsyncClient:
        proxy = self.proxy_for(url)
        key = proxy.id if proxy is not None else _DIRECT
        client = self._clients.get(key)
        if client is None:
            if proxy is not None:
                _logger.debug("routing %s through proxy %s", url, proxy.display_url)
            client = httpx.AsyncClient(
                timeout=self.settings.HTTP_TIMEOUT_SECONDS,
                follow_redirects=True,
                proxy=proxy.url if proxy is not None else None,
            )
            self._clients[key] = client
        return client

    async def aclose(self) -> None:
        clients, self._clients = list(self._clients.values()), {}
        for client in clients:
            await client.aclose()

    async def __aenter__(self) -> "BuildContext":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


__all__ = ["BuildContext"]
