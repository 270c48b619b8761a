"""Application configuration using pydantic-settings.

All fields are overridable via environment variables with the same names
(case-insensitive). Structured values (repositories, proxies, build
properties) are given as JSON, e.g.::

    REPOSITORIES='[{"id": "central", "url": "https://repo1.maven.org/maven2"}]'
    PROXIES='[{"id": "corp", "host": "proxy.example.com", "port": 3128}]'

Notes:
- Repository URLs are normalized to end without a trailing slash.
- A proxy with an empty ``repositories`` list applies to every repository.
"""

from __future__ import annotations

import fnmatch
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MAVEN_CENTRAL_URL = "https://repo1.maven.org/maven2"


class RepositoryDefinition(BaseModel):
    """A remote repository as configured.

    ``affinity`` lists group ids (or ``group:artifact`` ids) this repository
    is tried first for.
    """

    id: str
    url: str
    affinity: list[str] = Field(default_factory=list)

    @field_validator("url")
    @classmethod
    def _strip_slash(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("url must be non-empty")
        return v.rstrip("/")


class ProxyDefinition(BaseModel):
    id: str
    active: bool = True
    protocol: Literal["http", "https"] = "http"
    host: str
    port: int = Field(default=8080, ge=1, le=65535)
    username: Optional[str] = None
    password: Optional[str] = None
    # url fragments or glob patterns; empty matches everything
    repositories: list[str] = Field(default_factory=list)

    @property
    def url(self) -> str:
        auth = ""
        if self.username:
            auth = self.username
            if self.password:
                auth += f":{self.password}"
            auth += "@"
        return f"{self.protocol}://{auth}{self.host}:{self.port}"

    @property
    def display_url(self) -> str:
        """Proxy URL without credentials, safe to log."""
        return f"{self.protocol}://{self.host}:{self.port}"

    def matches(self, url: str) -> bool:
        if not self.active:
            return False
        if not self.repositories:
            return True
        lowered = url.lower()
        for pattern in self.repositories:
            p = pattern.strip().lower()
            if p and (p in lowered or fnmatch.fnmatch(lowered, p)):
                return True
        return False


class Settings(BaseSettings):
    """Top-level application settings.

    Env var precedence follows pydantic-settings rules, e.g.
    ``ENFORCE_CHECKSUMS=false`` or ``CACHE_ROOT=/tmp/m2``.
    """

    # Repositories, tried in order
    REPOSITORIES: list[RepositoryDefinition] = Field(
        default_factory=lambda: [RepositoryDefinition(id="central", url=MAVEN_CENTRAL_URL)]
    )
    CACHE_ROOT: Path = Path("~/.maven-dependency-resolver/repository")

    # HTTP behavior
    HTTP_TIMEOUT_SECONDS: int = Field(default=10, ge=1)
    HTTP_MAX_RETRIES: int = Field(default=2, ge=0)
    PROXIES: list[ProxyDefinition] = Field(default_factory=list)

    # Resolution
    ENFORCE_CHECKSUMS: bool = True
    DOWNLOAD_SOURCES: bool = True
    METADATA_UPDATE_INTERVAL_SECONDS: int = Field(default=86400, ge=0)  # 24 hours
    BUILD_PROPERTIES: dict[str, str] = Field(default_factory=dict)

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_JSON: bool = False

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    @property
    def cache_root(self) -> Path:
        return self.CACHE_ROOT.expanduser()


__all__ = ["Settings", "RepositoryDefinition", "ProxyDefinition", "MAVEN_CENTRAL_URL"]
