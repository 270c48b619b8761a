"""Exception taxonomy for the resolver.

Expected absence of an artifact at a repository is not an error; it is
reported as a ``NotFound`` value by the repository layer. Everything here is
either a configuration problem (malformed or incomplete descriptors) or a
repository failure the caller must see.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .models import Dependency


class ResolverError(Exception):
    """Base exception for maven-dependency-resolver."""


class PomError(ResolverError):
    """Raised when a project descriptor cannot be turned into a model."""


class PomParseError(PomError):
    """Raised when a descriptor document is not well-formed XML."""


class MissingParentPomError(PomError):
    """Raised under strict requirements when a parent descriptor is not cached."""

    def __init__(self, parent: "Dependency") -> None:
        super().__init__(f"parent descriptor {parent.coordinates} is not in the artifact cache")
        self.parent = parent


class MetadataParseError(ResolverError):
    """Raised when a repository metadata document is not well-formed XML."""


class RepositoryError(ResolverError):
    """Base exception for repository access failures."""


class TransportError(RepositoryError):
    """Unexpected network failure talking to a repository.

    ``hint`` carries the most likely remedy, usually proxy configuration.
    """

    def __init__(self, url: str, hint: str, status: int | None = None) -> None:
        detail = f" (status={status})" if status is not None else ""
        super().__init__(f"failed to retrieve {url}{detail}. {hint}")
        self.url = url
        self.hint = hint
        self.status = status


class ChecksumError(RepositoryError):
    """Downloaded content does not match the SHA1 published by the repository."""

    def __init__(self, url: str, calculated: str, expected: str) -> None:
        super().__init__(
            f"SHA1 checksum mismatch for {url}\ncalculated: {calculated}\nretrieved: {expected}"
        )
        self.url = url
        self.calculated = calculated
        self.expected = expected


__all__ = [
    "ResolverError",
    "PomError",
    "PomParseError",
    "MissingParentPomError",
    "MetadataParseError",
    "RepositoryError",
    "TransportError",
    "ChecksumError",
]
