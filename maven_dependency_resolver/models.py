"""Pydantic domain models.

``Dependency`` is deliberately mutable: a declaration's version may be filled
in from managed-version tables or from RELEASE/LATEST metadata after it was
parsed, and the resolver stamps ``ring``/``defined_scope`` on the copies it
hands out. Equality and hashing follow the mediation id, so sets and dict
keys de-duplicate concrete artifacts rather than objects.
"""

from __future__ import annotations

import os
from datetime import datetime
from typing import Final, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .scope import Scope

RELEASE: Final[str] = "RELEASE"
LATEST: Final[str] = "LATEST"
SNAPSHOT_SUFFIX: Final[str] = "-SNAPSHOT"

POM: Final[str] = "pom"
JAR: Final[str] = "jar"
SOURCES: Final[str] = "sources"

MAVEN2_PATTERN: Final[str] = (
    "${groupId}/${artifactId}/${version}/${artifactId}-${version}${classifier}.${ext}"
)
MAVEN2_METADATA_PATTERN: Final[str] = "${groupId}/${artifactId}/maven-metadata.${ext}"
MAVEN2_SNAPSHOT_PATTERN: Final[str] = "${groupId}/${artifactId}/${version}/maven-metadata.${ext}"

# <type> values whose artifact file is a plain jar
_JAR_TYPES: Final[frozenset[str]] = frozenset(
    {
        "jar",
        "bundle",
        "ejb",
        "ejb-client",
        "maven-plugin",
        "test-jar",
        "java-source",
        "javadoc",
    }
)


def extension_for_type(type_: Optional[str]) -> str:
    """Map a declared ``<type>`` (or packaging) to a file extension."""
    t = (type_ or "").strip().lower()
    if not t or t in _JAR_TYPES:
        return JAR
    return t


class Dependency(BaseModel):
    """A coordinate plus the declaration details that drive resolution."""

    model_config = ConfigDict(extra="ignore")

    group_id: str = ""
    artifact_id: str = ""
    version: Optional[str] = None
    classifier: Optional[str] = None
    type: Optional[str] = None
    extension: Optional[str] = None

    scope: Optional[Scope] = None
    defined_scope: Optional[Scope] = None
    optional: bool = False
    exclusions: set[str] = Field(default_factory=set)
    ring: int = 0
    resolve_dependencies: bool = True
    origin: Optional[str] = None

    @field_validator("group_id", "artifact_id")
    @classmethod
    def _strip(cls, v: str) -> str:
        return (v or "").strip()

    @field_validator("version", "classifier", "type", "extension")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @classmethod
    def parse(cls, coordinates: str) -> "Dependency":
        """Build a dependency from ``g:a[:v[:classifier[:ext]]]``.

        Empty fields are allowed, e.g. ``g:a:1.0::pom``.
        """
        parts = [p.strip() for p in coordinates.strip().split(":")]
        if len(parts) < 2 or not parts[0] or not parts[1]:
            raise ValueError(f"illegal coordinates {coordinates!r}")
        padded = parts + [""] * (5 - len(parts))
        group_id, artifact_id, version, classifier, ext = padded[:5]
        return cls(
            group_id=group_id,
            artifact_id=artifact_id,
            version=version or None,
            classifier=classifier or None,
            extension=ext or None,
        )

    # --- identities ---
    @property
    def management_id(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"

    @property
    def mediation_id(self) -> str:
        mid = f"{self.group_id}:{self.artifact_id}:{self.version or ''}"
        if self.classifier:
            mid += f":{self.classifier}"
        return mid

    @property
    def coordinates(self) -> str:
        return self.mediation_id

    @property
    def is_maven_object(self) -> bool:
        return True

    @property
    def is_snapshot(self) -> bool:
        return bool(self.version) and self.version.endswith(SNAPSHOT_SUFFIX)  # type: ignore[union-attr]

    @property
    def is_version_query(self) -> bool:
        return self.version in (RELEASE, LATEST)

    def pom_artifact(self) -> "Dependency":
        """Copy addressing this coordinate's descriptor."""
        return self.model_copy(update={"classifier": None, "extension": POM}, deep=True)

    def maven_path(self, pattern: str, ext: str) -> str:
        classifier = f"-{self.classifier}" if self.classifier else ""
        return (
            pattern.replace("${groupId}", self.group_id.replace(".", "/"))
            .replace("${artifactId}", self.artifact_id)
            .replace("${version}", self.version or "")
            .replace("${classifier}", classifier)
            .replace("${ext}", ext)
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Dependency):
            return NotImplemented
        return self.mediation_id == other.mediation_id

    def __hash__(self) -> int:
        return hash(self.mediation_id)

    def __str__(self) -> str:
        return self.coordinates


class SystemDependency(Dependency):
    """An externally supplied file; never resolved transitively."""

    path: str = ""
    resolve_dependencies: bool = False

    @model_validator(mode="after")
    def _derive_identity(self) -> "SystemDependency":
        if not self.artifact_id and self.path:
            self.artifact_id = os.path.basename(self.path)
        return self

    @property
    def management_id(self) -> str:
        return self.path

    @property
    def mediation_id(self) -> str:
        return self.path

    @property
    def is_maven_object(self) -> bool:
        return False


class License(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    url: Optional[str] = None
    distribution: Optional[str] = None
    comments: Optional[str] = None


class Person(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    url: Optional[str] = None
    organization: Optional[str] = None
    organization_url: Optional[str] = None
    roles: list[str] = Field(default_factory=list)


class Scm(BaseModel):
    model_config = ConfigDict(extra="ignore")

    connection: Optional[str] = None
    developer_connection: Optional[str] = None
    url: Optional[str] = None
    tag: Optional[str] = None

    def is_empty(self) -> bool:
        return not any((self.connection, self.developer_connection, self.url, self.tag))


class ArtifactRecord(BaseModel):
    """Derived per-coordinate metadata persisted next to a cached artifact.

    For RELEASE/LATEST pseudo-coordinates ``release``/``latest`` carry the
    concrete versions taken from the merged repository metadata.
    """

    model_config = ConfigDict(extra="ignore")

    origin: Optional[str] = None
    last_downloaded: Optional[datetime] = None
    last_checked: Optional[datetime] = None
    last_updated: Optional[datetime] = None
    release: Optional[str] = None
    latest: Optional[str] = None


class ResolvedDependency(BaseModel):
    """One entry of a resolution result as exposed by the tool server."""

    coordinates: str
    scope: Optional[Scope] = None
    ring: int
    optional: bool = False
    path: Optional[str] = None


class ResolutionResponse(BaseModel):
    project: str
    scope: Scope
    dependencies: list[ResolvedDependency] = Field(default_factory=list)


class VersionResolution(BaseModel):
    group_id: str
    artifact_id: str
    query: str
    version: Optional[str] = None


__all__ = [
    "RELEASE",
    "LATEST",
    "POM",
    "JAR",
    "SOURCES",
    "MAVEN2_PATTERN",
    "MAVEN2_METADATA_PATTERN",
    "MAVEN2_SNAPSHOT_PATTERN",
    "extension_for_type",
    "Dependency",
    "SystemDependency",
    "License",
    "Person",
    "Scm",
    "ArtifactRecord",
    "ResolvedDependency",
    "ResolutionResponse",
    "VersionResolution",
]
