"""In-memory project descriptor.

A ``Pom`` is populated by :mod:`pom_reader` and is read-only afterwards from
the caller's perspective. It is scope-naive: declarations are stored under
the scope they were declared with, and :meth:`Pom.get_dependencies` decides
what a consuming scope sees at a given ring.

Property placeholders (``${...}``) are resolved against, in order:

1. the descriptor's own property table (including inherited properties)
2. the pseudo-properties ``project.*`` / ``pom.*`` / ``parent.*``
3. ``env.*`` process environment variables
4. externally supplied build properties
5. host system properties (``user.home``, ``os.name``, ...)

An unresolvable placeholder is left intact so it stands out downstream.
"""

from __future__ import annotations

import getpass
import logging
import os
import platform
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Final, Iterable, Mapping, Optional

from .exceptions import ResolverError
from .models import POM, Dependency, License, Person, Scm, SystemDependency, extension_for_type
from .scope import DEFAULT_SCOPE, Scope
from .versioning import compare_versions

_logger = logging.getLogger(__name__)

RING0: Final[int] = 0
RING1: Final[int] = 1

_PLACEHOLDER: Final[re.Pattern[str]] = re.compile(r"\$\{([a-zA-Z0-9\-_.]+)\}")

_PROJECT_FIELDS: Final[dict[str, str]] = {
    "groupId": "group_id",
    "artifactId": "artifact_id",
    "version": "version",
    "packaging": "packaging",
    "classifier": "classifier",
    "name": "name",
    "description": "description",
    "url": "url",
    "inceptionYear": "inception_year",
    "organization": "organization",
    "issuesUrl": "issues_url",
}

_PARENT_FIELDS: Final[dict[str, str]] = {
    "groupId": "parent_group_id",
    "artifactId": "parent_artifact_id",
    "version": "parent_version",
}


@lru_cache(maxsize=1)
def host_properties() -> dict[str, str]:
    """System properties describing the running host."""
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = ""
    return {
        "user.home": os.path.expanduser("~"),
        "user.name": user,
        "user.dir": os.getcwd(),
        "os.name": platform.system(),
        "os.arch": platform.machine(),
        "os.version": platform.release(),
        "file.separator": os.sep,
        "path.separator": os.pathsep,
        "line.separator": os.linesep,
    }


@dataclass(frozen=True)
class PropertySources:
    """Property sources consulted after the descriptor's own table."""

    build: Mapping[str, str] = field(default_factory=dict)
    system: Optional[Mapping[str, str]] = None

    def system_properties(self) -> Mapping[str, str]:
        return self.system if self.system is not None else host_properties()


class Pom:
    def __init__(self, sources: Optional[PropertySources] = None) -> None:
        self.sources = sources or PropertySources()

        self.name: Optional[str] = None
        self.description: Optional[str] = None
        self.url: Optional[str] = None
        self.issues_url: Optional[str] = None
        self.organization: Optional[str] = None
        self.organization_url: Optional[str] = None
        self.inception_year: Optional[str] = None

        self.group_id: Optional[str] = None
        self.artifact_id: Optional[str] = None
        self.version: Optional[str] = None
        self.classifier: Optional[str] = None
        self.packaging: str = "jar"

        self.parent_group_id: Optional[str] = None
        self.parent_artifact_id: Optional[str] = None
        self.parent_version: Optional[str] = None

        self.scm = Scm()
        self.licenses: list[License] = []
        self.developers: list[Person] = []
        self.contributors: list[Person] = []

        self._properties: dict[str, str] = {}
        self._managed_versions: dict[str, Optional[str]] = {}
        self._managed_scopes: dict[str, Scope] = {}
        self._exclusions: set[str] = set()
        self._dependencies: dict[Scope, list[Dependency]] = {}

    # --- identity ---
    @property
    def management_id(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"

    @property
    def coordinates(self) -> str:
        coords = f"{self.group_id}:{self.artifact_id}:{self.version}"
        if self.classifier:
            coords += f":{self.classifier}"
        return coords

    @property
    def extension(self) -> str:
        return extension_for_type(self.packaging)

    @property
    def is_pom(self) -> bool:
        return self.extension == POM

    @property
    def is_snapshot(self) -> bool:
        if not self.version:
            raise ResolverError(f'version is undefined for "{self.coordinates}"')
        return self.version.endswith("-SNAPSHOT")

    def __repr__(self) -> str:
        return f"Pom({self.coordinates})"

    def __lt__(self, other: "Pom") -> bool:
        if self.management_id != other.management_id:
            return self.management_id < other.management_id
        return compare_versions(self.version or "0", other.version or "0") < 0

    # --- properties ---
    @property
    def properties(self) -> dict[str, str]:
        return dict(self._properties)

    def set_property(self, key: Optional[str], value: Optional[str]) -> None:
        if not key or not value:
            return
        self._properties[key.strip()] = value

    def _pseudo_property(self, key: str) -> Optional[str]:
        prefix, _, name = key.partition(".")
        if prefix in ("project", "pom"):
            attr = _PROJECT_FIELDS.get(name)
        elif prefix == "parent":
            attr = _PARENT_FIELDS.get(name)
        else:
            return None
        if attr is None:
            return None
        value = getattr(self, attr)
        return str(value) if value else None

    def _get_property(self, key: str) -> Optional[str]:
        value = self._properties.get(key)
        if not value:
            value = self._pseudo_property(key)
        if not value and key.startswith("env."):
            value = os.environ.get(key[4:])
        if not value:
            value = self.sources.build.get(key)
        if not value:
            value = self.sources.system_properties().get(key)
        return value or None

    def resolve_properties(self, text: Optional[str]) -> Optional[str]:
        """Substitute ``${...}`` placeholders, expanding property values recursively.

        A placeholder whose value refers back to itself, directly or through
        other properties, is left intact, as is one with no value. Resolving
        an already resolved string therefore changes nothing.
        """
        if text is None:
            return None
        missing: set[str] = set()
        cyclic: set[str] = set()
        expanded: dict[str, Optional[str]] = {}

        def _expand(key: str, stack: frozenset[str]) -> Optional[str]:
            if key in expanded:
                return expanded[key]
            if key in stack:
                cyclic.add(key)
                return None
            value = self._get_property(key)
            if value is None:
                if key not in missing:
                    missing.add(key)
                    _logger.warning('property "%s" not found for %s', key, self.coordinates)
                result = None
            else:
                inner = stack | {key}
                result = _PLACEHOLDER.sub(lambda m: _expand(m.group(1), inner) or m.group(0), value)
                if key in cyclic:
                    result = None
            expanded[key] = result
            return result

        return _PLACEHOLDER.sub(lambda m: _expand(m.group(1), frozenset()) or m.group(0), text)

    def resolve_metadata_properties(self) -> None:
        self.name = self.resolve_properties(self.name)
        self.description = self.resolve_properties(self.description)
        self.organization = self.resolve_properties(self.organization)
        self.url = self.resolve_properties(self.url)
        self.issues_url = self.resolve_properties(self.issues_url)

    # --- managed dependencies ---
    @property
    def managed_versions(self) -> dict[str, Optional[str]]:
        return dict(self._managed_versions)

    @property
    def managed_scopes(self) -> dict[str, Scope]:
        return dict(self._managed_scopes)

    def add_managed_dependency(
        self, dep: Dependency, scope: Optional[Scope] = None, resolve_properties: bool = True
    ) -> None:
        if resolve_properties:
            dep.group_id = self.resolve_properties(dep.group_id) or ""
            dep.version = self.resolve_properties(dep.version)

        if dep.management_id == self.management_id:
            _logger.warning("ignoring circular managed dependency %s", dep.management_id)
            return

        if not dep.extension:
            dep.extension = extension_for_type(dep.type)

        self._managed_versions[dep.management_id] = dep.version
        if scope is not None:
            self._managed_scopes[dep.management_id] = scope

    def get_managed_version(self, dep: Dependency) -> Optional[str]:
        if dep.management_id in self._managed_versions:
            return self._managed_versions[dep.management_id]
        return dep.version

    def get_managed_scope(self, dep: Dependency) -> Optional[Scope]:
        return self._managed_scopes.get(dep.management_id)

    def import_managed_dependencies(self, other: "Pom") -> None:
        _non_destructive_copy(other._managed_versions, self._managed_versions)
        _non_destructive_copy(other._managed_scopes, self._managed_scopes)

    # --- dependencies ---
    @property
    def scopes(self) -> list[Scope]:
        return list(self._dependencies)

    def has_dependencies(self) -> bool:
        return bool(self._dependencies)

    def remove_scope(self, scope: Scope) -> None:
        self._dependencies.pop(scope, None)

    def clear_dependencies(self) -> None:
        self._dependencies.clear()

    def has_dependency(self, dep: Dependency) -> bool:
        mid = dep.mediation_id
        return any(d.mediation_id == mid for deps in self._dependencies.values() for d in deps)

    def add_exclusions(self, exclusions: Iterable[str]) -> None:
        """Descriptor-level exclusions; Maven only supports them per dependency."""
        self._exclusions.update(e.strip() for e in exclusions if e and e.strip())

    @property
    def exclusions(self) -> set[str]:
        return set(self._exclusions)

    def excludes(self, dep: Dependency) -> bool:
        return (
            dep.mediation_id in self._exclusions
            or dep.management_id in self._exclusions
            or dep.group_id in self._exclusions
        )

    def add_dependency(
        self, dep: Dependency, scope: Optional[Scope] = None, resolve_properties: bool = True
    ) -> Optional[Scope]:
        """Declare ``dep``; returns the scope it was filed under or None if rejected."""
        if isinstance(dep, SystemDependency):
            dep.path = self.resolve_properties(dep.path) or ""
        elif dep.is_maven_object:
            if resolve_properties:
                dep.group_id = self.resolve_properties(dep.group_id) or ""
            if not dep.version:
                dep.version = self.get_managed_version(dep)
            if resolve_properties:
                dep.version = self.resolve_properties(dep.version)
            if not dep.extension:
                dep.extension = extension_for_type(dep.type)
            if dep.management_id == self.management_id:
                _logger.warning("ignoring circular dependency %s", dep.management_id)
                return None

        if self.has_dependency(dep) or self.excludes(dep):
            return None

        if scope is None:
            scope = self.get_managed_scope(dep) or DEFAULT_SCOPE

        self._dependencies.setdefault(scope, []).append(dep)
        return scope

    def get_dependencies(self, scope: Scope, ring: int = RING1) -> list[Dependency]:
        """Dependencies visible to ``scope`` at ``ring``, in declaration order.

        Returned objects are copies stamped with ``ring`` and the effective
        scope; the stored declarations are left untouched.
        """
        selected: dict[str, Dependency] = {}
        for declared, deps in self._dependencies.items():
            if ring <= RING1:
                effective: Optional[Scope] = declared
                include = scope.include_on_classpath(declared)
            else:
                effective = scope.transitive_scope(declared)
                include = effective is not None and scope.include_on_classpath(effective)
            if not include:
                continue

            for dep in deps:
                if dep.optional and (ring > RING1 or scope is Scope.RUNTIME):
                    # optional dependencies are neither exported nor inherited
                    continue
                if dep.mediation_id in selected:
                    continue
                selected[dep.mediation_id] = dep.model_copy(
                    update={"ring": ring, "defined_scope": effective, "scope": scope},
                    deep=True,
                )
        return list(selected.values())

    def all_dependencies(self, ignore_duplicates: bool = True) -> list[Dependency]:
        collected: list[Dependency] = []
        for declared in self._dependencies:
            collected.extend(self.get_dependencies(declared))
        if ignore_duplicates:
            return list(dict.fromkeys(collected))
        return collected

    def declared(self, scope: Scope) -> list[Dependency]:
        """The raw declarations filed under ``scope``."""
        return list(self._dependencies.get(scope, []))

    # --- parent ---
    def has_parent(self) -> bool:
        return bool(self.parent_artifact_id)

    def parent_dependency(self) -> Dependency:
        return Dependency.parse(
            f"{self.parent_group_id or ''}:{self.parent_artifact_id}:{self.parent_version or ''}::{POM}"
        )

    def inherit(self, parent: "Pom") -> None:
        """Merge ``parent`` underneath this descriptor; values set here win."""
        _non_destructive_copy(parent._managed_versions, self._managed_versions)
        _non_destructive_copy(parent._managed_scopes, self._managed_scopes)
        _non_destructive_copy(parent._properties, self._properties)

        # the parent element may follow the child's own identity in the document
        if not self.group_id:
            self.group_id = parent.group_id
        if not self.version:
            self.version = parent.version
        if not self.name:
            self.name = parent.name
        if not self.description:
            self.description = parent.description
        if not self.organization:
            self.organization = parent.organization
        if not self.url:
            self.url = parent.url
        if not self.issues_url:
            self.issues_url = parent.issues_url

        self.licenses.extend(parent.licenses)
        self.developers.extend(parent.developers)
        self.contributors.extend(parent.contributors)


def _non_destructive_copy(source: Mapping[str, object], destination: dict) -> None:
    for key, value in source.items():
        if key not in destination:
            destination[key] = value


__all__ = ["Pom", "PropertySources", "host_properties", "RING0", "RING1"]
