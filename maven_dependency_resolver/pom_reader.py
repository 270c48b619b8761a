"""Read project descriptors from the artifact cache.

Security:
    Documents are parsed with defusedxml to prevent XXE and entity expansion
    attacks; descriptors come from arbitrary remote repositories.

Ordering:
    The top-level elements are walked once, in document order. A ``<parent>``
    element triggers a recursive read of the parent descriptor and an
    ``inherit`` immediately, so ``${parent.*}`` and inherited properties are
    available to everything that follows. Dependencies are only collected
    during the walk; they are added after the whole document (and therefore
    the whole property table) has been read, managed dependencies first so
    that version-less declarations can pick up their managed version.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as ET  # type: ignore[import-untyped]

from .artifact_cache import ArtifactCache
from .exceptions import MissingParentPomError, PomParseError
from .models import POM, Dependency, License, Person, SystemDependency, extension_for_type
from .pom import Pom, PropertySources
from .scope import Scope

_logger = logging.getLogger(__name__)


class Requirements(Enum):
    """How strictly missing or incomplete data is treated."""

    STRICT = (True, True)
    LOOSE = (False, False)

    @property
    def require_parent(self) -> bool:
        return self.value[0]

    @property
    def resolve_properties(self) -> bool:
        return self.value[1]


def _local_name(tag: Any) -> str:
    """Return the local name of an XML tag, stripping any namespace."""
    if not isinstance(tag, str):
        # comments and processing instructions
        return ""
    if "}" in tag:
        return tag.split("}", 1)[1]
    return tag


def _elements(elem: Any) -> list[Any]:
    return [child for child in elem if _local_name(child.tag)]


def _child(elem: Any, name: str) -> Any:
    for child in elem:
        if _local_name(child.tag) == name:
            return child
    return None


def _text(elem: Any) -> Optional[str]:
    if elem is None:
        return None
    return (elem.text or "").strip() or None


def _child_text(elem: Any, name: str) -> Optional[str]:
    return _text(_child(elem, name))


def _bool_text(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


def _read_exclusions(dep_elem: Any) -> set[str]:
    exclusions: set[str] = set()
    container = _child(dep_elem, "exclusions")
    if container is None:
        return exclusions
    for node in _elements(container):
        if _local_name(node.tag) != "exclusion":
            continue
        group_id = _child_text(node, "groupId")
        artifact_id = _child_text(node, "artifactId")
        if not group_id:
            continue
        if group_id == "*":
            exclusions.add("*")
        elif not artifact_id or artifact_id == "*":
            exclusions.add(group_id)
        else:
            exclusions.add(f"{group_id}:{artifact_id}")
    return exclusions


def _read_dependency(node: Any) -> Optional[Dependency]:
    group_id = _child_text(node, "groupId")
    artifact_id = _child_text(node, "artifactId")
    if not group_id or not artifact_id:
        # malformed declaration; nothing to resolve
        return None

    scope = Scope.parse(_child_text(node, "scope"))
    system_path = _child_text(node, "systemPath")
    fields: dict[str, Any] = {
        "group_id": group_id,
        "artifact_id": artifact_id,
        "version": _child_text(node, "version"),
        "classifier": _child_text(node, "classifier"),
        "type": _child_text(node, "type"),
        "optional": _bool_text(_child_text(node, "optional")),
        "exclusions": _read_exclusions(node),
        "defined_scope": scope,
    }
    if scope is Scope.SYSTEM and system_path:
        return SystemDependency(path=system_path, **fields)
    dep = Dependency(**fields)
    dep.extension = extension_for_type(dep.type)
    return dep


def _read_person(node: Any) -> Person:
    roles_elem = _child(node, "roles")
    roles = [_text(n) for n in _elements(roles_elem)] if roles_elem is not None else []
    return Person(
        id=_child_text(node, "id"),
        name=_child_text(node, "name"),
        email=_child_text(node, "email"),
        url=_child_text(node, "url"),
        organization=_child_text(node, "organization"),
        organization_url=_child_text(node, "organizationUrl"),
        roles=[r for r in roles if r],
    )


def _parse(source: Union[Path, str, bytes]) -> Any:
    try:
        if isinstance(source, Path):
            return ET.parse(str(source)).getroot()
        return ET.fromstring(source)
    except (OSError, ET.ParseError, DefusedXmlException) as exc:
        name = source if isinstance(source, Path) else "<document>"
        raise PomParseError(f"failed to parse descriptor {name}: {exc}") from exc


def read_cached_pom(
    cache: ArtifactCache,
    dependency: Dependency,
    requirements: Requirements = Requirements.STRICT,
    imports: Optional[list[Dependency]] = None,
    sources: Optional[PropertySources] = None,
) -> Optional[Pom]:
    """Read ``dependency``'s descriptor from the cache; None if it is not cached."""
    if not dependency.group_id or not dependency.version:
        return None
    pom_file = cache.get_artifact(dependency.pom_artifact(), POM)
    if not pom_file.exists():
        return None
    return read_pom(cache, pom_file, requirements, imports, sources)


def read_pom(
    cache: ArtifactCache,
    source: Union[Path, str, bytes],
    requirements: Requirements = Requirements.STRICT,
    imports: Optional[list[Dependency]] = None,
    sources: Optional[PropertySources] = None,
) -> Pom:
    """Parse a descriptor document into a :class:`Pom`.

    Args:
        cache: where parent and imported descriptors are looked up.
        source: descriptor file path, or the document text.
        requirements: STRICT raises when a parent is missing; LOOSE substitutes
            a stand-in parent and leaves placeholders unresolved.
        imports: accumulator for BOM imports whose descriptor is not cached yet;
            the caller downloads them and reads again.
        sources: build and system property sources.

    Raises:
        PomParseError: the document is not well-formed.
        MissingParentPomError: STRICT requirements and the parent is not cached.
    """
    if imports is None:
        imports = []
    root = _parse(source)

    pom = Pom(sources)
    managed: list[Dependency] = []
    declared: list[Dependency] = []

    for element in _elements(root):
        tag = _local_name(element.tag)
        if tag == "parent":
            pom.parent_group_id = _child_text(element, "groupId")
            pom.parent_artifact_id = _child_text(element, "artifactId")
            pom.parent_version = _child_text(element, "version")

            parent = pom.parent_dependency()
            parent_pom = read_cached_pom(cache, parent, requirements, imports, sources)
            if parent_pom is None:
                if requirements.require_parent:
                    raise MissingParentPomError(parent)
                # likely mid-download; a stand-in keeps ${parent.*} resolvable
                parent_pom = Pom(sources)
                parent_pom.group_id = pom.parent_group_id
                parent_pom.artifact_id = pom.parent_artifact_id
                parent_pom.version = pom.parent_version
            pom.inherit(parent_pom)
        elif tag == "properties":
            for prop in _elements(element):
                pom.set_property(_local_name(prop.tag), _text(prop))
        elif tag == "dependencyManagement":
            container = _child(element, "dependencies")
            for node in _elements(container) if container is not None else []:
                if _local_name(node.tag) == "dependency":
                    dep = _read_dependency(node)
                    if dep is not None:
                        managed.append(dep)
        elif tag == "dependencies":
            for node in _elements(element):
                if _local_name(node.tag) != "dependency":
                    continue
                dep = _read_dependency(node)
                if dep is not None:
                    declared.append(dep)
        elif tag == "licenses":
            # this descriptor defines its own licenses; drop inherited ones
            pom.licenses.clear()
            for node in _elements(element):
                pom.licenses.append(
                    License(
                        name=_child_text(node, "name"),
                        url=_child_text(node, "url"),
                        distribution=_child_text(node, "distribution"),
                        comments=_child_text(node, "comments"),
                    )
                )
        elif tag == "developers":
            pom.developers.extend(_read_person(node) for node in _elements(element))
        elif tag == "contributors":
            pom.contributors.extend(_read_person(node) for node in _elements(element))
        elif tag == "scm":
            pom.scm.connection = _child_text(element, "connection")
            pom.scm.developer_connection = _child_text(element, "developerConnection")
            pom.scm.url = _child_text(element, "url")
            pom.scm.tag = _child_text(element, "tag")
        elif tag == "issueManagement":
            pom.issues_url = _child_text(element, "url")
        elif tag == "organization":
            pom.organization = _child_text(element, "name")
            pom.organization_url = _child_text(element, "url")
        elif tag in _SCALARS:
            value = _text(element)
            if value is not None or tag != "packaging":
                setattr(pom, _SCALARS[tag], value)

    resolve = requirements.resolve_properties
    if resolve:
        pom.resolve_metadata_properties()
        for dep in managed + declared:
            dep.artifact_id = pom.resolve_properties(dep.artifact_id) or ""
            dep.classifier = pom.resolve_properties(dep.classifier)

    for dep in managed:
        if dep.defined_scope is Scope.IMPORT:
            if resolve:
                dep.group_id = pom.resolve_properties(dep.group_id) or ""
                dep.version = pom.resolve_properties(dep.version)
            bom = read_cached_pom(cache, dep, requirements, imports, sources)
            if bom is not None:
                pom.import_managed_dependencies(bom)
            elif dep not in imports:
                _logger.debug("BOM %s is not cached yet", dep.coordinates)
                imports.append(dep.pom_artifact())
        else:
            pom.add_managed_dependency(dep, dep.defined_scope, resolve)

    for dep in declared:
        dep.defined_scope = pom.add_dependency(dep, dep.defined_scope, resolve)

    return pom


_SCALARS: dict[str, str] = {
    "groupId": "group_id",
    "artifactId": "artifact_id",
    "version": "version",
    "packaging": "packaging",
    "name": "name",
    "description": "description",
    "url": "url",
    "inceptionYear": "inception_year",
}


__all__ = ["Requirements", "read_pom", "read_cached_pom"]
