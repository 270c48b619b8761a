"""Emit a plain Maven 4.0.0 project descriptor from a :class:`Pom`."""

from __future__ import annotations

from typing import Iterable, Optional
from xml.etree.ElementTree import Comment, Element, SubElement, indent, tostring

from .config import RepositoryDefinition
from .models import JAR, Dependency, Person, SystemDependency
from .pom import Pom
from .scope import Scope

_MODEL_VERSION = "4.0.0"
_NAMESPACE = "http://maven.apache.org/POM/4.0.0"
_SCHEMA = "http://maven.apache.org/POM/4.0.0 http://maven.apache.org/maven-v4_0_0.xsd"


def _add(parent: Element, tag: str, value: Optional[str]) -> None:
    if value:
        SubElement(parent, tag).text = value


def _dependency_element(parent: Element, dep: Dependency, scope: Optional[Scope]) -> None:
    node = SubElement(parent, "dependency")
    _add(node, "groupId", dep.group_id)
    _add(node, "artifactId", dep.artifact_id)
    _add(node, "version", dep.version)
    _add(node, "classifier", dep.classifier)
    if dep.type and dep.type != JAR:
        _add(node, "type", dep.type)
    if scope is not None:
        _add(node, "scope", scope.value)
    if isinstance(dep, SystemDependency):
        _add(node, "systemPath", dep.path)
    if dep.optional:
        _add(node, "optional", "true")
    if dep.exclusions:
        exclusions = SubElement(node, "exclusions")
        for pattern in sorted(dep.exclusions):
            group_id, _, artifact_id = pattern.partition(":")
            exclusion = SubElement(exclusions, "exclusion")
            _add(exclusion, "groupId", group_id)
            _add(exclusion, "artifactId", artifact_id or "*")


def _persons_element(parent: Element, tag: str, persons: list[Person]) -> None:
    if not persons:
        return
    container = SubElement(parent, f"{tag}s")
    for person in persons:
        node = SubElement(container, tag)
        _add(node, "id", person.id)
        _add(node, "name", person.name)
        _add(node, "email", person.email)
        _add(node, "url", person.url)
        _add(node, "organization", person.organization)
        _add(node, "organizationUrl", person.organization_url)
        if person.roles:
            roles = SubElement(node, "roles")
            for role in person.roles:
                _add(roles, "role", role)


def pom_to_xml(
    pom: Pom,
    include_properties: bool = True,
    repositories: Iterable[RepositoryDefinition] = (),
) -> str:
    root = Element(
        "project",
        {
            "xmlns": _NAMESPACE,
            "xmlns:xsi": "http://www.w3.org/2001/XMLSchema-instance",
            "xsi:schemaLocation": _SCHEMA,
        },
    )
    _add(root, "modelVersion", _MODEL_VERSION)

    if pom.has_parent():
        parent = SubElement(root, "parent")
        _add(parent, "groupId", pom.parent_group_id)
        _add(parent, "artifactId", pom.parent_artifact_id)
        _add(parent, "version", pom.parent_version)

    _add(root, "groupId", pom.group_id)
    _add(root, "artifactId", pom.artifact_id)
    _add(root, "version", pom.version)
    _add(root, "packaging", pom.packaging)
    _add(root, "name", pom.name)
    _add(root, "description", pom.description)
    if pom.organization or pom.organization_url:
        org = SubElement(root, "organization")
        _add(org, "name", pom.organization)
        _add(org, "url", pom.organization_url)
    _add(root, "url", pom.url)
    _add(root, "inceptionYear", pom.inception_year)
    if pom.issues_url:
        issues = SubElement(root, "issueManagement")
        _add(issues, "url", pom.issues_url)

    if pom.licenses:
        licenses = SubElement(root, "licenses")
        for lic in pom.licenses:
            node = SubElement(licenses, "license")
            _add(node, "name", lic.name)
            _add(node, "url", lic.url)
            _add(node, "distribution", lic.distribution)
            _add(node, "comments", lic.comments)

    if not pom.scm.is_empty():
        scm = SubElement(root, "scm")
        _add(scm, "connection", pom.scm.connection)
        _add(scm, "developerConnection", pom.scm.developer_connection)
        _add(scm, "url", pom.scm.url)
        _add(scm, "tag", pom.scm.tag)

    _persons_element(root, "developer", pom.developers)
    _persons_element(root, "contributor", pom.contributors)

    if include_properties:
        filtered: dict[str, str] = {}
        for key, value in pom.properties.items():
            if key.startswith("${") and key.endswith("}"):
                key = key[2:-1]
            if not key.lower().startswith("project."):
                filtered[key] = value
        if filtered:
            props = SubElement(root, "properties")
            for key, value in filtered.items():
                _add(props, key, value)

    repos = list(repositories)
    if repos:
        container = SubElement(root, "repositories")
        for repo in repos:
            node = SubElement(container, "repository")
            _add(node, "id", repo.id)
            _add(node, "url", repo.url)

    managed = pom.managed_versions
    if managed:
        scopes = pom.managed_scopes
        dm = SubElement(SubElement(root, "dependencyManagement"), "dependencies")
        for key in sorted(managed):
            group_id, _, artifact_id = key.partition(":")
            dep = Dependency(group_id=group_id, artifact_id=artifact_id, version=managed[key])
            _dependency_element(dm, dep, scopes.get(key))

    maven_scopes = [s for s in pom.scopes if s.is_maven_scope]
    if maven_scopes:
        deps = SubElement(root, "dependencies")
        for scope in maven_scopes:
            deps.append(Comment(f" {scope.value} dependencies "))
            for dep in pom.declared(scope):
                _dependency_element(deps, dep, scope)

    indent(root, space="    ")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + tostring(root, encoding="unicode") + "\n"


__all__ = ["pom_to_xml"]
