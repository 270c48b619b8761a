from __future__ import annotations

import hashlib
from collections.abc import AsyncIterator, Iterator
from pathlib import Path
from typing import Any, Callable, Optional, Union

import httpx
import pytest
import respx

from maven_dependency_resolver.artifact_cache import ArtifactCache
from maven_dependency_resolver.config import RepositoryDefinition, Settings
from maven_dependency_resolver.context import BuildContext
from maven_dependency_resolver.models import MAVEN2_METADATA_PATTERN, MAVEN2_PATTERN, Dependency

REPO_URL = "https://repo.example.test/maven2"
LAST_MODIFIED = "Wed, 01 Jan 2025 00:00:00 GMT"

DependencySpec = Union[str, dict[str, Any]]


class FakeRepository:
    """Serves a dict of files under REPO_URL; everything else is a 404."""

    def __init__(self, router: respx.Router, base_url: str = REPO_URL) -> None:
        self.base_url = base_url
        self.files: dict[str, bytes] = {}
        self.requested: list[str] = []
        self.route = router.route(url__startswith=base_url).mock(side_effect=self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requested.append(url)
        body = self.files.get(url)
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, content=body, headers={"Last-Modified": LAST_MODIFIED})

    def put(
        self, path: str, content: Union[str, bytes], sha1: Union[bool, str] = True
    ) -> str:
        data = content.encode("utf-8") if isinstance(content, str) else content
        url = f"{self.base_url}/{path}"
        self.files[url] = data
        if sha1 is True:
            self.files[url + ".sha1"] = hashlib.sha1(data).hexdigest().encode()
        elif sha1:
            self.files[url + ".sha1"] = sha1.encode()
        return url

    def add_pom(self, coordinates: str, xml: str, sha1: Union[bool, str] = True) -> str:
        dep = Dependency.parse(coordinates)
        return self.put(dep.maven_path(MAVEN2_PATTERN, "pom"), xml, sha1)

    def add_artifact(
        self,
        coordinates: str,
        content: Union[str, bytes] = b"PK\x03\x04",
        ext: str = "jar",
        sha1: Union[bool, str] = True,
    ) -> str:
        dep = Dependency.parse(coordinates)
        return self.put(dep.maven_path(MAVEN2_PATTERN, ext), content, sha1)

    def add_metadata(self, group_artifact: str, xml: str, sha1: Union[bool, str] = True) -> str:
        dep = Dependency.parse(group_artifact)
        return self.put(dep.maven_path(MAVEN2_METADATA_PATTERN, "xml"), xml, sha1)

    def count(self, suffix: str) -> int:
        return sum(1 for url in self.requested if url.endswith(suffix))


def _dependency_xml(spec: DependencySpec) -> str:
    if isinstance(spec, str):
        spec = {"coords": spec}
    dep = Dependency.parse(spec["coords"])
    parts = [f"<groupId>{dep.group_id}</groupId>", f"<artifactId>{dep.artifact_id}</artifactId>"]
    if dep.version:
        parts.append(f"<version>{dep.version}</version>")
    if dep.classifier:
        parts.append(f"<classifier>{dep.classifier}</classifier>")
    for key in ("type", "scope", "systemPath"):
        if spec.get(key):
            parts.append(f"<{key}>{spec[key]}</{key}>")
    if spec.get("optional"):
        parts.append("<optional>true</optional>")
    if spec.get("exclusions"):
        parts.append("<exclusions>")
        for exclusion in spec["exclusions"]:
            group_id, _, artifact_id = exclusion.partition(":")
            parts.append(
                f"<exclusion><groupId>{group_id}</groupId>"
                f"<artifactId>{artifact_id or '*'}</artifactId></exclusion>"
            )
        parts.append("</exclusions>")
    return "<dependency>" + "".join(parts) + "</dependency>"


def build_pom(
    coordinates: str,
    dependencies: tuple[DependencySpec, ...] | list[DependencySpec] = (),
    *,
    parent: Optional[str] = None,
    packaging: Optional[str] = None,
    properties: Optional[dict[str, str]] = None,
    managed: tuple[DependencySpec, ...] | list[DependencySpec] = (),
    body: str = "",
) -> str:
    dep = Dependency.parse(coordinates)
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<project xmlns="http://maven.apache.org/POM/4.0.0">',
        "<modelVersion>4.0.0</modelVersion>",
    ]
    if parent:
        p = Dependency.parse(parent)
        lines.append(
            f"<parent><groupId>{p.group_id}</groupId><artifactId>{p.artifact_id}</artifactId>"
            f"<version>{p.version}</version></parent>"
        )
    if dep.group_id != "-":
        lines.append(f"<groupId>{dep.group_id}</groupId>")
    lines.append(f"<artifactId>{dep.artifact_id}</artifactId>")
    if dep.version:
        lines.append(f"<version>{dep.version}</version>")
    if packaging:
        lines.append(f"<packaging>{packaging}</packaging>")
    if properties:
        lines.append("<properties>")
        lines.extend(f"<{k}>{v}</{k}>" for k, v in properties.items())
        lines.append("</properties>")
    if managed:
        lines.append("<dependencyManagement><dependencies>")
        lines.extend(_dependency_xml(m) for m in managed)
        lines.append("</dependencies></dependencyManagement>")
    if dependencies:
        lines.append("<dependencies>")
        lines.extend(_dependency_xml(d) for d in dependencies)
        lines.append("</dependencies>")
    lines.append(body)
    lines.append("</project>")
    return "\n".join(lines)


@pytest.fixture
def make_pom() -> Callable[..., str]:
    """Build a descriptor document; see ``build_pom`` for the arguments.

    Dependencies are ``"g:a:v[:classifier]"`` strings or dicts with a
    ``coords`` key plus optional ``scope``, ``type``, ``optional``,
    ``systemPath`` and ``exclusions``. A group id of ``-`` omits the element.
    """
    return build_pom


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        CACHE_ROOT=tmp_path / "cache",
        REPOSITORIES=[RepositoryDefinition(id="test", url=REPO_URL)],
        PROXIES=[],
        BUILD_PROPERTIES={},
        DOWNLOAD_SOURCES=False,
        ENFORCE_CHECKSUMS=True,
    )


@pytest.fixture
def cache(settings: Settings) -> ArtifactCache:
    return ArtifactCache(settings.cache_root)


async def _no_sleep(_delay: float) -> None:
    return None


@pytest.fixture
async def ctx(settings: Settings, cache: ArtifactCache) -> AsyncIterator[BuildContext]:
    async with BuildContext(settings, cache=cache, sleep_fn=_no_sleep) as context:
        yield context


@pytest.fixture
def respx_router() -> Iterator[respx.Router]:
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest.fixture
def fake_repo(respx_router: respx.Router) -> FakeRepository:
    return FakeRepository(respx_router)


@pytest.fixture
def cache_pom(cache: ArtifactCache) -> Callable[[str, str], Path]:
    """Write a descriptor straight into the artifact cache."""

    def _f(coordinates: str, xml: str) -> Path:
        dep = Dependency.parse(coordinates)
        return cache.write_artifact(dep.pom_artifact(), "pom", xml)

    return _f
