"""Transitive dependency resolution.

Algorithm:
- The root descriptor's direct dependencies for the requested scope are
  visited at ring 1, in declaration order.
- Each dependency is added to the solution and its whole subtree follows it
  before the next sibling: its descriptor is fetched (cache first, then the
  repositories) and ``get_dependencies(scope, ring + 1)`` supplies the
  children.
- The solution is an ordered set keyed by mediation id; the first occurrence
  wins. There is no version-conflict mediation between two different
  versions of the same artifact.

Every descriptor and artifact is awaited in sequence, so the result order is
independent of network timing. Only descriptor prefetching for the next ring
runs concurrently, and it never touches the solution.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Optional, Union

from .context import BuildContext
from .exceptions import ChecksumError, MissingParentPomError, PomError, RepositoryError
from .inflight import InFlightDeduper
from .models import (
    JAR,
    LATEST,
    POM,
    RELEASE,
    SOURCES,
    ArtifactRecord,
    Dependency,
    SystemDependency,
    extension_for_type,
)
from .pom import RING1, Pom
from .pom_reader import Requirements, read_cached_pom, read_pom
from .repository import Repository
from .scope import Scope

_logger = logging.getLogger(__name__)

# parents and BOM imports each cost one more attempt
_MAX_LOAD_ATTEMPTS = 16

DEFAULT_ARTIFACT_SCOPES = (Scope.COMPILE, Scope.RUNTIME, Scope.TEST)


def _excluded(dep: Dependency, exclusions: frozenset[str]) -> bool:
    if not exclusions:
        return False
    return (
        "*" in exclusions
        or dep.group_id in exclusions
        or dep.management_id in exclusions
    )


class Solver:
    """Resolves the dependency graph of one project descriptor.

    Solutions are memoized per scope; concurrent ``solve`` calls for the same
    scope share a single walk.
    """

    def __init__(self, ctx: BuildContext, pom: Pom) -> None:
        self.ctx = ctx
        self.pom = pom
        self._solutions: dict[Scope, list[Dependency]] = {}
        self._solving: InFlightDeduper[Scope, list[Dependency]] = InFlightDeduper("solve")
        self._downloads: InFlightDeduper[str, Optional[Path]] = InFlightDeduper("download")
        self._poms: dict[str, Pom] = {}
        self._prefetched: set[str] = set()

    @classmethod
    async def from_pom_file(cls, ctx: BuildContext, path: Union[str, Path]) -> "Solver":
        """Read a project descriptor from disk, fetching its parents and BOMs.

        Raises:
            PomError: the descriptor is malformed or a parent cannot be found.
            RepositoryError: a repository failed while fetching parents or BOMs.
        """
        solver = cls(ctx, Pom(ctx.properties))
        pom = await solver._load(Path(path))
        if pom is None:
            raise PomError(f"cannot read project descriptor {path}")
        solver.pom = pom
        return solver

    # --- repositories ---
    def _ordered_repositories(self, dep: Dependency) -> list[Repository]:
        preferred = [r for r in self.ctx.repositories if r.has_affinity(dep)]
        return preferred + [r for r in self.ctx.repositories if r not in preferred]

    async def _download(self, dep: Dependency, ext: str) -> Optional[Path]:
        for repo in self._ordered_repositories(dep):
            path = await repo.download(self.ctx, dep, ext)
            if path is not None:
                dep.origin = repo.url
                return path
        _logger.debug("%s.%s not found in any repository", dep.coordinates, ext)
        return None

    async def _retrieve_file(self, dep: Dependency, ext: str) -> Optional[Path]:
        path = self.ctx.cache.get_artifact(dep, ext)
        if path.exists():
            return path
        return await self._downloads.run(
            f"{dep.coordinates}.{ext}", lambda: self._download(dep, ext)
        )

    # --- descriptors ---
    def _read(
        self, source: Union[Path, Dependency], imports: list[Dependency]
    ) -> Optional[Pom]:
        if isinstance(source, Path):
            return read_pom(
                self.ctx.cache, source, Requirements.STRICT, imports, self.ctx.properties
            )
        return read_cached_pom(
            self.ctx.cache, source, Requirements.STRICT, imports, self.ctx.properties
        )

    async def _load(self, source: Union[Path, Dependency]) -> Optional[Pom]:
        """STRICT read of a descriptor, fetching missing parents and BOM imports."""
        pom: Optional[Pom] = None
        missing_parents: set[str] = set()
        for _ in range(_MAX_LOAD_ATTEMPTS):
            imports: list[Dependency] = []
            try:
                pom = self._read(source, imports)
            except MissingParentPomError as exc:
                parent = exc.parent
                if parent.coordinates in missing_parents:
                    raise
                missing_parents.add(parent.coordinates)
                if await self._retrieve_file(parent, POM) is None:
                    raise
                continue
            if pom is None or not imports:
                return pom

            fetched = False
            for bom in imports:
                if not bom.group_id or not bom.version:
                    _logger.warning("BOM %s has no usable coordinates", bom.management_id)
                    continue
                if await self._retrieve_file(bom, POM) is not None:
                    fetched = True
                else:
                    _logger.warning("BOM %s not found; its managed versions are ignored", bom)
            if not fetched:
                return pom
        return pom

    async def _prefetch(self, pom: Pom, ring: int) -> None:
        """Fetch the descriptors the next ring of the walk will need."""
        # test sees every transitive compile and runtime dependency
        wanted = [
            dep.pom_artifact()
            for dep in pom.get_dependencies(Scope.TEST, ring + 1)
            if dep.is_maven_object and dep.version and not dep.is_version_query
        ]
        results = await asyncio.gather(
            *(self._retrieve_file(dep, POM) for dep in wanted), return_exceptions=True
        )
        for dep, result in zip(wanted, results):
            if isinstance(result, ChecksumError):
                # the coordinate is already purged
                raise result
            if isinstance(result, RepositoryError):
                _logger.warning("prefetch of %s failed: %s", dep, result)
            elif isinstance(result, BaseException):
                raise result

    async def retrieve_pom(self, dep: Dependency) -> Optional[Pom]:
        """Descriptor for ``dep``, from the cache or the repositories.

        Returns None for non-Maven objects, blank versions and descriptors no
        repository has.
        """
        if not dep.is_maven_object or not dep.version:
            return None
        if dep.is_version_query:
            version = await self.resolve_version(dep)
            if version is None:
                _logger.warning("cannot resolve %s for %s", dep.version, dep.management_id)
                return None
            dep.version = version

        pom_dep = dep.pom_artifact()
        key = pom_dep.coordinates
        pom = self._poms.get(key)
        if pom is None:
            if await self._retrieve_file(pom_dep, POM) is None:
                return None
            pom = await self._load(pom_dep)
            if pom is None:
                return None
            self._poms[key] = pom

        if key not in self._prefetched:
            self._prefetched.add(key)
            await self._prefetch(pom, dep.ring)
        return pom

    # --- versions ---
    def _is_stale(self, record: ArtifactRecord) -> bool:
        if record.last_checked is None or (record.release is None and record.latest is None):
            return True
        interval = timedelta(seconds=self.ctx.settings.METADATA_UPDATE_INTERVAL_SECONDS)
        return datetime.now(timezone.utc) - record.last_checked > interval

    async def resolve_version(self, dep: Dependency) -> Optional[str]:
        """Concrete version for a RELEASE or LATEST query; other versions pass through."""
        if not dep.is_version_query:
            return dep.version
        query = dep.model_copy(update={"classifier": None})
        record = self.ctx.cache.read_record(query)
        if self._is_stale(record):
            for repo in self._ordered_repositories(query):
                await repo.download_metadata(self.ctx, query)
            record = self.ctx.cache.read_record(query)
        if dep.version == RELEASE:
            return record.release
        if dep.version == LATEST:
            return record.latest
        return None

    # --- solving ---
    async def solve(self, scope: Scope = Scope.COMPILE) -> list[Dependency]:
        """Ordered, de-duplicated transitive dependencies of the root for ``scope``."""
        cached = self._solutions.get(scope)
        if cached is None:
            cached = await self._solving.run(scope, lambda: self._solve(scope))
        return list(cached)

    async def _solve(self, scope: Scope) -> list[Dependency]:
        solution: dict[str, Dependency] = {}
        expanded: set[tuple[str, frozenset[str]]] = set()
        for dep in self.pom.get_dependencies(scope, RING1):
            await self._pin_version(dep)
            solution.setdefault(dep.mediation_id, dep)
            await self._walk(dep, scope, solution, expanded, (), frozenset())

        result = list(solution.values())
        self._solutions[scope] = result
        _logger.info("resolved %d %s dependencies of %s", len(result), scope.value, self.pom)
        return result

    async def _pin_version(self, dep: Dependency) -> None:
        if dep.is_maven_object and dep.is_version_query:
            version = await self.resolve_version(dep)
            if version is not None:
                dep.version = version

    async def _walk(
        self,
        dep: Dependency,
        scope: Scope,
        solution: dict[str, Dependency],
        expanded: set[tuple[str, frozenset[str]]],
        path: tuple[str, ...],
        inherited: frozenset[str],
    ) -> None:
        if not dep.resolve_dependencies or not dep.is_maven_object:
            return
        exclusions = inherited | frozenset(dep.exclusions)
        key = (dep.mediation_id, exclusions)
        if key in expanded or dep.mediation_id in path:
            return
        expanded.add(key)

        try:
            pom = await self.retrieve_pom(dep)
        except PomError as exc:
            _logger.warning("ignoring dependencies of %s: %s", dep, exc)
            return
        if pom is None:
            _logger.debug("no descriptor for %s; it contributes no dependencies", dep)
            return

        trail = path + (dep.mediation_id,)
        for child in pom.get_dependencies(scope, dep.ring + 1):
            if _excluded(child, exclusions):
                continue
            await self._pin_version(child)
            solution.setdefault(child.mediation_id, child)
            await self._walk(child, scope, solution, expanded, trail, exclusions)

    # --- artifacts ---
    async def retrieve_artifact(self, dep: Dependency) -> Optional[Path]:
        """Library file for ``dep`` (plus its sources jar when enabled)."""
        if isinstance(dep, SystemDependency):
            return Path(dep.path)
        if not dep.is_maven_object or not dep.version:
            return None
        await self._pin_version(dep)

        ext = dep.extension or extension_for_type(dep.type)
        path = await self._retrieve_file(dep, ext)
        wants_sources = self.ctx.settings.DOWNLOAD_SOURCES and ext != POM and not dep.classifier
        if path is not None and wants_sources:
            sources = dep.model_copy(update={"classifier": SOURCES})
            if await self._retrieve_file(sources, JAR) is None:
                _logger.debug("no sources published for %s", dep)
        return path

    async def retrieve_artifacts(
        self, scopes: Iterable[Scope] = DEFAULT_ARTIFACT_SCOPES
    ) -> dict[Scope, list[Path]]:
        return {scope: await self.classpath(scope) for scope in scopes}

    async def classpath(self, scope: Scope) -> list[Path]:
        """Files for ``scope`` in resolution order; missing artifacts are skipped."""
        paths: list[Path] = []
        for dep in await self.solve(scope):
            path = await self.retrieve_artifact(dep)
            if path is None:
                _logger.warning("no artifact for %s", dep)
            elif path not in paths:
                paths.append(path)
        return paths


__all__ = ["Solver", "DEFAULT_ARTIFACT_SCOPES"]
