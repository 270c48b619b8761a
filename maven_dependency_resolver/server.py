"""MCP STDIO server exposing dependency resolution as tools.

Design notes:
- Transport adapter stays thin; the ``*_core`` coroutines carry the logic and
  are usable without an MCP transport.
- Every call builds its own ``BuildContext`` and closes it on return; the
  on-disk artifact cache is what is shared between calls.
- Resolver failures surface as ``ValueError`` so the transport reports them
  as tool errors.
- Logging goes to stderr via the central logging config.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fastmcp import FastMCP

from .config import Settings
from .context import BuildContext
from .exceptions import ResolverError
from .logging_config import configure_logging
from .models import (
    LATEST,
    RELEASE,
    Dependency,
    ResolutionResponse,
    ResolvedDependency,
    VersionResolution,
)
from .pom import Pom
from .scope import Scope
from .solver import Solver

_logger = logging.getLogger(__name__)

# Initialize stderr logging configuration
configure_logging()


def _parse_scope(scope: str) -> Scope:
    parsed = Scope.parse(scope)
    if parsed is None or parsed.is_pseudo_scope:
        choices = ", ".join(s.value for s in Scope if not s.is_pseudo_scope)
        raise ValueError(f"Unknown scope {scope!r}; expected one of: {choices}")
    return parsed


async def resolve_dependencies_core(
    *,
    pom_path: str,
    scope: str = "compile",
    include_paths: bool = False,
    settings: Optional[Settings] = None,
) -> ResolutionResponse:
    """Resolve the transitive dependencies of a project descriptor on disk.

    With ``include_paths`` each artifact is also downloaded and its cached
    file path reported.
    """
    resolved_scope = _parse_scope(scope)
    path = Path(pom_path).expanduser()
    if not path.is_file():
        raise ValueError(f"Project descriptor not found: {pom_path}")

    async with BuildContext(settings or Settings()) as ctx:
        try:
            solver = await Solver.from_pom_file(ctx, path)
            _logger.info(
                "resolving dependencies",
                extra={"op": "resolve_dependencies", "scope": resolved_scope.value},
            )
            deps = await solver.solve(resolved_scope)
            entries: list[ResolvedDependency] = []
            for dep in deps:
                artifact = await solver.retrieve_artifact(dep) if include_paths else None
                entries.append(
                    ResolvedDependency(
                        coordinates=dep.coordinates,
                        scope=dep.defined_scope,
                        ring=dep.ring,
                        optional=dep.optional,
                        path=str(artifact) if artifact is not None else None,
                    )
                )
        except ResolverError as e:
            raise ValueError(str(e)) from e

    return ResolutionResponse(
        project=solver.pom.coordinates, scope=resolved_scope, dependencies=entries
    )


async def resolve_version_core(
    *,
    group_id: str,
    artifact_id: str,
    query: str = RELEASE,
    settings: Optional[Settings] = None,
) -> VersionResolution:
    """Resolve a RELEASE or LATEST query to a concrete version from repository metadata."""
    normalized = (query or "").strip().upper()
    if normalized not in (RELEASE, LATEST):
        raise ValueError(f"query must be {RELEASE} or {LATEST}")
    dep = Dependency(group_id=group_id, artifact_id=artifact_id, version=normalized)
    if not dep.group_id or not dep.artifact_id:
        raise ValueError("group_id and artifact_id must be non-empty")

    async with BuildContext(settings or Settings()) as ctx:
        solver = Solver(ctx, Pom(ctx.properties))
        try:
            version = await solver.resolve_version(dep)
        except ResolverError as e:
            raise ValueError(str(e)) from e

    return VersionResolution(
        group_id=dep.group_id, artifact_id=dep.artifact_id, query=normalized, version=version
    )


_server = FastMCP("maven-dependency-resolver")


@_server.tool()
async def resolve_dependencies(
    pom_path: str,
    scope: str = "compile",
    include_paths: bool = False,
) -> dict:
    """Return the ordered transitive dependencies of a pom.xml for a scope.

    Transport wrapper around resolve_dependencies_core.
    """
    result = await resolve_dependencies_core(
        pom_path=pom_path, scope=scope, include_paths=include_paths
    )
    return result.model_dump(mode="json")


@_server.tool()
async def resolve_version(group_id: str, artifact_id: str, query: str = RELEASE) -> dict:
    """Return the concrete version behind RELEASE or LATEST for a coordinate."""
    result = await resolve_version_core(group_id=group_id, artifact_id=artifact_id, query=query)
    return result.model_dump(mode="json")


def run() -> None:  # pragma: no cover
    _server.run()


__all__ = ["resolve_dependencies_core", "resolve_version_core", "run"]
