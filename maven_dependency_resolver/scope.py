"""Build scopes and the rules that connect them.

Two questions are answered here:

- ``include_on_classpath``: is a dependency declared with scope X visible
  when building the consuming scope Y? Used for directly declared
  dependencies (ring 1).
- ``transitive_scope``: what does a dependency declared with scope X become
  when it is inherited one hop further down the graph while solving Y?
  ``None`` means the dependency is dropped.
"""

from __future__ import annotations

from enum import Enum
from typing import Final, Optional


class Scope(str, Enum):
    COMPILE = "compile"
    PROVIDED = "provided"
    RUNTIME = "runtime"
    TEST = "test"
    SYSTEM = "system"
    IMPORT = "import"
    # build-tool classpath; not a Maven scope and never written to a descriptor
    BUILD = "build"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Scope"]:
        """Return the scope named by ``value`` or None for blank/unknown text."""
        if value is None:
            return None
        name = value.strip().lower()
        if not name:
            return None
        try:
            return cls(name)
        except ValueError:
            return None

    @property
    def is_maven_scope(self) -> bool:
        return self is not Scope.BUILD

    @property
    def is_pseudo_scope(self) -> bool:
        """``import`` marks a descriptor to merge, not a dependency to add."""
        return self is Scope.IMPORT

    def include_on_classpath(self, declared: Optional["Scope"]) -> bool:
        if declared is None:
            return False
        return declared in _CLASSPATH[self]

    def transitive_scope(self, declared: Optional["Scope"]) -> Optional["Scope"]:
        if declared is None:
            return None
        return _TRANSITIVE[self].get(declared)


DEFAULT_SCOPE: Final[Scope] = Scope.COMPILE

_CLASSPATH: Final[dict[Scope, frozenset[Scope]]] = {
    Scope.COMPILE: frozenset({Scope.COMPILE, Scope.PROVIDED, Scope.SYSTEM}),
    Scope.PROVIDED: frozenset({Scope.COMPILE, Scope.PROVIDED, Scope.SYSTEM}),
    Scope.RUNTIME: frozenset({Scope.COMPILE, Scope.RUNTIME, Scope.SYSTEM}),
    Scope.TEST: frozenset(
        {Scope.COMPILE, Scope.PROVIDED, Scope.RUNTIME, Scope.TEST, Scope.SYSTEM}
    ),
    Scope.SYSTEM: frozenset({Scope.SYSTEM}),
    Scope.BUILD: frozenset({Scope.BUILD}),
    Scope.IMPORT: frozenset(),
}

# Only compile and runtime declarations survive a transitive hop.
_TRANSITIVE: Final[dict[Scope, dict[Scope, Scope]]] = {
    Scope.COMPILE: {Scope.COMPILE: Scope.COMPILE, Scope.RUNTIME: Scope.RUNTIME},
    Scope.PROVIDED: {Scope.COMPILE: Scope.PROVIDED, Scope.RUNTIME: Scope.PROVIDED},
    Scope.RUNTIME: {Scope.COMPILE: Scope.RUNTIME, Scope.RUNTIME: Scope.RUNTIME},
    Scope.TEST: {Scope.COMPILE: Scope.TEST, Scope.RUNTIME: Scope.TEST},
    Scope.BUILD: {Scope.COMPILE: Scope.BUILD, Scope.RUNTIME: Scope.BUILD},
    Scope.SYSTEM: {},
    Scope.IMPORT: {},
}


__all__ = ["Scope", "DEFAULT_SCOPE"]
