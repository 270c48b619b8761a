"""Version ordering for repository metadata and descriptor sorting.

Used to keep the merged ``<versions>`` list of ``maven-metadata.xml`` in a
deterministic order and to order descriptors of the same artifact. This is
not conflict resolution: the solver never picks between versions.

Rules:

- '.', '-' and '_' are equivalent separators; a leading ``v`` is dropped
- numeric tokens compare as integers and sort after alphabetic tokens
- alphabetic tokens compare case-insensitively after canonicalization
  (RELEASE/GA -> final, CR -> rc)
- when one version is a prefix of the other, a tail made only of zeros and
  stable markers is ignored, a pre-release tail sorts first, anything else
  sorts last
"""

from __future__ import annotations

import re
from functools import cmp_to_key
from typing import Final, Iterable, Optional, Sequence, Union

Token = Union[int, str]

_SEPARATORS: Final[re.Pattern[str]] = re.compile(r"[._-]+")
_TOKENS: Final[re.Pattern[str]] = re.compile(r"\d+|[A-Za-z]+")

_CANONICAL: Final[dict[str, str]] = {"release": "final", "ga": "final", "cr": "rc"}
_STABLE: Final[frozenset[str]] = frozenset({"final"})
_PRERELEASE: Final[frozenset[str]] = frozenset(
    {"snapshot", "alpha", "beta", "rc", "milestone", "m", "preview", "ea"}
)


def _require(version: Optional[str]) -> str:
    if version is None or not version.strip():
        raise ValueError("version must be a non-empty string")
    return version.strip()


def tokenize(version: str) -> list[Token]:
    s = _require(version)
    if len(s) > 1 and s[0] in "vV" and s[1].isdigit():
        s = s[1:]
    tokens: list[Token] = []
    for part in _SEPARATORS.split(s):
        for tok in _TOKENS.findall(part):
            if tok.isdigit():
                tokens.append(int(tok))
            else:
                low = tok.lower()
                tokens.append(_CANONICAL.get(low, low))
    return tokens


def _tail_sign(tail: Sequence[Token]) -> int:
    """0 if the tail is insignificant, -1 for a pre-release tail, 1 otherwise."""
    for tok in tail:
        if tok == 0 or tok in _STABLE:
            continue
        if isinstance(tok, str) and tok in _PRERELEASE:
            return -1
        return 1
    return 0


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0 or 1 as ``a`` sorts before, equal to, or after ``b``."""
    ta, tb = tokenize(a), tokenize(b)
    for xa, xb in zip(ta, tb):
        if isinstance(xa, int) != isinstance(xb, int):
            return 1 if isinstance(xa, int) else -1
        if xa != xb:
            return -1 if xa < xb else 1  # type: ignore[operator]
    common = min(len(ta), len(tb))
    if len(ta) > common:
        return _tail_sign(ta[common:])
    if len(tb) > common:
        return -_tail_sign(tb[common:])
    return 0


def sort_versions(versions: Iterable[str]) -> list[str]:
    """Return versions sorted lowest to highest; stable for equal versions."""
    items = list(versions)
    for v in items:
        _require(v)
    return sorted(items, key=cmp_to_key(compare_versions))


def highest(versions: Iterable[str]) -> Optional[str]:
    ordered = sort_versions(versions)
    return ordered[-1] if ordered else None


__all__ = ["compare_versions", "sort_versions", "highest", "tokenize"]
