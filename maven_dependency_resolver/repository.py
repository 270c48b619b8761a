"""Remote Maven 2 repositories.

Transport:
- HTTP GETs go through the ``httpx.AsyncClient`` the build context picks for
  the URL (direct or via the matching proxy).
- Transient failures (network errors, 429, 5xx) are retried with exponential
  backoff up to ``HTTP_MAX_RETRIES``.
- 400/404/410 mean the repository does not have the file and come back as a
  ``NotFound`` value; every other failure raises ``TransportError``.

Integrity:
- The companion ``.sha1`` is fetched before the body. A missing checksum is
  tolerated; a mismatch purges the coordinate from the cache and raises
  ``ChecksumError`` unless ``ENFORCE_CHECKSUMS`` is off.
"""

from __future__ import annotations

import hashlib
import logging
import re
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional, Union

import httpx

from .config import RepositoryDefinition
from .exceptions import ChecksumError, MetadataParseError, PomError, TransportError
from .metadata import Metadata, read_metadata
from .models import (
    LATEST,
    MAVEN2_METADATA_PATTERN,
    MAVEN2_PATTERN,
    MAVEN2_SNAPSHOT_PATTERN,
    POM,
    RELEASE,
    SNAPSHOT_SUFFIX,
    Dependency,
)
from .pom_reader import Requirements, read_pom
from .versioning import sort_versions

if TYPE_CHECKING:  # pragma: no cover
    from .context import BuildContext

_logger = logging.getLogger(__name__)

_NOT_FOUND_STATUSES = frozenset({400, 404, 410})
_SHA1 = re.compile(r"^[0-9a-fA-F]{40}$")
_METADATA_EXT = "xml"

# mismatch diagnostics span several lines and must not interleave
_diagnostics_lock = threading.Lock()


@dataclass(frozen=True)
class Fetched:
    url: str
    content: bytes
    last_modified: Optional[datetime] = None


@dataclass(frozen=True)
class NotFound:
    url: str
    status: Optional[int] = None


FetchResult = Union[Fetched, NotFound]


def _last_modified(response: httpx.Response) -> Optional[datetime]:
    header = response.headers.get("last-modified")
    if not header:
        return None
    try:
        return parsedate_to_datetime(header)
    except (TypeError, ValueError):
        return None


def _should_retry(exc: BaseException | None, status: Optional[int]) -> bool:
    if exc is not None:
        return isinstance(
            exc, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)
        )
    return status is not None and (status == 429 or 500 <= status <= 599)


def parse_sha1(text: str) -> Optional[str]:
    """First whitespace-separated token of a ``.sha1`` file, if it is a SHA1."""
    tokens = text.split()
    if not tokens or not _SHA1.match(tokens[0]):
        return None
    return tokens[0].lower()


class Repository:
    """A remote repository laid out with Maven 2 URL patterns."""

    def __init__(
        self,
        name: str,
        url: str,
        affinity: Iterable[str] = (),
        *,
        artifact_pattern: str = MAVEN2_PATTERN,
        metadata_pattern: str = MAVEN2_METADATA_PATTERN,
        snapshot_pattern: str = MAVEN2_SNAPSHOT_PATTERN,
    ) -> None:
        self.name = name
        self.url = url.rstrip("/")
        self.affinity = tuple(a.strip() for a in affinity if a.strip())
        self.artifact_pattern = artifact_pattern
        self.metadata_pattern = metadata_pattern
        self.snapshot_pattern = snapshot_pattern

    @classmethod
    def from_definition(cls, definition: RepositoryDefinition) -> "Repository":
        return cls(definition.id, definition.url, definition.affinity)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Repository):
            return NotImplemented
        return self.url.lower() == other.url.lower()

    def __hash__(self) -> int:
        return hash(self.url.lower())

    def __repr__(self) -> str:
        return f"Repository({self.name!r}, {self.url!r})"

    def has_affinity(self, dep: Dependency) -> bool:
        for prefix in self.affinity:
            if dep.management_id == prefix or dep.group_id == prefix:
                return True
            if dep.group_id.startswith(prefix + "."):
                return True
        return False

    def artifact_url(self, dep: Dependency, ext: str) -> str:
        return f"{self.url}/{dep.maven_path(self.artifact_pattern, ext)}"

    def metadata_url(self, dep: Dependency, ext: str = _METADATA_EXT) -> str:
        pattern = self.snapshot_pattern if dep.is_snapshot else self.metadata_pattern
        return f"{self.url}/{dep.maven_path(pattern, ext)}"

    # --- transport ---
    async def _fetch(self, ctx: "BuildContext", url: str) -> FetchResult:
        client = ctx.client_for(url)
        max_retries = ctx.settings.HTTP_MAX_RETRIES
        last_exc: BaseException | None = None
        last_status: Optional[int] = None

        for attempt in range(0, max_retries + 1):
            exc: BaseException | None = None
            status: Optional[int] = None
            try:
                response = await client.get(url)
            except httpx.HTTPError as e:
                exc = e
            else:
                status = response.status_code
                if status in _NOT_FOUND_STATUSES:
                    _logger.debug("%s not found (status=%s)", url, status)
                    return NotFound(url, status)
                if response.is_success:
                    return Fetched(url, response.content, _last_modified(response))

            last_exc, last_status = exc, status
            if not _should_retry(exc, status):
                break
            if attempt < max_retries:
                # 0.05, 0.1, 0.2, ... seconds
                await ctx.sleep(0.05 * (2**attempt))

        raise TransportError(url, ctx.proxy_hint(url), status=last_status) from last_exc

    async def _get_sha1(
        self, ctx: "BuildContext", url: str, cached: Optional[Path] = None
    ) -> Optional[str]:
        """Expected SHA1 for ``url``; ``cached`` is where the checksum file is kept."""
        if cached is not None and cached.exists():
            return parse_sha1(cached.read_text(encoding="utf-8", errors="replace"))

        sha1_url = url + ".sha1"
        try:
            result = await self._fetch(ctx, sha1_url)
        except TransportError as exc:
            _logger.warning("checksum unavailable for %s: %s", url, exc)
            return None
        if isinstance(result, NotFound):
            return None

        text = result.content.decode("utf-8", errors="replace")
        checksum = parse_sha1(text)
        if checksum is None:
            _logger.warning("ignoring malformed checksum file %s", sha1_url)
        elif cached is not None:
            ctx.cache.write_file(cached, text)
        return checksum

    def _verify_sha1(
        self,
        ctx: "BuildContext",
        dep: Dependency,
        url: str,
        content: bytes,
        expected: Optional[str],
        metadata: bool = False,
    ) -> None:
        if expected is None:
            _logger.debug("no checksum published for %s", url)
            return
        calculated = hashlib.sha1(content).hexdigest()
        if calculated == expected:
            return

        enforce = ctx.settings.ENFORCE_CHECKSUMS
        with _diagnostics_lock:
            _logger.warning("SHA1 checksum mismatch for %s", url)
            _logger.warning("  calculated: %s", calculated)
            _logger.warning("  retrieved:  %s", expected)
            if not enforce:
                _logger.warning("  ENFORCE_CHECKSUMS is off; keeping %s", dep.coordinates)
                return
            if metadata:
                ctx.cache.get_metadata(dep, _METADATA_EXT).unlink(missing_ok=True)
            else:
                ctx.cache.purge_artifacts(dep)
        raise ChecksumError(url, calculated, expected)

    # --- downloads ---
    async def download(self, ctx: "BuildContext", dep: Dependency, ext: str) -> Optional[Path]:
        """Download ``dep``'s ``ext`` file into the cache; None if absent here."""
        url = self.artifact_url(dep, ext)
        expected = await self._get_sha1(ctx, url, ctx.cache.get_artifact(dep, f"{ext}.sha1"))
        result = await self._fetch(ctx, url)
        if isinstance(result, NotFound):
            return None

        self._verify_sha1(ctx, dep, url, result.content, expected)
        path = ctx.cache.write_artifact(dep, ext, result.content)
        if result.last_modified is not None:
            ctx.cache.set_last_modified(path, result.last_modified)
        _logger.info("downloaded %s", url)
        self._update_artifact_record(ctx, dep, ext, path, result)
        return path

    def _update_artifact_record(
        self, ctx: "BuildContext", dep: Dependency, ext: str, path: Path, result: Fetched
    ) -> None:
        if ext == POM:
            try:
                descriptor = read_pom(ctx.cache, path, Requirements.LOOSE, sources=ctx.properties)
            except PomError as exc:
                _logger.warning("downloaded descriptor %s is unreadable: %s", result.url, exc)
                return
            # only aggregator descriptors are tracked on their own
            if not descriptor.is_pom:
                return

        now = datetime.now(timezone.utc)
        record = ctx.cache.read_record(dep)
        record.origin = self.url
        record.last_downloaded = now
        record.last_checked = now
        if ext != POM and not dep.is_snapshot:
            record.last_updated = result.last_modified or now
        ctx.cache.write_record(dep, record)

    async def download_metadata(self, ctx: "BuildContext", dep: Dependency) -> Optional[Metadata]:
        """Fetch ``maven-metadata.xml``, merge it into the cache and update records.

        Returns the merged metadata, or None when this repository has none.
        """
        url = self.metadata_url(dep)
        # metadata changes over time; its checksum is never taken from the cache
        expected = await self._get_sha1(ctx, url)
        result = await self._fetch(ctx, url)
        if isinstance(result, NotFound):
            return None
        self._verify_sha1(ctx, dep, url, result.content, expected, metadata=True)

        merged = read_metadata(result.content)
        cached = ctx.cache.get_metadata(dep, _METADATA_EXT)
        if cached.exists():
            try:
                merged = merged.merge(read_metadata(cached))
            except MetadataParseError as exc:
                _logger.warning("replacing unreadable cached metadata %s: %s", cached, exc)
        path = ctx.cache.write_metadata(dep, _METADATA_EXT, merged.to_xml())
        if result.last_modified is not None:
            ctx.cache.set_last_modified(path, result.last_modified)
        _logger.info("downloaded %s", url)

        now = datetime.now(timezone.utc)
        updated = merged.last_updated or result.last_modified
        if dep.is_snapshot:
            targets = [dep]
        else:
            targets = [
                dep.model_copy(update={"version": v, "classifier": None})
                for v in (RELEASE, LATEST)
            ]
            if not dep.is_version_query and dep.version:
                targets.insert(0, dep)
        release, latest = _release_and_latest(merged)
        for target in targets:
            record = ctx.cache.read_record(target)
            record.origin = self.url
            record.last_checked = now
            if updated is not None:
                record.last_updated = updated
            if target.version in (RELEASE, LATEST):
                record.release = release or record.release
                record.latest = latest or record.latest
            ctx.cache.write_record(target, record)
        return merged


def _release_and_latest(metadata: Metadata) -> tuple[Optional[str], Optional[str]]:
    """``<release>``/``<latest>``, falling back to the version list."""
    ordered = sort_versions(metadata.versions)
    releases = [v for v in ordered if not v.endswith(SNAPSHOT_SUFFIX)]
    release = metadata.release or (releases[-1] if releases else None)
    latest = metadata.latest or (ordered[-1] if ordered else None)
    return release, latest


__all__ = ["Repository", "Fetched", "NotFound", "FetchResult", "parse_sha1"]
