"""On-disk artifact cache.

The directory tree mirrors the Maven 2 repository layout so a cache root
can be browsed (or served) like a repository::

    {root}/org/example/demo/1.0/demo-1.0.pom
    {root}/org/example/demo/1.0/demo-1.0.jar.sha1
    {root}/org/example/demo/1.0/demo-1.0.record.json
    {root}/org/example/demo/maven-metadata.xml

Every write goes through a temporary file and ``os.replace`` so readers never
observe a half-written file. A record that is missing or unreadable is
treated as cold and rewritten by the next successful network operation.
"""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from .models import (
    MAVEN2_METADATA_PATTERN,
    MAVEN2_PATTERN,
    MAVEN2_SNAPSHOT_PATTERN,
    ArtifactRecord,
    Dependency,
)

_logger = logging.getLogger(__name__)

RECORD_EXTENSION = "record.json"


def _validate_coordinate_part(name: str, value: str) -> str:
    v = (value or "").strip()
    if not v:
        raise ValueError(f"{name} must be non-empty")
    if v.startswith("/") or ".." in v or "/" in v or "\\" in v:
        raise ValueError(f"{name} contains illegal path characters")
    return v


class ArtifactCache:
    def __init__(self, root: Union[str, Path]) -> None:
        self._root = Path(root).expanduser()

    @property
    def root(self) -> Path:
        return self._root

    def _checked(self, dep: Dependency) -> Dependency:
        _validate_coordinate_part("group_id", dep.group_id)
        _validate_coordinate_part("artifact_id", dep.artifact_id)
        if dep.version is not None:
            _validate_coordinate_part("version", dep.version)
        if dep.classifier is not None:
            _validate_coordinate_part("classifier", dep.classifier)
        return dep

    # --- paths ---
    def get_artifact(self, dep: Dependency, ext: str) -> Path:
        return self._root / self._checked(dep).maven_path(MAVEN2_PATTERN, ext)

    def get_metadata(self, dep: Dependency, ext: str) -> Path:
        pattern = MAVEN2_SNAPSHOT_PATTERN if dep.is_snapshot else MAVEN2_METADATA_PATTERN
        return self._root / self._checked(dep).maven_path(pattern, ext)

    def get_record(self, dep: Dependency) -> Path:
        return self.get_artifact(dep, RECORD_EXTENSION)

    # --- writes ---
    def write_artifact(self, dep: Dependency, ext: str, content: Union[bytes, str]) -> Path:
        return self.write_file(self.get_artifact(dep, ext), content)

    def write_metadata(self, dep: Dependency, ext: str, content: Union[bytes, str]) -> Path:
        return self.write_file(self.get_metadata(dep, ext), content)

    def write_file(self, path: Path, content: Union[bytes, str]) -> Path:
        data = content.encode("utf-8") if isinstance(content, str) else content
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        return path

    @staticmethod
    def set_last_modified(path: Path, when: datetime) -> None:
        ts = when.timestamp()
        os.utime(path, (ts, ts))

    # --- records ---
    def read_record(self, dep: Dependency) -> ArtifactRecord:
        path = self.get_record(dep)
        if not path.exists():
            return ArtifactRecord()
        try:
            return ArtifactRecord.model_validate_json(path.read_bytes())
        except (OSError, ValidationError) as exc:
            _logger.warning("discarding unreadable record %s: %s", path, exc)
            return ArtifactRecord()

    def write_record(self, dep: Dependency, record: ArtifactRecord) -> Path:
        return self.write_file(self.get_record(dep), record.model_dump_json(indent=2))

    # --- purge ---
    def purge_artifacts(self, dep: Dependency) -> list[Path]:
        """Delete every cached file of ``dep``'s coordinate (all classifiers/extensions)."""
        folder = self.get_artifact(dep.pom_artifact(), "pom").parent
        if not folder.is_dir():
            return []
        prefix = f"{dep.artifact_id}-{dep.version}"
        removed: list[Path] = []
        for path in sorted(folder.iterdir()):
            if path.is_file() and path.name.startswith(prefix):
                path.unlink()
                removed.append(path)
        if removed:
            _logger.info("purged %d cached files for %s", len(removed), dep.coordinates)
        return removed


__all__ = ["ArtifactCache", "RECORD_EXTENSION"]
