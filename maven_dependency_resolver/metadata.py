"""Repository version metadata (``maven-metadata.xml``).

Reading uses defusedxml; documents are untrusted network input. Merging is
how the cache survives a remote that omits fields: the freshly downloaded
document wins wherever it says something, the cached copy fills the gaps.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union
from xml.etree.ElementTree import Element, SubElement, indent, tostring

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as ET  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field

from .exceptions import MetadataParseError
from .versioning import sort_versions

_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def _local_name(tag: str) -> str:
    if "}" in tag:
        return tag.split("}", 1)[1]
    return tag


def _child(elem: Any, name: str) -> Any:
    for child in elem:
        if _local_name(child.tag) == name:
            return child
    return None


def _child_text(elem: Any, name: str) -> Optional[str]:
    child = _child(elem, name) if elem is not None else None
    if child is None:
        return None
    return (child.text or "").strip() or None


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), _TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(_TIMESTAMP_FORMAT)


class Metadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    group_id: Optional[str] = None
    artifact_id: Optional[str] = None
    version: Optional[str] = None
    latest: Optional[str] = None
    release: Optional[str] = None
    versions: list[str] = Field(default_factory=list)
    last_updated: Optional[datetime] = None
    snapshot_timestamp: Optional[str] = None
    snapshot_build_number: Optional[int] = None

    def merge(self, older: "Metadata") -> "Metadata":
        """Return a new document: fields set here win, ``older`` fills the rest."""
        merged: dict[str, Any] = {}
        for name in (
            "group_id",
            "artifact_id",
            "version",
            "latest",
            "release",
            "last_updated",
            "snapshot_timestamp",
            "snapshot_build_number",
        ):
            mine = getattr(self, name)
            merged[name] = mine if mine is not None else getattr(older, name)
        seen: dict[str, None] = dict.fromkeys(older.versions)
        seen.update(dict.fromkeys(self.versions))
        merged["versions"] = sort_versions(seen.keys())
        return Metadata(**merged)

    def to_xml(self) -> str:
        root = Element("metadata")
        for tag, value in (
            ("groupId", self.group_id),
            ("artifactId", self.artifact_id),
            ("version", self.version),
        ):
            if value:
                SubElement(root, tag).text = value
        versioning = SubElement(root, "versioning")
        if self.latest:
            SubElement(versioning, "latest").text = self.latest
        if self.release:
            SubElement(versioning, "release").text = self.release
        if self.snapshot_timestamp or self.snapshot_build_number is not None:
            snapshot = SubElement(versioning, "snapshot")
            if self.snapshot_timestamp:
                SubElement(snapshot, "timestamp").text = self.snapshot_timestamp
            if self.snapshot_build_number is not None:
                SubElement(snapshot, "buildNumber").text = str(self.snapshot_build_number)
        if self.versions:
            versions = SubElement(versioning, "versions")
            for v in self.versions:
                SubElement(versions, "version").text = v
        if self.last_updated is not None:
            SubElement(versioning, "lastUpdated").text = format_timestamp(self.last_updated)
        indent(root, space="  ")
        return '<?xml version="1.0" encoding="UTF-8"?>\n' + tostring(root, encoding="unicode") + "\n"


def read_metadata(source: Union[str, bytes, Path]) -> Metadata:
    """Parse a metadata document from text, bytes or a file path.

    Raises:
        MetadataParseError: when the document is not well-formed.
    """
    try:
        if isinstance(source, Path):
            root = ET.parse(str(source)).getroot()
        else:
            root = ET.fromstring(source)
    except (ET.ParseError, DefusedXmlException) as exc:
        raise MetadataParseError(f"invalid metadata document: {exc}") from exc

    versioning = _child(root, "versioning")
    snapshot = _child(versioning, "snapshot") if versioning is not None else None
    versions: list[str] = []
    if versioning is not None:
        listing = _child(versioning, "versions")
        if listing is not None:
            for node in listing:
                text = (node.text or "").strip()
                if _local_name(node.tag) == "version" and text and text not in versions:
                    versions.append(text)

    build_number = _child_text(snapshot, "buildNumber") if snapshot is not None else None
    return Metadata(
        group_id=_child_text(root, "groupId"),
        artifact_id=_child_text(root, "artifactId"),
        version=_child_text(root, "version"),
        latest=_child_text(versioning, "latest"),
        release=_child_text(versioning, "release"),
        versions=versions,
        last_updated=parse_timestamp(_child_text(versioning, "lastUpdated")),
        snapshot_timestamp=_child_text(snapshot, "timestamp") if snapshot is not None else None,
        snapshot_build_number=int(build_number) if build_number and build_number.isdigit() else None,
    )


__all__ = ["Metadata", "read_metadata", "parse_timestamp", "format_timestamp"]
