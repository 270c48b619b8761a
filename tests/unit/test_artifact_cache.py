from datetime import datetime, timezone

import pytest

from maven_dependency_resolver.artifact_cache import ArtifactCache
from maven_dependency_resolver.models import ArtifactRecord, Dependency


def test_layout(tmp_path):
    cache = ArtifactCache(tmp_path)
    dep = Dependency.parse("org.example:demo:1.0:sources")
    assert cache.get_artifact(dep, "jar") == tmp_path / "org/example/demo/1.0/demo-1.0-sources.jar"
    assert cache.get_metadata(dep, "xml") == tmp_path / "org/example/demo/maven-metadata.xml"
    snapshot = Dependency.parse("org.example:demo:1.0-SNAPSHOT")
    assert (
        cache.get_metadata(snapshot, "xml")
        == tmp_path / "org/example/demo/1.0-SNAPSHOT/maven-metadata.xml"
    )
    assert cache.get_record(dep).name == "demo-1.0-sources.record.json"


@pytest.mark.parametrize(
    "coords",
    ["org.example:../evil:1", "org.example:demo:../../1", "org/evil:demo:1", "a\\b:demo:1"],
)
def test_path_traversal_is_rejected(tmp_path, coords: str):
    cache = ArtifactCache(tmp_path)
    with pytest.raises(ValueError):
        cache.get_artifact(Dependency.parse(coords), "jar")


def test_writes_are_complete_and_leave_no_temp_files(tmp_path):
    cache = ArtifactCache(tmp_path)
    dep = Dependency.parse("g:a:1")
    path = cache.write_artifact(dep, "jar", b"content")
    cache.write_artifact(dep, "jar", b"replaced")
    assert path.read_bytes() == b"replaced"
    assert [p.name for p in path.parent.iterdir()] == ["a-1.jar"]


def test_records(tmp_path):
    cache = ArtifactCache(tmp_path)
    dep = Dependency.parse("g:a:1")
    assert cache.read_record(dep) == ArtifactRecord()

    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    cache.write_record(dep, ArtifactRecord(origin="https://repo", last_checked=now))
    record = cache.read_record(dep)
    assert record.origin == "https://repo"
    assert record.last_checked == now


def test_unreadable_record_is_cold(tmp_path):
    cache = ArtifactCache(tmp_path)
    dep = Dependency.parse("g:a:1")
    cache.write_file(cache.get_record(dep), "{not json")
    assert cache.read_record(dep) == ArtifactRecord()


def test_set_last_modified(tmp_path):
    cache = ArtifactCache(tmp_path)
    path = cache.write_artifact(Dependency.parse("g:a:1"), "pom", "<project/>")
    when = datetime(2020, 5, 17, 12, 0, tzinfo=timezone.utc)
    cache.set_last_modified(path, when)
    assert path.stat().st_mtime == when.timestamp()


def test_purge_removes_every_file_of_the_coordinate(tmp_path):
    cache = ArtifactCache(tmp_path)
    dep = Dependency.parse("g:a:1")
    cache.write_artifact(dep, "jar", b"x")
    cache.write_artifact(dep, "jar.sha1", "abc")
    cache.write_artifact(dep.pom_artifact(), "pom", "<project/>")
    cache.write_artifact(Dependency.parse("g:a:1:sources"), "jar", b"y")
    cache.write_record(dep, ArtifactRecord(origin="x"))
    other = cache.write_artifact(Dependency.parse("g:a:10"), "jar", b"z")

    removed = cache.purge_artifacts(Dependency.parse("g:a:1:sources"))

    assert len(removed) == 5
    assert not any(p.exists() for p in removed)
    assert other.exists()
    assert cache.purge_artifacts(Dependency.parse("g:nothing:1")) == []
