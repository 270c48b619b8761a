import logging

import pytest

from maven_dependency_resolver.models import Dependency, SystemDependency
from maven_dependency_resolver.pom import Pom
from maven_dependency_resolver.scope import Scope


@pytest.fixture
def pom() -> Pom:
    p = Pom()
    p.group_id = "org.example"
    p.artifact_id = "app"
    p.version = "1.0"
    return p


def _dep(coords: str, **fields) -> Dependency:
    dep = Dependency.parse(coords)
    for key, value in fields.items():
        setattr(dep, key, value)
    return dep


def test_managed_version_fills_missing_version(pom: Pom):
    pom.add_managed_dependency(_dep("g:a:1.2"))
    assert pom.add_dependency(_dep("g:a")) is Scope.COMPILE
    deps = pom.get_dependencies(Scope.COMPILE, 1)
    assert [d.coordinates for d in deps] == ["g:a:1.2"]


def test_managed_scope_used_when_scope_missing(pom: Pom):
    pom.add_managed_dependency(_dep("g:a:1.2"), Scope.TEST)
    assert pom.add_dependency(_dep("g:a")) is Scope.TEST
    assert pom.get_dependencies(Scope.COMPILE, 1) == []


def test_explicit_version_beats_managed(pom: Pom):
    pom.add_managed_dependency(_dep("g:a:1.2"))
    pom.add_dependency(_dep("g:a:2.0"))
    assert pom.get_dependencies(Scope.COMPILE, 1)[0].version == "2.0"


def test_properties_resolved_in_group_and_version(pom: Pom):
    pom.set_property("dep.version", "3.1")
    pom.add_dependency(_dep("${project.groupId}:lib:${dep.version}"))
    assert pom.get_dependencies(Scope.COMPILE, 1)[0].coordinates == "org.example:lib:3.1"


def test_duplicates_are_dropped_across_scopes(pom: Pom):
    assert pom.add_dependency(_dep("g:a:1"), Scope.COMPILE) is Scope.COMPILE
    assert pom.add_dependency(_dep("g:a:1"), Scope.TEST) is None
    assert pom.add_dependency(_dep("g:a:1:tests"), Scope.TEST) is Scope.TEST
    ids = [d.mediation_id for d in pom.all_dependencies()]
    assert ids == ["g:a:1", "g:a:1:tests"]


def test_self_reference_rejected_with_warning(pom: Pom, caplog: pytest.LogCaptureFixture):
    with caplog.at_level(logging.WARNING):
        assert pom.add_dependency(_dep("org.example:app:0.9")) is None
    assert any("circular" in r.getMessage() for r in caplog.records)
    assert not pom.has_dependencies()


def test_circular_managed_dependency_ignored(pom: Pom):
    pom.add_managed_dependency(_dep("org.example:app:5"))
    assert pom.managed_versions == {}


@pytest.mark.parametrize("exclusion", ["g:a", "g", "g:a:1"])
def test_descriptor_exclusions_reject(pom: Pom, exclusion: str):
    pom.add_exclusions([exclusion])
    assert pom.add_dependency(_dep("g:a:1")) is None
    assert pom.add_dependency(_dep("other:a:1")) is Scope.COMPILE


def test_optional_visibility(pom: Pom):
    pom.add_dependency(_dep("g:opt:1", optional=True))
    assert [d.artifact_id for d in pom.get_dependencies(Scope.COMPILE, 1)] == ["opt"]
    assert pom.get_dependencies(Scope.RUNTIME, 1) == []
    assert pom.get_dependencies(Scope.COMPILE, 2) == []
    assert pom.get_dependencies(Scope.TEST, 3) == []


def test_transitive_scope_mapping(pom: Pom):
    pom.add_dependency(_dep("g:c:1"), Scope.COMPILE)
    pom.add_dependency(_dep("g:r:1"), Scope.RUNTIME)
    pom.add_dependency(_dep("g:p:1"), Scope.PROVIDED)
    pom.add_dependency(_dep("g:t:1"), Scope.TEST)

    direct = pom.get_dependencies(Scope.TEST, 1)
    assert [d.artifact_id for d in direct] == ["c", "r", "p", "t"]

    transitive_compile = pom.get_dependencies(Scope.COMPILE, 2)
    assert [d.artifact_id for d in transitive_compile] == ["c"]

    transitive_runtime = pom.get_dependencies(Scope.RUNTIME, 2)
    assert [(d.artifact_id, d.defined_scope) for d in transitive_runtime] == [
        ("c", Scope.RUNTIME),
        ("r", Scope.RUNTIME),
    ]

    transitive_test = pom.get_dependencies(Scope.TEST, 2)
    assert {d.defined_scope for d in transitive_test} == {Scope.TEST}
    assert [d.artifact_id for d in transitive_test] == ["c", "r"]


def test_returned_copies_are_stamped_and_independent(pom: Pom):
    pom.add_dependency(_dep("g:a:1"))
    first = pom.get_dependencies(Scope.COMPILE, 2)
    assert first[0].ring == 2
    first[0].version = "changed"
    assert pom.declared(Scope.COMPILE)[0].version == "1"
    assert pom.declared(Scope.COMPILE)[0].ring == 0


def test_system_dependency_path_resolved(pom: Pom):
    pom.set_property("lib.dir", "/opt/lib")
    dep = SystemDependency(group_id="g", path="${lib.dir}/tools.jar")
    assert pom.add_dependency(dep, Scope.SYSTEM) is Scope.SYSTEM
    resolved = pom.get_dependencies(Scope.COMPILE, 1)
    assert resolved[0].mediation_id == "/opt/lib/tools.jar"


def test_scope_management(pom: Pom):
    pom.add_dependency(_dep("g:a:1"), Scope.COMPILE)
    pom.add_dependency(_dep("g:b:1"), Scope.TEST)
    assert pom.scopes == [Scope.COMPILE, Scope.TEST]
    pom.remove_scope(Scope.TEST)
    assert pom.scopes == [Scope.COMPILE]
    assert pom.has_dependency(_dep("g:a:1"))
    pom.clear_dependencies()
    assert not pom.has_dependencies()


def test_inherit_is_non_destructive(pom: Pom):
    parent = Pom()
    parent.group_id = "org.example"
    parent.artifact_id = "parent"
    parent.version = "9"
    parent.name = "Parent"
    parent.set_property("shared", "parent")
    parent.set_property("only.parent", "yes")
    parent.add_managed_dependency(_dep("g:a:1.0"))
    parent.add_managed_dependency(_dep("g:b:1.0"))

    child = Pom()
    child.artifact_id = "child"
    child.set_property("shared", "child")
    child.add_managed_dependency(_dep("g:a:2.0"))
    child.inherit(parent)

    assert child.group_id == "org.example"
    assert child.version == "9"
    assert child.name == "Parent"
    assert child.properties == {"shared": "child", "only.parent": "yes"}
    assert child.managed_versions == {"g:a": "2.0", "g:b": "1.0"}


def test_parent_dependency_addresses_descriptor():
    pom = Pom()
    pom.parent_group_id = "org.example"
    pom.parent_artifact_id = "parent"
    pom.parent_version = "3"
    assert pom.has_parent()
    parent = pom.parent_dependency()
    assert parent.coordinates == "org.example:parent:3"
    assert parent.extension == "pom"
