import pytest

from maven_dependency_resolver.server import resolve_dependencies_core


@pytest.fixture
def project(tmp_path, make_pom):
    def _f(*deps, **kwargs):
        path = tmp_path / "pom.xml"
        path.write_text(make_pom("org.example:app:1.0", list(deps), **kwargs), encoding="utf-8")
        return str(path)

    return _f


@pytest.mark.asyncio
async def test_resolves_transitive_dependencies(project, settings, make_pom, fake_repo) -> None:
    fake_repo.add_pom("g:a:1.0", make_pom("g:a:1.0", ["g:b:2.0"]))
    fake_repo.add_pom("g:b:2.0", make_pom("g:b:2.0"))

    result = await resolve_dependencies_core(
        pom_path=project("g:a:1.0"), scope="compile", settings=settings
    )

    assert result.project == "org.example:app:1.0"
    assert result.scope.value == "compile"
    assert [(d.coordinates, d.ring) for d in result.dependencies] == [
        ("g:a:1.0", 1),
        ("g:b:2.0", 2),
    ]
    assert all(d.path is None for d in result.dependencies)


@pytest.mark.asyncio
async def test_include_paths_downloads_artifacts(project, settings, make_pom, fake_repo) -> None:
    fake_repo.add_pom("g:a:1.0", make_pom("g:a:1.0"))
    fake_repo.add_artifact("g:a:1.0", b"jar-bytes")

    result = await resolve_dependencies_core(
        pom_path=project("g:a:1.0"), include_paths=True, settings=settings
    )

    (entry,) = result.dependencies
    assert entry.path is not None
    assert entry.path.endswith("a-1.0.jar")
    assert open(entry.path, "rb").read() == b"jar-bytes"


@pytest.mark.asyncio
async def test_scope_is_case_insensitive_and_validated(project, settings, fake_repo) -> None:
    path = project({"coords": "g:t:1.0", "scope": "test"})
    fake_repo.add_pom("g:t:1.0", "<project><groupId>g</groupId><artifactId>t</artifactId>"
                      "<version>1.0</version></project>")

    compile_only = await resolve_dependencies_core(pom_path=path, scope="COMPILE", settings=settings)
    assert compile_only.dependencies == []

    with_tests = await resolve_dependencies_core(pom_path=path, scope="test", settings=settings)
    assert [d.coordinates for d in with_tests.dependencies] == ["g:t:1.0"]

    for bad in ("import", "bogus"):
        with pytest.raises(ValueError):
            await resolve_dependencies_core(pom_path=path, scope=bad, settings=settings)


@pytest.mark.asyncio
async def test_missing_descriptor_file_is_rejected(tmp_path, settings) -> None:
    with pytest.raises(ValueError, match="not found"):
        await resolve_dependencies_core(pom_path=str(tmp_path / "nope.xml"), settings=settings)


@pytest.mark.asyncio
async def test_resolver_failures_surface_as_value_error(project, settings, fake_repo) -> None:
    path = project(parent="g:missing-parent:1")
    with pytest.raises(ValueError):
        await resolve_dependencies_core(pom_path=path, settings=settings)
