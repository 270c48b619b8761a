import pytest

from maven_dependency_resolver.server import resolve_version_core

METADATA = """<metadata><groupId>com.acme</groupId><artifactId>demo</artifactId><versioning>
<latest>2.1.0-SNAPSHOT</latest><release>2.0.0</release>
<versions><version>1.0.0</version><version>2.0.0</version><version>2.1.0-SNAPSHOT</version></versions>
</versioning></metadata>"""


@pytest.mark.asyncio
@pytest.mark.parametrize(("query", "expected"), [("RELEASE", "2.0.0"), ("latest", "2.1.0-SNAPSHOT")])
async def test_resolves_query_from_metadata(settings, fake_repo, query, expected) -> None:
    fake_repo.add_metadata("com.acme:demo", METADATA)

    result = await resolve_version_core(
        group_id="com.acme", artifact_id="demo", query=query, settings=settings
    )

    assert result.version == expected
    assert result.query == query.upper()
    assert result.group_id == "com.acme"


@pytest.mark.asyncio
async def test_fresh_records_skip_the_network(settings, fake_repo) -> None:
    fake_repo.add_metadata("com.acme:demo", METADATA)

    await resolve_version_core(group_id="com.acme", artifact_id="demo", settings=settings)
    fetched = fake_repo.count("maven-metadata.xml")
    again = await resolve_version_core(group_id="com.acme", artifact_id="demo", settings=settings)

    assert again.version == "2.0.0"
    assert fake_repo.count("maven-metadata.xml") == fetched


@pytest.mark.asyncio
async def test_unknown_artifact_has_no_version(settings, fake_repo) -> None:
    result = await resolve_version_core(group_id="com.acme", artifact_id="ghost", settings=settings)
    assert result.version is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("group_id", "artifact_id", "query"),
    [("com.acme", "demo", "1.0"), ("", "demo", "RELEASE"), ("com.acme", " ", "RELEASE")],
)
async def test_invalid_inputs_raise(settings, group_id, artifact_id, query) -> None:
    with pytest.raises(ValueError):
        await resolve_version_core(
            group_id=group_id, artifact_id=artifact_id, query=query, settings=settings
        )
