"""
End-to-End Integration Tests for libby-resolver
=================================================

These tests exercise the full pipeline from the facade down to the cache
directory. Unlike the unit tests, nothing is bypassed: coordinates are
parsed, POMs fetched and merged, the graph mediated, artifacts downloaded,
verified and committed.

Test Scenarios:
    1. A realistic project (parent POM, BOM, ranges, exclusions, conflicts)
    2. Two repositories with a flaky primary
    3. A local directory repository through FileTransport
    4. Shared cache between two resolver instances
    5. Partial failure keeps the successful downloads
"""

from __future__ import annotations

import hashlib

import pytest

from libby_resolver import LibbyResolver
from libby_resolver.core.config import CacheConfig, RepositoryConfig, ResolverConfig, RetryConfig
from libby_resolver.core.coordinates import parse_coordinate
from libby_resolver.core.enums import DiagnosticKind
from libby_resolver.core.exceptions import NetworkError, PartialResolutionError
from libby_resolver.infrastructure.cache import FileSystemCache
from libby_resolver.repository.mock import DEFAULT_BASE_URL, InMemoryTransport, build_pom


MIRROR_URL = "memory://mirror/"


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def project(transport: InMemoryTransport) -> InMemoryTransport:
    """A small but realistic dependency graph.

        shop-web:1.0  (parent shop-parent:1.0, imports platform-bom:3.0)
        ├── shop-core:${project.version}
        │   ├── commons-text:[1.9,2.0)      → 1.10.0 via metadata
        │   └── logging-api:2.0   (excluded on the edge from shop-web)
        ├── http-client:4.5   (version from the BOM)
        │   └── commons-text:1.8            → conflict, shop-core declared first
        └── junit:4.13.2 (test, pruned)
    """
    transport.publish(
        "com.shop:platform-bom:3.0",
        packaging="pom",
        dependency_management=["org.http:http-client:4.5"],
    )
    transport.publish(
        "com.shop:shop-parent:1.0",
        packaging="pom",
        properties={"junit.version": "4.13.2"},
        dependency_management=[{"coordinate": "com.shop:platform-bom:3.0", "type": "pom", "scope": "import"}],
    )
    transport.publish(
        "com.shop:shop-web:1.0",
        parent="com.shop:shop-parent:1.0",
        dependencies=[
            {
                "group_id": "com.shop",
                "artifact_id": "shop-core",
                "version": "${project.version}",
                "exclusions": ["org.logging:logging-api"],
            },
            {"group_id": "org.http", "artifact_id": "http-client"},
            {"group_id": "junit", "artifact_id": "junit", "version": "${junit.version}", "scope": "test"},
        ],
    )
    transport.publish(
        "com.shop:shop-core:1.0",
        dependencies=[
            {"group_id": "org.text", "artifact_id": "commons-text", "version": "[1.9,2.0)"},
            "org.logging:logging-api:2.0",
        ],
    )
    transport.publish("org.http:http-client:4.5", dependencies=["org.text:commons-text:1.8"])
    for version in ("1.8", "1.9", "1.10.0", "2.0"):
        transport.publish(f"org.text:commons-text:{version}")
    return transport


# =============================================================================
# Test: Realistic Project
# =============================================================================

class TestRealisticProject:
    """Parent POM, BOM import, ranges, exclusions and mediation together."""

    async def test_graph(self, resolver: LibbyResolver, project: InMemoryTransport) -> None:
        result = await resolver.collect(["com.shop:shop-web:1.0"])

        assert [str(c) for c in result.coordinates] == [
            "com.shop:shop-web:1.0",
            "com.shop:shop-core:1.0",
            "org.http:http-client:4.5",
            "org.text:commons-text:1.10.0",
        ]
        (conflict,) = result.diagnostics_of(DiagnosticKind.VERSION_CONFLICT)
        assert conflict.coordinate == "org.text:commons-text:1.8"

    async def test_files_on_disk(self, resolver: LibbyResolver, project: InMemoryTransport, tmp_path) -> None:
        artifacts = await resolver.resolve(["com.shop:shop-web:1.0"])

        cache_root = tmp_path / "cache"
        for artifact in artifacts:
            assert artifact.path.is_file()
            assert artifact.checksum == hashlib.sha1(artifact.path.read_bytes()).hexdigest()
            sidecar = artifact.path.with_name(artifact.path.name + ".sha1")
            assert sidecar.read_text() == artifact.checksum
        assert (cache_root / "org/text/commons-text/1.10.0/commons-text-1.10.0.jar").is_file()
        assert not (cache_root / "org/logging").exists()

    async def test_summary_is_serializable(self, resolver: LibbyResolver, project: InMemoryTransport) -> None:
        artifacts = await resolver.resolve(["com.shop:shop-web:1.0"])

        summary = artifacts[0].to_summary()
        assert summary["coordinate"] == "com.shop:shop-web:1.0"
        assert summary["from_cache"] is False


# =============================================================================
# Test: Multiple Repositories
# =============================================================================

class TestMultipleRepositories:
    """Fallback across repositories under transient failures."""

    async def test_flaky_primary_falls_back_to_mirror(
        self, config: ResolverConfig, transport: InMemoryTransport, cache: FileSystemCache
    ) -> None:
        transport.publish("com.example:app:1.0", dependencies=["com.example:lib:2.0"])
        transport.publish("com.example:lib:2.0", data=b"from primary")
        transport.publish("com.example:lib:2.0", data=b"from mirror", repository_url=MIRROR_URL)
        lib_jar = transport.artifact_url("com.example:lib:2.0")
        transport.fail_next(lib_jar, NetworkError("503", url=lib_jar, status_code=503), times=3)

        repositories = [
            RepositoryConfig(id="primary", url=DEFAULT_BASE_URL),
            RepositoryConfig(id="mirror", url=MIRROR_URL),
        ]
        async with LibbyResolver(config, transport=transport, cache=cache) as resolver:
            artifacts = await resolver.resolve(["com.example:app:1.0"], repositories=repositories)

        app, lib = artifacts
        assert app.repository_url == DEFAULT_BASE_URL
        assert lib.repository_url == MIRROR_URL
        assert lib.path.read_bytes() == b"from mirror"


# =============================================================================
# Test: Local Directory Repository
# =============================================================================

class TestFileRepository:
    """A plain directory in Maven layout served through FileTransport."""

    async def test_resolves_from_directory(self, tmp_path) -> None:
        repo = tmp_path / "repo"
        for gav, dependencies in (("com.example:app:1.0", ["com.example:lib:2.0"]), ("com.example:lib:2.0", [])):
            coordinate = parse_coordinate(gav)
            folder = repo / coordinate.group_id.replace(".", "/") / coordinate.artifact_id / coordinate.version
            folder.mkdir(parents=True)
            stem = f"{coordinate.artifact_id}-{coordinate.version}"
            (folder / f"{stem}.pom").write_bytes(build_pom(coordinate, dependencies))
            (folder / f"{stem}.jar").write_bytes(gav.encode())

        config = ResolverConfig(
            repositories=[RepositoryConfig(id="local", url=repo.as_uri())],
            cache=CacheConfig(directory=tmp_path / "cache"),
            retry=RetryConfig(max_attempts=1),
        )
        async with LibbyResolver(config) as resolver:
            artifacts = await resolver.resolve(["com.example:app:1.0"])

        assert [a.path.read_bytes() for a in artifacts] == [b"com.example:app:1.0", b"com.example:lib:2.0"]


# =============================================================================
# Test: Shared Cache
# =============================================================================

class TestSharedCache:
    """Two resolvers over one cache directory."""

    async def test_second_resolver_uses_cache(self, config: ResolverConfig, project: InMemoryTransport) -> None:
        async with LibbyResolver(config, transport=project) as first:
            await first.resolve(["com.shop:shop-web:1.0"])

        project.reset_history()
        async with LibbyResolver(config, transport=project) as second:
            artifacts = await second.resolve(["com.shop:shop-web:1.0"])

        assert all(a.from_cache for a in artifacts)
        assert not any(url.endswith(".jar") for url in project.call_history)


# =============================================================================
# Test: Partial Failure
# =============================================================================

class TestPartialFailure:
    """Failed downloads are reported together; successes are kept."""

    async def test_missing_jar(self, resolver: LibbyResolver, transport: InMemoryTransport, cache) -> None:
        transport.publish("com.example:app:1.0", dependencies=["com.example:lib:2.0", "com.example:util:1.5"])
        transport.publish("com.example:lib:2.0", with_artifact=False)
        transport.publish("com.example:util:1.5")

        with pytest.raises(PartialResolutionError) as exc_info:
            await resolver.resolve(["com.example:app:1.0"])

        assert exc_info.value.failed_coordinates == ["com.example:lib:2.0"]
        assert await cache.get(parse_coordinate("com.example:util:1.5")) is not None
