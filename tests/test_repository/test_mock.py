"""
Tests for libby_resolver.repository.mock
==========================================

The in-memory repository is the backbone of the rest of the suite, so its
publishing and bookkeeping get their own checks.
"""

import hashlib

import pytest

from libby_resolver.core.exceptions import NetworkError
from libby_resolver.repository.mock import DEFAULT_BASE_URL, InMemoryTransport
from libby_resolver.repository.pom import parse_metadata, parse_pom


BASE = DEFAULT_BASE_URL
JAR = BASE + "com/example/lib/2.0/lib-2.0.jar"
POM = BASE + "com/example/lib/2.0/lib-2.0.pom"
METADATA = BASE + "com/example/lib/maven-metadata.xml"


class TestPublish:
    """Tests for publish() and the files it creates."""

    async def test_publishes_pom_jar_and_checksums(self, transport: InMemoryTransport) -> None:
        transport.publish("com.example:lib:2.0", data=b"lib bytes")

        assert await transport.fetch(JAR) == b"lib bytes"
        assert await transport.fetch(JAR + ".sha1") == hashlib.sha1(b"lib bytes").hexdigest().encode()
        assert parse_pom(await transport.fetch(POM)).artifact_id == "lib"

    async def test_default_content_is_deterministic(self, transport: InMemoryTransport) -> None:
        transport.publish("com.example:lib:2.0")
        assert await transport.fetch(JAR) == b"content of com.example:lib:2.0"

    async def test_pom_contains_dependencies(self, transport: InMemoryTransport) -> None:
        transport.publish(
            "com.example:lib:2.0",
            dependencies=[
                "com.example:util:1.5",
                {"coordinate": "org.slf4j:slf4j-api:2.0.9", "scope": "runtime", "exclusions": ["*:*"]},
                {"group_id": "com.example", "artifact_id": "managed"},
            ],
        )
        pom = parse_pom(await transport.fetch(POM))
        util, slf4j, managed = pom.dependencies
        assert (util.artifact_id, util.version) == ("util", "1.5")
        assert slf4j.scope == "runtime"
        assert [str(e) for e in slf4j.exclusions] == ["*:*"]
        assert managed.version is None

    async def test_metadata_accumulates_versions(self, transport: InMemoryTransport) -> None:
        transport.publish("com.example:lib:2.0")
        transport.publish("com.example:lib:1.0")
        transport.publish("com.example:lib:2.1-SNAPSHOT")

        metadata = parse_metadata(await transport.fetch(METADATA))
        assert metadata.versions == ["1.0", "2.0", "2.1-SNAPSHOT"]
        assert metadata.release == "2.0"

    async def test_pom_packaging_skips_artifact(self, transport: InMemoryTransport) -> None:
        transport.publish("com.example:parent:1", packaging="pom")
        assert await transport.fetch(BASE + "com/example/parent/1/parent-1.pom") is not None
        assert await transport.fetch(BASE + "com/example/parent/1/parent-1.jar") is None

    async def test_second_repository_prefix(self, transport: InMemoryTransport) -> None:
        transport.publish("com.example:lib:2.0", repository_url="memory://mirror/")
        assert await transport.fetch(JAR) is None
        assert await transport.fetch("memory://mirror/com/example/lib/2.0/lib-2.0.jar") is not None


class TestCallTracking:
    """Tests for call history and failure injection."""

    async def test_records_every_fetch(self, transport: InMemoryTransport) -> None:
        await transport.fetch(JAR)
        await transport.fetch(JAR)
        assert transport.calls_for(JAR) == 2
        assert transport.call_history == [JAR, JAR]

        transport.reset_history()
        assert transport.call_history == []

    async def test_fail_next_raises_then_recovers(self, transport: InMemoryTransport) -> None:
        transport.publish("com.example:lib:2.0")
        transport.fail_next(JAR, NetworkError("flaky", url=JAR), times=2)

        for _ in range(2):
            with pytest.raises(NetworkError):
                await transport.fetch(JAR)
        assert await transport.fetch(JAR) is not None
