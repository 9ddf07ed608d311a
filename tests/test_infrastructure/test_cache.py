"""
Tests for libby_resolver.infrastructure.cache
===============================================

What's Being Tested:
    - Maven-layout paths under the cache root
    - put/get with checksum sidecars
    - Idempotent put, conflicting put → CacheCorruptionError
    - Optional re-verification on get
    - No temp files left behind
"""

import hashlib

import pytest

from libby_resolver.core.config import CacheConfig
from libby_resolver.core.coordinates import parse_coordinate
from libby_resolver.core.enums import ChecksumAlgorithm
from libby_resolver.core.exceptions import CacheCorruptionError
from libby_resolver.infrastructure.cache import FileSystemCache


LIB = parse_coordinate("com.example:lib:2.0")
DATA = b"lib bytes"
SHA1 = hashlib.sha1(DATA).hexdigest()


class TestFileSystemCache:
    """Tests for FileSystemCache."""

    async def test_miss_returns_none(self, cache: FileSystemCache) -> None:
        assert await cache.get(LIB) is None

    async def test_put_then_get(self, cache: FileSystemCache, tmp_path) -> None:
        stored = await cache.put(LIB, DATA, SHA1)

        assert stored.path == tmp_path / "cache" / "com/example/lib/2.0/lib-2.0.jar"
        assert stored.path.read_bytes() == DATA
        assert (stored.path.parent / "lib-2.0.jar.sha1").read_text() == SHA1
        assert await cache.get(LIB) == stored

    async def test_checksum_is_normalized(self, cache: FileSystemCache) -> None:
        stored = await cache.put(LIB, DATA, SHA1.upper())
        assert stored.checksum == SHA1

    async def test_put_same_content_is_a_no_op(self, cache: FileSystemCache) -> None:
        first = await cache.put(LIB, DATA, SHA1)
        mtime = first.path.stat().st_mtime_ns

        second = await cache.put(LIB, DATA, SHA1)

        assert second == first
        assert second.path.stat().st_mtime_ns == mtime

    async def test_put_different_content_raises(self, cache: FileSystemCache) -> None:
        await cache.put(LIB, DATA, SHA1)
        other = hashlib.sha1(b"other").hexdigest()

        with pytest.raises(CacheCorruptionError) as exc_info:
            await cache.put(LIB, b"other", other)

        assert exc_info.value.details["existing"] == SHA1
        assert exc_info.value.details["incoming"] == other
        assert cache.path_for(LIB).read_bytes() == DATA

    async def test_file_without_sidecar_is_a_miss(self, cache: FileSystemCache) -> None:
        path = cache.path_for(LIB)
        path.parent.mkdir(parents=True)
        path.write_bytes(DATA)

        assert await cache.get(LIB) is None

    async def test_no_temp_files_left(self, cache: FileSystemCache) -> None:
        stored = await cache.put(LIB, DATA, SHA1)
        assert sorted(p.name for p in stored.path.parent.iterdir()) == ["lib-2.0.jar", "lib-2.0.jar.sha1"]

    async def test_classifier_and_algorithm(self, tmp_path) -> None:
        cache = FileSystemCache(tmp_path, algorithm=ChecksumAlgorithm.SHA256)
        sources = parse_coordinate("com.example:lib:sources:2.0")

        stored = await cache.put(sources, DATA, hashlib.sha256(DATA).hexdigest())

        assert stored.path.name == "lib-2.0-sources.jar"
        assert (stored.path.parent / "lib-2.0-sources.jar.sha256").is_file()


class TestVerification:
    """verify_checksums re-hashes cached files."""

    async def test_tampered_file_detected(self, tmp_path) -> None:
        cache = FileSystemCache(tmp_path, verify_checksums=True)
        stored = await cache.put(LIB, DATA, SHA1)
        stored.path.write_bytes(b"tampered")

        with pytest.raises(CacheCorruptionError) as exc_info:
            await cache.get(LIB)
        assert exc_info.value.error_code == "CACHE_CORRUPTION"

    async def test_tampering_unnoticed_without_verification(self, cache: FileSystemCache) -> None:
        stored = await cache.put(LIB, DATA, SHA1)
        stored.path.write_bytes(b"tampered")

        assert await cache.get(LIB) == stored

    def test_from_config(self, tmp_path) -> None:
        cache = FileSystemCache.from_config(
            CacheConfig(directory=tmp_path, verify_checksums=True),
            ChecksumAlgorithm.SHA512,
        )
        assert cache.directory == tmp_path
        assert cache.verify_checksums is True
        assert cache.algorithm == ChecksumAlgorithm.SHA512
