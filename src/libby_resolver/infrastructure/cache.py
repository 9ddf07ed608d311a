"""
libby_resolver.infrastructure.cache - Local Artifact Cache
============================================================

The local cache is a directory in the Maven local-repository layout. Each
entry is the artifact file plus a checksum sidecar:

    <cache>/com/example/lib/2.0/lib-2.0.jar
    <cache>/com/example/lib/2.0/lib-2.0.jar.sha1

Architecture Context:
    DownloadManager consults the cache before touching the network and
    stores every verified download in it:

    ┌─────────────────┐   get(coordinate)   ┌──────────────────┐
    │ DownloadManager │ ──────────────────→ │   LocalCache     │
    │                 │ ←── entry | None ── │   (abstract)     │
    │                 │ ── put(c, bytes) ─→ │                  │
    └─────────────────┘                     └────────┬─────────┘
                                                     │
                                            ┌────────▼─────────┐
                                            │ FileSystemCache  │
                                            └──────────────────┘

Write Protocol:
    Readers must never observe a partial file, even with several resolvers
    sharing the directory. ``put`` therefore:

        1. writes data to a temp file in the target directory
        2. os.replace() → final artifact path
        3. writes the checksum to a temp file
        4. os.replace() → sidecar path

    An entry counts as present only when the sidecar exists, so a crash
    between steps 2 and 4 leaves an entry that is simply re-downloaded.

Conflicts:
    ``put`` with the checksum already stored is a no-op. A different
    checksum raises CacheCorruptionError; existing entries are never
    overwritten.
"""

from __future__ import annotations

import asyncio
import hashlib
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import structlog
from pydantic import BaseModel

from libby_resolver.core.config import CacheConfig
from libby_resolver.core.enums import ChecksumAlgorithm
from libby_resolver.core.exceptions import CacheCorruptionError
from libby_resolver.core.models import Coordinate
from libby_resolver.repository.layout import artifact_path, checksum_path


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


class CacheEntry(BaseModel):
    """A complete cache entry."""

    path: Path
    checksum: str

    model_config = {"frozen": True}


# =============================================================================
# Abstract Base Cache
# =============================================================================
class LocalCache(ABC):
    """Abstract interface for the path-addressed artifact cache."""

    @abstractmethod
    async def get(self, coordinate: Coordinate) -> Optional[CacheEntry]:
        """Return the entry for a versioned coordinate, or None on a miss.

        Raises:
            CacheCorruptionError: If verification is enabled and the stored
                file no longer matches its checksum.
        """
        ...

    @abstractmethod
    async def put(self, coordinate: Coordinate, data: bytes, checksum: str) -> CacheEntry:
        """Store verified bytes.

        Raises:
            CacheCorruptionError: If an entry with a different checksum exists.
        """
        ...


# =============================================================================
# File System Cache
# =============================================================================
def _atomic_write(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.replace(temp_name, target)
    except BaseException:
        try:
            os.unlink(temp_name)
        except FileNotFoundError:
            pass
        raise


def _hash_file(path: Path, algorithm: ChecksumAlgorithm) -> str:
    digest = hashlib.new(algorithm.value)
    with open(path, "rb") as handle:
        for chunk in iter(lambda: handle.read(1 << 16), b""):
            digest.update(chunk)
    return digest.hexdigest()


class FileSystemCache(LocalCache):
    """Maven-layout cache directory with checksum sidecars.

    Attributes:
        directory: Cache root. Created on first write.
        algorithm: Checksum algorithm; also selects the sidecar suffix.
        verify_checksums: Re-hash files on every ``get``.

    Example:
        >>> cache = FileSystemCache(Path("/tmp/libby"))
        >>> entry = await cache.put(coordinate, b"...", checksum)
        >>> (await cache.get(coordinate)).path == entry.path
        True
    """

    def __init__(
        self,
        directory: Path,
        algorithm: ChecksumAlgorithm = ChecksumAlgorithm.SHA1,
        verify_checksums: bool = False,
    ) -> None:
        self.directory = Path(directory).expanduser()
        self.algorithm = algorithm
        self.verify_checksums = verify_checksums
        self._logger = logger.bind(component="file_system_cache")

    @classmethod
    def from_config(cls, config: CacheConfig, algorithm: ChecksumAlgorithm) -> FileSystemCache:
        return cls(config.directory, algorithm=algorithm, verify_checksums=config.verify_checksums)

    def path_for(self, coordinate: Coordinate) -> Path:
        return self.directory / artifact_path(coordinate)

    def _sidecar(self, path: Path) -> Path:
        return Path(checksum_path(str(path), self.algorithm))

    def _read_entry(self, coordinate: Coordinate) -> Optional[CacheEntry]:
        path = self.path_for(coordinate)
        sidecar = self._sidecar(path)
        if not (path.is_file() and sidecar.is_file()):
            return None

        checksum = sidecar.read_text().strip().lower()
        if self.verify_checksums:
            actual = _hash_file(path, self.algorithm)
            if actual != checksum:
                raise CacheCorruptionError(
                    message=f"Cached file for {coordinate.gav} does not match its checksum",
                    coordinate=coordinate.gav,
                    path=str(path),
                    details={"expected": checksum, "actual": actual},
                )
        return CacheEntry(path=path, checksum=checksum)

    def _write_entry(self, coordinate: Coordinate, data: bytes, checksum: str) -> CacheEntry:
        checksum = checksum.lower()
        existing = self._read_entry(coordinate)
        if existing is not None:
            if existing.checksum == checksum:
                return existing
            raise CacheCorruptionError(
                message=f"Cache already holds different content for {coordinate.gav}",
                coordinate=coordinate.gav,
                path=str(existing.path),
                details={"existing": existing.checksum, "incoming": checksum},
            )

        path = self.path_for(coordinate)
        _atomic_write(path, data)
        _atomic_write(self._sidecar(path), checksum.encode())
        return CacheEntry(path=path, checksum=checksum)

    async def get(self, coordinate: Coordinate) -> Optional[CacheEntry]:
        entry = await asyncio.to_thread(self._read_entry, coordinate)
        if entry is not None:
            self._logger.debug("cache_hit", coordinate=coordinate.gav)
        return entry

    async def put(self, coordinate: Coordinate, data: bytes, checksum: str) -> CacheEntry:
        entry = await asyncio.to_thread(self._write_entry, coordinate, data, checksum)
        self._logger.debug("cache_stored", coordinate=coordinate.gav, path=str(entry.path))
        return entry
