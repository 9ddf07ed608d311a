"""
libby_resolver.resolution.download - Download Manager
=======================================================

Turns resolved coordinates into verified files in the local cache.

    materialize([c1, c2, c3])
        │
        ├── c1 ─→ cache hit ─────────────────────────────→ ResolvedArtifact
        ├── c2 ─→ in flight? ─ yes ─→ await shared task ──→ ResolvedArtifact
        └── c3 ─→ cache miss ─→ RepositoryClient.fetch_artifact
                                   └─→ cache.put ────────→ ResolvedArtifact

Concurrency:
    - A semaphore bounds simultaneous downloads to ``max_workers``.
    - The in-flight map (gav → task) makes concurrent requests for one
      coordinate share a single fetch, also across overlapping
      ``materialize`` calls. An asyncio.Lock guards only its
      check-and-insert and the waiter counts.
    - Shared tasks run without any caller's CancellationToken. Each caller
      applies its own token only to its wait, so one caller cancelling
      never fails another. A shared task whose last waiter has gone is
      cancelled.

Failures:
    Every download runs to completion; one failure never cancels its
    siblings. Afterwards all failures are raised together as one
    PartialResolutionError. Cancellation is the exception: it is raised
    as ResolutionCancelledError right away. Cache entries already
    committed are kept either way.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Optional, Sequence

import structlog

from libby_resolver.core.exceptions import (
    PartialResolutionError,
    ResolutionCancelledError,
    ResolverError,
)
from libby_resolver.core.models import Coordinate, ResolvedArtifact
from libby_resolver.resolution.cancellation import CancellationToken, discard_outcome, guarded

if TYPE_CHECKING:
    from libby_resolver.infrastructure.cache import LocalCache
    from libby_resolver.repository.client import RepositoryClient


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


def _as_resolver_error(coordinate: Coordinate, error: Exception) -> ResolverError:
    """Wrap a failure that did not come from the resolver's own hierarchy."""
    if isinstance(error, ResolverError):
        return error
    return ResolverError(
        message=f"Unexpected failure materializing {coordinate.gav}: {error}",
        error_code="MATERIALIZE_FAILED",
        details={"coordinate": coordinate.gav, "error_type": type(error).__name__},
    )


class DownloadManager:
    """Materializes coordinates as local files, concurrently and deduplicated.

    Attributes:
        max_workers: Maximum simultaneous downloads.

    Example:
        >>> manager = DownloadManager(client, cache, max_workers=8)
        >>> artifacts = await manager.materialize(result.coordinates)
        >>> [a.path.name for a in artifacts]
        ['app-1.0.jar', 'lib-2.0.jar', 'util-1.5.jar']
    """

    def __init__(self, client: RepositoryClient, cache: LocalCache, max_workers: int = 8) -> None:
        self._client = client
        self._cache = cache
        self.max_workers = max_workers
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._in_flight: dict[str, asyncio.Task[ResolvedArtifact]] = {}
        self._waiters: dict[str, int] = {}
        self._lock = asyncio.Lock()
        self._logger = logger.bind(component="download_manager")

    def _get_semaphore(self) -> asyncio.Semaphore:
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_workers)
        return self._semaphore

    async def materialize(
        self,
        coordinates: Sequence[Coordinate],
        cancellation: Optional[CancellationToken] = None,
    ) -> list[ResolvedArtifact]:
        """Download (or find in cache) every coordinate.

        Args:
            coordinates: Versioned coordinates, usually ResolutionResult.coordinates.
            cancellation: Aborts this call's wait when fired. Downloads that
                other callers still wait for keep running.

        Returns:
            One ResolvedArtifact per coordinate, in input order.

        Raises:
            PartialResolutionError: If any coordinate failed; lists them all.
            ResolutionCancelledError: If ``cancellation`` fires.
        """
        if cancellation is not None:
            cancellation.raise_if_cancelled()

        unique = {coordinate.gav: coordinate for coordinate in coordinates}
        tasks = await self._acquire(list(unique.values()))
        try:
            outcomes = await guarded(
                asyncio.gather(
                    *(asyncio.shield(tasks[coordinate.gav]) for coordinate in coordinates),
                    return_exceptions=True,
                ),
                cancellation,
            )
        finally:
            await self._release(tasks)

        artifacts: list[ResolvedArtifact] = []
        failures: dict[str, ResolverError] = {}
        for coordinate, outcome in zip(coordinates, outcomes):
            if isinstance(outcome, ResolutionCancelledError):
                raise outcome
            if isinstance(outcome, Exception):
                failures[coordinate.gav] = _as_resolver_error(coordinate, outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                artifacts.append(outcome)

        if failures:
            self._logger.error(
                "materialize_failed",
                failed=len(failures),
                succeeded=len(artifacts),
                coordinates=list(failures),
            )
            raise PartialResolutionError(
                message=f"{len(failures)} of {len(coordinates)} artifacts could not be materialized",
                failures=failures,
            )

        self._logger.info(
            "materialize_completed",
            artifacts=len(artifacts),
            from_cache=sum(1 for a in artifacts if a.from_cache),
        )
        return artifacts

    # =========================================================================
    # Shared Tasks
    # =========================================================================

    async def _acquire(self, coordinates: list[Coordinate]) -> dict[str, asyncio.Task[ResolvedArtifact]]:
        """Join (or start) the shared task of every coordinate."""
        tasks: dict[str, asyncio.Task[ResolvedArtifact]] = {}
        async with self._lock:
            for coordinate in coordinates:
                gav = coordinate.gav
                task = self._in_flight.get(gav)
                if task is None:
                    task = asyncio.ensure_future(self._download(coordinate))
                    task.add_done_callback(discard_outcome)
                    task.add_done_callback(lambda done, gav=gav: self._forget(gav, done))
                    self._in_flight[gav] = task
                    self._waiters[gav] = 0
                self._waiters[gav] += 1
                tasks[gav] = task
        return tasks

    async def _release(self, tasks: dict[str, asyncio.Task[ResolvedArtifact]]) -> None:
        """Leave the shared tasks; cancel the ones nobody waits for any more."""
        async with self._lock:
            for gav, task in tasks.items():
                if self._in_flight.get(gav) is not task:
                    continue
                self._waiters[gav] -= 1
                if self._waiters[gav] == 0 and not task.done():
                    self._logger.debug("download_abandoned", coordinate=gav)
                    del self._in_flight[gav]
                    del self._waiters[gav]
                    task.cancel()

    def _forget(self, gav: str, task: asyncio.Task[ResolvedArtifact]) -> None:
        if self._in_flight.get(gav) is task:
            del self._in_flight[gav]
            self._waiters.pop(gav, None)

    async def _download(self, coordinate: Coordinate) -> ResolvedArtifact:
        entry = await self._cache.get(coordinate)
        if entry is not None:
            return ResolvedArtifact(
                coordinate=coordinate,
                path=entry.path,
                checksum=entry.checksum,
                from_cache=True,
            )

        async with self._get_semaphore():
            fetched = await self._client.fetch_artifact(coordinate)

        entry = await self._cache.put(coordinate, fetched.data, fetched.checksum)
        self._logger.info(
            "artifact_downloaded",
            coordinate=coordinate.gav,
            repository=fetched.repository_url,
            path=str(entry.path),
        )
        return ResolvedArtifact(
            coordinate=coordinate,
            path=entry.path,
            checksum=entry.checksum,
            repository_url=fetched.repository_url,
        )
