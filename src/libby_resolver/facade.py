"""
libby_resolver.facade - LibbyResolver Top-Level Facade
========================================================

LibbyResolver wires the layers together and owns their lifecycle. It is the
entry point for users of the library.

Architecture Context:

    ┌──────────────────────────────────────────────────┐
    │              LibbyResolver (Facade)               │
    │                                                   │
    │  ┌─────────────────────────────────────────────┐ │
    │  │           Resolution Layer                   │ │
    │  │  DependencyGraphBuilder, DownloadManager     │ │
    │  │  RetryPolicy, CancellationToken              │ │
    │  └─────────────────────┬───────────────────────┘ │
    │                        │                          │
    │  ┌─────────────────────▼───────────────────────┐ │
    │  │       Repository Integration Layer           │ │
    │  │  RepositoryClient, Http/File transports      │ │
    │  └─────────────────────┬───────────────────────┘ │
    │                        │                          │
    │  ┌─────────────────────▼───────────────────────┐ │
    │  │         Infrastructure Layer                  │ │
    │  │  FileSystemCache                              │ │
    │  └─────────────────────────────────────────────┘ │
    └──────────────────────────────────────────────────┘

Usage:
    >>> async with LibbyResolver() as resolver:
    ...     artifacts = await resolver.resolve(["com.google.guava:guava:33.0.0-jre"])
    ...     for artifact in artifacts:
    ...         print(artifact.path)

    Graph only, no downloads:
    >>> async with LibbyResolver(config) as resolver:
    ...     result = await resolver.collect(["com.example:app:1.0"], excludes=["org.slf4j:*"])
"""

from __future__ import annotations

import itertools
from typing import Any, Optional, Sequence, Union

import structlog

from libby_resolver.core.config import RepositoryConfig, ResolverConfig
from libby_resolver.core.coordinates import parse_coordinate, parse_exclusion
from libby_resolver.core.enums import Scope
from libby_resolver.core.models import Coordinate, ResolutionResult, ResolvedArtifact
from libby_resolver.infrastructure.cache import FileSystemCache, LocalCache
from libby_resolver.repository.client import RepositoryClient
from libby_resolver.repository.transport import Transport
from libby_resolver.resolution.cancellation import CancellationToken
from libby_resolver.resolution.download import DownloadManager
from libby_resolver.resolution.graph import DependencyGraphBuilder


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


RepositorySpec = Union[RepositoryConfig, str]
CoordinateSpec = Union[Coordinate, str]

_repository_ids = itertools.count(1)


class LibbyResolver:
    """Top-level facade: resolve Maven coordinates into local files.

    Lifecycle:
        1. ``LibbyResolver(config)`` - Instantiate with configuration
        2. ``await initialize()`` - Ready the resolver
        3. ``await resolve(...)`` / ``await collect(...)``
        4. ``await shutdown()`` - Close HTTP connections

    Or use the async context manager:
        async with LibbyResolver(config) as resolver:
            ...

    A RepositoryClient (with its descriptor memo) and a DownloadManager are
    kept per distinct repository list, so repeated calls against the same
    repositories reuse fetched descriptors and in-flight downloads.
    """

    def __init__(
        self,
        config: Optional[ResolverConfig] = None,
        *,
        transport: Optional[Transport] = None,
        cache: Optional[LocalCache] = None,
    ) -> None:
        """Initialize the facade.

        Args:
            config: Resolver configuration. Defaults to ResolverConfig(),
                which reads LIBBY_* environment variables.
            transport: Transport used for every repository. Defaults to
                HTTP or file transports chosen by URL scheme.
            cache: Local cache. Defaults to a FileSystemCache at
                ``config.cache.directory``.
        """
        self._config = config or ResolverConfig()
        self._transport = transport
        self._cache = cache or FileSystemCache.from_config(
            self._config.cache,
            self._config.checksum_algorithm,
        )

        # repository URLs → (client, download manager)
        self._sessions: dict[tuple[str, ...], tuple[RepositoryClient, DownloadManager]] = {}

        self._initialized = False
        self._logger = logger.bind(component="libby_resolver")

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def config(self) -> ResolverConfig:
        return self._config

    @property
    def cache(self) -> LocalCache:
        return self._cache

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # =========================================================================
    # Lifecycle Management
    # =========================================================================

    async def initialize(self) -> None:
        """Ready the resolver. Idempotent."""
        if self._initialized:
            self._logger.debug("resolver_already_initialized")
            return

        self._initialized = True
        self._logger.info(
            "resolver_initialized",
            repositories=[r.base_url for r in self._config.repositories],
            max_workers=self._config.max_workers,
            conflict_policy=self._config.conflict_policy.value,
        )

    async def shutdown(self) -> None:
        """Close every repository client and its connections. Idempotent."""
        if not self._initialized:
            self._logger.debug("resolver_not_initialized_skipping_shutdown")
            return

        for client, _ in self._sessions.values():
            await client.close()
        self._sessions.clear()

        self._initialized = False
        self._logger.info("resolver_shutdown_complete")

    async def __aenter__(self) -> LibbyResolver:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.shutdown()

    # =========================================================================
    # Repositories
    # =========================================================================

    @staticmethod
    def new_default_repository(url: str) -> RepositoryConfig:
        """Create a RepositoryConfig with a generated id ("repo1", "repo2", ...)."""
        return RepositoryConfig(id=f"repo{next(_repository_ids)}", url=url)

    def _repositories(self, repositories: Optional[Sequence[RepositorySpec]]) -> list[RepositoryConfig]:
        if repositories is None:
            return list(self._config.repositories)
        return [
            repository if isinstance(repository, RepositoryConfig) else self.new_default_repository(repository)
            for repository in repositories
        ]

    def _session(self, repositories: list[RepositoryConfig]) -> tuple[RepositoryClient, DownloadManager]:
        key = tuple(repository.base_url for repository in repositories)
        session = self._sessions.get(key)
        if session is None:
            client = RepositoryClient(self._config, repositories, transport=self._transport)
            downloads = DownloadManager(client, self._cache, max_workers=self._config.max_workers)
            session = (client, downloads)
            self._sessions[key] = session
        return session

    # =========================================================================
    # Resolution
    # =========================================================================

    async def collect(
        self,
        root_coordinates: Sequence[CoordinateSpec],
        repositories: Optional[Sequence[RepositorySpec]] = None,
        excludes: Optional[Sequence[str]] = None,
        *,
        cancellation: Optional[CancellationToken] = None,
    ) -> ResolutionResult:
        """Build the conflict-resolved dependency list without downloading.

        Raises:
            RuntimeError: If the resolver has not been initialized.
            MalformedCoordinateError: If a coordinate or exclusion is malformed.
            MissingDependencyError: If a required descriptor is missing.
            ResolutionCancelledError: If ``cancellation`` fires.
        """
        return await self._collect(self._config, root_coordinates, repositories, excludes, cancellation)

    async def resolve(
        self,
        root_coordinates: Sequence[CoordinateSpec],
        repositories: Optional[Sequence[RepositorySpec]] = None,
        excludes: Optional[Sequence[str]] = None,
        *,
        cancellation: Optional[CancellationToken] = None,
    ) -> list[ResolvedArtifact]:
        """Resolve roots and their transitive dependencies into local files.

        Args:
            root_coordinates: "group:artifact[:classifier]:version" strings
                or Coordinates.
            repositories: Repositories to query, in order. Plain URLs get a
                generated id. Defaults to ``config.repositories``.
            excludes: "group:artifact" patterns (``*`` allowed) pruned from
                the whole graph.
            cancellation: Token that aborts the resolution when fired.

        Returns:
            One ResolvedArtifact per resolved coordinate, roots first, in
            resolution order.

        Raises:
            RuntimeError: If the resolver has not been initialized.
            MalformedCoordinateError: If a coordinate or exclusion is malformed.
            MissingDependencyError: If a required descriptor is missing.
            PartialResolutionError: If any download failed.
            ResolutionCancelledError: If ``cancellation`` fires.
        """
        resolved_repositories = self._repositories(repositories)
        result = await self._collect(
            self._config,
            root_coordinates,
            resolved_repositories,
            excludes,
            cancellation,
        )
        _, downloads = self._session(resolved_repositories)
        artifacts = await downloads.materialize(result.coordinates, cancellation)

        self._logger.info(
            "resolution_completed",
            roots=[str(c) for c in root_coordinates],
            artifacts=len(artifacts),
            diagnostics=len(result.diagnostics),
        )
        return artifacts

    async def find_transitive_dependencies(
        self,
        group_id: str,
        artifact_id: str,
        version: str,
        classifier: Optional[str] = None,
        repositories: Optional[Sequence[RepositorySpec]] = None,
    ) -> list[tuple[Coordinate, Optional[str]]]:
        """Resolve one artifact with its compile/runtime dependencies.

        The artifact and every dependency are materialized through the same
        download manager that ``resolve`` uses.

        Returns:
            (coordinate, URL of the repository that served the artifact)
            pairs in resolution order, the artifact itself first. The URL is
            None for an artifact that was already cached.

        Raises:
            PartialResolutionError: If any download failed.
        """
        root = Coordinate(
            group_id=group_id,
            artifact_id=artifact_id,
            version=version,
            classifier=classifier or None,
        )
        resolved_repositories = self._repositories(repositories)
        config = self._config.model_copy(update={"scopes": [Scope.COMPILE, Scope.RUNTIME]})
        result = await self._collect(config, [root], resolved_repositories, None, None)

        _, downloads = self._session(resolved_repositories)
        artifacts = await downloads.materialize(result.coordinates)
        return [(artifact.coordinate, artifact.repository_url) for artifact in artifacts]

    async def _collect(
        self,
        config: ResolverConfig,
        root_coordinates: Sequence[CoordinateSpec],
        repositories: Optional[Sequence[RepositorySpec]],
        excludes: Optional[Sequence[str]],
        cancellation: Optional[CancellationToken],
    ) -> ResolutionResult:
        self._ensure_initialized()

        roots = [
            root if isinstance(root, Coordinate) else parse_coordinate(root)
            for root in root_coordinates
        ]
        exclusions = [parse_exclusion(pattern) for pattern in excludes or ()]
        client, _ = self._session(self._repositories(repositories))

        builder = DependencyGraphBuilder(client, config)
        return await builder.resolve(roots, exclusions, cancellation)

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError(
                "LibbyResolver is not initialized. "
                "Call 'await resolver.initialize()' or use 'async with LibbyResolver() as resolver:'"
            )
