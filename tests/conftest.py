"""
Shared Test Fixtures for libby-resolver
=========================================

Reusable pytest fixtures, organized by layer:

    1. Configuration fixtures
    2. Repository fixtures (InMemoryTransport, RepositoryClient)
    3. Infrastructure fixtures (FileSystemCache)
    4. Resolution fixtures (graph builder, download manager)
    5. Facade fixtures (LibbyResolver)

Every fixture works offline: repositories are InMemoryTransport instances
and the cache lives under pytest's tmp_path.
"""

from __future__ import annotations

import pytest

from libby_resolver.core.config import (
    CacheConfig,
    RepositoryConfig,
    ResolverConfig,
    RetryConfig,
)
from libby_resolver.facade import LibbyResolver
from libby_resolver.infrastructure.cache import FileSystemCache
from libby_resolver.repository.client import RepositoryClient
from libby_resolver.repository.mock import DEFAULT_BASE_URL, InMemoryTransport
from libby_resolver.resolution.download import DownloadManager
from libby_resolver.resolution.graph import DependencyGraphBuilder


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture
def repository() -> RepositoryConfig:
    """The single in-memory repository every fixture points at."""
    return RepositoryConfig(id="memory", url=DEFAULT_BASE_URL)


@pytest.fixture
def config(tmp_path, repository) -> ResolverConfig:
    """Resolver configuration with an isolated cache and instant retries."""
    return ResolverConfig(
        repositories=[repository],
        cache=CacheConfig(directory=tmp_path / "cache"),
        retry=RetryConfig(max_attempts=3, initial_delay=0.0, max_delay=0.01),
    )


# =============================================================================
# Repository
# =============================================================================

@pytest.fixture
def transport() -> InMemoryTransport:
    """Fresh, empty in-memory repository."""
    return InMemoryTransport()


@pytest.fixture
def client(config, transport) -> RepositoryClient:
    """RepositoryClient reading from the in-memory repository."""
    return RepositoryClient(config, transport=transport)


# =============================================================================
# Infrastructure
# =============================================================================

@pytest.fixture
def cache(tmp_path) -> FileSystemCache:
    """FileSystemCache in a temporary directory."""
    return FileSystemCache(tmp_path / "cache")


# =============================================================================
# Resolution
# =============================================================================

@pytest.fixture
def builder(client, config) -> DependencyGraphBuilder:
    return DependencyGraphBuilder(client, config)


@pytest.fixture
def downloads(client, cache) -> DownloadManager:
    return DownloadManager(client, cache, max_workers=4)


# =============================================================================
# Facade
# =============================================================================

@pytest.fixture
async def resolver(config, transport, cache):
    """Initialized LibbyResolver over the in-memory repository."""
    async with LibbyResolver(config, transport=transport, cache=cache) as instance:
        yield instance
