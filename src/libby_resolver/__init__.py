"""
libby-resolver - Transitive Maven Dependency Resolution
=========================================================

Resolves Maven coordinates and their transitive runtime dependencies into
files in a local cache:

    coordinates → descriptors (POMs) → conflict-resolved graph → downloads

Architecture Layers (top to bottom):
    1. Facade          - LibbyResolver
    2. Resolution      - DependencyGraphBuilder, DownloadManager, RetryPolicy
    3. Repository      - RepositoryClient, transports, POM parsing
    4. Infrastructure  - FileSystemCache
    5. Core            - config, models, exceptions, versions

Quick Start:
    >>> from libby_resolver import LibbyResolver
    >>> async with LibbyResolver() as resolver:
    ...     artifacts = await resolver.resolve(["com.example:app:1.0"])
"""

__version__ = "0.1.0"

from libby_resolver.facade import LibbyResolver

__all__ = ["LibbyResolver", "__version__"]
