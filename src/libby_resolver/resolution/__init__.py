"""
libby_resolver.resolution - Resolution Layer
==============================================

    - CancellationToken:       caller-controlled abort signal
    - RetryPolicy:             bounded exponential backoff keyed by error code
    - DependencyGraphBuilder:  BFS traversal with nearest-wins mediation
    - DownloadManager:         concurrent, deduplicated materialization

Dependency Rule:
    resolution/ depends on core/ only. The RepositoryClient and LocalCache
    are injected, and imported for type checking only.
"""

from libby_resolver.resolution.cancellation import CancellationToken
from libby_resolver.resolution.retry import RetryPolicy
from libby_resolver.resolution.graph import DependencyGraphBuilder
from libby_resolver.resolution.download import DownloadManager

__all__ = [
    "CancellationToken",
    "RetryPolicy",
    "DependencyGraphBuilder",
    "DownloadManager",
]
