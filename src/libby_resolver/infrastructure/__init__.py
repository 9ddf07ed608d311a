"""
libby_resolver.infrastructure - Storage Layer
===============================================

    - LocalCache (ABC):  path-addressed artifact cache interface
    - FileSystemCache:   Maven-layout directory with checksum sidecars
    - CacheEntry:        a complete (file + checksum) entry

Usage:
    from libby_resolver.infrastructure import FileSystemCache
"""

from libby_resolver.infrastructure.cache import CacheEntry, FileSystemCache, LocalCache

__all__ = [
    "CacheEntry",
    "LocalCache",
    "FileSystemCache",
]
