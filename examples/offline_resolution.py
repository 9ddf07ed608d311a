"""
Offline Resolution Example - Resolve Against an In-Memory Repository
======================================================================

This example builds a small repository in memory and resolves a project
against it, without any network access:

    com.example:app:1.0
    ├── com.example:web:2.1
    │   ├── com.example:json:1.4
    │   └── com.example:util:1.0      (loses to the nearer util:1.2)
    ├── com.example:util:1.2
    └── com.example:app-tests:1.0     (test scope, pruned)

It prints the collected graph with its diagnostics, then materializes the
artifacts into a temporary cache directory and resolves a second time to
show that everything comes from the cache.

Usage:
    python examples/offline_resolution.py
"""

from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path

from libby_resolver import LibbyResolver
from libby_resolver.core.config import CacheConfig, RepositoryConfig, ResolverConfig
from libby_resolver.repository.mock import InMemoryTransport


def build_repository() -> InMemoryTransport:
    """Publish the example project into a fresh in-memory repository."""
    transport = InMemoryTransport()
    transport.publish(
        "com.example:app:1.0",
        dependencies=[
            "com.example:web:2.1",
            "com.example:util:1.2",
            {"coordinate": "com.example:app-tests:1.0", "scope": "test"},
        ],
    )
    transport.publish("com.example:web:2.1", dependencies=["com.example:json:1.4", "com.example:util:1.0"])
    transport.publish("com.example:json:1.4")
    transport.publish("com.example:util:1.0")
    transport.publish("com.example:util:1.2")
    return transport


async def main() -> None:
    """Collect, materialize, and materialize again."""
    transport = build_repository()

    with tempfile.TemporaryDirectory() as cache_dir:
        config = ResolverConfig(
            repositories=[RepositoryConfig(id="memory", url=transport.base_url)],
            cache=CacheConfig(directory=Path(cache_dir)),
        )

        async with LibbyResolver(config, transport=transport) as resolver:
            result = await resolver.collect(["com.example:app:1.0"])

            print("Resolved Graph")
            print("-" * 40)
            for coordinate in result.coordinates:
                print(f"  {coordinate}")
            print()
            print("Diagnostics")
            print("-" * 40)
            for diagnostic in result.diagnostics:
                print(f"  [{diagnostic.kind.value}] {diagnostic.message}")
            print()

            artifacts = await resolver.resolve(["com.example:app:1.0"])
            print("First Run")
            print("-" * 40)
            for artifact in artifacts:
                print(f"  {artifact.path.relative_to(cache_dir)}  ({artifact.checksum[:12]})")
            print()

            transport.reset_history()
            again = await resolver.resolve(["com.example:app:1.0"])
            print("Second Run")
            print("-" * 40)
            print(f"  from cache : {sum(1 for a in again if a.from_cache)} of {len(again)}")
            print(f"  jar fetches: {sum(1 for url in transport.call_history if url.endswith('.jar'))}")


if __name__ == "__main__":
    asyncio.run(main())
