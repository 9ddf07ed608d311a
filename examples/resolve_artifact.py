"""
Resolve Artifact Example - Download From Maven Central
========================================================

Resolves one or more coordinates against the configured repositories
(Maven Central unless ``libby.yaml`` or LIBBY_* environment variables say
otherwise) and prints where every file ended up.

A CancellationToken enforces an overall time limit: when it fires, every
outstanding request is aborted and ResolutionCancelledError is raised.
Files already committed to the cache stay there.

Usage:
    python examples/resolve_artifact.py com.google.guava:guava:33.0.0-jre
    python examples/resolve_artifact.py org.slf4j:slf4j-api:2.0.9 --exclude org.slf4j:*
    LIBBY_CACHE__DIRECTORY=/tmp/libby python examples/resolve_artifact.py junit:junit:4.13.2
"""

from __future__ import annotations

import argparse
import asyncio

from libby_resolver import LibbyResolver
from libby_resolver.core.config import load_config
from libby_resolver.core.exceptions import ResolverError
from libby_resolver.resolution.cancellation import CancellationToken


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Resolve Maven coordinates into the local cache.")
    parser.add_argument("coordinates", nargs="+", help="group:artifact[:classifier]:version")
    parser.add_argument("--exclude", action="append", default=[], help="group:artifact pattern to prune")
    parser.add_argument("--repository", action="append", default=None, help="Repository URL (repeatable)")
    parser.add_argument("--config", default=None, help="Path to a libby.yaml file")
    parser.add_argument("--timeout", type=float, default=120.0, help="Overall time limit in seconds")
    return parser.parse_args()


async def main() -> int:
    args = parse_args()
    config = load_config(args.config)
    token = CancellationToken()

    async with LibbyResolver(config) as resolver:
        loop = asyncio.get_running_loop()
        timer = loop.call_later(args.timeout, token.cancel, f"time limit of {args.timeout}s reached")
        try:
            artifacts = await resolver.resolve(
                args.coordinates,
                repositories=args.repository,
                excludes=args.exclude,
                cancellation=token,
            )
        except ResolverError as exc:
            print(f"Resolution failed [{exc.error_code}]: {exc.message}")
            return 1
        finally:
            timer.cancel()

    print(f"Resolved {len(artifacts)} artifacts into {config.cache.directory}")
    print("-" * 60)
    for artifact in artifacts:
        source = "cache" if artifact.from_cache else artifact.repository_url
        print(f"{artifact.coordinate.gav:<50} {source}")
        print(f"    {artifact.path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
