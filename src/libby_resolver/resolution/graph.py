"""
libby_resolver.resolution.graph - Dependency Graph Builder
============================================================

Builds the transitive closure of a set of root coordinates and flattens it
into one conflict-resolved, ordered list.

Traversal:
    Level-by-level breadth-first search, iterative (no recursion):

        level 0:  roots
        level 1:  their dependencies
        level 2:  ...

    For each level the builder first joins all outstanding I/O:

        1. descriptors of every node in the level     (concurrent, bounded)
        2. metadata for version ranges / LATEST / RELEASE  (concurrent)

    and only then walks the children strictly in queue order. Conflict
    decisions therefore never depend on which request finished first.

Conflict Mediation (nearest wins):
    A table maps each versionless key (group, artifact, classifier,
    packaging) to its winning coordinate. BFS reaches a key at its smallest
    depth first, and within one depth in declaration order, so "first seen
    wins" is exactly "shallowest wins, ties to the first declared".
    Losing versions are reported as version_conflict diagnostics.

    Under ConflictPolicy.HIGHEST the traversal is repeated with the highest
    version seen for every key pinned, until the pins stop changing.

Pruning, applied to each child in this order:
    scope filter → optional filter → exclusions → cycle check → mediation

    Exclusions accumulate down the tree: a node carries the global
    excludes plus those declared on every edge above it. A child whose
    group:artifact already appears on the node's path closes a cycle; the
    edge is dropped and one cycle_detected diagnostic recorded.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import TYPE_CHECKING, Optional, Sequence

import structlog

from libby_resolver.core.config import ResolverConfig
from libby_resolver.core.enums import ConflictPolicy, DiagnosticKind, Scope
from libby_resolver.core.exceptions import MissingDependencyError, NotFoundError
from libby_resolver.core.models import (
    Coordinate,
    DependencyDeclaration,
    DependencyNode,
    Diagnostic,
    Exclusion,
    ResolutionResult,
)
from libby_resolver.core.versions import max_version, needs_metadata, select_version
from libby_resolver.resolution.cancellation import CancellationToken, guarded

if TYPE_CHECKING:
    from libby_resolver.repository.client import RepositoryClient
    from libby_resolver.repository.pom import ProjectDescriptor


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


Key = tuple[str, str, Optional[str], str]

# Bound on HIGHEST-policy rounds; pins only ever grow, so this is rarely hit
_MAX_HIGHEST_ROUNDS = 16


class _Traversal:
    """Mutable state of one breadth-first pass."""

    def __init__(self, pins: dict[Key, str]) -> None:
        self.pins = pins
        self.winners: dict[Key, Coordinate] = {}
        self.order: list[Coordinate] = []
        self.dropped: set[Key] = set()
        self.diagnostics: list[Diagnostic] = []
        self.repositories: dict[str, str] = {}
        self.management: dict[Key, str] = {}
        self.requested: dict[Key, set[str]] = defaultdict(set)
        self.reported_cycles: set[tuple[str, str]] = set()

    def result(self) -> ResolutionResult:
        coordinates = [c for c in self.order if c.key not in self.dropped]
        return ResolutionResult(
            coordinates=coordinates,
            diagnostics=self.diagnostics,
            repositories={
                c.gav: self.repositories[c.gav] for c in coordinates if c.gav in self.repositories
            },
        )


class DependencyGraphBuilder:
    """Resolves root coordinates into a flat, conflict-free coordinate list.

    Example:
        >>> builder = DependencyGraphBuilder(client, config)
        >>> result = await builder.resolve([parse_coordinate("com.example:app:1.0")])
        >>> [str(c) for c in result.coordinates]
        ['com.example:app:1.0', 'com.example:lib:2.0', 'com.example:util:1.5']
    """

    def __init__(self, client: RepositoryClient, config: ResolverConfig) -> None:
        self._client = client
        self._config = config
        self._scopes = frozenset(config.scopes)
        self._logger = logger.bind(component="graph_builder")

    async def resolve(
        self,
        roots: Sequence[Coordinate],
        excludes: Sequence[Exclusion] = (),
        cancellation: Optional[CancellationToken] = None,
    ) -> ResolutionResult:
        """Build the graph under ``roots`` and flatten it.

        Args:
            roots: Root coordinates (depth 0), in priority order.
            excludes: group:artifact patterns pruned from the whole graph.
            cancellation: Aborts outstanding fetches when fired.

        Returns:
            ResolutionResult with roots first, then dependencies in
            first-resolution order.

        Raises:
            MissingDependencyError: If a non-optional dependency has no
                descriptor in any repository.
            ResolutionCancelledError: If ``cancellation`` fires.
        """
        semaphore = asyncio.Semaphore(self._config.max_workers)
        pins: dict[Key, str] = {}
        requested: dict[Key, set[str]] = defaultdict(set)

        traversal = await self._traverse(roots, excludes, pins, semaphore, cancellation)

        if self._config.conflict_policy == ConflictPolicy.HIGHEST:
            for _ in range(_MAX_HIGHEST_ROUNDS):
                for key, versions in traversal.requested.items():
                    requested[key] |= versions
                highest = {
                    key: max_version(versions)
                    for key, versions in requested.items()
                    if len(versions) > 1
                }
                if highest == pins:
                    break
                pins = highest
                self._logger.debug("highest_policy_round", pinned=len(pins))
                traversal = await self._traverse(roots, excludes, pins, semaphore, cancellation)
            else:
                self._logger.warning("highest_policy_not_converged", rounds=_MAX_HIGHEST_ROUNDS)

        result = traversal.result()
        self._logger.info(
            "graph_resolved",
            roots=len(roots),
            coordinates=len(result.coordinates),
            diagnostics=len(result.diagnostics),
        )
        return result

    # =========================================================================
    # Breadth-First Pass
    # =========================================================================

    async def _traverse(
        self,
        roots: Sequence[Coordinate],
        excludes: Sequence[Exclusion],
        pins: dict[Key, str],
        semaphore: asyncio.Semaphore,
        cancellation: Optional[CancellationToken],
    ) -> _Traversal:
        state = _Traversal(pins)
        global_exclusions = frozenset(excludes)

        # --- Level 0: roots, ranges settled first ---
        root_versions = await asyncio.gather(
            *(self._select(root, root.version or "", False, semaphore, cancellation) for root in roots)
        )
        level: list[DependencyNode] = []
        for root, version in zip(roots, root_versions):
            coordinate = root.with_version(version)
            if self._admit(state, coordinate, root.version or "", [coordinate.ga]):
                level.append(
                    DependencyNode(
                        coordinate=state.winners[coordinate.key],
                        depth=0,
                        path=(coordinate.ga,),
                        exclusions=global_exclusions,
                    )
                )

        while level:
            if cancellation is not None:
                cancellation.raise_if_cancelled()

            descriptors = await asyncio.gather(
                *(self._descriptor(state, node, semaphore, cancellation) for node in level)
            )

            if level[0].depth == 0:
                for descriptor in descriptors:
                    if descriptor is None:
                        continue
                    for managed in descriptor.dependency_management:
                        state.management.setdefault(managed.coordinate.key, managed.coordinate.version)

            # --- Collect candidate edges in declaration order ---
            edges: list[tuple[DependencyNode, DependencyDeclaration]] = []
            for node, descriptor in zip(level, descriptors):
                if descriptor is None:
                    continue
                for dependency in descriptor.dependencies:
                    if self._follows(state, node, dependency):
                        edges.append((node, dependency))

            # --- Settle version requirements before any mediation ---
            versions = await asyncio.gather(
                *(
                    self._select(
                        dependency.coordinate,
                        self._requirement(state, node, dependency),
                        dependency.optional,
                        semaphore,
                        cancellation,
                    )
                    for node, dependency in edges
                )
            )

            # --- Mediation, strictly in queue order ---
            next_level: list[DependencyNode] = []
            for (node, dependency), version in zip(edges, versions):
                if version is None:
                    self._optional_missing(state, node, dependency.coordinate)
                    continue

                coordinate = dependency.coordinate.with_version(version)
                path = [*node.path, coordinate.ga]
                if not self._admit(state, coordinate, dependency.coordinate.version or "", path):
                    continue

                child = DependencyNode(
                    coordinate=state.winners[coordinate.key],
                    depth=node.depth + 1,
                    scope=dependency.scope,
                    optional=dependency.optional,
                    path=tuple(path),
                    exclusions=node.exclusions | frozenset(dependency.exclusions),
                )
                node.children.append(child)
                next_level.append(child)

            level = next_level

        return state

    def _follows(self, state: _Traversal, node: DependencyNode, dependency: DependencyDeclaration) -> bool:
        """Scope, optional, exclusion and cycle pruning for one edge."""
        coordinate = dependency.coordinate
        if dependency.scope not in self._scopes or dependency.scope == Scope.IMPORT:
            return False
        if dependency.optional and not self._config.include_optional:
            return False
        if node.is_excluded(coordinate):
            self._logger.debug("dependency_excluded", parent=str(node.coordinate), dependency=coordinate.ga)
            return False
        if node.closes_cycle(coordinate):
            edge = (node.coordinate.ga, coordinate.ga)
            if edge not in state.reported_cycles:
                state.reported_cycles.add(edge)
                cycle = [*node.path, coordinate.ga]
                message = "Dependency cycle: " + " -> ".join(cycle)
                state.diagnostics.append(
                    Diagnostic(
                        kind=DiagnosticKind.CYCLE_DETECTED,
                        coordinate=str(coordinate),
                        message=message,
                        path=cycle,
                    )
                )
                self._logger.warning("cycle_detected", path=cycle)
            return False
        return True

    def _requirement(self, state: _Traversal, node: DependencyNode, dependency: DependencyDeclaration) -> str:
        """Declared version, overridden by root management below the roots' own edges."""
        requirement = dependency.coordinate.version or ""
        if node.depth > 0:
            requirement = state.management.get(dependency.coordinate.key, requirement)
        return requirement

    def _admit(self, state: _Traversal, coordinate: Coordinate, declared: str, path: list[str]) -> bool:
        """Record ``coordinate`` as winner unless its key is already taken."""
        key = coordinate.key
        state.requested[key].add(coordinate.version)

        pinned = state.pins.get(key)
        if pinned is not None and pinned != coordinate.version:
            self._conflict(state, coordinate, pinned, path)
            coordinate = coordinate.with_version(pinned)

        winner = state.winners.get(key)
        if winner is not None:
            if winner.version != coordinate.version and pinned is None:
                self._conflict(state, coordinate, winner.version, path)
            return False

        state.winners[key] = coordinate
        state.order.append(coordinate)
        return True

    def _conflict(self, state: _Traversal, loser: Coordinate, version: Optional[str], path: list[str]) -> None:
        message = f"{loser} omitted for conflict with {version}"
        state.diagnostics.append(
            Diagnostic(
                kind=DiagnosticKind.VERSION_CONFLICT,
                coordinate=str(loser),
                message=message,
                path=path,
            )
        )
        self._logger.debug("version_conflict", omitted=str(loser), winner_version=version)

    def _optional_missing(self, state: _Traversal, node: DependencyNode, coordinate: Coordinate) -> None:
        path = [*node.path, coordinate.ga]
        state.diagnostics.append(
            Diagnostic(
                kind=DiagnosticKind.OPTIONAL_MISSING,
                coordinate=str(coordinate),
                message=f"Optional dependency {coordinate} not found, skipped",
                path=path,
            )
        )
        self._logger.info("optional_dependency_missing", coordinate=str(coordinate), path=path)

    # =========================================================================
    # I/O
    # =========================================================================

    async def _select(
        self,
        coordinate: Coordinate,
        requirement: str,
        optional: bool,
        semaphore: asyncio.Semaphore,
        cancellation: Optional[CancellationToken],
    ) -> Optional[str]:
        """Concrete version for a requirement; None for a missing optional dependency."""
        if not needs_metadata(requirement):
            return requirement

        try:
            async with semaphore:
                available = await guarded(
                    self._client.fetch_metadata(coordinate.versionless(), cancellation),
                    cancellation,
                )
            return select_version(requirement, available, coordinate=coordinate.ga)
        except NotFoundError as exc:
            if optional:
                return None
            raise MissingDependencyError(
                message=f"No version of {coordinate.ga} satisfies '{requirement}'",
                coordinate=f"{coordinate.ga}:{requirement}",
                details={"cause": exc.to_dict()},
            ) from exc

    async def _descriptor(
        self,
        state: _Traversal,
        node: DependencyNode,
        semaphore: asyncio.Semaphore,
        cancellation: Optional[CancellationToken],
    ) -> Optional[ProjectDescriptor]:
        try:
            async with semaphore:
                descriptor = await guarded(
                    self._client.fetch_descriptor(node.coordinate, cancellation),
                    cancellation,
                )
        except NotFoundError as exc:
            if node.optional:
                state.dropped.add(node.coordinate.key)
                parent_path = list(node.path[:-1])
                state.diagnostics.append(
                    Diagnostic(
                        kind=DiagnosticKind.OPTIONAL_MISSING,
                        coordinate=str(node.coordinate),
                        message=f"Optional dependency {node.coordinate} has no descriptor, skipped",
                        path=[*parent_path, node.coordinate.ga],
                    )
                )
                self._logger.info("optional_dependency_missing", coordinate=str(node.coordinate))
                return None
            raise MissingDependencyError(
                message=f"No descriptor for {node.coordinate} in any repository",
                coordinate=str(node.coordinate),
                path=list(node.path),
                details={"cause": exc.to_dict()},
            ) from exc

        if descriptor.repository_url is not None:
            state.repositories[node.coordinate.gav] = descriptor.repository_url
        return descriptor
