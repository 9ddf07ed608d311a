"""
libby_resolver.repository.client - Repository Client
======================================================

RepositoryClient is the only component that reads from Maven repositories.
It serves three kinds of requests:

    fetch_metadata(g:a)      → available versions (maven-metadata.xml)
    fetch_artifact(g:a:v)    → verified artifact bytes
    fetch_descriptor(g:a:v)  → effective project descriptor (POM)

Repository Order:
    Repositories are queried in configuration order and the first one that
    can serve a file wins. A repository that keeps failing (after retries)
    is skipped; its error is only raised when no later repository has the
    file either.

        for repository in repositories:
            fetch ── bytes ──→ verify checksum ──→ done
              │
              ├── None (not here) ─────────→ next repository
              └── NetworkError (exhausted) ─→ remember, next repository

Effective Descriptors:
    A raw POM is not enough to know an artifact's dependencies. The client
    builds the effective model the way Maven does:

        1. Walk the <parent> chain (bounded, cycle-checked).
        2. Merge properties parent-first, add project.* / pom.* builtins.
        3. Merge dependency management (child first) and expand
           scope=import BOMs.
        4. Merge dependencies (child declarations override parent ones).
        5. Interpolate ${...} placeholders.
        6. Fill missing versions/scopes from dependency management.

    Descriptors are memoized per client; concurrent requests for the same
    g:a:v share one in-flight build. Shared builds run without any caller's
    CancellationToken; a token only aborts its own caller's wait.
"""

from __future__ import annotations

import asyncio
import hashlib
from typing import Awaitable, Callable, Optional

import structlog
from pydantic import BaseModel

from libby_resolver.core.config import RepositoryConfig, ResolverConfig
from libby_resolver.core.enums import ChecksumPolicy, Scope
from libby_resolver.core.exceptions import (
    ChecksumMismatchError,
    InvalidDescriptorError,
    NetworkError,
    NotFoundError,
)
from libby_resolver.core.models import Coordinate, DependencyDeclaration
from libby_resolver.core.versions import sort_versions
from libby_resolver.repository.layout import (
    artifact_path,
    checksum_path,
    extension_for_type,
    metadata_path,
    pom_path,
)
from libby_resolver.repository.pom import (
    Pom,
    PomDependency,
    ProjectDescriptor,
    parse_metadata,
    parse_pom,
)
from libby_resolver.repository.transport import Transport, create_transport, transport_kind
from libby_resolver.resolution.cancellation import CancellationToken, guarded
from libby_resolver.resolution.retry import RetryPolicy


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


ManagementKey = tuple[str, str, Optional[str], str]


class FetchedArtifact(BaseModel):
    """Verified bytes of one repository file."""

    data: bytes
    checksum: str
    repository_url: str


def _descriptor_key(coordinate: Coordinate) -> str:
    return f"{coordinate.group_id}:{coordinate.artifact_id}:{coordinate.version}"


# =============================================================================
# Repository Client
# =============================================================================
class RepositoryClient:
    """Fetches metadata, artifacts and descriptors from ordered repositories.

    Attributes:
        repositories: Repositories in query order.

    Example:
        >>> client = RepositoryClient(config, transport=InMemoryTransport())
        >>> descriptor = await client.fetch_descriptor(parse_coordinate("com.example:app:1.0"))
        >>> [str(d.coordinate) for d in descriptor.dependencies]
        ['com.example:lib:2.0']
    """

    def __init__(
        self,
        config: ResolverConfig,
        repositories: Optional[list[RepositoryConfig]] = None,
        *,
        transport: Optional[Transport] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self._config = config
        self.repositories = list(repositories if repositories is not None else config.repositories)
        self._transport = transport
        self._transports: dict[str, Transport] = {}
        self._retry = retry_policy or RetryPolicy.from_config(config.retry)

        # g:a:v → in-flight or finished descriptor build
        self._descriptors: dict[str, asyncio.Task[ProjectDescriptor]] = {}
        # g:a:v → in-flight or finished raw POM fetch
        self._raw_poms: dict[str, asyncio.Task[tuple[Pom, str]]] = {}
        self._versions: dict[str, list[str]] = {}
        self._lock = asyncio.Lock()

        self._logger = logger.bind(component="repository_client")

    # =========================================================================
    # Transports
    # =========================================================================

    def _transport_for(self, repository: RepositoryConfig) -> Transport:
        if self._transport is not None:
            return self._transport
        kind = transport_kind(repository.url)
        if kind not in self._transports:
            self._transports[kind] = create_transport(repository.url, self._config.http)
        return self._transports[kind]

    async def close(self) -> None:
        """Close the transports this client created (injected ones are left open)."""
        for transport in self._transports.values():
            await transport.close()
        self._transports.clear()

    # =========================================================================
    # Low-Level Fetching
    # =========================================================================

    def _digest(self, data: bytes) -> str:
        return hashlib.new(self._config.checksum_algorithm.value, data).hexdigest()

    async def _fetch_verified(
        self,
        repository: RepositoryConfig,
        path: str,
        coordinate: str,
    ) -> Optional[tuple[bytes, str]]:
        """Fetch one file plus its published checksum and compare them."""
        transport = self._transport_for(repository)
        url = repository.base_url + path

        data = await transport.fetch(url, repository.credentials)
        if data is None:
            return None

        actual = self._digest(data)
        if self._config.checksum_policy == ChecksumPolicy.IGNORE:
            return data, actual

        algorithm = self._config.checksum_algorithm
        published = await transport.fetch(checksum_path(url, algorithm), repository.credentials)
        if published is None:
            if self._config.checksum_policy == ChecksumPolicy.FAIL:
                raise ChecksumMismatchError(
                    message=f"No published {algorithm.value} checksum for {url}",
                    coordinate=coordinate,
                    actual=actual,
                    details={"url": url},
                )
            self._logger.warning("checksum_missing", url=url, algorithm=algorithm.value)
            return data, actual

        # Checksum files may carry the file name after the digest
        tokens = published.decode("utf-8", errors="replace").split()
        expected = tokens[0].lower() if tokens else ""
        if expected != actual:
            raise ChecksumMismatchError(
                message=f"Checksum mismatch for {url}",
                coordinate=coordinate,
                expected=expected,
                actual=actual,
                details={"url": url},
            )
        return data, actual

    async def _first_repository(
        self,
        fetch: Callable[[RepositoryConfig], Awaitable[Optional[tuple[bytes, str]]]],
        coordinate: str,
        what: str,
        cancellation: Optional[CancellationToken],
    ) -> tuple[bytes, str, RepositoryConfig]:
        """Try every repository in order until one serves the file."""
        last_error: Optional[NetworkError] = None

        for repository in self.repositories:
            try:
                result = await self._retry.run(
                    lambda: fetch(repository),
                    cancellation=cancellation,
                    context={"coordinate": coordinate, "repository": repository.id},
                )
            except NetworkError as exc:
                self._logger.warning(
                    "repository_failed",
                    repository=repository.id,
                    coordinate=coordinate,
                    error_code=exc.error_code,
                    error=exc.message,
                )
                last_error = exc
                continue

            if result is not None:
                data, checksum = result
                return data, checksum, repository
            self._logger.debug("not_in_repository", repository=repository.id, coordinate=coordinate, file=what)

        if last_error is not None:
            raise last_error
        raise NotFoundError(
            message=f"{what} of {coordinate} not found in any repository",
            coordinate=coordinate,
            details={"repositories": [r.base_url for r in self.repositories]},
        )

    # =========================================================================
    # Metadata
    # =========================================================================

    async def fetch_metadata(
        self,
        coordinate: Coordinate,
        cancellation: Optional[CancellationToken] = None,
    ) -> list[str]:
        """Return the versions of a group:artifact, ascending.

        The first repository with a non-empty version list wins.

        Raises:
            NotFoundError: If no repository lists any version.
        """
        ga = coordinate.ga
        if ga in self._versions:
            return list(self._versions[ga])

        path = metadata_path(coordinate)
        last_error: Optional[NetworkError] = None
        for repository in self.repositories:
            transport = self._transport_for(repository)
            url = repository.base_url + path
            try:
                data = await self._retry.run(
                    lambda: transport.fetch(url, repository.credentials),
                    cancellation=cancellation,
                    context={"coordinate": ga, "repository": repository.id},
                )
            except NetworkError as exc:
                last_error = exc
                continue
            if data is None:
                continue

            metadata = parse_metadata(data, source=ga)
            if metadata.versions:
                versions = sort_versions(metadata.versions)
                self._versions[ga] = versions
                self._logger.debug("metadata_fetched", coordinate=ga, versions=len(versions))
                return list(versions)

        if last_error is not None:
            raise last_error
        raise NotFoundError(
            message=f"No versions of {ga} listed in any repository",
            coordinate=ga,
        )

    # =========================================================================
    # Artifacts
    # =========================================================================

    async def fetch_artifact(
        self,
        coordinate: Coordinate,
        cancellation: Optional[CancellationToken] = None,
    ) -> FetchedArtifact:
        """Download and verify an artifact file.

        Raises:
            NotFoundError: If no repository has the file.
            NetworkError: If the repositories that may have it kept failing.
            ChecksumMismatchError: If the content stays corrupt after the
                checksum retry.
        """
        path = artifact_path(coordinate)
        data, checksum, repository = await self._first_repository(
            lambda repository: self._fetch_verified(repository, path, coordinate.gav),
            coordinate.gav,
            "Artifact",
            cancellation,
        )
        self._logger.info(
            "artifact_fetched",
            coordinate=coordinate.gav,
            repository=repository.id,
            size_bytes=len(data),
        )
        return FetchedArtifact(data=data, checksum=checksum, repository_url=repository.base_url)

    # =========================================================================
    # Descriptors
    # =========================================================================

    async def _memoized(self, table: dict, key: str, factory: Callable[[], Awaitable]) -> asyncio.Task:
        async with self._lock:
            task = table.get(key)
            if task is None:
                task = asyncio.ensure_future(factory())
                table[key] = task

                def _forget_failure(done: asyncio.Task) -> None:
                    if done.cancelled() or done.exception() is not None:
                        table.pop(key, None)

                task.add_done_callback(_forget_failure)
        return task

    async def _load_pom(self, coordinate: Coordinate) -> tuple[Pom, str]:
        key = _descriptor_key(coordinate)

        async def load() -> tuple[Pom, str]:
            path = pom_path(coordinate)
            data, _, repository = await self._first_repository(
                lambda repository: self._fetch_verified(repository, path, key),
                key,
                "Descriptor",
                None,
            )
            return parse_pom(data, source=key), repository.base_url

        task = await self._memoized(self._raw_poms, key, load)
        return await asyncio.shield(task)

    async def fetch_descriptor(
        self,
        coordinate: Coordinate,
        cancellation: Optional[CancellationToken] = None,
    ) -> ProjectDescriptor:
        """Return the effective descriptor of a versioned coordinate.

        The build is shared by every caller asking for the same coordinate,
        so it runs without any caller's token. ``cancellation`` only aborts
        this caller's wait; the build finishes and stays memoized.

        Raises:
            NotFoundError: If no repository has the POM.
            InvalidDescriptorError: If the POM or its parent chain is broken.
            ResolutionCancelledError: If ``cancellation`` fires while waiting.
        """
        if cancellation is not None:
            cancellation.raise_if_cancelled()
        key = _descriptor_key(coordinate)
        task = await self._memoized(
            self._descriptors,
            key,
            lambda: self._build_descriptor(coordinate, lineage=()),
        )
        return await guarded(asyncio.shield(task), cancellation)

    async def _parent_chain(self, coordinate: Coordinate) -> list[tuple[Pom, str]]:
        """The POM of ``coordinate`` followed by its ancestors, child first."""
        chain = [await self._load_pom(coordinate)]
        seen = {_descriptor_key(coordinate)}

        while chain[-1][0].parent is not None:
            parent = chain[-1][0].parent.to_coordinate()
            parent_key = _descriptor_key(parent)
            if parent_key in seen:
                raise InvalidDescriptorError(
                    message=f"Parent cycle through {parent_key}",
                    coordinate=_descriptor_key(coordinate),
                    error_code="PARENT_CYCLE",
                )
            if len(chain) > self._config.max_parent_depth:
                raise InvalidDescriptorError(
                    message=f"Parent chain longer than {self._config.max_parent_depth}",
                    coordinate=_descriptor_key(coordinate),
                    error_code="PARENT_DEPTH_EXCEEDED",
                )
            seen.add(parent_key)
            try:
                chain.append(await self._load_pom(parent))
            except NotFoundError as exc:
                raise InvalidDescriptorError(
                    message=f"Parent {parent_key} not found",
                    coordinate=_descriptor_key(coordinate),
                    error_code="MISSING_PARENT",
                ) from exc
        return chain

    @staticmethod
    def _properties(coordinate: Coordinate, chain: list[tuple[Pom, str]]) -> dict[str, str]:
        own = chain[0][0]
        properties: dict[str, str] = {}
        for pom, _ in reversed(chain):
            properties.update(pom.properties)

        builtins = {
            "groupId": own.effective_group_id or coordinate.group_id,
            "artifactId": own.artifact_id,
            "version": own.effective_version or coordinate.version or "",
            "packaging": own.packaging,
        }
        if own.parent is not None:
            builtins["parent.groupId"] = own.parent.group_id
            builtins["parent.artifactId"] = own.parent.artifact_id
            builtins["parent.version"] = own.parent.version
        for name, value in builtins.items():
            properties[f"project.{name}"] = value
            properties[f"pom.{name}"] = value
        return properties

    async def _build_descriptor(
        self,
        coordinate: Coordinate,
        lineage: tuple[str, ...],
    ) -> ProjectDescriptor:
        key = _descriptor_key(coordinate)
        chain = await self._parent_chain(coordinate)
        properties = self._properties(coordinate, chain)

        # --- Dependency management: child first, then ancestors ---
        declared: list[PomDependency] = []
        imports: list[PomDependency] = []
        for pom, _ in chain:
            for entry in pom.dependency_management:
                entry = entry.interpolated(properties)
                if entry.scope == Scope.IMPORT.value and entry.type == "pom":
                    imports.append(entry)
                else:
                    declared.append(entry)

        management: dict[ManagementKey, PomDependency] = {}
        for entry in declared:
            management.setdefault(entry.management_key, entry)
        for entry in imports:
            for managed in await self._import_bom(entry, key, lineage + (key,)):
                management.setdefault(managed.management_key, managed)

        # --- Dependencies: child declarations override inherited ones ---
        dependencies: dict[ManagementKey, PomDependency] = {}
        for pom, _ in chain:
            for dependency in pom.dependencies:
                dependency = dependency.interpolated(properties)
                dependencies.setdefault(dependency.management_key, dependency)

        effective_dependencies = []
        for dependency in dependencies.values():
            declaration = self._declaration(dependency, management, key)
            if declaration is not None:
                effective_dependencies.append(declaration)

        effective_management = []
        for entry in management.values():
            if entry.version is None:
                continue
            declaration = self._declaration(entry, {}, key)
            if declaration is not None:
                effective_management.append(declaration)

        descriptor = ProjectDescriptor(
            coordinate=coordinate,
            packaging=chain[0][0].packaging,
            properties=properties,
            dependencies=effective_dependencies,
            dependency_management=effective_management,
            repository_url=chain[0][1],
        )
        self._logger.debug(
            "descriptor_built",
            coordinate=key,
            parents=len(chain) - 1,
            dependencies=len(descriptor.dependencies),
            managed=len(descriptor.dependency_management),
        )
        return descriptor

    async def _import_bom(
        self,
        entry: PomDependency,
        importer: str,
        lineage: tuple[str, ...],
    ) -> list[PomDependency]:
        """Managed entries contributed by a scope=import BOM."""
        if entry.version is None:
            self._logger.warning("bom_without_version", coordinate=importer, bom=f"{entry.group_id}:{entry.artifact_id}")
            return []

        bom = Coordinate(
            group_id=entry.group_id,
            artifact_id=entry.artifact_id,
            version=entry.version,
            packaging="pom",
        )
        bom_key = _descriptor_key(bom)
        if bom_key in lineage or len(lineage) > self._config.max_parent_depth:
            raise InvalidDescriptorError(
                message=f"Cyclic or too deep BOM import of {bom_key}",
                coordinate=importer,
                error_code="BOM_IMPORT_CYCLE",
            )

        descriptor = await self._build_descriptor(bom, lineage)
        return [
            PomDependency(
                group_id=managed.coordinate.group_id,
                artifact_id=managed.coordinate.artifact_id,
                version=managed.coordinate.version,
                type=managed.coordinate.packaging,
                classifier=managed.coordinate.classifier,
                scope=managed.scope.value,
                optional="true" if managed.optional else None,
                exclusions=managed.exclusions,
            )
            for managed in descriptor.dependency_management
        ]

    def _declaration(
        self,
        dependency: PomDependency,
        management: dict[ManagementKey, PomDependency],
        owner: str,
    ) -> Optional[DependencyDeclaration]:
        """Apply dependency management and convert to a DependencyDeclaration.

        Returns None (with a warning) for entries that cannot be resolved.
        """
        managed = management.get(dependency.management_key)
        version = dependency.version
        scope = dependency.scope
        exclusions = list(dependency.exclusions)
        if managed is not None:
            version = version or managed.version
            scope = scope or managed.scope
            exclusions.extend(e for e in managed.exclusions if e not in exclusions)

        name = f"{dependency.group_id}:{dependency.artifact_id}"
        if version is None:
            self._logger.warning("dependency_without_version", owner=owner, dependency=name)
            return None

        try:
            resolved_scope = Scope(scope) if scope else Scope.COMPILE
        except ValueError:
            self._logger.warning("unknown_scope", owner=owner, dependency=name, scope=scope)
            return None

        extension, implied_classifier = extension_for_type(dependency.type)
        return DependencyDeclaration(
            coordinate=Coordinate(
                group_id=dependency.group_id,
                artifact_id=dependency.artifact_id,
                version=version,
                classifier=dependency.classifier or implied_classifier,
                packaging=extension,
            ),
            scope=resolved_scope,
            optional=(dependency.optional or "").strip().lower() == "true",
            exclusions=exclusions,
        )
