"""
libby_resolver.core.models - Core Data Models
===============================================

Pydantic models that flow through every layer of libby-resolver.

Model Hierarchy:
    Coordinate             → Which artifact? (group:artifact[:classifier]:version)
    Exclusion              → Which group:artifact pairs to prune from a subtree
    DependencyDeclaration  → One <dependency> entry of a descriptor
    DependencyNode         → A node of the graph while it is being built
    Diagnostic             → A non-fatal event noticed during resolution
    ResolutionResult       → The flat, conflict-resolved outcome of a graph build
    ResolvedArtifact       → A coordinate materialized as a local file

Data Flow:
    "g:a:v" ──parse──→ Coordinate ──graph──→ ResolutionResult
                                                   │
                                          DownloadManager
                                                   ↓
                                           ResolvedArtifact
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from libby_resolver.core.enums import DiagnosticKind, Scope


DEFAULT_PACKAGING = "jar"


# =============================================================================
# Coordinate
# =============================================================================
# Identity rules:
#   - Equality and hashing use (group, artifact, classifier, packaging). Two
#     coordinates that differ only by version are "the same artifact" for
#     conflict resolution, which is exactly what the graph builder needs
#     when it keys its winner table.
#   - Anything that must distinguish versions (cache paths, in-flight
#     download deduplication) uses ``gav`` instead.
# =============================================================================
class Coordinate(BaseModel):
    """Identifies a Maven artifact.

    Attributes:
        group_id: Maven groupId, e.g. "com.google.guava".
        artifact_id: Maven artifactId, e.g. "guava".
        version: Version string. None for versionless lookups (metadata).
        classifier: Optional classifier, e.g. "sources" or "linux-x86_64".
        packaging: File extension of the artifact. Not part of the string
            form; defaults to "jar".

    Example:
        >>> c = Coordinate(group_id="com.example", artifact_id="lib", version="2.0")
        >>> str(c)
        'com.example:lib:2.0'
        >>> c == c.with_version("1.0")
        True
    """

    group_id: str = Field(description="Maven groupId")
    artifact_id: str = Field(description="Maven artifactId")
    version: Optional[str] = Field(default=None, description="Version (None = versionless)")
    classifier: Optional[str] = Field(default=None, description="Optional classifier")
    packaging: str = Field(default=DEFAULT_PACKAGING, description="Artifact file extension")

    model_config = {"frozen": True}

    @property
    def key(self) -> tuple[str, str, Optional[str], str]:
        """Versionless identity used for conflict resolution."""
        return (self.group_id, self.artifact_id, self.classifier, self.packaging)

    @property
    def ga(self) -> str:
        """The "group:artifact" pair, as used by exclusions and cycle checks."""
        return f"{self.group_id}:{self.artifact_id}"

    @property
    def gav(self) -> str:
        """Full identity including version and non-default packaging."""
        text = str(self)
        if self.packaging != DEFAULT_PACKAGING:
            text = f"{text}@{self.packaging}"
        return text

    def with_version(self, version: Optional[str]) -> Coordinate:
        return self.model_copy(update={"version": version})

    def versionless(self) -> Coordinate:
        return self.with_version(None)

    def __str__(self) -> str:
        parts = [self.group_id, self.artifact_id]
        if self.classifier:
            parts.append(self.classifier)
        if self.version is not None:
            parts.append(self.version)
        return ":".join(parts)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Coordinate):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)


# =============================================================================
# Exclusion
# =============================================================================
class Exclusion(BaseModel):
    """A group:artifact pattern pruned from a dependency subtree.

    Either segment may be the wildcard "*".
    """

    group_id: str
    artifact_id: str

    model_config = {"frozen": True}

    def matches(self, coordinate: Coordinate) -> bool:
        return (
            self.group_id in ("*", coordinate.group_id)
            and self.artifact_id in ("*", coordinate.artifact_id)
        )

    def __str__(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"


# =============================================================================
# Dependency Declaration
# =============================================================================
class DependencyDeclaration(BaseModel):
    """One dependency as declared in a project descriptor.

    The coordinate's version may be None right after parsing; the repository
    client fills it in from dependency management before the declaration
    reaches the graph builder.
    """

    coordinate: Coordinate
    scope: Scope = Scope.COMPILE
    optional: bool = False
    exclusions: list[Exclusion] = Field(default_factory=list)

    @property
    def management_key(self) -> tuple[str, str, Optional[str], str]:
        return self.coordinate.key


# =============================================================================
# Dependency Node
# =============================================================================
# Only the graph builder creates and mutates nodes. ``path`` holds the
# group:artifact pairs of every ancestor plus the node itself; a child whose
# pair is already on the path closes a cycle.
# =============================================================================
class DependencyNode(BaseModel):
    """A coordinate in the dependency graph under construction."""

    coordinate: Coordinate
    depth: int = Field(ge=0)
    scope: Scope = Scope.COMPILE
    optional: bool = False
    path: tuple[str, ...] = ()
    exclusions: frozenset[Exclusion] = frozenset()
    children: list[DependencyNode] = Field(default_factory=list)

    def is_excluded(self, coordinate: Coordinate) -> bool:
        return any(exclusion.matches(coordinate) for exclusion in self.exclusions)

    def closes_cycle(self, coordinate: Coordinate) -> bool:
        return coordinate.ga in self.path


# =============================================================================
# Diagnostic
# =============================================================================
class Diagnostic(BaseModel):
    """A non-fatal event recorded while resolving.

    Example:
        >>> Diagnostic(
        ...     kind=DiagnosticKind.CYCLE_DETECTED,
        ...     coordinate="com.example:a:1.0",
        ...     message="Dependency cycle: com.example:a -> com.example:b -> com.example:a",
        ...     path=["com.example:a", "com.example:b"],
        ... )
    """

    kind: DiagnosticKind
    coordinate: str
    message: str
    path: list[str] = Field(default_factory=list)


# =============================================================================
# Resolution Result
# =============================================================================
class ResolutionResult(BaseModel):
    """Outcome of a dependency graph build.

    Attributes:
        coordinates: Winning coordinates in first-resolution order.
        diagnostics: Cycles, version conflicts and missing optional
            dependencies noticed on the way.
        repositories: gav → URL of the repository that served the
            coordinate's descriptor.
    """

    coordinates: list[Coordinate] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    repositories: dict[str, str] = Field(default_factory=dict)

    def diagnostics_of(self, kind: DiagnosticKind) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.kind == kind]

    def version_of(self, ga: str) -> Optional[str]:
        """Winning version for a "group:artifact" pair, if resolved."""
        for coordinate in self.coordinates:
            if coordinate.ga == ga:
                return coordinate.version
        return None


# =============================================================================
# Resolved Artifact
# =============================================================================
class ResolvedArtifact(BaseModel):
    """A coordinate materialized as a verified local file.

    Attributes:
        coordinate: The artifact that was resolved.
        path: Absolute path of the file inside the local cache.
        checksum: Hex digest of the file (algorithm per configuration).
        repository_url: Repository the bytes were downloaded from. None when
            the file was already cached.
        from_cache: True when no network access was needed.
    """

    coordinate: Coordinate
    path: Path
    checksum: str
    repository_url: Optional[str] = None
    from_cache: bool = False

    model_config = {"frozen": True}

    def to_summary(self) -> dict[str, Any]:
        return {
            "coordinate": self.coordinate.gav,
            "path": str(self.path),
            "checksum": self.checksum,
            "repository_url": self.repository_url,
            "from_cache": self.from_cache,
        }
