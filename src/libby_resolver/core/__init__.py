"""
libby_resolver.core - Foundation Layer
========================================

Foundational building blocks that every other package depends on:

    - config:       ResolverConfig and its nested settings
    - enums:        Scope, ConflictPolicy, checksum settings, DiagnosticKind
    - exceptions:   Structured exception hierarchy
    - models:       Coordinate, DependencyNode, ResolvedArtifact, ...
    - coordinates:  Coordinate and exclusion string parsing
    - versions:     Maven version ordering and ranges

Dependency Rule:
    core/ depends on NOTHING else in the libby_resolver package.
"""

from libby_resolver.core.config import (
    CacheConfig,
    Credentials,
    HttpConfig,
    RepositoryConfig,
    ResolverConfig,
    RetryConfig,
)
from libby_resolver.core.coordinates import parse_coordinate, parse_exclusion
from libby_resolver.core.enums import (
    ChecksumAlgorithm,
    ChecksumPolicy,
    ConflictPolicy,
    DiagnosticKind,
    Scope,
)
from libby_resolver.core.exceptions import (
    CacheCorruptionError,
    ChecksumMismatchError,
    ConfigurationError,
    InvalidDescriptorError,
    MalformedCoordinateError,
    MissingDependencyError,
    NetworkError,
    NotFoundError,
    PartialResolutionError,
    ResolutionCancelledError,
    ResolverError,
)
from libby_resolver.core.models import (
    Coordinate,
    DependencyDeclaration,
    DependencyNode,
    Diagnostic,
    Exclusion,
    ResolutionResult,
    ResolvedArtifact,
)

__all__ = [
    # Config
    "ResolverConfig",
    "RepositoryConfig",
    "Credentials",
    "HttpConfig",
    "RetryConfig",
    "CacheConfig",
    # Enums
    "Scope",
    "ConflictPolicy",
    "ChecksumAlgorithm",
    "ChecksumPolicy",
    "DiagnosticKind",
    # Models
    "Coordinate",
    "Exclusion",
    "DependencyDeclaration",
    "DependencyNode",
    "Diagnostic",
    "ResolutionResult",
    "ResolvedArtifact",
    # Parsing
    "parse_coordinate",
    "parse_exclusion",
    # Exceptions
    "ResolverError",
    "ConfigurationError",
    "MalformedCoordinateError",
    "NotFoundError",
    "InvalidDescriptorError",
    "NetworkError",
    "ChecksumMismatchError",
    "MissingDependencyError",
    "CacheCorruptionError",
    "ResolutionCancelledError",
    "PartialResolutionError",
]
