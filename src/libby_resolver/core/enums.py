"""
libby_resolver.core.enums - Type-Safe Enumerations
====================================================

All enums inherit from both ``str`` and ``Enum`` so they serialize to plain
strings in YAML/env configuration and compare equal to their values:

    >>> Scope.COMPILE == "compile"
    True
"""

from enum import Enum


# =============================================================================
# Dependency Scope
# =============================================================================
# Mirrors the Maven <scope> element. Only COMPILE and RUNTIME are transitive
# by default (see ResolverConfig.scopes); PROVIDED/TEST/SYSTEM never leave
# the project that declares them, and IMPORT only appears in
# dependencyManagement to pull in a BOM.
# =============================================================================
class Scope(str, Enum):
    """Maven dependency scope."""

    COMPILE = "compile"
    RUNTIME = "runtime"
    PROVIDED = "provided"
    TEST = "test"
    SYSTEM = "system"
    IMPORT = "import"


class ConflictPolicy(str, Enum):
    """How to pick one version when several are reachable.

    NEAREST: the declaration closest to a root wins; first declared breaks
        ties. This is Maven's own mediation rule.
    HIGHEST: the highest version seen anywhere in the graph wins.
    """

    NEAREST = "nearest"
    HIGHEST = "highest"


class ChecksumAlgorithm(str, Enum):
    """Digest used for published checksum files and cache sidecars.

    The value doubles as the file suffix (``foo-1.0.jar.sha1``) and as the
    ``hashlib`` constructor name.
    """

    SHA1 = "sha1"
    SHA256 = "sha256"
    SHA512 = "sha512"
    MD5 = "md5"


class ChecksumPolicy(str, Enum):
    """What to do when a repository publishes no checksum for a file."""

    FAIL = "fail"       # Treat the artifact as not verifiable → error
    WARN = "warn"       # Log a warning and trust the content
    IGNORE = "ignore"   # Skip verification entirely (mismatches included)


class DiagnosticKind(str, Enum):
    """Non-fatal events recorded while building the dependency graph."""

    CYCLE_DETECTED = "cycle_detected"
    VERSION_CONFLICT = "version_conflict"
    OPTIONAL_MISSING = "optional_missing"
