"""
libby_resolver.core.config - Configuration Management
=======================================================

Configuration is loaded from several sources, highest priority first:

    1. Explicit constructor arguments
    2. YAML configuration file (libby.yaml), read by load_config() and
       handed to ResolverConfig as constructor arguments
    3. Environment variables (prefixed with LIBBY_)
    4. Default values defined in the models below

An environment variable therefore only takes effect for settings the YAML
file leaves out.

Architecture Context:
    ResolverConfig is created once and passed down to every component:

        ResolverConfig
            ├── repositories   → RepositoryClient (query order)
            ├── HttpConfig     → HttpTransport
            ├── RetryConfig    → RetryPolicy
            ├── CacheConfig    → FileSystemCache
            └── (other settings) → DependencyGraphBuilder, DownloadManager

Usage:
    # Load from environment variables:
    config = ResolverConfig()

    # Load from YAML file:
    config = load_config("libby.yaml")

    # Explicit overrides:
    config = ResolverConfig(max_workers=16, include_optional=True)

Environment Variables:
    LIBBY_LOG_LEVEL=DEBUG
    LIBBY_MAX_WORKERS=16
    LIBBY_CACHE__DIRECTORY=/var/cache/libby
    LIBBY_RETRY__MAX_ATTEMPTS=5
    LIBBY_HTTP__TIMEOUT=60
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from libby_resolver.core.enums import (
    ChecksumAlgorithm,
    ChecksumPolicy,
    ConflictPolicy,
    Scope,
)


MAVEN_CENTRAL_URL = "https://repo.maven.apache.org/maven2/"


def _default_cache_directory() -> Path:
    return Path.home() / ".libby" / "repository"


# =============================================================================
# Repository Configuration
# =============================================================================
class Credentials(BaseModel):
    """Username/password pair sent to a repository as HTTP basic auth."""

    username: str = Field(description="Repository user name")
    password: str = Field(default="", description="Repository password or token")


class RepositoryConfig(BaseModel):
    """One remote or local Maven repository.

    Repositories are queried in the order they are configured; the first one
    that can serve a file wins.

    Attributes:
        id: Short identifier used in logs. Purely informational.
        url: Base URL. ``http(s)://`` for remote repositories, ``file://``
            or a plain filesystem path for local ones.
        credentials: Optional basic-auth credentials.
    """

    id: str = Field(default="central", description="Repository identifier for logs")
    url: str = Field(description="Repository base URL or local path")
    credentials: Optional[Credentials] = Field(
        default=None,
        description="Optional basic-auth credentials",
    )

    @property
    def base_url(self) -> str:
        """The URL with exactly one trailing slash, ready for path joins."""
        return self.url.rstrip("/") + "/"


# =============================================================================
# HTTP Configuration
# =============================================================================
class HttpConfig(BaseModel):
    """Settings for the httpx client used by HttpTransport."""

    timeout: float = Field(
        default=30.0,
        gt=0,
        le=600,
        description="Per-request timeout in seconds",
    )
    user_agent: str = Field(
        default="libby-resolver/0.1.0",
        description="User-Agent header sent to repositories",
    )
    max_connections: int = Field(
        default=16,
        ge=1,
        le=256,
        description="Maximum simultaneous HTTP connections",
    )
    follow_redirects: bool = Field(
        default=True,
        description="Follow 3xx redirects (mirrors commonly redirect to CDNs)",
    )


# =============================================================================
# Retry Configuration
# =============================================================================
# Consumed by resolution.retry.RetryPolicy. Delay progression with defaults:
#   attempt 0: ~0.5s, attempt 1: ~1.0s, attempt 2: ~2.0s ... capped at 10s
# =============================================================================
class RetryConfig(BaseModel):
    """Bounded exponential backoff for transient repository failures.

    Attributes:
        max_attempts: Total attempts per request, first try included.
        initial_delay: Delay in seconds before the first retry.
        max_delay: Upper bound for any single delay.
        backoff_multiplier: Growth factor between consecutive delays.
        checksum_retries: Extra attempts after a checksum mismatch.
    """

    max_attempts: int = Field(default=3, ge=1, le=20)
    initial_delay: float = Field(default=0.5, ge=0, le=30.0)
    max_delay: float = Field(default=10.0, gt=0, le=300.0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0, le=10.0)
    checksum_retries: int = Field(default=1, ge=0, le=5)


# =============================================================================
# Cache Configuration
# =============================================================================
class CacheConfig(BaseModel):
    """Settings for the local artifact cache.

    Attributes:
        directory: Root of the Maven-layout cache. Created on first use.
        verify_checksums: Re-hash cached files on every read and compare
            against the stored sidecar checksum. Costs one full read per hit.
    """

    directory: Path = Field(
        default_factory=_default_cache_directory,
        description="Cache root directory (Maven local repository layout)",
    )
    verify_checksums: bool = Field(
        default=False,
        description="Re-hash cached files on read",
    )


# =============================================================================
# Main Configuration
# =============================================================================
class ResolverConfig(BaseSettings):
    """Top-level configuration for libby-resolver.

    Attributes:
        log_level: Logging level name used by the application embedding the
            resolver when it configures structlog.
        repositories: Default repositories, used when a call does not pass
            its own list.
        max_workers: Upper bound on concurrent requests, for descriptor
            fetches during graph building and for artifact downloads.
        scopes: Dependency scopes that are followed transitively.
        include_optional: Traverse dependencies marked <optional>true</optional>.
        conflict_policy: Version mediation rule (see ConflictPolicy).
        checksum_algorithm: Digest used for verification and cache sidecars.
        checksum_policy: Behavior when no checksum is published.
        max_parent_depth: Bound on the POM parent chain, guards against
            parent cycles in broken repositories.

    Example:
        >>> config = ResolverConfig(
        ...     repositories=[RepositoryConfig(url="https://repo.example.com/maven")],
        ...     cache=CacheConfig(directory=Path("/tmp/libs")),
        ... )
    """

    # -------------------------------------------------------------------------
    # General Settings
    # -------------------------------------------------------------------------
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    repositories: list[RepositoryConfig] = Field(
        default_factory=lambda: [RepositoryConfig(id="central", url=MAVEN_CENTRAL_URL)],
        description="Repositories queried in order",
    )
    max_workers: int = Field(
        default=8,
        ge=1,
        le=64,
        description="Maximum concurrent repository requests",
    )

    # -------------------------------------------------------------------------
    # Resolution Settings
    # -------------------------------------------------------------------------
    scopes: list[Scope] = Field(
        default_factory=lambda: [Scope.COMPILE, Scope.RUNTIME],
        description="Dependency scopes followed transitively",
    )
    include_optional: bool = Field(
        default=False,
        description="Follow optional dependencies",
    )
    conflict_policy: ConflictPolicy = Field(
        default=ConflictPolicy.NEAREST,
        description="Version conflict mediation policy",
    )
    checksum_algorithm: ChecksumAlgorithm = Field(
        default=ChecksumAlgorithm.SHA1,
        description="Checksum algorithm for verification and cache sidecars",
    )
    checksum_policy: ChecksumPolicy = Field(
        default=ChecksumPolicy.WARN,
        description="Behavior when a repository publishes no checksum",
    )
    max_parent_depth: int = Field(
        default=16,
        ge=1,
        le=64,
        description="Maximum POM parent chain length",
    )

    # -------------------------------------------------------------------------
    # Nested Configurations
    # -------------------------------------------------------------------------
    http: HttpConfig = Field(default_factory=HttpConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    model_config = {
        "env_prefix": "LIBBY_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }


# =============================================================================
# Configuration Loader
# =============================================================================
def load_config(path: Optional[str] = None) -> ResolverConfig:
    """Load configuration from a YAML file and/or environment variables.

    Args:
        path: Path to a YAML configuration file. If None, looks for
            'libby.yaml' in the current directory, falling back to pure
            defaults + environment variables.

    Returns:
        A fully validated ResolverConfig instance.

    Raises:
        FileNotFoundError: If an explicit path is provided but doesn't exist.
    """
    if path is None:
        default_path = Path("libby.yaml")
        if default_path.exists():
            path = str(default_path)

    yaml_data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {path}. "
                f"Create one or use LIBBY_* environment variables."
            )

        with open(config_path) as f:
            raw_data = yaml.safe_load(f)
            if isinstance(raw_data, dict):
                yaml_data = raw_data

    return ResolverConfig(**yaml_data)


def get_default_config() -> ResolverConfig:
    """Create a ResolverConfig from defaults and environment variables."""
    return ResolverConfig()
