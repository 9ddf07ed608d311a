"""
libby_resolver.core.exceptions - Custom Exception Hierarchy
=============================================================

This module defines the structured exception hierarchy for libby-resolver.
Components raise and catch specific exception types that carry contextual
information instead of generic Exception.

Exception Hierarchy:
    ResolverError (base)
        ├── ConfigurationError        - Invalid config, unknown repository scheme
        ├── MalformedCoordinateError  - Coordinate string cannot be parsed
        ├── NotFoundError             - No repository has the requested file
        ├── InvalidDescriptorError    - POM or metadata XML cannot be understood
        ├── NetworkError              - Transport failure (retryable or not)
        ├── ChecksumMismatchError     - Published checksum differs from content
        ├── MissingDependencyError    - Required dependency descriptor missing
        ├── CacheCorruptionError      - Cache entry conflicts with new content
        ├── ResolutionCancelledError  - Caller cancelled the operation
        └── PartialResolutionError    - Aggregate of per-artifact failures

Error Codes:
    Every exception carries an UPPER_SNAKE_CASE ``error_code``. The
    RetryPolicy decides whether to retry by looking the code up in its
    retryable set, so transports only need to pick the right code:

        NETWORK_ERROR      → retried with exponential backoff
        CHECKSUM_MISMATCH  → retried once, then fatal
        HTTP_CLIENT_ERROR  → never retried

Usage:
    >>> from libby_resolver.core.exceptions import NotFoundError
    >>> raise NotFoundError(
    ...     message="Artifact not found in any repository",
    ...     coordinate="com.example:lib:1.0",
    ...     details={"repositories": ["https://repo.maven.apache.org/maven2/"]},
    ... )
"""

from __future__ import annotations

from typing import Any, Optional


# =============================================================================
# Base Exception
# =============================================================================
# All libby-resolver exceptions inherit from this base class, so callers can
# catch every resolver failure with a single except clause:
#
#   try:
#       artifacts = await resolver.resolve(["com.example:app:1.0"])
#   except ResolverError as e:
#       logger.error(e.message, error_code=e.error_code, details=e.details)
# =============================================================================
class ResolverError(Exception):
    """Base exception for all libby-resolver errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code for programmatic handling.
        details: Arbitrary dict with additional debugging context.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "RESOLVER_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize this exception to a dictionary (for structured logs)."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class _CoordinateError(ResolverError):
    """Shared base for errors that concern one specific coordinate.

    The coordinate is stored both as an attribute and in ``details`` so that
    ``to_dict()`` output always names the offending artifact.
    """

    def __init__(
        self,
        message: str,
        coordinate: Optional[str] = None,
        error_code: str = "RESOLVER_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        if coordinate is not None:
            enriched_details["coordinate"] = coordinate

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.coordinate = coordinate


# =============================================================================
# Configuration Error
# =============================================================================
class ConfigurationError(ResolverError):
    """Raised when resolver configuration is invalid or missing.

    Example:
        >>> raise ConfigurationError(
        ...     message="Unsupported repository URL scheme: ftp",
        ...     error_code="UNSUPPORTED_SCHEME",
        ...     details={"url": "ftp://example.com/repo"},
        ... )
    """

    def __init__(
        self,
        message: str,
        error_code: str = "CONFIG_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


# =============================================================================
# Coordinate Errors
# =============================================================================
class MalformedCoordinateError(_CoordinateError):
    """Raised when a coordinate or exclusion string cannot be parsed.

    Common Causes:
        - Wrong number of colon-separated segments
        - An empty segment ("com.example::1.0")
    """

    def __init__(
        self,
        message: str,
        coordinate: Optional[str] = None,
        error_code: str = "MALFORMED_COORDINATE",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, coordinate, error_code, details)


class NotFoundError(_CoordinateError):
    """Raised when no configured repository can serve a file."""

    def __init__(
        self,
        message: str,
        coordinate: Optional[str] = None,
        error_code: str = "NOT_FOUND",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, coordinate, error_code, details)


class InvalidDescriptorError(_CoordinateError):
    """Raised when a POM or metadata document cannot be understood.

    Common Causes:
        - Malformed XML (truncated download, HTML error page served as 200)
        - A POM without <artifactId>
        - A parent chain that loops or exceeds the configured depth
    """

    def __init__(
        self,
        message: str,
        coordinate: Optional[str] = None,
        error_code: str = "INVALID_DESCRIPTOR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, coordinate, error_code, details)


# =============================================================================
# Transport Errors
# =============================================================================
# NetworkError covers every failure below the HTTP status line: refused
# connections, timeouts, TLS problems, 5xx responses and rate limiting. The
# ``retryable`` flag selects the error code so that RetryPolicy can make its
# decision from the code alone.
# =============================================================================
class NetworkError(_CoordinateError):
    """Raised when a repository request fails at the transport level.

    Attributes:
        url: The URL that was being fetched.
        retryable: Whether retrying the same request may succeed.
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        coordinate: Optional[str] = None,
        retryable: bool = True,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        if url is not None:
            enriched_details["url"] = url
        if status_code is not None:
            enriched_details["status_code"] = status_code

        error_code = "NETWORK_ERROR" if retryable else "HTTP_CLIENT_ERROR"
        super().__init__(message, coordinate, error_code, enriched_details)

        self.url = url
        self.retryable = retryable
        self.status_code = status_code


class ChecksumMismatchError(_CoordinateError):
    """Raised when downloaded content does not match its published checksum.

    Retried once by the RetryPolicy (a corrupted transfer usually succeeds on
    the second attempt), then treated as fatal.
    """

    def __init__(
        self,
        message: str,
        coordinate: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["expected"] = expected
        enriched_details["actual"] = actual

        super().__init__(message, coordinate, "CHECKSUM_MISMATCH", enriched_details)

        self.expected = expected
        self.actual = actual


# =============================================================================
# Resolution Errors
# =============================================================================
class MissingDependencyError(_CoordinateError):
    """Raised when a required dependency has no descriptor in any repository.

    Attributes:
        path: The chain of coordinates that led to the missing dependency,
            root first. Helps users see which artifact pulled it in.
    """

    def __init__(
        self,
        message: str,
        coordinate: Optional[str] = None,
        path: Optional[list[str]] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["path"] = list(path or [])

        super().__init__(message, coordinate, "MISSING_DEPENDENCY", enriched_details)

        self.path = list(path or [])


class CacheCorruptionError(_CoordinateError):
    """Raised when a cache entry conflicts with the content being stored.

    The existing entry is never overwritten silently; the caller has to
    remove it (or the whole cache directory) to recover.
    """

    def __init__(
        self,
        message: str,
        coordinate: Optional[str] = None,
        path: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        if path is not None:
            enriched_details["path"] = path

        super().__init__(message, coordinate, "CACHE_CORRUPTION", enriched_details)

        self.path = path


class ResolutionCancelledError(ResolverError):
    """Raised when the caller's CancellationToken fires mid-operation."""

    def __init__(
        self,
        message: str = "Resolution was cancelled",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code="CANCELLED", details=details)


class PartialResolutionError(ResolverError):
    """Aggregate error raised after all parallel downloads have finished.

    Attributes:
        failures: Mapping of coordinate string to the terminal error for
            that coordinate, in resolution order.
    """

    def __init__(
        self,
        message: str,
        failures: dict[str, ResolverError],
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["failures"] = {
            coordinate: error.to_dict() for coordinate, error in failures.items()
        }

        super().__init__(message=message, error_code="PARTIAL_RESOLUTION", details=enriched_details)

        self.failures = failures

    @property
    def failed_coordinates(self) -> list[str]:
        return list(self.failures)
