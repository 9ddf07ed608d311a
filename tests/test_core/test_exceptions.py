"""
Tests for libby_resolver.core.exceptions
==========================================

What's Being Tested:
    - Every error inherits from ResolverError
    - Error codes, including the retryable/non-retryable NetworkError split
    - Coordinates and context land in ``details``
    - PartialResolutionError aggregates per-coordinate failures
"""

import pytest

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


class TestHierarchy:
    """All errors can be caught with one except clause."""

    @pytest.mark.parametrize(
        "error",
        [
            ConfigurationError("bad"),
            MalformedCoordinateError("bad"),
            NotFoundError("missing"),
            InvalidDescriptorError("broken"),
            NetworkError("down"),
            ChecksumMismatchError("corrupt"),
            MissingDependencyError("missing"),
            CacheCorruptionError("conflict"),
            ResolutionCancelledError(),
            PartialResolutionError("partial", failures={}),
        ],
    )
    def test_is_resolver_error(self, error: ResolverError) -> None:
        assert isinstance(error, ResolverError)
        assert error.to_dict()["error_type"] == type(error).__name__


class TestErrorCodes:
    """Error codes drive retry decisions."""

    def test_retryable_network_error(self) -> None:
        error = NetworkError("timeout", url="https://repo/x.jar")
        assert error.error_code == "NETWORK_ERROR"
        assert error.retryable is True
        assert error.details["url"] == "https://repo/x.jar"

    def test_non_retryable_network_error(self) -> None:
        error = NetworkError("forbidden", retryable=False, status_code=403)
        assert error.error_code == "HTTP_CLIENT_ERROR"
        assert error.details["status_code"] == 403

    def test_checksum_mismatch_details(self) -> None:
        error = ChecksumMismatchError("mismatch", coordinate="g:a:1", expected="aa", actual="bb")
        assert error.error_code == "CHECKSUM_MISMATCH"
        assert error.details == {"coordinate": "g:a:1", "expected": "aa", "actual": "bb"}

    def test_missing_dependency_path(self) -> None:
        error = MissingDependencyError("missing", coordinate="g:c:1", path=["g:a", "g:b", "g:c"])
        assert error.path == ["g:a", "g:b", "g:c"]
        assert error.details["path"] == ["g:a", "g:b", "g:c"]

    def test_cancelled_code(self) -> None:
        assert ResolutionCancelledError().error_code == "CANCELLED"

    def test_repr_contains_code(self) -> None:
        assert "NOT_FOUND" in repr(NotFoundError("missing"))


class TestPartialResolutionError:
    """Aggregate error for materialize()."""

    def test_lists_failed_coordinates_in_order(self) -> None:
        failures = {
            "g:a:1": NotFoundError("missing", coordinate="g:a:1"),
            "g:b:1": NetworkError("down", coordinate="g:b:1"),
        }
        error = PartialResolutionError("2 failed", failures=failures)

        assert error.failed_coordinates == ["g:a:1", "g:b:1"]
        assert error.details["failures"]["g:b:1"]["error_code"] == "NETWORK_ERROR"
        assert error.error_code == "PARTIAL_RESOLUTION"
