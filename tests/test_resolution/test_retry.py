"""
Tests for libby_resolver.resolution.retry
===========================================

RetryPolicy decisions and the run() loop.
"""

import pytest

from libby_resolver.core.config import RetryConfig
from libby_resolver.core.exceptions import (
    ChecksumMismatchError,
    NetworkError,
    NotFoundError,
    ResolutionCancelledError,
)
from libby_resolver.resolution.cancellation import CancellationToken
from libby_resolver.resolution.retry import RetryPolicy


class _Flaky:
    """Operation factory that fails a fixed number of times."""

    def __init__(self, errors: list[Exception], result: str = "ok") -> None:
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self._attempt()

    async def _attempt(self) -> str:
        if self.errors:
            raise self.errors.pop(0)
        return self.result


@pytest.fixture
def policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, initial_delay=0.0, max_delay=0.01)


class TestDecisions:
    """calculate_delay and is_retryable."""

    def test_delay_grows_exponentially(self) -> None:
        policy = RetryPolicy(initial_delay=1.0, backoff_multiplier=2.0, max_delay=100.0)
        assert 1.0 <= policy.calculate_delay(0) <= 1.1
        assert 2.0 <= policy.calculate_delay(1) <= 2.2
        assert 8.0 <= policy.calculate_delay(3) <= 8.8

    def test_delay_is_capped(self) -> None:
        policy = RetryPolicy(initial_delay=1.0, backoff_multiplier=10.0, max_delay=5.0)
        assert policy.calculate_delay(4) == 5.0

    def test_network_errors_until_attempts_run_out(self, policy: RetryPolicy) -> None:
        assert policy.is_retryable("NETWORK_ERROR", 0)
        assert policy.is_retryable("NETWORK_ERROR", 1)
        assert not policy.is_retryable("NETWORK_ERROR", 2)

    def test_checksum_mismatch_retried_once(self, policy: RetryPolicy) -> None:
        assert policy.is_retryable("CHECKSUM_MISMATCH", 0)
        assert not policy.is_retryable("CHECKSUM_MISMATCH", 1)

    @pytest.mark.parametrize("code", ["NOT_FOUND", "HTTP_CLIENT_ERROR", "INVALID_DESCRIPTOR", "CANCELLED"])
    def test_other_errors_are_final(self, policy: RetryPolicy, code: str) -> None:
        assert not policy.is_retryable(code, 0)

    def test_from_config(self) -> None:
        policy = RetryPolicy.from_config(RetryConfig(max_attempts=5, checksum_retries=2))
        assert policy.max_attempts == 5
        assert policy.checksum_retries == 2


class TestRun:
    """The retry loop."""

    async def test_success_first_try(self, policy: RetryPolicy) -> None:
        operation = _Flaky([])
        assert await policy.run(operation) == "ok"
        assert operation.calls == 1

    async def test_recovers_from_transient_errors(self, policy: RetryPolicy) -> None:
        operation = _Flaky([NetworkError("reset"), NetworkError("reset")])
        assert await policy.run(operation, context={"url": "memory://x"}) == "ok"
        assert operation.calls == 3

    async def test_raises_last_error_when_exhausted(self, policy: RetryPolicy) -> None:
        last = NetworkError("third")
        operation = _Flaky([NetworkError("first"), NetworkError("second"), last])

        with pytest.raises(NetworkError) as exc_info:
            await policy.run(operation)
        assert exc_info.value is last

    async def test_non_retryable_raised_immediately(self, policy: RetryPolicy) -> None:
        operation = _Flaky([NotFoundError("gone")])
        with pytest.raises(NotFoundError):
            await policy.run(operation)
        assert operation.calls == 1

    async def test_checksum_mismatch_gets_one_more_try(self, policy: RetryPolicy) -> None:
        operation = _Flaky([ChecksumMismatchError("bad"), ChecksumMismatchError("bad again")])
        with pytest.raises(ChecksumMismatchError, match="bad again"):
            await policy.run(operation)
        assert operation.calls == 2

    async def test_cancellation_interrupts_backoff(self) -> None:
        policy = RetryPolicy(max_attempts=3, initial_delay=30.0, max_delay=30.0)
        token = CancellationToken()
        calls = 0

        async def fail_and_cancel() -> str:
            nonlocal calls
            calls += 1
            token.cancel("stop")
            raise NetworkError("reset")

        # Without cancellation this would sleep for 30 seconds
        with pytest.raises(ResolutionCancelledError):
            await policy.run(fail_and_cancel, cancellation=token)
        assert calls == 1
