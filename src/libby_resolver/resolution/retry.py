"""
libby_resolver.resolution.retry - Bounded Exponential Backoff
===============================================================

RetryPolicy re-runs a failing repository request when the failure is
transient. The decision is made from the exception's ``error_code`` alone,
so the policy knows nothing about HTTP, files or checksums:

    Exception raised by the operation
            │
            v
    ┌─ error_code == CHECKSUM_MISMATCH? ─── YES ──> retried checksum_retries times
    │       │
    │       NO
    │       v
    ├─ error_code retryable? ───────────── NO ───> raise immediately
    │       │
    │      YES
    │       v
    └─ attempt < max_attempts? ─── NO ──> raise the last error
            │
           YES
            v
        sleep(calculate_delay(attempt)), try again

Sleeps go through the CancellationToken, so a cancelled resolution never
waits out a backoff.
"""

from __future__ import annotations

import asyncio
import random
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog

from libby_resolver.core.config import RetryConfig
from libby_resolver.core.exceptions import ResolverError
from libby_resolver.resolution.cancellation import CancellationToken, guarded


logger = structlog.get_logger()

T = TypeVar("T")

CHECKSUM_MISMATCH = "CHECKSUM_MISMATCH"
DEFAULT_RETRYABLE_ERRORS = frozenset({"NETWORK_ERROR"})


class RetryPolicy:
    """Retry transient failures with exponential backoff and jitter.

    Attributes:
        max_attempts: Total attempts for retryable errors, first try included.
        initial_delay: Base delay in seconds before the first retry.
        max_delay: Cap for a single delay.
        backoff_multiplier: Growth factor between delays.
        checksum_retries: Extra attempts granted after a checksum mismatch.
        retryable_errors: Error codes retried up to ``max_attempts``.

    Example:
        >>> policy = RetryPolicy.from_config(RetryConfig(max_attempts=5))
        >>> policy.is_retryable("NETWORK_ERROR", attempt=0)
        True
        >>> policy.is_retryable("HTTP_CLIENT_ERROR", attempt=0)
        False
    """

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 0.5,
        max_delay: float = 10.0,
        backoff_multiplier: float = 2.0,
        checksum_retries: int = 1,
        retryable_errors: frozenset[str] = DEFAULT_RETRYABLE_ERRORS,
    ) -> None:
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.backoff_multiplier = backoff_multiplier
        self.checksum_retries = checksum_retries
        self.retryable_errors = retryable_errors
        self._logger = logger.bind(component="retry_policy")

    @classmethod
    def from_config(cls, config: RetryConfig) -> RetryPolicy:
        return cls(
            max_attempts=config.max_attempts,
            initial_delay=config.initial_delay,
            max_delay=config.max_delay,
            backoff_multiplier=config.backoff_multiplier,
            checksum_retries=config.checksum_retries,
        )

    def calculate_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (zero-based).

            base  = initial_delay * backoff_multiplier ** attempt
            delay = min(base + uniform(0, base * 0.1), max_delay)
        """
        base_delay = self.initial_delay * (self.backoff_multiplier ** attempt)
        jitter = random.uniform(0, base_delay * 0.1)
        return min(base_delay + jitter, self.max_delay)

    def is_retryable(self, error_code: str, attempt: int) -> bool:
        """Whether a failure on zero-based ``attempt`` deserves another try."""
        if error_code == CHECKSUM_MISMATCH:
            return attempt < self.checksum_retries
        if error_code in self.retryable_errors:
            return attempt + 1 < self.max_attempts
        return False

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        cancellation: Optional[CancellationToken] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> T:
        """Call ``operation`` until it succeeds or the policy gives up.

        Args:
            operation: Zero-argument coroutine factory; called once per attempt.
            cancellation: Token that aborts the attempt and any backoff sleep.
            context: Extra key/values for log events (url, coordinate, ...).

        Raises:
            ResolverError: The last error when retries are exhausted or the
                error is not retryable.
            ResolutionCancelledError: If the token fires.
        """
        log_context = context or {}
        attempt = 0
        while True:
            try:
                return await guarded(operation(), cancellation)
            except ResolverError as exc:
                if not self.is_retryable(exc.error_code, attempt):
                    if attempt > 0:
                        self._logger.warning(
                            "retries_exhausted",
                            attempts=attempt + 1,
                            error_code=exc.error_code,
                            **log_context,
                        )
                    raise

                delay = self.calculate_delay(attempt)
                self._logger.info(
                    "retry_scheduled",
                    attempt=attempt + 1,
                    delay_seconds=round(delay, 3),
                    error_code=exc.error_code,
                    **log_context,
                )
                await guarded(asyncio.sleep(delay), cancellation)
                attempt += 1
