"""
libby_resolver.resolution.cancellation - Cooperative Cancellation
===================================================================

A CancellationToken is handed to ``resolve`` / ``materialize`` by the caller.
Firing it aborts every outstanding network request and backoff sleep that
was wrapped with ``guard()``, and the operation fails with
ResolutionCancelledError.

Cache entries that were already committed are kept: each one is complete
and valid on its own.

Usage:
    >>> token = CancellationToken()
    >>> task = asyncio.create_task(resolver.resolve(["com.example:app:1.0"], cancellation=token))
    >>> token.cancel()
    >>> await task  # raises ResolutionCancelledError
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, TypeVar

import structlog

from libby_resolver.core.exceptions import ResolutionCancelledError


logger = structlog.get_logger()

T = TypeVar("T")


class CancellationToken:
    """A one-shot signal shared between the caller and running operations."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: Optional[str] = None) -> None:
        """Fire the token. Calling it again has no effect."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        logger.info("cancellation_requested", reason=reason)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise self._error()

    async def wait(self) -> None:
        await self._event.wait()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        When the token fires, the wrapped operation is cancelled and
        ResolutionCancelledError is raised. Errors of the operation itself
        propagate unchanged.
        """
        if self._event.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise self._error()

        operation = asyncio.ensure_future(awaitable)
        watcher = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({operation, watcher}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            watcher.cancel()
            if not operation.done():
                operation.cancel()
                operation.add_done_callback(discard_outcome)

        if operation.done() and not operation.cancelled():
            return operation.result()
        raise self._error()

    def _error(self) -> ResolutionCancelledError:
        if self._reason:
            return ResolutionCancelledError(
                message=f"Resolution was cancelled: {self._reason}",
                details={"reason": self._reason},
            )
        return ResolutionCancelledError()


def discard_outcome(future: asyncio.Future) -> None:
    """Done-callback for futures nobody awaits any more.

    Retrieves the exception so that asyncio does not log it as unhandled.
    """
    if not future.cancelled():
        future.exception()


async def guarded(awaitable: Awaitable[T], token: Optional[CancellationToken]) -> T:
    """``token.guard(awaitable)`` when a token is given, plain await otherwise."""
    if token is None:
        return await awaitable
    return await token.guard(awaitable)
