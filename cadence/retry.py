"""Bounded retry with exponential backoff for collaborator calls.

Collaborator boundaries (activity fetches, model invocations, notifications)
wrap their coroutines with :func:`with_retry`. The scheduling core itself
never retries.

Usage
-----
>>> policy = RetryPolicy(retries=2, backoff_ms=500)
>>> result = await with_retry(lambda: source.fetch(scope, window), policy)

"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import typing as typ

from cadence.logging import get_logger, log_warning

logger = get_logger(__name__)


@dc.dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Retry budget for one collaborator call.

    Attributes
    ----------
    retries
        Number of additional attempts after the first failure.
    backoff_ms
        Base delay in milliseconds; attempt ``n`` waits
        ``backoff_ms * 2**n`` before retrying.

    """

    retries: int = 2
    backoff_ms: int = 500

    def delay_for(self, attempt: int) -> float:
        """Return the wait in seconds before retrying ``attempt``."""
        return (self.backoff_ms * (2**attempt)) / 1000.0


async def with_retry[T](
    operation: typ.Callable[[], typ.Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    sleep: typ.Callable[[float], typ.Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``operation`` until it succeeds or the retry budget is spent.

    Parameters
    ----------
    operation
        Zero-argument callable returning a fresh awaitable per attempt.
    policy
        Retry count and backoff base.
    retry_on
        Exception types that trigger a retry; anything else propagates
        immediately.
    sleep
        Awaitable sleep function, injectable for tests.

    Returns
    -------
    T
        The first successful result.

    Raises
    ------
    Exception
        The last error raised once all attempts are exhausted.

    """
    attempt = 0
    while True:
        try:
            return await operation()
        except retry_on as exc:
            if attempt >= policy.retries:
                raise
            delay = policy.delay_for(attempt)
            log_warning(
                logger,
                "Attempt %d failed with %s: %s; retrying in %.3fs",
                attempt + 1,
                type(exc).__name__,
                exc,
                delay,
            )
            await sleep(delay)
            attempt += 1
