"""Resilience – TenacityRetryPolicy adapter.

Used around the bookkeeping writes that settle a dispatch: once a sink has
accepted a payload, losing the ``delivered`` write to a transient database
error would cause a redelivery, so those writes get a few quick retries.
Domain errors (``LeaseLostError`` and friends) are never retried.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

import tenacity

from mp_outbox.kernel.errors import DomainError

T = TypeVar("T")


class TenacityRetryPolicy:
    """Retry policy backed by the ``tenacity`` library.

    Parameters
    ----------
    max_attempts:
        Maximum number of call attempts (including the first call).
    wait:
        A ``tenacity`` wait strategy.  Defaults to
        ``wait_exponential(multiplier=0.05, max=1)``.
    retry:
        A ``tenacity`` retry predicate.  Defaults to retrying any exception
        that is not a :class:`~mp_outbox.kernel.errors.DomainError`.
    kwargs:
        Additional keyword arguments forwarded to :class:`tenacity.AsyncRetrying`.

    Example
    -------
    ::

        policy = TenacityRetryPolicy(max_attempts=5, wait=tenacity.wait_fixed(0.2))
        entry = await policy.execute_async(lambda: settle(entry_id))
    """

    def __init__(
        self,
        max_attempts: int = 3,
        wait: Any = None,
        retry: Any = None,
        **kwargs: Any,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self._wait = wait or tenacity.wait_exponential(multiplier=0.05, max=1)
        self._retry = retry or tenacity.retry_if_not_exception_type(DomainError)
        self._extra_kwargs = kwargs

    def _build_async_retrying(self) -> tenacity.AsyncRetrying:
        return tenacity.AsyncRetrying(
            stop=tenacity.stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=self._retry,
            reraise=True,
            **self._extra_kwargs,
        )

    async def execute_async(self, func: Callable[[], Awaitable[T]]) -> T:
        """Execute *func* asynchronously with tenacity retry."""
        async for attempt in self._build_async_retrying():
            with attempt:
                result = await func()
        return result  # type: ignore[return-value]


__all__ = ["TenacityRetryPolicy"]
