"""Resilience – TimeoutPolicy."""
from __future__ import annotations

import asyncio
import dataclasses
from typing import Awaitable, Callable, TypeVar

from mp_outbox.kernel.errors import TimeoutError as InfraTimeoutError

T = TypeVar("T")


@dataclasses.dataclass
class TimeoutPolicy:
    """Bound an awaitable; ``None`` disables the bound."""
    timeout_seconds: float | None

    async def execute(self, func: Callable[[], Awaitable[T]]) -> T:
        if self.timeout_seconds is None:
            return await func()
        try:
            return await asyncio.wait_for(func(), timeout=self.timeout_seconds)
        except TimeoutError as exc:
            raise InfraTimeoutError(
                f"Operation timed out after {self.timeout_seconds}s",
                timeout_seconds=self.timeout_seconds,
            ) from exc


__all__ = ["TimeoutPolicy"]
