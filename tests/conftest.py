"""Shared fixtures for the mp-outbox test suite."""
from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from typing import Any

import pytest

from mp_outbox.application.outbox import Publication, TransactionalOutbox
from mp_outbox.kernel.outbox import OutboxUnitOfWorkFactory
from mp_outbox.kernel.time import FrozenClock
from mp_outbox.testing.fixtures import (  # noqa: F401
    fake_clock,
    fake_metrics,
    outbox_state,
    recording_sink,
    sink_registry,
    uow_factory,
)

type PublishFn = Callable[..., Awaitable[Publication]]


@pytest.fixture
def publish(uow_factory: OutboxUnitOfWorkFactory, fake_clock: FrozenClock) -> PublishFn:
    """Record an ``order`` event and enqueue it in one committed unit of work."""

    async def _publish(
        channels: Iterable[str] = ("webhook",),
        *,
        entity_id: str = "ord-1",
        event_type: str = "order.captured",
        payload: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> Publication:
        async with uow_factory() as uow:
            return await TransactionalOutbox(uow, fake_clock).publish(
                "order",
                entity_id,
                event_type,
                {"total": "12.50"} if payload is None else payload,
                channels,
                **kwargs,
            )

    return _publish
