"""Kernel outbox – delivery sink port and per-channel registry."""
from __future__ import annotations

import dataclasses
from datetime import datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from mp_outbox.kernel.errors import SinkNotFoundError, ValidationError


@dataclasses.dataclass(frozen=True)
class DeliveryPayload:
    """Everything a sink receives for one delivery attempt."""

    entry_id: str
    event_id: str
    event_type: str
    entity_type: str
    entity_id: str
    payload: dict[str, Any]
    occurred_at: datetime
    attempt: int
    performed_by: str | None = None
    trace_id: str | None = None
    correlation_id: str | None = None
    metadata: dict[str, Any] = dataclasses.field(default_factory=dict)


class DeliveryStatus(str, Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    TERMINAL = "terminal"


@dataclasses.dataclass(frozen=True)
class DeliveryResult:
    """Sink verdict for one attempt.

    Sinks may also signal failures by raising
    :class:`~mp_outbox.kernel.errors.RetryableDeliveryError` or
    :class:`~mp_outbox.kernel.errors.TerminalDeliveryError`.
    """

    status: DeliveryStatus
    error: str | None = None
    metadata: dict[str, Any] = dataclasses.field(default_factory=dict)

    @classmethod
    def success(cls, **metadata: Any) -> "DeliveryResult":
        return cls(DeliveryStatus.SUCCESS, metadata=metadata)

    @classmethod
    def retryable(cls, error: str, **metadata: Any) -> "DeliveryResult":
        return cls(DeliveryStatus.RETRYABLE, error=error, metadata=metadata)

    @classmethod
    def terminal(cls, error: str, **metadata: Any) -> "DeliveryResult":
        return cls(DeliveryStatus.TERMINAL, error=error, metadata=metadata)

    @property
    def ok(self) -> bool:
        return self.status == DeliveryStatus.SUCCESS


@runtime_checkable
class DeliverySink(Protocol):
    """Port: hands a payload to a webhook client, fan-out writer, exporter…

    Returning ``None`` is treated as success.
    """

    async def deliver(self, channel: str, payload: DeliveryPayload) -> DeliveryResult | None: ...


class SinkRegistry:
    """Resolves the :class:`DeliverySink` for a ``delivery_channel`` at dispatch time."""

    def __init__(self, sinks: dict[str, DeliverySink] | None = None) -> None:
        self._sinks: dict[str, DeliverySink] = {}
        for channel, sink in (sinks or {}).items():
            self.register(channel, sink)

    def register(self, channel: str, sink: DeliverySink) -> None:
        if not channel:
            raise ValidationError("Delivery channel must not be empty", field="channel")
        self._sinks[channel] = sink

    def unregister(self, channel: str) -> None:
        self._sinks.pop(channel, None)

    def resolve(self, channel: str) -> DeliverySink:
        try:
            return self._sinks[channel]
        except KeyError:
            raise SinkNotFoundError(channel) from None

    def __contains__(self, channel: object) -> bool:
        return channel in self._sinks

    @property
    def channels(self) -> list[str]:
        return sorted(self._sinks)


__all__ = [
    "DeliveryPayload",
    "DeliveryResult",
    "DeliverySink",
    "DeliveryStatus",
    "SinkRegistry",
]
