"""Delivery errors – how sinks and stores signal dispatch outcomes.

Sinks raise :class:`RetryableDeliveryError` for transient failures (sink
unreachable, 5xx-equivalent) and :class:`TerminalDeliveryError` for permanent
rejections (malformed payload, 4xx-equivalent).  Any other exception escaping
a sink is treated as retryable.
"""

from __future__ import annotations

from typing import Any

from mp_outbox.kernel.errors.domain import ConflictError, NotFoundError
from mp_outbox.kernel.errors.infrastructure import InfrastructureError


class DeliveryError(InfrastructureError):
    """A delivery sink failed to accept a payload."""

    default_code = "delivery_error"

    def __init__(
        self,
        message: str,
        *,
        channel: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.channel = channel


class RetryableDeliveryError(DeliveryError):
    """Transient failure; the entry is retried under backoff."""

    default_code = "delivery_retryable"


class TerminalDeliveryError(DeliveryError):
    """Permanent rejection; the entry is finalized without further attempts."""

    default_code = "delivery_terminal"


class SinkNotFoundError(NotFoundError):
    """No delivery sink is registered for a channel."""

    default_code = "sink_not_found"

    def __init__(self, channel: str, **kwargs: Any) -> None:
        super().__init__("DeliverySink", channel, **kwargs)
        self.channel = channel


class LeaseLostError(ConflictError):
    """A worker tried to settle an entry it no longer holds the lease on."""

    default_code = "lease_lost"

    def __init__(self, entry_id: str, worker_id: str, **kwargs: Any) -> None:
        super().__init__(
            f"Worker '{worker_id}' does not hold the lease on dispatch entry '{entry_id}'",
            entry_id=entry_id,
            **kwargs,
        )
        self.worker_id = worker_id
        self.detail.setdefault("worker_id", worker_id)


__all__ = [
    "DeliveryError",
    "LeaseLostError",
    "RetryableDeliveryError",
    "SinkNotFoundError",
    "TerminalDeliveryError",
]
