"""Infrastructure errors – store I/O, payload encoding and deadlines."""

from __future__ import annotations

from typing import Any

from mp_outbox.kernel.errors.base import BaseError


class InfrastructureError(BaseError):
    """A store, sink or encoder failed for reasons outside the queue rules."""

    default_code = "infrastructure_error"


class TimeoutError(InfrastructureError):  # noqa: A001
    """A bounded operation (usually a sink delivery) ran past its deadline."""

    default_code = "infrastructure_timeout"

    def __init__(self, message: str, *, timeout_seconds: float | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.timeout_seconds = timeout_seconds


class SerializationError(InfrastructureError):
    """An event payload could not be encoded as canonical JSON."""

    default_code = "serialization_error"

    def __init__(self, message: str, *, payload_type: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.payload_type = payload_type


__all__ = [
    "InfrastructureError",
    "SerializationError",
    "TimeoutError",
]
