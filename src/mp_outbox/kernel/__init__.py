"""Kernel – 100% framework-agnostic building blocks."""

from mp_outbox.kernel.errors import (
    ApplicationError,
    BaseError,
    ConflictError,
    DeliveryError,
    DomainError,
    InfrastructureError,
    InvariantViolationError,
    LeaseLostError,
    NotFoundError,
    RetryableDeliveryError,
    SerializationError,
    SinkNotFoundError,
    TerminalDeliveryError,
    TimeoutError,
    ValidationError,
)

__all__ = [
    "ApplicationError",
    "BaseError",
    "ConflictError",
    "DeliveryError",
    "DomainError",
    "InfrastructureError",
    "InvariantViolationError",
    "LeaseLostError",
    "NotFoundError",
    "RetryableDeliveryError",
    "SerializationError",
    "SinkNotFoundError",
    "TerminalDeliveryError",
    "TimeoutError",
    "ValidationError",
]
