"""Kernel error hierarchy – public re-export surface.

Hierarchy::

    BaseError
    ├── DomainError          (domain.py)
    │   ├── InvariantViolationError
    │   ├── ValidationError
    │   ├── NotFoundError
    │   │   └── SinkNotFoundError      (delivery.py)
    │   └── ConflictError
    │       └── LeaseLostError         (delivery.py)
    ├── ApplicationError     (application.py)
    └── InfrastructureError  (infrastructure.py)
        ├── TimeoutError
        ├── SerializationError
        └── DeliveryError              (delivery.py)
            ├── RetryableDeliveryError
            └── TerminalDeliveryError
"""

from mp_outbox.kernel.errors.application import ApplicationError
from mp_outbox.kernel.errors.base import BaseError
from mp_outbox.kernel.errors.delivery import (
    DeliveryError,
    LeaseLostError,
    RetryableDeliveryError,
    SinkNotFoundError,
    TerminalDeliveryError,
)
from mp_outbox.kernel.errors.domain import (
    ConflictError,
    DomainError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from mp_outbox.kernel.errors.infrastructure import (
    InfrastructureError,
    SerializationError,
    TimeoutError,
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
