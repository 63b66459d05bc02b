"""Domain errors – queue invariants, lookups and state conflicts."""

from __future__ import annotations

from typing import Any

from mp_outbox.kernel.errors.base import BaseError


class DomainError(BaseError):
    """A queue rule was broken by the caller or by concurrent state."""

    default_code = "domain_error"


class InvariantViolationError(DomainError):
    """A dispatch entry reached a state its invariants forbid."""

    default_code = "invariant_violation"

    def __init__(self, message: str, *, entry_id: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.entry_id = entry_id
        if entry_id is not None:
            self.detail.setdefault("entry_id", entry_id)


class ValidationError(DomainError):
    """An argument or record failed validation.

    Pass ``field`` for a single offending argument or ``errors`` for a list
    of field-level failures; ``field`` alone becomes a one-item ``errors``.
    """

    default_code = "validation_error"

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        errors: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.field = field
        if errors is None and field is not None:
            errors = [{"field": field, "error": message}]
        self.errors: list[dict[str, Any]] = errors or []

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "errors": self.errors}


class NotFoundError(DomainError):
    """No event, entry or sink exists under the given identifier."""

    default_code = "not_found"

    def __init__(self, resource: str, identifier: Any = None, **kwargs: Any) -> None:
        if identifier is None:
            message = f"{resource} not found"
        else:
            message = f"{resource} '{identifier}' not found"
        super().__init__(message, **kwargs)
        self.resource = resource
        self.identifier = identifier


class ConflictError(DomainError):
    """The write collides with a stored event or entry.

    Raised for duplicate events, checksum mismatches on re-enqueue, claims on
    entries that are not claimable and guarded updates that lost a race.
    """

    default_code = "conflict"

    def __init__(self, message: str, *, entry_id: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.entry_id = entry_id
        if entry_id is not None:
            self.detail.setdefault("entry_id", entry_id)


__all__ = [
    "ConflictError",
    "DomainError",
    "InvariantViolationError",
    "NotFoundError",
    "ValidationError",
]
