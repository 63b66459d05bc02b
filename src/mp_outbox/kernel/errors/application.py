"""Application-layer errors – use-case and configuration failures."""

from __future__ import annotations

from mp_outbox.kernel.errors.base import BaseError


class ApplicationError(BaseError):
    """Cross-cutting application-layer concern (configuration, wiring)."""

    default_code = "application_error"


__all__ = ["ApplicationError"]
