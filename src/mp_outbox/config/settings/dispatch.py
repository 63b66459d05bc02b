"""Config settings – DispatchSettings for the outbox dispatch worker.

Environment variables use the ``OUTBOX_DISPATCH_`` prefix, e.g.
``OUTBOX_DISPATCH_BATCH_SIZE=100`` or ``OUTBOX_DISPATCH_CHANNELS=webhook,analytics``.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import ClassVar

from mp_outbox.config.settings.base import Settings
from mp_outbox.config.validation import InvalidSettingValueError
from mp_outbox.resilience.retry.jitter import MAX_JITTER_RATIO


@dataclasses.dataclass
class DispatchSettings(Settings):
    _prefix: ClassVar[str] = "OUTBOX_DISPATCH"

    enabled: bool = True
    poll_interval_seconds: float = 2.0
    batch_size: int = 50
    max_attempts: int = 8
    initial_backoff_seconds: float = 30.0
    max_backoff_seconds: float = 900.0
    backoff_multiplier: float = 2.0
    jitter_ratio: float = 0.15
    recover_interval_seconds: float = 60.0
    lease_timeout_seconds: float = 600.0
    delivery_timeout_seconds: float = 30.0
    worker_id: str = ""
    channels: list[str] = dataclasses.field(default_factory=list)
    log_level: str = "INFO"

    def _validate(self) -> None:
        positive = (
            "poll_interval_seconds",
            "initial_backoff_seconds",
            "recover_interval_seconds",
            "lease_timeout_seconds",
            "delivery_timeout_seconds",
        )
        for name in positive:
            value = getattr(self, name)
            if value <= 0:
                raise InvalidSettingValueError(name, value, "must be positive")
        if self.batch_size < 1:
            raise InvalidSettingValueError("batch_size", self.batch_size, "must be >= 1")
        if self.max_attempts < 1:
            raise InvalidSettingValueError("max_attempts", self.max_attempts, "must be >= 1")
        if self.max_backoff_seconds < self.initial_backoff_seconds:
            raise InvalidSettingValueError(
                "max_backoff_seconds", self.max_backoff_seconds, "must be >= initial_backoff_seconds"
            )
        if not 0 <= self.jitter_ratio <= MAX_JITTER_RATIO:
            raise InvalidSettingValueError(
                "jitter_ratio", self.jitter_ratio, f"must be within [0, {MAX_JITTER_RATIO}]"
            )
        if self.backoff_multiplier <= 1 + self.jitter_ratio:
            raise InvalidSettingValueError(
                "backoff_multiplier", self.backoff_multiplier, "must exceed 1 + jitter_ratio"
            )
        if self.delivery_timeout_seconds >= self.lease_timeout_seconds:
            raise InvalidSettingValueError(
                "delivery_timeout_seconds",
                self.delivery_timeout_seconds,
                "must be shorter than lease_timeout_seconds",
            )
        if logging.getLevelName(self.log_level.upper()) == f"Level {self.log_level.upper()}":
            raise InvalidSettingValueError("log_level", self.log_level, "unknown logging level")

    @property
    def log_level_number(self) -> int:
        return logging.getLevelName(self.log_level.upper())


__all__ = ["DispatchSettings"]
