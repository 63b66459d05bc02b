"""Unit tests for delivery results and the sink registry."""

from __future__ import annotations

import pytest

from mp_outbox.kernel.errors import SinkNotFoundError, ValidationError
from mp_outbox.kernel.outbox import (
    DeliveryPayload,
    DeliveryResult,
    DeliverySink,
    DeliveryStatus,
    SinkRegistry,
)


class _Sink:
    async def deliver(self, channel: str, payload: DeliveryPayload) -> DeliveryResult | None:
        return None


class TestDeliveryResult:
    def test_success(self) -> None:
        result = DeliveryResult.success(http_status=204)
        assert result.ok
        assert result.status == DeliveryStatus.SUCCESS
        assert result.metadata == {"http_status": 204}

    def test_retryable(self) -> None:
        result = DeliveryResult.retryable("503")
        assert not result.ok
        assert result.status == DeliveryStatus.RETRYABLE
        assert result.error == "503"

    def test_terminal(self) -> None:
        result = DeliveryResult.terminal("400", body="bad")
        assert result.status == DeliveryStatus.TERMINAL
        assert result.metadata == {"body": "bad"}


class TestSinkRegistry:
    def test_resolve_registered(self) -> None:
        sink = _Sink()
        registry = SinkRegistry({"webhook": sink})
        assert registry.resolve("webhook") is sink
        assert "webhook" in registry

    def test_resolve_unknown_raises(self) -> None:
        with pytest.raises(SinkNotFoundError) as exc_info:
            SinkRegistry().resolve("analytics")
        assert exc_info.value.channel == "analytics"

    def test_register_empty_channel_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SinkRegistry().register("", _Sink())

    def test_register_replaces(self) -> None:
        first, second = _Sink(), _Sink()
        registry = SinkRegistry({"webhook": first})
        registry.register("webhook", second)
        assert registry.resolve("webhook") is second

    def test_unregister(self) -> None:
        registry = SinkRegistry({"webhook": _Sink()})
        registry.unregister("webhook")
        registry.unregister("never-registered")
        assert "webhook" not in registry

    def test_channels_sorted(self) -> None:
        registry = SinkRegistry({"webhook": _Sink(), "analytics": _Sink()})
        assert registry.channels == ["analytics", "webhook"]

    def test_protocol_is_runtime_checkable(self) -> None:
        assert isinstance(_Sink(), DeliverySink)
