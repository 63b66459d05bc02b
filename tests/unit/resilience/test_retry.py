"""Unit tests for dispatch backoff, jitter and persistence retries."""

from __future__ import annotations

import asyncio
import random
from datetime import UTC, datetime, timedelta

import pytest
import tenacity
from hypothesis import given
from hypothesis import strategies as st

from mp_outbox.config.settings import DispatchSettings
from mp_outbox.kernel.errors import LeaseLostError
from mp_outbox.resilience.retry import (
    DispatchRetryPolicy,
    ExponentialBackoff,
    NoJitter,
    ProportionalJitter,
    TenacityRetryPolicy,
)

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# ExponentialBackoff
# ---------------------------------------------------------------------------


class TestExponentialBackoff:
    def test_default_schedule(self) -> None:
        b = ExponentialBackoff()
        assert [b.compute(n) for n in range(1, 7)] == [30.0, 60.0, 120.0, 240.0, 480.0, 900.0]

    def test_attempt_zero_waits_base(self) -> None:
        assert ExponentialBackoff(base_delay=5.0).compute(0) == 5.0

    def test_capped(self) -> None:
        assert ExponentialBackoff(base_delay=1.0, max_delay=10.0).compute(50) == 10.0

    def test_huge_attempt_does_not_overflow(self) -> None:
        assert ExponentialBackoff().compute(10_000) == 900.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"base_delay": 0},
            {"base_delay": 10.0, "max_delay": 5.0},
            {"multiplier": 0.5},
        ],
    )
    def test_invalid_arguments(self, kwargs: dict[str, float]) -> None:
        with pytest.raises(ValueError):
            ExponentialBackoff(**kwargs)


# ---------------------------------------------------------------------------
# Jitter
# ---------------------------------------------------------------------------


class TestJitter:
    def test_no_jitter_is_identity(self) -> None:
        assert NoJitter().apply(12.5) == 12.5
        assert NoJitter().max_ratio == 0.0

    def test_proportional_bounds(self) -> None:
        jitter = ProportionalJitter(0.15, rng=random.Random(7))
        for _ in range(200):
            value = jitter.apply(100.0)
            assert 100.0 <= value <= 115.0

    def test_zero_ratio_is_identity(self) -> None:
        assert ProportionalJitter(0.0).apply(30.0) == 30.0

    @pytest.mark.parametrize("ratio", [-0.1, 0.51])
    def test_ratio_range(self, ratio: float) -> None:
        with pytest.raises(ValueError):
            ProportionalJitter(ratio)


# ---------------------------------------------------------------------------
# DispatchRetryPolicy
# ---------------------------------------------------------------------------


class TestDispatchRetryPolicy:
    def test_next_available_without_jitter(self) -> None:
        policy = DispatchRetryPolicy(ExponentialBackoff(), NoJitter())
        assert policy.next_available_at(1, NOW) == NOW + timedelta(seconds=30)
        assert policy.next_available_at(3, NOW) == NOW + timedelta(seconds=120)

    def test_rejects_non_monotonic_configuration(self) -> None:
        with pytest.raises(ValueError):
            DispatchRetryPolicy(ExponentialBackoff(multiplier=1.1), ProportionalJitter(0.15))

    def test_is_exhausted(self) -> None:
        assert DispatchRetryPolicy.is_exhausted(3, 3)
        assert not DispatchRetryPolicy.is_exhausted(2, 3)

    def test_from_settings(self) -> None:
        settings = DispatchSettings(
            initial_backoff_seconds=1.0,
            max_backoff_seconds=8.0,
            backoff_multiplier=3.0,
            jitter_ratio=0.0,
        )
        policy = DispatchRetryPolicy.from_settings(settings)
        assert [policy.backoff_seconds(n) for n in (1, 2, 3)] == [1.0, 3.0, 8.0]

    @given(
        attempts=st.integers(min_value=1, max_value=40),
        base=st.floats(min_value=0.01, max_value=3600.0),
        cap_factor=st.floats(min_value=1.0, max_value=1000.0),
        ratio=st.floats(min_value=0.0, max_value=0.5),
        headroom=st.floats(min_value=0.01, max_value=2.5),
        seed=st.integers(min_value=0, max_value=2**16),
    )
    def test_backoff_is_monotonic_below_cap(
        self,
        attempts: int,
        base: float,
        cap_factor: float,
        ratio: float,
        headroom: float,
        seed: int,
    ) -> None:
        # the policy rejects multipliers at or below 1 + ratio
        backoff = ExponentialBackoff(
            base_delay=base, max_delay=base * cap_factor, multiplier=1 + ratio + headroom
        )
        policy = DispatchRetryPolicy(backoff, ProportionalJitter(ratio, rng=random.Random(seed)))
        current = policy.backoff_seconds(attempts)
        following = policy.backoff_seconds(attempts + 1)
        if backoff.compute(attempts + 1) < backoff.max_delay:
            assert following > current
        else:
            assert following >= backoff.max_delay
        expected = backoff.compute(attempts)
        assert expected <= current <= expected * (1 + ratio) * (1 + 1e-12)


# ---------------------------------------------------------------------------
# TenacityRetryPolicy
# ---------------------------------------------------------------------------


class TestTenacityRetryPolicy:
    def test_retries_transient_errors(self) -> None:
        calls = {"n": 0}

        async def flaky() -> str:
            calls["n"] += 1
            if calls["n"] < 3:
                raise ConnectionError("db blip")
            return "ok"

        policy = TenacityRetryPolicy(max_attempts=3, wait=tenacity.wait_none())
        assert asyncio.run(policy.execute_async(flaky)) == "ok"
        assert calls["n"] == 3

    def test_reraises_after_last_attempt(self) -> None:
        async def always_fails() -> None:
            raise ConnectionError("down")

        policy = TenacityRetryPolicy(max_attempts=2, wait=tenacity.wait_none())
        with pytest.raises(ConnectionError):
            asyncio.run(policy.execute_async(always_fails))

    def test_domain_errors_are_not_retried(self) -> None:
        calls = {"n": 0}

        async def lost() -> None:
            calls["n"] += 1
            raise LeaseLostError("e1", "w1")

        policy = TenacityRetryPolicy(max_attempts=5, wait=tenacity.wait_none())
        with pytest.raises(LeaseLostError):
            asyncio.run(policy.execute_async(lost))
        assert calls["n"] == 1

    def test_invalid_max_attempts(self) -> None:
        with pytest.raises(ValueError):
            TenacityRetryPolicy(max_attempts=0)
