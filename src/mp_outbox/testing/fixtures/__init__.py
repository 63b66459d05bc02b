"""Testing fixtures – pytest fixtures for fake doubles.

Import them into a ``conftest.py``::

    from mp_outbox.testing.fixtures import *  # noqa: F403
"""
from mp_outbox.testing.fixtures.clock import fake_clock
from mp_outbox.testing.fixtures.outbox import (
    fake_metrics,
    outbox_state,
    recording_sink,
    sink_registry,
    uow_factory,
)

__all__ = [
    "fake_clock",
    "fake_metrics",
    "outbox_state",
    "recording_sink",
    "sink_registry",
    "uow_factory",
]
