"""
Pytest configuration for dothunk tests.

Most tests run on a ``SimulationScheduler`` so that every chain is deterministic:
nothing deferred happens until the test calls ``scheduler.run()``.
"""

from __future__ import annotations

from typing import Any

import pytest

from dothunk import Engine, SimulationScheduler, create


class Recorder:
    """Result callback that remembers every ``(error, *values)`` it receives."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []

    def __call__(self, error: Any, *values: Any) -> None:
        self.calls.append((error, *values))

    @property
    def errors(self) -> list[Any]:
        return [call[0] for call in self.calls if call[0] is not None]

    @property
    def values(self) -> list[Any]:
        return [call[1] for call in self.calls if call[0] is None]


@pytest.fixture
def scheduler() -> SimulationScheduler:
    return SimulationScheduler()


@pytest.fixture
def thunk(scheduler: SimulationScheduler) -> Engine:
    """Engine with default policies on the simulation scheduler."""
    return create(scheduler=scheduler)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def make_recorder():
    return Recorder


def after(engine: Engine, seconds: float, value: Any, log: list[Any] | None = None):
    """Generator settling with ``value`` once ``seconds`` have elapsed."""
    yield engine.delay(seconds)
    if log is not None:
        log.append(value)
    return value


def failing_after(engine: Engine, seconds: float, error: BaseException):
    yield engine.delay(seconds)
    raise error


@pytest.fixture
def timed():
    """Expose the ``after`` / ``failing_after`` generator helpers."""

    class Timed:
        value = staticmethod(after)
        error = staticmethod(failing_after)

    return Timed
