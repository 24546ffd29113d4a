"""Schedulers used by the engine to defer work.

The engine only needs "run this callable as soon as possible after the current
synchronous execution" and "run this callable after a delay". Two implementations
are provided:

- ``AsyncioScheduler`` forwards to an asyncio event loop.
- ``SimulationScheduler`` keeps a FIFO ready queue and a virtual clock, which makes
  chains fully deterministic and lets tests drive them without an event loop.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import threading
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any

from dothunk.errors import NotThunkableError, SchedulerError


class Scheduler(ABC):
    """Deferred-execution primitive consumed by the engine."""

    @abstractmethod
    def call_soon(self, fn: Callable[..., Any], *args: Any) -> None:
        """Run ``fn(*args)`` after the current synchronous execution."""

    def call_soon_threadsafe(self, fn: Callable[..., Any], *args: Any) -> None:
        """Like ``call_soon`` but safe to call from a foreign thread."""
        self.call_soon(fn, *args)

    @abstractmethod
    def call_later(self, delay: float, fn: Callable[..., Any], *args: Any) -> None:
        """Run ``fn(*args)`` once ``delay`` seconds have elapsed."""

    def to_future(self, awaitable: Awaitable[Any]) -> Any:
        """Turn an awaitable into an object exposing ``add_done_callback``."""
        close = getattr(awaitable, "close", None)
        if callable(close):
            close()
        raise NotThunkableError(awaitable, f"{type(self).__name__} cannot run awaitables")


class AsyncioScheduler(Scheduler):
    """Scheduler backed by an asyncio event loop.

    Without an explicit loop the running loop is looked up on first use, so an
    engine can be created at import time and used later from inside ``asyncio.run``.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None and not self._loop.is_closed():
            return self._loop
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError as exc:
            raise SchedulerError(
                "AsyncioScheduler needs a running event loop\n"
                "Hint: use the engine from inside asyncio.run(), or pass "
                "scheduler=SimulationScheduler() to create()"
            ) from exc
        return self._loop

    def call_soon(self, fn: Callable[..., Any], *args: Any) -> None:
        self.loop.call_soon(fn, *args)

    def call_soon_threadsafe(self, fn: Callable[..., Any], *args: Any) -> None:
        self.loop.call_soon_threadsafe(fn, *args)

    def call_later(self, delay: float, fn: Callable[..., Any], *args: Any) -> None:
        self.loop.call_later(delay, fn, *args)

    def to_future(self, awaitable: Awaitable[Any]) -> asyncio.Future[Any]:
        return asyncio.ensure_future(awaitable, loop=self.loop)


class SimulationScheduler(Scheduler):
    """Deterministic scheduler with a virtual clock.

    Nothing runs until ``run()`` is called. Ready callbacks run in FIFO order; when the
    ready queue is empty the clock jumps to the earliest timer. Exceptions raised by a
    callback propagate out of ``run()``.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)
        self._ready: deque[tuple[Callable[..., Any], tuple[Any, ...]]] = deque()
        self._timers: list[tuple[float, int, Callable[..., Any], tuple[Any, ...]]] = []
        self._counter = itertools.count()
        self._lock = threading.Lock()
        self._executed = 0

    @property
    def now(self) -> float:
        """Current virtual time in seconds."""
        return self._now

    @property
    def executed(self) -> int:
        """Total number of callbacks run so far."""
        return self._executed

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._ready) + len(self._timers)

    def call_soon(self, fn: Callable[..., Any], *args: Any) -> None:
        with self._lock:
            self._ready.append((fn, args))

    def call_later(self, delay: float, fn: Callable[..., Any], *args: Any) -> None:
        when = self._now + max(float(delay), 0.0)
        with self._lock:
            heapq.heappush(self._timers, (when, next(self._counter), fn, args))

    def _next(self) -> tuple[Callable[..., Any], tuple[Any, ...]] | None:
        with self._lock:
            if not self._ready and self._timers:
                when = self._timers[0][0]
                self._now = max(self._now, when)
                while self._timers and self._timers[0][0] <= self._now:
                    _, _, fn, args = heapq.heappop(self._timers)
                    self._ready.append((fn, args))
            if not self._ready:
                return None
            return self._ready.popleft()

    def run(self, max_steps: int = 1_000_000) -> int:
        """Run until no work is left.

        Args:
            max_steps: Upper bound on callbacks executed by this call.

        Returns:
            Number of callbacks executed by this call.

        Raises:
            SchedulerError: If ``max_steps`` is exceeded.
        """
        steps = 0
        while True:
            item = self._next()
            if item is None:
                return steps
            if steps >= max_steps:
                with self._lock:
                    self._ready.appendleft(item)
                raise SchedulerError(f"Maximum steps exceeded ({max_steps})")
            fn, args = item
            steps += 1
            self._executed += 1
            fn(*args)

    def advance(self, seconds: float) -> int:
        """Run ready work and every timer due within the next ``seconds``."""
        deadline = self._now + seconds
        steps = 0
        while True:
            with self._lock:
                has_ready = bool(self._ready)
                due = bool(self._timers) and self._timers[0][0] <= deadline
            if not has_ready and not due:
                break
            item = self._next()
            if item is None:
                break
            fn, args = item
            steps += 1
            self._executed += 1
            fn(*args)
        self._now = max(self._now, deadline)
        return steps


__all__ = [
    "AsyncioScheduler",
    "Scheduler",
    "SimulationScheduler",
]
