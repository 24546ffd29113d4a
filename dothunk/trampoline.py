"""Depth-bounded trampoline shared by all chains of one engine.

Synchronous chains re-enter the engine recursively: a step settles, the next step
runs from inside the previous completion callback, and so on. Python's recursion
limit (~1000 frames) makes that unsafe for long chains, so every re-entry point goes
through ``Trampoline.bounce``. While budget remains the call happens immediately;
once it is exhausted the call is handed to the scheduler and starts again from an
empty stack with the full budget.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from dothunk.scheduler import Scheduler

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 100


class Trampoline:
    """Shared re-entry budget for one engine instance."""

    __slots__ = ("_scheduler", "_max_depth", "_remaining", "_deferrals")

    def __init__(self, scheduler: Scheduler, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self._scheduler = scheduler
        self._max_depth = max_depth
        self._remaining = max_depth
        self._deferrals = 0

    @property
    def max_depth(self) -> int:
        return self._max_depth

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def deferrals(self) -> int:
        """How many bounces were handed to the scheduler so far."""
        return self._deferrals

    def bounce(self, fn: Callable[..., Any], *args: Any) -> None:
        """Call ``fn(*args)`` now if budget remains, otherwise on the next tick."""
        if self._remaining > 0:
            self._enter(fn, args)
            return
        self._deferrals += 1
        logger.debug("depth bound %d reached, deferring %s", self._max_depth, fn)
        self._scheduler.call_soon(self._enter, fn, args)

    def _enter(self, fn: Callable[..., Any], args: tuple[Any, ...]) -> None:
        self._remaining -= 1
        try:
            fn(*args)
        finally:
            self._remaining += 1


__all__ = ["DEFAULT_MAX_DEPTH", "Trampoline"]
