"""
Ordered-sequence, race, delay and persist combinators.

Each builder returns ``fn(callback)``; ``Engine`` wraps them into thunks so that
they only start once a callback is attached to the resulting chain.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from dothunk.coercion import run_thunk
from dothunk.types import Callback, Domain, Thunkable, pack_values

if TYPE_CHECKING:
    from dothunk.chain import Thunk
    from dothunk.engine import Engine


def sequence(items: Sequence[Any], domain: Domain) -> Callable[[Callback], None]:
    """Run ``items`` strictly one after another, collecting results in order.

    The first error aborts the sequence and the results collected so far are
    dropped. Each next member is started through the trampoline.
    """
    items = list(items)

    def run(callback: Callback) -> None:
        results: list[Any] = [None] * len(items)
        if not items:
            callback(None, results)
            return

        def start(index: int) -> None:
            run_thunk(domain, items[index], settled(index), True)

        def settled(index: int) -> Callback:
            done = False

            def next_member(error: Any = None, *values: Any) -> None:
                nonlocal done
                if done:
                    return
                done = True
                if error is not None:
                    callback(error)
                    return
                results[index] = pack_values(values)
                if index + 1 == len(items):
                    callback(None, results)
                    return
                domain.trampoline.bounce(start, index + 1)

            return next_member

        start(0)

    return run


def race(items: Sequence[Any], domain: Domain) -> Callable[[Callback], None]:
    """Start every member; the first settlement (value or error) wins.

    Losing members are not cancelled. They keep running and their results are
    discarded.
    """
    items = list(items)

    def run(callback: Callback) -> None:
        if not items:
            callback(None)
            return
        finished = False

        def first(error: Any = None, *values: Any) -> None:
            nonlocal finished
            if finished:
                return
            finished = True
            callback(error, *values)

        for member in items:
            run_thunk(domain, member, first, True)

    return run


def to_seconds(duration: float | timedelta | None) -> float:
    if duration is None:
        return 0.0
    if isinstance(duration, timedelta):
        return duration.total_seconds()
    return float(duration)


def delay(duration: float | timedelta | None, domain: Domain) -> Callable[[Callback], None]:
    """Settle with no value once ``duration`` seconds have elapsed.

    Non-positive durations settle on the next scheduler tick.
    """
    seconds = to_seconds(duration)
    scheduler = domain.scope.scheduler

    def run(callback: Callback) -> None:
        if seconds > 0:
            scheduler.call_later(seconds, callback)
        else:
            scheduler.call_soon(callback)

    return run


class Persisted:
    """Memoised thunkable: executed once, every caller gets the same result.

    The underlying value starts running as soon as the ``Persisted`` is created.
    Callers attaching before it settles are queued and replayed in attachment order.
    """

    __slots__ = ("_engine", "_result", "_queue")

    def __init__(self, engine: Engine, thunkable: Any) -> None:
        self._engine = engine
        self._result: tuple[Any, ...] | None = None
        self._queue: list[Callback] = []
        engine(thunkable)(self._settle)

    @property
    def settled(self) -> bool:
        return self._result is not None

    def _settle(self, error: Any, *values: Any) -> None:
        self._result = (error, *values)
        queue, self._queue = self._queue, []
        for done in queue:
            done(*self._result)

    def _replay(self, done: Callback) -> None:
        if self._result is not None:
            done(*self._result)
        else:
            self._queue.append(done)

    def __call__(self, callback: Callback | None = None) -> Thunk:
        """Return a new chain that settles with the memoised result.

        Without a callback the replaying thunk itself is returned, so the result can
        be attached later.
        """
        replay = self._engine(Thunkable.callback(self._replay))
        if callback is None:
            return replay
        return replay(callback)


__all__ = ["Persisted", "delay", "race", "sequence", "to_seconds"]
