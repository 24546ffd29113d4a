"""
Coercion layer: classify any value into a ``Thunkable`` and run it.

``classify`` is the single place where the shape of a user value is inspected.
Everything downstream works on the tagged ``Thunkable`` it returns. ``run_thunk``
executes a value and reports its outcome to a result callback, which is how every
combinator and the chain engine consume user values.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable, Mapping
from concurrent.futures import CancelledError
from typing import Any

from dothunk.errors import CATCHABLE, NotThunkableError
from dothunk.scheduler import Scheduler
from dothunk.types import Callback, Domain, Thunkable, ThunkableKind
from dothunk.utils import positional_capacity


def accepts_one_argument(fn: Any) -> bool:
    """True when ``fn`` can be called with exactly one positional argument."""
    capacity = positional_capacity(fn)
    if capacity is None:
        return False
    required, maximum = capacity
    return required <= 1 <= maximum


def classify(value: Any, *, strict: bool = True, collections: bool = False) -> Thunkable:
    """Classify ``value`` into one ``Thunkable`` variant.

    Args:
        value: Any user value.
        strict: Reject callables that cannot take a single callback instead of
            treating them as plain values.
        collections: Treat lists, tuples and mappings as collections of thunkables.

    Raises:
        NotThunkableError: In strict mode, for callables of the wrong shape.
    """
    if value is None:
        return Thunkable.plain()
    if isinstance(value, Thunkable):
        return value

    if inspect.isgenerator(value):
        return Thunkable(ThunkableKind.COROUTINE, value)
    if inspect.isgeneratorfunction(value):
        return Thunkable(ThunkableKind.COROUTINE, value())
    if inspect.iscoroutinefunction(value):
        return Thunkable(ThunkableKind.DEFERRED, value())
    if isinstance(value, type):
        return Thunkable.plain(value)
    if callable(value):
        if accepts_one_argument(value):
            return Thunkable.callback(value)
        if strict:
            raise NotThunkableError(value, "expected a function accepting one callback")
        return Thunkable.plain(value)

    to_thunk = getattr(value, "to_thunk", None)
    if callable(to_thunk):
        return classify(to_thunk(), strict=strict, collections=collections)
    to_future = getattr(value, "to_future", None)
    if callable(to_future):
        return Thunkable(ThunkableKind.DEFERRED, to_future())
    if callable(getattr(value, "add_done_callback", None)) or inspect.isawaitable(value):
        return Thunkable(ThunkableKind.DEFERRED, value)

    if collections and isinstance(value, (list, tuple, Mapping)):
        return Thunkable.collection(value)
    return Thunkable.plain(value)


def to_callback_fn(thunkable: Thunkable, domain: Domain) -> Callable[[Callback], Any]:
    """Normalise a non-plain ``Thunkable`` into ``fn(callback)``."""
    kind = thunkable.kind
    if kind is ThunkableKind.CALLBACK:
        return thunkable.payload
    if kind is ThunkableKind.COROUTINE:
        from dothunk.coroutine import GeneratorDriver

        return GeneratorDriver(thunkable.payload, domain).start
    if kind is ThunkableKind.DEFERRED:
        return deferred_to_callback_fn(thunkable.payload, domain.scope.scheduler)
    if kind is ThunkableKind.COLLECTION:
        from dothunk.collection import gather

        return gather(thunkable.payload, domain, nested=thunkable.nested)
    raise NotThunkableError(thunkable.payload, "plain values have no callback form")


def run_thunk(
    domain: Domain,
    value: Any,
    callback: Callback,
    collections: bool = False,
) -> None:
    """Execute ``value`` and report its outcome as ``callback(error, *values)``.

    Plain values settle synchronously; ``None`` settles with no value. Errors raised
    while classifying or starting the value are delivered to ``callback``.
    """
    try:
        thunkable = classify(value, strict=domain.scope.strict, collections=collections)
        fn = None if thunkable.is_plain else to_callback_fn(thunkable, domain)
    except CATCHABLE as exc:
        error: BaseException = exc
    else:
        if fn is None:
            if thunkable.payload is None:
                callback(None)
            else:
                callback(None, thunkable.payload)
            return
        try:
            fn(callback)
            return
        except CATCHABLE as exc:
            error = exc
    callback(error)


def deferred_to_callback_fn(deferred: Any, scheduler: Scheduler) -> Callable[[Callback], None]:
    """Adapt a future (or awaitable) to ``fn(callback)``.

    Completion is always delivered through the scheduler, so a future finishing on
    another thread settles the chain on the scheduler's thread.
    """

    def run(callback: Callback) -> None:
        future = deferred
        if not callable(getattr(future, "add_done_callback", None)):
            future = scheduler.to_future(deferred)

        def on_done(done: Any) -> None:
            scheduler.call_soon_threadsafe(_settle_future, done, callback)

        future.add_done_callback(on_done)

    return run


def _settle_future(future: Any, callback: Callback) -> None:
    try:
        error = future.exception()
    except (CancelledError, asyncio.CancelledError) as cancelled:
        # each future flavour raises its own CancelledError class
        callback(cancelled)
        return
    if error is not None:
        callback(error)
        return
    callback(None, future.result())


__all__ = [
    "accepts_one_argument",
    "classify",
    "deferred_to_callback_fn",
    "run_thunk",
    "to_callback_fn",
]
