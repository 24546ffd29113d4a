"""
Continuation engine: the chain primitive behind every ``Thunk``.

A chain is a forward-only list of ``Link`` nodes. Calling a ``Thunk`` with a
callback attaches that callback to the thunk's node and returns a new ``Thunk`` for
the successor node. When a node has both a settled result and a callback, the
node's value is executed (see ``run_thunk``) and its outcome is handed to the
callback; whatever the callback returns or raises becomes the result of the next
node, and the process repeats.

Step invocation contract: a step is always called with at least two positional
arguments, ``step(error, value)``; multi-value settlements arrive as
``step(None, a, b, ...)``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from dothunk.coercion import run_thunk
from dothunk.errors import (
    CATCHABLE,
    NotCallableError,
    StopSignal,
    ThunkAlreadyFilledError,
    ensure_exception,
)
from dothunk.types import CONSUMED, CONTINUE, Callback, Domain, Link, pack_values
from dothunk.utils import prune_traceback

logger = logging.getLogger(__name__)

_HOOK_FAILED = object()


def _noop(error: Any, *values: Any) -> None:
    if error is not None:
        raise ensure_exception(error)


class Thunk:
    """Chain-starting or chain-continuing callable.

    ``thunk(callback)`` attaches ``callback`` to this node and returns the thunk of
    the next node. Attaching twice to the same node raises
    ``ThunkAlreadyFilledError``.
    """

    __slots__ = ("_link", "_domain")

    def __init__(self, link: Link, domain: Domain) -> None:
        self._link = link
        self._domain = domain

    @property
    def context(self) -> Any:
        """Receiver the chain was started under."""
        return self._domain.context

    @property
    def attached(self) -> bool:
        return self._link.callback is not None

    def __call__(self, callback: Callback | None = None) -> Thunk:
        link = self._link
        if link.callback is not None:
            raise ThunkAlreadyFilledError()
        if callback is None:
            callback = _noop
        elif not callable(callback):
            raise NotCallableError(callback)
        link.callback = callback
        link.next = Link()
        if link.settled:
            self._domain.trampoline.bounce(continuation, link, self._domain)
        return Thunk(link.next, self._domain)

    def to_future(self) -> asyncio.Future[Any]:
        """Attach a callback that resolves an asyncio future on the running loop.

        The future receives the settled value (a list for multi-value settlements)
        or the error. A chain halted by ``stop()`` never resolves it.
        """
        future = asyncio.get_running_loop().create_future()

        def settle(error: Any, *values: Any) -> None:
            if future.done():
                return
            if error is not None:
                future.set_exception(ensure_exception(error))
            else:
                future.set_result(pack_values(values))

        self(settle)
        return future

    def __await__(self):
        return self.to_future().__await__()

    def __repr__(self) -> str:
        return f"Thunk({self._link!r})"


def continuation(parent: Link, domain: Domain) -> None:
    """Execute ``parent``'s settled value and feed the outcome to its callback."""
    error, value = parent.result
    complete = _completion(parent, domain)
    if error is not None:
        complete(error)
    else:
        run_thunk(domain, value, complete)


def _completion(parent: Link, domain: Domain) -> Callback:
    scope = domain.scope

    def complete(error: Any = None, *values: Any) -> None:
        if parent.result is CONSUMED:
            return
        parent.result = CONSUMED
        if scope.debug is not None:
            if _call_hook(domain, scope.debug, error, *values) is _HOOK_FAILED:
                return

        if error is not None:
            if isinstance(error, StopSignal):
                return
            if scope.prune_traceback and isinstance(error, BaseException):
                prune_traceback(error)
            if scope.onerror is not None:
                if _call_hook(domain, scope.onerror, error) is not CONTINUE:
                    return
                error = None
            values = ()

        current = parent.next
        current.result = _invoke(parent.callback, error, values)
        if current.callback is not None:
            domain.trampoline.bounce(continuation, current, domain)
        elif _reportable(current.result[0]):
            scope.scheduler.call_soon(_report_unhandled, current, domain)

    return complete


def _invoke(step: Callable[..., Any], error: Any, values: tuple[Any, ...]) -> tuple[Any, Any]:
    try:
        return (None, step(error, *(values or (None,))))
    except CATCHABLE as exc:
        return (exc, None)


def _reportable(error: Any) -> bool:
    return error is not None and not isinstance(error, StopSignal)


def _call_hook(domain: Domain, hook: Callable[..., Any], *args: Any) -> Any:
    try:
        return hook(*args)
    except CATCHABLE as exc:
        domain.scope.scheduler.call_soon(_rethrow, exc)
        return _HOOK_FAILED


def _rethrow(error: Any) -> None:
    raise ensure_exception(error)


def _report_unhandled(link: Link, domain: Domain) -> None:
    # A callback attached in the meantime takes over the error.
    if link.callback is not None or not link.settled:
        return
    error = link.result[0]
    if not _reportable(error):
        return
    link.result = CONSUMED
    scope = domain.scope
    if scope.onerror is not None:
        _call_hook(domain, scope.onerror, error)
        return
    logger.debug("unhandled error at end of chain: %r", error)
    raise ensure_exception(error)


__all__ = ["Thunk", "continuation"]
