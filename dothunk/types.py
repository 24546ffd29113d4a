"""
Core data types for the dothunk engine.

- ``Thunkable``: a value classified once into one of the engine's variants.
- ``Link``: one node of a forward-only execution chain.
- ``Scope``: immutable per-engine configuration (handlers, policies, scheduler).
- ``Domain``: the receiver a chain runs under plus the shared Scope.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    from dothunk.scheduler import Scheduler
    from dothunk.trampoline import Trampoline

ErrorHandler = Callable[[BaseException], Any]
StopHandler = Callable[[BaseException], Any]
TraceHandler = Callable[..., Any]
Callback = Callable[..., Any]


class _Sentinel:
    __slots__ = ("_name",)

    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return self._name


# Returned by an error handler to resume the chain with a ``None`` value.
CONTINUE: Final = _Sentinel("CONTINUE")

PENDING: Final = _Sentinel("PENDING")
CONSUMED: Final = _Sentinel("CONSUMED")


class ThunkableKind(Enum):
    CALLBACK = "callback"
    COROUTINE = "coroutine"
    DEFERRED = "deferred"
    COLLECTION = "collection"
    PLAIN = "plain"


@dataclass(frozen=True)
class Thunkable:
    """A value after classification.

    ``payload`` depends on ``kind``:

    - ``CALLBACK``: a callable accepting one result callback.
    - ``COROUTINE``: a generator object.
    - ``DEFERRED``: an object exposing ``add_done_callback``.
    - ``COLLECTION``: a sequence or mapping of thunkables.
    - ``PLAIN``: the value itself (``None`` means "no value").
    """

    kind: ThunkableKind
    payload: Any
    # Only meaningful for COLLECTION: coerce nested collections as well.
    nested: bool = True

    @classmethod
    def callback(cls, fn: Callable[[Callback], Any]) -> Thunkable:
        return cls(ThunkableKind.CALLBACK, fn)

    @classmethod
    def plain(cls, value: Any = None) -> Thunkable:
        return cls(ThunkableKind.PLAIN, value)

    @classmethod
    def collection(cls, items: Any, nested: bool = True) -> Thunkable:
        return cls(ThunkableKind.COLLECTION, items, nested)

    @property
    def is_plain(self) -> bool:
        return self.kind is ThunkableKind.PLAIN


class Link:
    """One node of an execution chain.

    ``result`` goes PENDING -> ``(error, value)`` -> CONSUMED, each transition at most
    once. ``callback`` is attached at most once. ``next`` is created when the callback
    is attached and is owned exclusively by this node.
    """

    __slots__ = ("result", "callback", "next")

    def __init__(self, result: Any = PENDING) -> None:
        self.result = result
        self.callback: Callback | None = None
        self.next: Link | None = None

    @property
    def settled(self) -> bool:
        return self.result is not PENDING and self.result is not CONSUMED

    def __repr__(self) -> str:
        return f"Link(result={self.result!r}, attached={self.callback is not None})"


@dataclass(frozen=True)
class Scope:
    """Immutable configuration shared by every chain of one engine."""

    scheduler: Scheduler
    onerror: ErrorHandler | None = None
    onstop: StopHandler | None = None
    debug: TraceHandler | None = None
    strict: bool = True
    prune_traceback: bool = False


@dataclass(frozen=True)
class Domain:
    """Execution context threaded through a chain.

    ``context`` is the receiver the chain was started under; ``trampoline`` is the
    engine-wide re-entry budget.
    """

    scope: Scope
    trampoline: Trampoline
    context: Any = None

    def with_context(self, context: Any) -> Domain:
        return Domain(self.scope, self.trampoline, context)


def pack_values(values: tuple[Any, ...]) -> Any:
    """Collapse a callback's trailing values into one result slot."""
    if not values:
        return None
    if len(values) == 1:
        return values[0]
    return list(values)


__all__ = [
    "CONSUMED",
    "CONTINUE",
    "Callback",
    "Domain",
    "ErrorHandler",
    "Link",
    "PENDING",
    "Scope",
    "StopHandler",
    "Thunkable",
    "ThunkableKind",
    "TraceHandler",
    "pack_values",
]
