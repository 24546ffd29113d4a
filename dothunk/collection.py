"""
Collection combinator: run every member of a sequence or mapping and collect
their results into a container of the same shape.

All members are started in input order before the combined result is reported.
Results are placed by index or key, so the output order is the input order no
matter which member settles first. The first member error wins and every later
settlement is ignored.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from dothunk.coercion import run_thunk
from dothunk.errors import CollectionTypeError
from dothunk.types import Callback, Domain, pack_values


def is_collection(value: Any) -> bool:
    return isinstance(value, (list, tuple, Mapping))


class _Gather:
    __slots__ = ("callback", "result", "pending", "finished", "as_tuple")

    def __init__(self, callback: Callback, result: Any, as_tuple: bool) -> None:
        self.callback = callback
        self.result = result
        self.pending = 1
        self.finished = False
        self.as_tuple = as_tuple

    def member(self, key: Any) -> Callback:
        settled = False

        def done(error: BaseException | None = None, *values: Any) -> None:
            nonlocal settled
            if settled or self.finished:
                return
            settled = True
            if error is not None:
                self.finished = True
                self.callback(error)
                return
            self.result[key] = pack_values(values)
            self.release()

        return done

    def release(self) -> None:
        self.pending -= 1
        if self.pending == 0 and not self.finished:
            self.finished = True
            result = tuple(self.result) if self.as_tuple else self.result
            self.callback(None, result)


def gather(items: Any, domain: Domain, nested: bool = True) -> Callable[[Callback], None]:
    """Build ``fn(callback)`` running every member of ``items`` concurrently.

    Args:
        items: A list, tuple or mapping of thunkables.
        domain: Domain the members run under.
        nested: Coerce nested lists and mappings as collections too.

    Raises:
        CollectionTypeError: If ``items`` is neither a sequence nor a mapping.
    """
    if not is_collection(items):
        raise CollectionTypeError(items)

    def run(callback: Callback) -> None:
        if isinstance(items, Mapping):
            state = _Gather(callback, dict.fromkeys(items), as_tuple=False)
            members = list(items.items())
        else:
            state = _Gather(callback, [None] * len(items), as_tuple=isinstance(items, tuple))
            members = list(enumerate(items))

        for key, member in members:
            if state.finished:
                break
            state.pending += 1
            run_thunk(domain, member, state.member(key), nested)
        state.release()

    return run


__all__ = ["gather", "is_collection"]
