"""
Coroutine driver: steps a generator, feeding it settled values or errors.

Each yielded value goes through ``run_thunk`` with collection coercion enabled, so a
generator can ``yield`` thunks, futures, nested generators, lists or dicts of those,
and receives the settled value back from ``yield``. A settled error is thrown into the
generator at the suspended ``yield``, which lets ``try``/``except`` inside the
generator recover from it.

Resumes go through the engine trampoline, so a generator yielding thousands of
synchronously settled values does not grow the native stack without bound.
"""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

from dothunk.coercion import run_thunk
from dothunk.errors import CATCHABLE, ensure_exception
from dothunk.types import Callback, Domain, pack_values


class GeneratorDriver:
    """Explicit resumable state for one generator run."""

    __slots__ = ("_gen", "_domain", "_callback")

    def __init__(self, gen: Generator[Any, Any, Any], domain: Domain) -> None:
        self._gen: Generator[Any, Any, Any] | None = gen
        self._domain = domain
        self._callback: Callback | None = None

    @property
    def finished(self) -> bool:
        return self._gen is None

    def start(self, callback: Callback) -> None:
        """Run the generator to completion, reporting through ``callback``."""
        self._callback = callback
        self.step(None, None)

    def step(self, error: BaseException | None, value: Any) -> None:
        gen = self._gen
        if gen is None:
            return
        failure: BaseException | None = None
        final: Any = None
        try:
            if error is not None:
                yielded = gen.throw(ensure_exception(error))
            else:
                yielded = gen.send(value)
        except StopIteration as stop:
            final = stop.value
        except CATCHABLE as exc:
            failure = exc
        else:
            self._domain.trampoline.bounce(
                run_thunk, self._domain, yielded, self._resumer(), True
            )
            return

        self._gen = None
        if failure is not None:
            self._callback(failure)
            return
        # the return value may itself be a thunk, e.g. ``return fetch()``
        run_thunk(self._domain, final, self._callback)

    def _resumer(self) -> Callback:
        resumed = False

        def resume(error: BaseException | None = None, *values: Any) -> None:
            nonlocal resumed
            if resumed:
                return
            resumed = True
            self.step(error, pack_values(values))

        return resume


__all__ = ["GeneratorDriver"]
