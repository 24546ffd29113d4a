"""
Entry factory: builds an isolated engine bound to one configuration.

    >>> from dothunk import create, SimulationScheduler
    >>> scheduler = SimulationScheduler()
    >>> thunk = create(scheduler=scheduler)
    >>> seen = []
    >>> _ = thunk(1)(lambda error, value: value + 1)(lambda error, value: seen.append(value))
    >>> seen
    [2]
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields, replace
from datetime import timedelta
from typing import Any, NoReturn

from dothunk.chain import Thunk
from dothunk.collection import gather, is_collection
from dothunk.combinators import Persisted, delay, race, sequence
from dothunk.errors import (
    CollectionTypeError,
    ConfigurationError,
    NotCallableError,
    StopSignal,
    ensure_exception,
)
from dothunk.scheduler import AsyncioScheduler, Scheduler
from dothunk.trampoline import DEFAULT_MAX_DEPTH, Trampoline
from dothunk.types import (
    Callback,
    Domain,
    ErrorHandler,
    Link,
    Scope,
    StopHandler,
    Thunkable,
    TraceHandler,
)
from dothunk.utils import DEBUG_THUNKS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineConfig:
    """Options accepted by ``create``.

    Attributes:
        onerror: Receives every ordinary error of the engine's chains. Returning
            ``CONTINUE`` resumes the chain with a ``None`` value; anything else halts it.
        onstop: Receives the ``StopSignal`` raised by ``Engine.stop``.
        debug: Called with ``(error, *values)`` for every settlement; ``True``
            installs the loguru tracer.
        strict: Reject callables that cannot take a single callback.
        max_depth: Synchronous re-entry budget before work is deferred.
        prune_traceback: Strip dothunk frames from step error tracebacks.
        scheduler: Deferred-execution primitive; defaults to ``AsyncioScheduler()``.
    """

    onerror: ErrorHandler | None = None
    onstop: StopHandler | None = None
    debug: TraceHandler | bool | None = None
    strict: bool = True
    max_depth: int = DEFAULT_MAX_DEPTH
    prune_traceback: bool = False
    scheduler: Scheduler | None = None

    @classmethod
    def from_options(cls, config: Any = None, **options: Any) -> EngineConfig:
        """Normalise ``None``, a bare error handler, a mapping or a config."""
        if config is None:
            base = cls()
        elif isinstance(config, EngineConfig):
            base = config
        elif isinstance(config, Mapping):
            base = cls()
            options = {**config, **options}
        elif callable(config):
            base = cls(onerror=config)
        else:
            raise ConfigurationError(
                f"Expected a mapping, an error handler or EngineConfig, got {type(config).__name__}"
            )
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ConfigurationError(f"Unknown engine options: {', '.join(unknown)}")
        result = replace(base, **options) if options else base
        result.validate()
        return result

    def validate(self) -> None:
        for name in ("onerror", "onstop"):
            handler = getattr(self, name)
            if handler is not None and not callable(handler):
                raise ConfigurationError(f"{name} must be callable, got {handler!r}")
        if self.debug not in (None, True, False) and not callable(self.debug):
            raise ConfigurationError(f"debug must be callable or a bool, got {self.debug!r}")
        if isinstance(self.max_depth, bool) or not isinstance(self.max_depth, int) or self.max_depth < 1:
            raise ConfigurationError(f"max_depth must be a positive int, got {self.max_depth!r}")
        if self.scheduler is not None and not isinstance(self.scheduler, Scheduler):
            raise ConfigurationError(f"scheduler must be a Scheduler, got {self.scheduler!r}")

    def to_scope(self) -> Scope:
        debug = self.debug
        if debug is True or (debug is None and DEBUG_THUNKS):
            from dothunk.trace import loguru_tracer

            debug = loguru_tracer
        elif debug is False:
            debug = None
        return Scope(
            scheduler=self.scheduler if self.scheduler is not None else AsyncioScheduler(),
            onerror=self.onerror,
            onstop=self.onstop,
            debug=debug,
            strict=self.strict,
            prune_traceback=self.prune_traceback,
        )


def _collect(args: tuple[Any, ...], name: str, mappings: bool) -> Any:
    if len(args) == 1 and is_collection(args[0]):
        items = args[0]
        if not mappings and isinstance(items, Mapping):
            raise CollectionTypeError(items, f"a sequence for {name}()")
        return items
    if len(args) == 1 and not mappings:
        raise CollectionTypeError(args[0], f"a sequence for {name}()")
    if len(args) == 1:
        raise CollectionTypeError(args[0])
    return list(args)


class Engine:
    """Thunk factory bound to one ``Scope``.

    ``engine(value)`` wraps any thunkable into a lazy chain; nothing runs until a
    callback is attached. Combinators are exposed as methods.
    """

    __slots__ = ("_domain",)

    def __init__(self, domain: Domain) -> None:
        self._domain = domain

    @property
    def scope(self) -> Scope:
        return self._domain.scope

    @property
    def scheduler(self) -> Scheduler:
        return self._domain.scope.scheduler

    @property
    def trampoline(self) -> Trampoline:
        return self._domain.trampoline

    @property
    def context(self) -> Any:
        return self._domain.context

    def bind(self, context: Any) -> Engine:
        """Same engine, with chains started under ``context``."""
        return Engine(self._domain.with_context(context))

    def __call__(self, thunkable: Any = None) -> Thunk:
        return Thunk(Link((None, thunkable)), self._domain)

    def _start(self, fn: Callable[[Callback], Any]) -> Thunk:
        return self(Thunkable.callback(fn))

    def all(self, *args: Any) -> Thunk:
        """Run every member concurrently; settle with results in input shape.

        Accepts one list, tuple or mapping, or the members as separate arguments.
        """
        items = _collect(args, "all", mappings=True)
        return self._start(gather(items, self._domain))

    def seq(self, *args: Any) -> Thunk:
        """Run members one after another; settle with the list of results."""
        items = _collect(args, "seq", mappings=False)
        return self._start(sequence(items, self._domain))

    def race(self, *args: Any) -> Thunk:
        """Settle with whichever member settles first."""
        items = _collect(args, "race", mappings=False)
        return self._start(race(items, self._domain))

    def delay(self, duration: float | timedelta | None = 0) -> Thunk:
        return self._start(delay(duration, self._domain))

    def digest(self, error: Any = None, *values: Any) -> Thunk:
        """A thunk settling with exactly ``(error, *values)``."""

        def settle(callback: Callback) -> None:
            callback(error, *values)

        return self._start(settle)

    def stop(self, message: Any = None) -> NoReturn:
        """Raise ``StopSignal`` and notify ``onstop`` on the next tick."""
        signal = StopSignal(message)
        logger.debug("stop requested: %s", signal.message)
        onstop = self.scope.onstop
        if onstop is not None:
            self.scheduler.call_soon(onstop, signal)
        raise signal

    def persist(self, thunkable: Any) -> Persisted:
        """Run ``thunkable`` once and replay its result to every caller."""
        return Persisted(self, thunkable)

    def thunkify(self, fn: Callable[..., Any]) -> Callable[..., Thunk]:
        """Adapt ``fn(*args, callback)`` into ``wrapper(*args) -> Thunk``."""
        if not callable(fn):
            raise NotCallableError(fn)

        def thunkified(*args: Any, **kwargs: Any) -> Thunk:
            def run(callback: Callback) -> None:
                fn(*args, callback, **kwargs)

            return self._start(run)

        thunkified.__wrapped__ = fn  # type: ignore[attr-defined]
        return thunkified

    def lift(self, fn: Callable[..., Any]) -> Callable[..., Thunk]:
        """Adapt ``fn`` to take thunkable arguments.

        The lifted function awaits every argument, then calls ``fn`` with the settled
        values; an argument error is raised into the chain instead.
        """
        if not callable(fn):
            raise NotCallableError(fn)

        def apply(error: Any, values: list[Any]) -> Any:
            if error is not None:
                raise ensure_exception(error)
            return fn(*values)

        def lifted(*args: Any) -> Thunk:
            return self(Thunkable.collection(list(args), nested=False))(apply)

        lifted.__wrapped__ = fn  # type: ignore[attr-defined]
        return lifted

    def __repr__(self) -> str:
        return f"Engine(scheduler={type(self.scheduler).__name__}, context={self.context!r})"


def create(config: Any = None, **options: Any) -> Engine:
    """Create an isolated engine.

    Args:
        config: ``None``, a bare error handler, a mapping of options or an
            ``EngineConfig``.
        **options: Override individual ``EngineConfig`` fields.

    Raises:
        ConfigurationError: For unknown or invalid options.
    """
    resolved = EngineConfig.from_options(config, **options)
    scope = resolved.to_scope()
    return Engine(Domain(scope, Trampoline(scope.scheduler, resolved.max_depth)))


__all__ = ["Engine", "EngineConfig", "create"]
