"""
dothunk - callback continuation chains for Python.

Wraps callback functions, generators, futures and collections of those into
uniform, chainable thunks. Long synchronous chains are trampolined through a
scheduler so they never exhaust the native stack.

Example:
    >>> from dothunk import create, SimulationScheduler
    >>>
    >>> scheduler = SimulationScheduler()
    >>> thunk = create(scheduler=scheduler)
    >>>
    >>> def fetch(n):
    ...     yield thunk.delay(0.1)
    ...     return n * 2
    >>>
    >>> results = []
    >>> _ = thunk.all([fetch(1), fetch(2)])(lambda error, value: results.append(value))
    >>> _ = scheduler.run()
    >>> results
    [[2, 4]]
"""

from dothunk.chain import Thunk
from dothunk.coercion import classify
from dothunk.combinators import Persisted
from dothunk.engine import Engine, EngineConfig, create
from dothunk.errors import (
    CallbackError,
    CollectionTypeError,
    ConfigurationError,
    DothunkError,
    NotCallableError,
    NotThunkableError,
    SchedulerError,
    StopSignal,
    ThunkAlreadyFilledError,
)
from dothunk.scheduler import AsyncioScheduler, Scheduler, SimulationScheduler
from dothunk.trampoline import DEFAULT_MAX_DEPTH, Trampoline
from dothunk.types import CONTINUE, Thunkable, ThunkableKind

__version__ = "0.1.0"

__all__ = [
    "AsyncioScheduler",
    "CONTINUE",
    "CallbackError",
    "CollectionTypeError",
    "ConfigurationError",
    "DEFAULT_MAX_DEPTH",
    "DothunkError",
    "Engine",
    "EngineConfig",
    "NotCallableError",
    "NotThunkableError",
    "Persisted",
    "Scheduler",
    "SchedulerError",
    "SimulationScheduler",
    "StopSignal",
    "Thunk",
    "Thunkable",
    "ThunkableKind",
    "ThunkAlreadyFilledError",
    "Trampoline",
    "classify",
    "create",
]
