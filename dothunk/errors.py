"""Error types for the dothunk engine."""

from __future__ import annotations

from typing import Any


class DothunkError(Exception):
    """Base class for structural (API misuse) errors."""


class ThunkAlreadyFilledError(DothunkError):
    """Raised when a second callback is attached to the same chain node."""

    def __init__(self) -> None:
        super().__init__(
            "This thunk already has a callback attached\n"
            "Hint: attach to the thunk returned by the previous call instead"
        )


class NotCallableError(DothunkError, TypeError):
    """Raised when a callback or step is not callable."""

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(f"Expected a callable callback, got {type(value).__name__}: {value!r}")


class NotThunkableError(DothunkError, TypeError):
    """Raised in strict mode for callables that cannot accept a single callback."""

    def __init__(self, value: Any, reason: str | None = None) -> None:
        self.value = value
        message = f"Not thunkable: {value!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class CollectionTypeError(DothunkError, TypeError):
    """Raised when a combinator receives something that is not a sequence or mapping."""

    def __init__(self, value: Any, expected: str = "a sequence or mapping") -> None:
        self.value = value
        super().__init__(f"Expected {expected}, got {type(value).__name__}: {value!r}")


class ConfigurationError(DothunkError, ValueError):
    """Raised for invalid engine configuration."""


class SchedulerError(DothunkError, RuntimeError):
    """Raised when a scheduler cannot make progress or is misused."""


class StopSignal(BaseException):
    """Cooperative cancellation signal raised by ``Engine.stop``.

    It derives from ``BaseException`` so that ``except Exception`` blocks in user
    code let it through, the same way ``asyncio.CancelledError`` behaves. The engine
    never hands it to the error handler; it halts the chain and the stop handler is
    notified instead.

    Attributes:
        message: Human readable reason.
        status: Fixed status code (19).
        code: Fixed symbolic code ("SIGSTOP").
    """

    status = 19
    code = "SIGSTOP"

    def __init__(self, message: Any = None) -> None:
        self.message = "process stopped" if message is None else str(message)
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"StopSignal({self.message!r}, status={self.status}, code={self.code!r})"


class CallbackError(Exception):
    """Wraps a non-exception error value passed to a result callback."""

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(f"Callback reported a non-exception error: {value!r}")


# Everything the engine catches around user code.
CATCHABLE: tuple[type[BaseException], ...] = (Exception, StopSignal)


def ensure_exception(error: Any) -> BaseException:
    """Return ``error`` if it can be raised, otherwise wrap it in ``CallbackError``."""
    if isinstance(error, BaseException):
        return error
    return CallbackError(error)


__all__ = [
    "CATCHABLE",
    "CallbackError",
    "CollectionTypeError",
    "ConfigurationError",
    "DothunkError",
    "NotCallableError",
    "NotThunkableError",
    "SchedulerError",
    "StopSignal",
    "ThunkAlreadyFilledError",
    "ensure_exception",
]
