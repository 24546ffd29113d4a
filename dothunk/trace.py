"""Loguru-backed debug hook for tracing chain settlements."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from loguru import logger

trace_logger = logger.bind(component="dothunk")


def make_tracer(**bindings: Any) -> Callable[..., None]:
    """Build a ``debug`` hook that logs every settlement.

    Extra keyword arguments are bound onto the loguru record, e.g.
    ``make_tracer(engine="billing")``.
    """
    bound = trace_logger.bind(**bindings) if bindings else trace_logger

    def tracer(error: Any = None, *values: Any) -> None:
        if error is not None:
            bound.debug("thunk settled with error: {!r}", error)
        else:
            bound.debug("thunk settled with values: {!r}", values)

    return tracer


loguru_tracer = make_tracer()


__all__ = ["loguru_tracer", "make_tracer", "trace_logger"]
