"""
Utility functions for the dothunk library.
"""

from __future__ import annotations

import inspect
import os
from typing import Any

# Environment variable to install the loguru tracer on engines without a debug hook
DEBUG_THUNKS = os.environ.get("DOTHUNK_DEBUG", "").lower() in ("1", "true", "yes")

_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))


def _is_dothunk_internal(path: str) -> bool:
    if path.startswith("<"):
        return False
    return os.path.dirname(os.path.abspath(path)) == _PACKAGE_DIR


def prune_traceback(error: BaseException) -> BaseException:
    """Drop dothunk-internal frames from ``error.__traceback__`` in place.

    Only frames belonging to user code remain, so a failure raised deep inside a
    chain reads like it came straight from the step that raised it.
    """
    kept = []
    tb = error.__traceback__
    while tb is not None:
        if not _is_dothunk_internal(tb.tb_frame.f_code.co_filename):
            kept.append(tb)
        tb = tb.tb_next
    head = None
    for tb in reversed(kept):
        tb.tb_next = head
        head = tb
    return error.with_traceback(head)


def positional_capacity(fn: Any) -> tuple[int, float] | None:
    """Return ``(required, maximum)`` positional argument counts for ``fn``.

    ``maximum`` is ``inf`` for ``*args``. ``None`` when no signature is available.
    """
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return None
    required = 0
    maximum: float = 0
    for param in signature.parameters.values():
        if param.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            maximum += 1
            if param.default is inspect.Parameter.empty:
                required += 1
        elif param.kind == inspect.Parameter.VAR_POSITIONAL:
            maximum = float("inf")
        elif param.kind == inspect.Parameter.KEYWORD_ONLY:
            if param.default is inspect.Parameter.empty:
                # a required keyword-only argument can never be satisfied
                return (required, -1)
    return (required, maximum)


__all__ = [
    "DEBUG_THUNKS",
    "positional_capacity",
    "prune_traceback",
]
