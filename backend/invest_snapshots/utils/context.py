# backend/invest_snapshots/utils/context.py
"""
Execution context for the snapshot engine.

Holds the correlation ID that tags every log line written while one
unit of work runs (a recompute pass, a batch script, an outer request).

Uses Python's contextvars, so values follow threads and async tasks
without leaking between them.

Usage:
    from invest_snapshots.utils.context import correlation_scope

    with correlation_scope("recompute-asset-7"):
        engine.recompute(...)   # every log line carries the ID
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """Return the current correlation ID, or None if not set."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current context."""
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    _correlation_id_var.set(None)


@contextmanager
def correlation_scope(correlation_id: str | None = None) -> Iterator[str]:
    """
    Set a correlation ID for the duration of a block.

    Generates a random ID when none is given and restores the previous
    value on exit, so scopes nest.

    Args:
        correlation_id: ID to use (default: new uuid4 hex)

    Yields:
        The correlation ID in effect inside the block
    """
    value = correlation_id or uuid.uuid4().hex
    token = _correlation_id_var.set(value)
    try:
        yield value
    finally:
        _correlation_id_var.reset(token)
