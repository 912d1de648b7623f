"""Trace and operation context shared by log records, spans and threads.

Log records emitted inside :func:`operation_context` carry the operation
name (``search``, ``weighted_search``, ``index.build``...) next to the
trace and span ids, so one request's lines can be grouped without a
tracing backend.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from uuid import uuid4


trace_context: ContextVar[dict | None] = ContextVar("trace_context", default=None)


def generate_trace_id() -> str:
    """Generate a 32-char hex trace ID."""
    return uuid4().hex


def generate_span_id() -> str:
    """Generate a 16-char hex span ID."""
    return uuid4().hex[:16]


def get_trace_context() -> dict:
    """Return the current context, starting a fresh trace when none is bound."""
    ctx = trace_context.get()
    if ctx is None or not ctx.get("trace_id"):
        ctx = {"trace_id": generate_trace_id(), "span_id": generate_span_id()}
        trace_context.set(ctx)
    return ctx


def set_trace_context(trace_id: str, span_id: str, **extra: object) -> None:
    trace_context.set({"trace_id": trace_id, "span_id": span_id, **extra})


def update_span_id(span_id: str) -> None:
    """Update span_id while preserving trace_id and the bound operation."""
    ctx = trace_context.get() or {}
    trace_context.set({**ctx, "span_id": span_id})


@contextmanager
def operation_context(operation: str, **extra: object) -> Iterator[dict]:
    """Bind ``operation`` to the current context until the block exits.

    The previous context is restored on exit, including the span id, so
    nested operations do not leak into their callers' log lines.
    """
    token = trace_context.set({**get_trace_context(), "operation": operation, **extra})
    try:
        yield trace_context.get()
    finally:
        trace_context.reset(token)
