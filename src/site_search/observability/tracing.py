"""OpenTelemetry spans around index builds, searches and suggestion rebuilds.

Nothing is exported unless :func:`init_tracing` is given an exporter; without
it spans still propagate ids into the log context.
"""

from __future__ import annotations

from collections.abc import Mapping
from contextlib import contextmanager
import logging
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor, SpanExporter
from opentelemetry.trace import SpanKind, Status, StatusCode

from site_search.observability.context import update_span_id


if TYPE_CHECKING:
    from collections.abc import Generator

    from opentelemetry.trace import Span, Tracer

logger = logging.getLogger(__name__)

_tracer_holder: dict[str, Tracer | None] = {"tracer": None}


def init_tracing(
    service_name: str = "site-search",
    resource_attributes: dict[str, str] | None = None,
    exporter: SpanExporter | None = None,
    *,
    batch: bool = False,
) -> TracerProvider:
    """Install a tracer provider for the process.

    Args:
        service_name: Value of the ``service.name`` resource attribute
        resource_attributes: Extra resource attributes
        exporter: Span exporter; spans are only recorded in-process without one
        batch: Export through a background batch processor instead of inline
    """
    resource = Resource.create({"service.name": service_name, **(resource_attributes or {})})
    provider = TracerProvider(resource=resource)
    if exporter is not None:
        processor = BatchSpanProcessor(exporter) if batch else SimpleSpanProcessor(exporter)
        provider.add_span_processor(processor)
    trace.set_tracer_provider(provider)
    _tracer_holder["tracer"] = trace.get_tracer(__name__)
    logger.info("Tracing initialized for service: %s", service_name)
    return provider


def get_tracer() -> Tracer:
    """Return the configured tracer, or one from the global provider."""
    if _tracer_holder["tracer"] is None:
        _tracer_holder["tracer"] = trace.get_tracer(__name__)
    return _tracer_holder["tracer"]  # type: ignore[return-value]


def set_span_attributes(span: Span, attributes: Mapping[str, Any]) -> None:
    """Set attributes, skipping None and turning collections into string lists."""
    for key, value in attributes.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple, set, frozenset)):
            value = [str(item) for item in value]
        span.set_attribute(key, value)


@contextmanager
def create_span(
    name: str,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: Mapping[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """Open a current span and point the log context at it.

    Exceptions escaping the block mark the span as failed and are re-raised.
    """
    with get_tracer().start_as_current_span(name, kind=kind, record_exception=False) as span:
        if attributes:
            set_span_attributes(span, attributes)
        span_context = span.get_span_context()
        if span_context.is_valid:
            update_span_id(format(span_context.span_id, "016x"))
        try:
            yield span
        except Exception as exc:
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            span.record_exception(exc)
            raise
