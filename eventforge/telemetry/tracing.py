"""OpenTelemetry plumbing shared by handlers and routers.

The tracer is passed explicitly through ``TelemetryOptions``; when none is
given, one process-wide tracer named after ``settings.tracer_name`` is used.
Trace context crosses event boundaries only through the W3C
``traceparent``/``tracestate`` fields of ``Event``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Literal

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import Span, Status, StatusCode, Tracer
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from eventforge.config import settings
from eventforge.core.errors import safe_message

logger = logging.getLogger(__name__)

_PROPAGATOR = TraceContextTextMapPropagator()

InheritFrom = Literal["event", "context"]


@dataclass(frozen=True)
class TelemetryOptions:
    """Per-call tracing configuration.

    Parameters
    ----------
    inherit_from:
        ``"event"`` parents the execution span on the trace context carried by
        the inbound event (falling back to the current context when the event
        has no ``traceparent``).  ``"context"`` always parents on the current
        context, which is how routers nest their handlers' spans.
    tracer:
        Tracer to create spans with.  ``None`` uses ``get_default_tracer()``.
    """

    inherit_from: InheritFrom = "event"
    tracer: Tracer | None = None

    def resolve_tracer(self) -> Tracer:
        return self.tracer or get_default_tracer()


@dataclass(frozen=True)
class TraceHeaders:
    """W3C trace-context headers of a span, ready to stamp onto an event."""

    traceparent: str | None = None
    tracestate: str | None = None


@lru_cache(maxsize=None)
def get_default_tracer() -> Tracer:
    """Return the process-wide tracer (created once)."""
    return trace.get_tracer(settings.tracer_name)


def extract_context(traceparent: str, tracestate: str | None = None) -> Context:
    """Build a context whose parent is the remote span in *traceparent*."""
    carrier = {"traceparent": traceparent}
    if tracestate:
        carrier["tracestate"] = tracestate
    return _PROPAGATOR.extract(carrier=carrier)


def trace_headers_for(span: Span) -> TraceHeaders:
    """Return the trace headers identifying *span*.

    Non-recording or invalid spans (no SDK installed) yield empty headers.
    """
    carrier: dict[str, str] = {}
    _PROPAGATOR.inject(carrier, context=trace.set_span_in_context(span))
    return TraceHeaders(
        traceparent=carrier.get("traceparent") or None,
        tracestate=carrier.get("tracestate") or None,
    )


def current_trace_headers() -> TraceHeaders:
    """Return the trace headers of the currently active span."""
    return trace_headers_for(trace.get_current_span())


_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def log_to_span(level: str, message: str, span: Span | None = None) -> None:
    """Record *message* on the span as a ``log_message`` event and log it."""
    level = level.upper()
    target = span or trace.get_current_span()
    target.add_event("log_message", {"level": level, "message": message})
    logger.log(_LOG_LEVELS.get(level, logging.INFO), message)


def exception_to_span(error: BaseException, span: Span | None = None) -> None:
    """Record *error* on the span and mark the span as errored."""
    target = span or trace.get_current_span()
    message = safe_message(error)
    try:
        target.record_exception(error)
    except Exception:  # noqa: BLE001
        # The SDK formats the exception itself; fall back to our own message.
        target.add_event(
            "exception",
            {"exception.type": type(error).__name__, "exception.message": message},
        )
    target.set_status(Status(StatusCode.ERROR, message))
