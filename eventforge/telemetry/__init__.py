"""OpenTelemetry integration — execution spans and trace header propagation."""

from eventforge.telemetry.span import (
    VALID_SPAN_TRANSITIONS,
    ExecutionSpan,
    InvalidSpanTransitionError,
    SpanState,
)
from eventforge.telemetry.tracing import (
    TelemetryOptions,
    TraceHeaders,
    current_trace_headers,
    exception_to_span,
    extract_context,
    get_default_tracer,
    log_to_span,
    trace_headers_for,
)

__all__ = [
    "ExecutionSpan",
    "SpanState",
    "VALID_SPAN_TRANSITIONS",
    "InvalidSpanTransitionError",
    "TelemetryOptions",
    "TraceHeaders",
    "current_trace_headers",
    "exception_to_span",
    "extract_context",
    "get_default_tracer",
    "log_to_span",
    "trace_headers_for",
]
