"""Execution span lifecycle (not_started -> active -> ended).

Every ``execute`` call owns exactly one ``ExecutionSpan``.  Used as a context
manager it guarantees the span is ended exactly once on every exit path,
including uncaught exceptions.  Status is OK unless the call took the error
path, in which case it is ERROR with the failure message.
"""

from __future__ import annotations

from enum import Enum
from types import TracebackType
from typing import Any

from opentelemetry import context as otel_context
from opentelemetry import trace
from opentelemetry.trace import Span, SpanKind, Status, StatusCode

from eventforge.models.events import Event
from eventforge.telemetry.tracing import (
    TelemetryOptions,
    TraceHeaders,
    exception_to_span,
    extract_context,
    log_to_span,
    trace_headers_for,
)

SPAN_KIND_ATTRIBUTE = "openinference.span.kind"
EXECUTION_KIND_ATTRIBUTE = "eventforge.execution.span_kind"
HANDLER_SOURCE_ATTRIBUTE = "eventforge.handler.source"


class SpanState(str, Enum):
    """Lifecycle states of an execution span."""

    NOT_STARTED = "not_started"
    ACTIVE = "active"
    ENDED = "ended"


VALID_SPAN_TRANSITIONS: dict[SpanState, set[SpanState]] = {
    SpanState.NOT_STARTED: {SpanState.ACTIVE},
    SpanState.ACTIVE: {SpanState.ENDED},
    SpanState.ENDED: set(),
}


class InvalidSpanTransitionError(RuntimeError):
    """Raised when a span is started twice or used after it ended."""


class ExecutionSpan:
    """Scoped OpenTelemetry span for one handler or router execution.

    Parameters
    ----------
    name:
        Span name.
    event:
        The inbound event.  With ``inherit_from="event"`` its
        ``traceparent``/``tracestate`` become the remote parent.
    options:
        Tracer and inheritance configuration.
    kind:
        OpenTelemetry span kind.
    attributes:
        Extra attributes set at span start.

    Usage
    -----
    >>> with ExecutionSpan("handler.execute", event, options) as span:
    ...     headers = span.trace_headers
    ...     span.record_event("to_process", 0, event)
    """

    def __init__(
        self,
        name: str,
        event: Event,
        options: TelemetryOptions,
        *,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        self._name = name
        self._event = event
        self._options = options
        self._kind = kind
        self._attributes = {
            SPAN_KIND_ATTRIBUTE: "CHAIN",
            EXECUTION_KIND_ATTRIBUTE: "EVENT_HANDLER",
            **(attributes or {}),
        }
        self._state = SpanState.NOT_STARTED
        self._span: Span | None = None
        self._token: object | None = None
        self._errored = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> SpanState:
        return self._state

    @property
    def span(self) -> Span:
        if self._span is None:
            raise InvalidSpanTransitionError(f"Span '{self._name}' has not been started")
        return self._span

    @property
    def trace_headers(self) -> TraceHeaders:
        """Trace headers of this span, for stamping onto outbound events."""
        return trace_headers_for(self.span)

    def _transition(self, target: SpanState) -> None:
        if target not in VALID_SPAN_TRANSITIONS[self._state]:
            raise InvalidSpanTransitionError(
                f"Cannot move span '{self._name}' from {self._state.value} to {target.value}"
            )
        self._state = target

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> ExecutionSpan:
        """Create the span and make it the active span of the current context."""
        self._transition(SpanState.ACTIVE)
        parent = None
        if self._options.inherit_from == "event" and self._event.traceparent:
            parent = extract_context(self._event.traceparent, self._event.tracestate)
        tracer = self._options.resolve_tracer()
        self._span = tracer.start_span(
            self._name,
            context=parent,
            kind=self._kind,
            attributes=self._attributes,
        )
        self._token = otel_context.attach(trace.set_span_in_context(self._span))
        return self

    def end(self) -> None:
        """End the span.  Calling ``end`` on an ended span is a no-op."""
        if self._state is SpanState.ENDED:
            return
        self._transition(SpanState.ENDED)
        if not self._errored:
            self.span.set_status(Status(StatusCode.OK))
        if self._token is not None:
            otel_context.detach(self._token)
            self._token = None
        self.span.end()

    def __enter__(self) -> ExecutionSpan:
        return self.start()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        try:
            if exc is not None:
                self.mark_error(exc)
        finally:
            self.end()
        return False

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def mark_error(self, error: BaseException) -> None:
        """Record *error* and set the span status to ERROR."""
        self._errored = True
        exception_to_span(error, self.span)

    def set_attribute(self, key: str, value: Any) -> None:
        self.span.set_attribute(key, value)

    def record_event(self, prefix: str, index: int, event: Event) -> None:
        """Write ``event.otel_attributes`` as ``<prefix>.<index>.<key>``."""
        for key, value in event.otel_attributes.items():
            self.span.set_attribute(f"{prefix}.{index}.{key}", value)

    def log(self, level: str, message: str) -> None:
        log_to_span(level, message, self.span)
