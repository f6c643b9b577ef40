"""Tests for the execution span lifecycle and trace header helpers."""

from __future__ import annotations

import pytest
from opentelemetry import trace
from opentelemetry.trace import SpanKind, StatusCode

from eventforge.models.events import Event
from eventforge.telemetry.span import (
    VALID_SPAN_TRANSITIONS,
    ExecutionSpan,
    InvalidSpanTransitionError,
    SpanState,
)
from eventforge.telemetry.tracing import (
    TelemetryOptions,
    TraceHeaders,
    extract_context,
    get_default_tracer,
    trace_headers_for,
)

TRACEPARENT = "00-0af7651916cd43dd8448eb211c80319c-b7ad6b7169203331-01"


@pytest.fixture
def event() -> Event:
    return Event(type="t", source="s", subject="x")


class TestSpanStateMachine:
    def test_transitions(self):
        assert VALID_SPAN_TRANSITIONS[SpanState.NOT_STARTED] == {SpanState.ACTIVE}
        assert VALID_SPAN_TRANSITIONS[SpanState.ACTIVE] == {SpanState.ENDED}
        assert VALID_SPAN_TRANSITIONS[SpanState.ENDED] == set()

    def test_lifecycle(self, event, telemetry, span_exporter):
        span = ExecutionSpan("unit", event, telemetry)
        assert span.state is SpanState.NOT_STARTED
        with span:
            assert span.state is SpanState.ACTIVE
            assert trace.get_current_span() is span.span
        assert span.state is SpanState.ENDED
        assert len(span_exporter.get_finished_spans()) == 1

    def test_end_is_idempotent(self, event, telemetry, span_exporter):
        span = ExecutionSpan("unit", event, telemetry).start()
        span.end()
        span.end()
        assert len(span_exporter.get_finished_spans()) == 1

    def test_cannot_restart(self, event, telemetry):
        span = ExecutionSpan("unit", event, telemetry)
        with span:
            pass
        with pytest.raises(InvalidSpanTransitionError):
            span.start()

    def test_span_before_start(self, event, telemetry):
        with pytest.raises(InvalidSpanTransitionError, match="not been started"):
            ExecutionSpan("unit", event, telemetry).span

    def test_context_restored(self, event, telemetry):
        before = trace.get_current_span()
        with ExecutionSpan("unit", event, telemetry):
            pass
        assert trace.get_current_span() is before


class TestSpanStatus:
    def test_ok_on_normal_exit(self, event, telemetry, span_exporter):
        with ExecutionSpan("unit", event, telemetry):
            pass
        [finished] = span_exporter.get_finished_spans()
        assert finished.status.status_code == StatusCode.OK

    def test_error_on_exception(self, event, telemetry, span_exporter):
        with pytest.raises(ValueError):
            with ExecutionSpan("unit", event, telemetry):
                raise ValueError("escaped")
        [finished] = span_exporter.get_finished_spans()
        assert finished.status.status_code == StatusCode.ERROR
        assert finished.status.description == "escaped"

    def test_mark_error(self, event, telemetry, span_exporter):
        with ExecutionSpan("unit", event, telemetry) as span:
            span.mark_error(RuntimeError("caught"))
        [finished] = span_exporter.get_finished_spans()
        assert finished.status.status_code == StatusCode.ERROR

    def test_attributes_and_kind(self, event, telemetry, span_exporter):
        with ExecutionSpan(
            "unit", event, telemetry, kind=SpanKind.PRODUCER, attributes={"custom": "yes"}
        ) as span:
            span.record_event("to_process", 0, event)
        [finished] = span_exporter.get_finished_spans()
        assert finished.kind == SpanKind.PRODUCER
        assert finished.attributes["custom"] == "yes"
        assert finished.attributes["openinference.span.kind"] == "CHAIN"
        assert finished.attributes["to_process.0.cloudevents.event_id"] == event.id


class TestInheritance:
    def test_inherit_from_event(self, telemetry, span_exporter):
        event = Event(type="t", source="s", subject="x", traceparent=TRACEPARENT)
        with ExecutionSpan("unit", event, telemetry):
            pass
        [finished] = span_exporter.get_finished_spans()
        assert finished.context.trace_id == int("0af7651916cd43dd8448eb211c80319c", 16)
        assert finished.parent.is_remote

    def test_inherit_from_context_ignores_event(self, tracer_provider, span_exporter):
        options = TelemetryOptions(
            inherit_from="context", tracer=tracer_provider.get_tracer("t")
        )
        event = Event(type="t", source="s", subject="x", traceparent=TRACEPARENT)
        with ExecutionSpan("outer", event, options) as outer:
            with ExecutionSpan("inner", event, options):
                pass
        spans = {s.name: s for s in span_exporter.get_finished_spans()}
        assert spans["inner"].parent.span_id == outer.span.get_span_context().span_id
        assert spans["outer"].parent is None


class TestTraceHeaders:
    def test_headers_match_span(self, event, telemetry):
        with ExecutionSpan("unit", event, telemetry) as span:
            headers = span.trace_headers
            ctx = span.span.get_span_context()
        assert headers.traceparent == (
            f"00-{ctx.trace_id:032x}-{ctx.span_id:016x}-{int(ctx.trace_flags):02x}"
        )

    def test_extract_roundtrip(self):
        ctx = extract_context(TRACEPARENT, "vendor=1")
        span_context = trace.get_current_span(ctx).get_span_context()
        assert span_context.trace_id == int("0af7651916cd43dd8448eb211c80319c", 16)
        assert span_context.trace_state.get("vendor") == "1"

    def test_invalid_span_has_no_headers(self):
        assert trace_headers_for(trace.INVALID_SPAN) == TraceHeaders()

    def test_default_tracer_is_cached(self):
        assert get_default_tracer() is get_default_tracer()
