"""Output and error event synthesis shared by every handler variant.

``create_output_events`` turns the logical records returned by handler logic
into addressed events.  ``create_error_event`` turns any failure into exactly
one system error event addressed back to the sender.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from eventforge.core.domain import resolve_domains
from eventforge.core.errors import (
    EventValidationError,
    HandlerExecutionError,
    safe_message,
)
from eventforge.core.event_factory import create_event, error_payload
from eventforge.models.events import Event, HandlerOutput
from eventforge.telemetry.span import ExecutionSpan
from eventforge.telemetry.tracing import TraceHeaders

logger = logging.getLogger(__name__)

EmitFunction = Callable[..., Event]


# ---------------------------------------------------------------------------
# Output normalisation
# ---------------------------------------------------------------------------


def _as_output(item: Any, index: int) -> HandlerOutput:
    if isinstance(item, HandlerOutput):
        return item
    if isinstance(item, dict):
        try:
            return HandlerOutput.model_validate(item)
        except PydanticValidationError as exc:
            raise EventValidationError(f"Invalid handler output at index {index}: {exc}") from exc
    raise HandlerExecutionError(
        f"Handler returned {type(item).__name__} at index {index}; "
        "expected HandlerOutput or dict"
    )


def normalise_outputs(result: Any) -> list[HandlerOutput]:
    """Normalise a handler result to an ordered list of ``HandlerOutput``.

    ``None`` and empty sequences yield ``[]``; a single record becomes a
    one-element list; lists and tuples keep their order.
    """
    if result is None:
        return []
    if isinstance(result, (list, tuple)):
        return [_as_output(item, index) for index, item in enumerate(result)]
    return [_as_output(result, 0)]


# ---------------------------------------------------------------------------
# Output events
# ---------------------------------------------------------------------------


def create_output_events(
    outputs: Sequence[HandlerOutput],
    *,
    inbound: Event,
    source: str,
    executionunits: float,
    headers: TraceHeaders,
    emit: EmitFunction = create_event,
    handler_domain: str | None = None,
    event_contract_domain: str | None = None,
    span: ExecutionSpan | None = None,
) -> list[Event]:
    """Build fully addressed events from handler outputs.

    Parameters
    ----------
    outputs:
        Records returned by handler logic, in order.
    inbound:
        The event being handled.  Supplies ``subject``, the reply address and
        the triggering domain.
    source:
        The emitting handler's source.
    executionunits:
        Cost used when an output does not override it.
    headers:
        Trace headers of the active execution span.
    emit:
        Event constructor.  Contract-bound handlers pass
        ``EventFactory.emits`` so every payload is validated.
    handler_domain, event_contract_domain:
        Domains used to resolve symbolic domain entries.
    span:
        When given, each emitted event is recorded on it as
        ``to_emit.<index>.*`` attributes.

    Returns
    -------
    list[Event]
        One event per output per distinct resolved domain, in output order.
    """
    events: list[Event] = []
    for output in outputs:
        domains = resolve_domains(
            output.domain,
            triggering_event=inbound,
            handler_domain=handler_domain,
            event_contract_domain=event_contract_domain,
        )
        for domain in domains:
            events.append(
                emit(
                    type=output.type,
                    data=output.data,
                    id=output.id,
                    source=source,
                    subject=inbound.subject,
                    to=output.to or inbound.redirectto or inbound.source,
                    executionunits=(
                        output.executionunits
                        if output.executionunits is not None
                        else executionunits
                    ),
                    traceparent=headers.traceparent,
                    tracestate=headers.tracestate,
                    accesscontrol=output.accesscontrol or inbound.accesscontrol,
                    redirectto=output.redirectto,
                    domain=domain,
                    parentid=inbound.id,
                    extensions=dict(output.extensions),
                )
            )

    if span is not None:
        for index, event in enumerate(events):
            span.record_event("to_emit", index, event)
    return events


# ---------------------------------------------------------------------------
# Error events
# ---------------------------------------------------------------------------


def create_error_event(
    error: BaseException,
    *,
    error_type: str,
    inbound: Event,
    source: str,
    executionunits: float,
    span: ExecutionSpan | None = None,
    dataschema: str | None = None,
    include_stack: bool = True,
    record_attributes: bool = True,
) -> Event:
    """Convert *error* into one system error event.  Never raises.

    The event is always addressed to ``inbound.source``; ``redirectto`` is
    ignored.  When *span* is given the exception is recorded on it and its
    status becomes ERROR; ``to_emit`` attributes are written only when
    *record_attributes* is set.
    """
    headers = TraceHeaders()
    if span is not None:
        try:
            span.mark_error(error)
            headers = span.trace_headers
        except Exception:  # noqa: BLE001
            logger.exception("Could not record %s on the execution span", error_type)

    try:
        event = create_event(
            type=error_type,
            source=source,
            subject=inbound.subject,
            to=inbound.source,
            data=error_payload(error, include_stack=include_stack),
            dataschema=dataschema,
            executionunits=executionunits,
            traceparent=headers.traceparent,
            tracestate=headers.tracestate,
            accesscontrol=inbound.accesscontrol,
            parentid=inbound.id,
        )
    except Exception:  # noqa: BLE001
        logger.exception("Could not build system error event %s; using fallback", error_type)
        event = Event.model_construct(
            type=error_type,
            source=source,
            subject=inbound.subject,
            to=inbound.source,
            data={
                "errorName": type(error).__name__,
                "errorMessage": safe_message(error),
                "errorStack": None,
            },
            parentid=inbound.id,
        )

    if span is not None and record_attributes:
        span.record_event("to_emit", 0, event)
    return event
