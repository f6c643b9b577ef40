"""OpenHandler — type-agnostic handler without schema validation."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from opentelemetry.trace import SpanKind

from eventforge.config import EventforgeSettings
from eventforge.config import settings as default_settings
from eventforge.core.errors import (
    ConfigurationError,
    DestinationMismatchError,
    safe_message,
)
from eventforge.core.identifiers import validate_executionunits, validate_source
from eventforge.core.interface import HandlerFunction, HandlerInput
from eventforge.core.synthesis import (
    create_error_event,
    create_output_events,
    normalise_outputs,
)
from eventforge.models.contracts import ContractRecord, system_error_type
from eventforge.models.events import ErrorData, Event
from eventforge.telemetry.span import HANDLER_SOURCE_ATTRIBUTE, ExecutionSpan
from eventforge.telemetry.tracing import TelemetryOptions

logger = logging.getLogger(__name__)


class OpenHandler:
    """Handler that accepts any event addressed to its source.

    Neither inbound payloads nor outputs are validated; the only check made
    before handler logic runs is that ``event.to`` equals ``source``.

    Parameters
    ----------
    source:
        Identifier of this handler.  Must be lowercase alphanumeric segments
        joined by dots.
    executionunits:
        Default cost of each emitted event.
    handler:
        The async handler function.
    accepts:
        Event types this handler registers for when placed in a router.
    domain:
        Handler-level domain used to resolve symbolic domain entries.
    """

    def __init__(
        self,
        *,
        source: str,
        executionunits: float,
        handler: HandlerFunction,
        accepts: Iterable[str] = (),
        domain: str | None = None,
        span_kind: SpanKind = SpanKind.CONSUMER,
        settings: EventforgeSettings | None = None,
        telemetry: TelemetryOptions | None = None,
    ) -> None:
        self._source = validate_source(source, owner="open handler")
        if not callable(handler):
            logger.error("Open handler %s was given a non-callable handler", source)
            raise ConfigurationError(f"Handler function for '{source}' is not callable.")
        accepted = tuple(accepts)
        if any(not isinstance(t, str) or not t for t in accepted):
            raise ConfigurationError(
                f"Open handler '{source}' accepts must be non-empty strings, got {accepted!r}"
            )
        self._accepts = accepted
        self._handler = handler
        self._executionunits = validate_executionunits(executionunits, owner=source)
        self._domain = domain
        self._span_kind = span_kind
        self._settings = settings or default_settings
        self._telemetry = telemetry

    @property
    def source(self) -> str:
        return self._source

    @property
    def domain(self) -> str | None:
        return self._domain

    @property
    def executionunits(self) -> float:
        return self._executionunits

    @property
    def accepted_types(self) -> tuple[str, ...]:
        return self._accepts

    @property
    def system_error_schema(self) -> ContractRecord:
        return ContractRecord(type=system_error_type(self._source), schema=ErrorData)

    async def execute(
        self, event: Event, telemetry: TelemetryOptions | None = None
    ) -> list[Event]:
        options = telemetry or self._telemetry or TelemetryOptions(
            inherit_from=self._settings.telemetry_inherit_from
        )
        with ExecutionSpan(
            f"OpenHandler<{self._source}>",
            event,
            options,
            kind=self._span_kind,
            attributes={HANDLER_SOURCE_ATTRIBUTE: self._source},
        ) as span:
            if self._settings.record_event_attributes:
                span.record_event("to_process", 0, event)
            try:
                if event.to != self._source:
                    raise DestinationMismatchError(
                        f"Event destination '{event.to}' does not match handler "
                        f"source '{self._source}'."
                    )
                result = await self._handler(
                    HandlerInput(event=event, source=self._source, span=span)
                )
                return create_output_events(
                    normalise_outputs(result),
                    inbound=event,
                    source=self._source,
                    executionunits=self._executionunits,
                    headers=span.trace_headers,
                    handler_domain=self._domain,
                    span=span if self._settings.record_event_attributes else None,
                )
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "OpenHandler %s failed on event %s (%s): %s",
                    self._source,
                    event.id,
                    event.type,
                    safe_message(exc),
                    exc_info=True,
                )
                return [
                    create_error_event(
                        exc,
                        error_type=self.system_error_schema.type,
                        inbound=event,
                        source=self._source,
                        executionunits=self._executionunits,
                        span=span,
                        include_stack=self._settings.include_error_stack,
                        record_attributes=self._settings.record_event_attributes,
                    )
                ]


def create_open_handler(
    *, source: str, executionunits: float, handler: HandlerFunction, **kwargs
) -> OpenHandler:
    """Build an ``OpenHandler``.  Raises ``ConfigurationError`` when misconfigured."""
    return OpenHandler(source=source, executionunits=executionunits, handler=handler, **kwargs)
