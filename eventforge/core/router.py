"""EventRouter — dispatches events to handlers by event type.

The router is itself an ``EventHandler``: it accepts every type its handlers
accept, so routers nest.  Results coming back through a router are re-stamped
with the router's source, its trace headers and its added cost.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from types import MappingProxyType

from opentelemetry.trace import SpanKind

from eventforge.config import EventforgeSettings
from eventforge.config import settings as default_settings
from eventforge.core.errors import (
    ConfigurationError,
    DestinationMismatchError,
    HandlerNotFoundError,
    safe_message,
)
from eventforge.core.identifiers import validate_executionunits, validate_source
from eventforge.core.interface import EventHandler
from eventforge.core.synthesis import create_error_event
from eventforge.models.contracts import ContractRecord, system_error_type
from eventforge.models.events import ErrorData, Event
from eventforge.telemetry.span import HANDLER_SOURCE_ATTRIBUTE, ExecutionSpan
from eventforge.telemetry.tracing import TelemetryOptions

logger = logging.getLogger(__name__)


class EventRouter:
    """Routes each event to the one handler registered for its type.

    Invariant: no two handlers in one router accept the same type.  This is
    checked once, at construction; the registry is read-only afterwards.

    Usage
    -----
    >>> router = EventRouter(source="payment.service", executionunits=0.5,
    ...                      handlers=[charge_handler, refund_handler])
    >>> events = await router.execute(event)
    """

    def __init__(
        self,
        *,
        source: str,
        executionunits: float,
        handlers: Iterable[EventHandler],
        span_kind: SpanKind = SpanKind.CONSUMER,
        settings: EventforgeSettings | None = None,
        telemetry: TelemetryOptions | None = None,
    ) -> None:
        self._source = validate_source(source, owner="router")
        self._executionunits = validate_executionunits(executionunits, owner=source)

        registry: dict[str, EventHandler] = {}
        for handler in handlers:
            if not isinstance(handler, EventHandler):
                logger.error("Router %s given a non-handler: %r", source, handler)
                raise ConfigurationError(
                    f"Router '{source}' was given {type(handler).__name__}, "
                    "which does not implement EventHandler."
                )
            for event_type in handler.accepted_types:
                existing = registry.get(event_type)
                if existing is not None:
                    logger.error(
                        "Router %s: duplicate handlers for type %s (%s, %s)",
                        source,
                        event_type,
                        existing.source,
                        handler.source,
                    )
                    raise ConfigurationError(
                        f"Router '{source}' has more than one handler for event type "
                        f"'{event_type}': '{existing.source}' and '{handler.source}'."
                    )
                registry[event_type] = handler

        self._registry = MappingProxyType(registry)
        self._span_kind = span_kind
        self._settings = settings or default_settings
        self._telemetry = telemetry

        logger.info(
            "EventRouter %s registered %d event types: %s",
            self._source,
            len(self._registry),
            ", ".join(sorted(self._registry)),
        )

    # ------------------------------------------------------------------
    # EventHandler interface
    # ------------------------------------------------------------------

    @property
    def source(self) -> str:
        return self._source

    @property
    def executionunits(self) -> float:
        return self._executionunits

    @property
    def handlers(self) -> MappingProxyType[str, EventHandler]:
        return self._registry

    @property
    def accepted_types(self) -> tuple[str, ...]:
        return tuple(self._registry)

    @property
    def system_error_schema(self) -> ContractRecord:
        return ContractRecord(type=system_error_type(self._source), schema=ErrorData)

    async def execute(
        self, event: Event, telemetry: TelemetryOptions | None = None
    ) -> list[Event]:
        """Dispatch *event* to its handler.  Never raises for a per-event failure."""
        options = telemetry or self._telemetry or TelemetryOptions(
            inherit_from=self._settings.telemetry_inherit_from
        )
        with ExecutionSpan(
            f"EventRouter<{self._source}>",
            event,
            options,
            kind=self._span_kind,
            attributes={HANDLER_SOURCE_ATTRIBUTE: self._source},
        ) as span:
            if self._settings.record_event_attributes:
                span.record_event("to_process", 0, event)
            try:
                return await self._dispatch(event, span, options)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "EventRouter %s could not route event %s (%s): %s",
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

    async def _dispatch(
        self, event: Event, span: ExecutionSpan, options: TelemetryOptions
    ) -> list[Event]:
        if event.to != self._source:
            raise DestinationMismatchError(
                f"Event destination '{event.to}' does not match router "
                f"source '{self._source}'."
            )

        handler = self._registry.get(event.type)
        if handler is None:
            raise HandlerNotFoundError(
                f"Router '{self._source}' has no handler for event type '{event.type}'. "
                f"Registered: {sorted(self._registry)}"
            )

        logger.debug(
            "EventRouter %s: event %s (%s) -> %s",
            self._source,
            event.id,
            event.type,
            handler.source,
        )
        span.set_attribute("eventforge.router.handler", handler.source)

        delegated = event.without_trace_headers().model_copy(update={"to": handler.source})
        results = await handler.execute(
            delegated,
            TelemetryOptions(inherit_from="context", tracer=options.resolve_tracer()),
        )

        headers = span.trace_headers
        restamped = [
            result.model_copy(
                update={
                    "source": self._source,
                    "executionunits": (result.executionunits or 0.0) + self._executionunits,
                    "traceparent": headers.traceparent,
                    "tracestate": headers.tracestate,
                }
            )
            for result in results
        ]
        if self._settings.record_event_attributes:
            for index, result in enumerate(restamped):
                span.record_event("to_emit", index, result)
        return restamped


def create_router(
    *, source: str, executionunits: float, handlers: Iterable[EventHandler], **kwargs
) -> EventRouter:
    """Build an ``EventRouter``.  Raises ``ConfigurationError`` when misconfigured."""
    return EventRouter(source=source, executionunits=executionunits, handlers=handlers, **kwargs)
