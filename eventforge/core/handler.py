"""ContractHandler — executes versioned handler logic bound to a contract.

Each inbound event is checked against the contract's accepted type, pinned
to the version named in its ``dataschema`` (falling back to the latest
version), validated, and handed to the version's handler function.  Every
returned output is validated against the version's emit schemas.  Any failure
along the way becomes one ``sys.<type>.error`` event addressed back to the
sender; ``execute`` never raises for a per-event problem.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType

from opentelemetry.trace import SpanKind

from eventforge.config import EventforgeSettings
from eventforge.config import settings as default_settings
from eventforge.core.errors import (
    ConfigurationError,
    EventTypeMismatchError,
    EventValidationError,
    safe_message,
)
from eventforge.core.event_factory import EventFactory
from eventforge.core.identifiers import validate_executionunits, validate_source
from eventforge.core.interface import HandlerFunction, HandlerInput
from eventforge.core.synthesis import (
    create_error_event,
    create_output_events,
    normalise_outputs,
)
from eventforge.models.contracts import (
    ANY_VERSION,
    Contract,
    ContractRecord,
    parse_dataschema,
)
from eventforge.models.events import Event
from eventforge.telemetry.span import HANDLER_SOURCE_ATTRIBUTE, ExecutionSpan
from eventforge.telemetry.tracing import TelemetryOptions

logger = logging.getLogger(__name__)


class ContractHandler:
    """Contract-bound event handler.

    Parameters
    ----------
    contract:
        The contract whose accepted type this handler serves.
    executionunits:
        Cost stamped on every event this handler emits unless an output
        overrides it.
    handler:
        One async handler function per declared contract version.
    source:
        Source stamped on emitted events.  Defaults to ``contract.type``.
    span_kind:
        OpenTelemetry kind of the execution span.
    settings:
        Overrides the module-level ``eventforge.config.settings``.
    telemetry:
        Default ``TelemetryOptions`` used when ``execute`` gets none.

    Raises
    ------
    ConfigurationError
        If a declared version has no handler function, a handler function is
        not callable, ``source`` is not a valid identifier or
        ``executionunits`` is negative.

    Usage
    -----
    >>> async def charge_v1(ctx: HandlerInput):
    ...     return {"type": "evt.pay.charge.done", "data": {"ok": True}}
    >>> handler = ContractHandler(contract=contract, executionunits=1,
    ...                           handler={"1.0.0": charge_v1})
    >>> events = await handler.execute(event)
    """

    def __init__(
        self,
        *,
        contract: Contract,
        executionunits: float,
        handler: Mapping[str, HandlerFunction],
        source: str | None = None,
        span_kind: SpanKind = SpanKind.CONSUMER,
        settings: EventforgeSettings | None = None,
        telemetry: TelemetryOptions | None = None,
    ) -> None:
        for version in contract.versions:
            if version not in handler:
                logger.error(
                    "Contract %s version %s has no handler function", contract.uri, version
                )
                raise ConfigurationError(
                    f"Contract '{contract.uri}' declares version {version} "
                    "but no handler function was provided for it."
                )
            if not callable(handler[version]):
                logger.error(
                    "Handler for contract %s version %s is not callable", contract.uri, version
                )
                raise ConfigurationError(
                    f"Handler for contract '{contract.uri}' version {version} is not callable."
                )

        self._contract = contract
        self._executionunits = validate_executionunits(executionunits, owner=contract.type)
        self._handlers = MappingProxyType(
            {version: handler[version] for version in contract.versions}
        )
        self._source = (
            validate_source(source, owner="handler") if source is not None else contract.type
        )
        self._span_kind = span_kind
        self._settings = settings or default_settings
        self._telemetry = telemetry

        logger.info(
            "ContractHandler %s ready for %s (versions: %s)",
            self._source,
            contract.type,
            ", ".join(self._handlers),
        )

    # ------------------------------------------------------------------
    # EventHandler interface
    # ------------------------------------------------------------------

    @property
    def source(self) -> str:
        return self._source

    @property
    def contract(self) -> Contract:
        return self._contract

    @property
    def executionunits(self) -> float:
        return self._executionunits

    @property
    def accepted_types(self) -> tuple[str, ...]:
        return (self._contract.type,)

    @property
    def system_error_schema(self) -> ContractRecord:
        return self._contract.system_error

    async def execute(
        self, event: Event, telemetry: TelemetryOptions | None = None
    ) -> list[Event]:
        """Handle one event and return the events it produces.

        Never raises for a per-event failure.  Type mismatches, unknown
        versions, invalid payloads, exceptions from handler logic and
        invalid outputs each produce a single system error event.
        """
        options = telemetry or self._telemetry or TelemetryOptions(
            inherit_from=self._settings.telemetry_inherit_from
        )
        with ExecutionSpan(
            f"ContractHandler<{self._contract.uri}>",
            event,
            options,
            kind=self._span_kind,
            attributes={HANDLER_SOURCE_ATTRIBUTE: self._source},
        ) as span:
            if self._settings.record_event_attributes:
                span.record_event("to_process", 0, event)
            try:
                return await self._process(event, span)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "ContractHandler %s failed on event %s (%s): %s",
                    self._source,
                    event.id,
                    event.type,
                    safe_message(exc),
                    exc_info=True,
                )
                return [
                    create_error_event(
                        exc,
                        error_type=self._contract.system_error.type,
                        inbound=event,
                        source=self._source,
                        executionunits=self._executionunits,
                        span=span,
                        dataschema=self._contract.version(ANY_VERSION).dataschema,
                        include_stack=self._settings.include_error_stack,
                        record_attributes=self._settings.record_event_attributes,
                    )
                ]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _process(self, event: Event, span: ExecutionSpan) -> list[Event]:
        if event.type != self._contract.type:
            raise EventTypeMismatchError(
                f"Event type '{event.type}' does not match contract type "
                f"'{self._contract.type}' of handler '{self._source}'."
            )

        version = self._resolve_version(event, span)
        versioned = self._contract.version(version)
        versioned.validate_accepts(event.data)
        span.set_attribute("eventforge.contract.version", version)

        result = await self._handlers[version](
            HandlerInput(event=event, source=self._source, span=span, contract=versioned)
        )
        outputs = normalise_outputs(result)
        return create_output_events(
            outputs,
            inbound=event,
            source=self._source,
            executionunits=self._executionunits,
            headers=span.trace_headers,
            emit=EventFactory(versioned).emits,
            handler_domain=self._contract.domain,
            event_contract_domain=self._contract.domain,
            span=span if self._settings.record_event_attributes else None,
        )

    def _resolve_version(self, event: Event, span: ExecutionSpan) -> str:
        parsed = parse_dataschema(event.dataschema)
        if parsed is None:
            latest = self._contract.latest_version
            span.log(
                "WARNING",
                f"Unable to resolve contract version from dataschema "
                f"{event.dataschema!r} of event {event.id}; "
                f"using latest version {latest} of '{self._contract.uri}'.",
            )
            return latest

        uri, version = parsed
        if uri != self._contract.uri:
            raise EventValidationError(
                f"Event dataschema URI '{uri}' does not match contract URI "
                f"'{self._contract.uri}'."
            )
        if version not in self._contract.versions:
            raise EventValidationError(
                f"Contract '{self._contract.uri}' does not declare version {version} "
                f"requested by event {event.id}."
            )
        return version


def create_contract_handler(
    *,
    contract: Contract,
    executionunits: float,
    handler: Mapping[str, HandlerFunction],
    source: str | None = None,
    **kwargs,
) -> ContractHandler:
    """Build a ``ContractHandler``.  Raises ``ConfigurationError`` when misconfigured."""
    return ContractHandler(
        contract=contract,
        executionunits=executionunits,
        handler=handler,
        source=source,
        **kwargs,
    )
