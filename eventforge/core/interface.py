"""EventHandler protocol — the one interface handlers and routers share.

Contract-bound handlers, open handlers and routers are independent classes;
they compose only through this structural interface, so a router can hold
other routers as handlers.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from eventforge.models.contracts import VersionedContract
from eventforge.models.events import Event
from eventforge.telemetry.span import ExecutionSpan

if TYPE_CHECKING:
    from eventforge.models.contracts import ContractRecord
    from eventforge.telemetry.tracing import TelemetryOptions


@dataclass(frozen=True)
class HandlerInput:
    """What user handler logic is called with.

    ``contract`` is the version the inbound event was validated against, or
    ``None`` for open handlers.
    """

    event: Event
    source: str
    span: ExecutionSpan
    contract: VersionedContract | None = None


# async (HandlerInput) -> HandlerOutput | dict | list[HandlerOutput | dict] | None
HandlerFunction = Callable[[HandlerInput], Awaitable[Any]]


@runtime_checkable
class EventHandler(Protocol):
    """Anything that turns one inbound event into a list of outbound events.

    ``execute`` never raises for a per-event failure; it returns a list
    holding a single system error event instead.
    """

    @property
    def source(self) -> str: ...

    @property
    def accepted_types(self) -> tuple[str, ...]: ...

    @property
    def system_error_schema(self) -> ContractRecord: ...

    async def execute(
        self, event: Event, telemetry: TelemetryOptions | None = None
    ) -> list[Event]: ...
