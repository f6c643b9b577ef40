"""eventforge: contract-validated event handlers, routers and event synthesis.

v0.1.0 — Choreography-style event handling:
  - Contract-bound handlers with per-version accept/emit validation (pydantic v2)
  - Open handlers for type-agnostic logic
  - Type-based routers that compose (a router is itself a handler)
  - Every per-event failure returned as a sys.<type>.error event
  - Domain broadcasting of emitted events with symbolic resolution
  - OpenTelemetry spans per execution, trace headers re-stamped at each hop
  - Env-driven config (EVENTFORGE_*) and a scenario runner for tests
"""

__version__ = "0.1.0"
__description__ = "Contract-validated event handlers and routers with OpenTelemetry tracing"

from eventforge.core.domain import Domain, resolve_domain
from eventforge.core.errors import (
    ConfigurationError,
    DestinationMismatchError,
    EventforgeError,
    EventTypeMismatchError,
    EventValidationError,
    HandlerExecutionError,
    HandlerNotFoundError,
    RoutingError,
)
from eventforge.core.event_factory import EventFactory, create_event
from eventforge.core.handler import ContractHandler, create_contract_handler
from eventforge.core.interface import EventHandler, HandlerInput
from eventforge.core.open_handler import OpenHandler, create_open_handler
from eventforge.core.router import EventRouter, create_router
from eventforge.core.synthesis import create_error_event, create_output_events
from eventforge.models import (
    Contract,
    ContractVersion,
    ErrorData,
    Event,
    HandlerOutput,
    create_contract,
)
from eventforge.telemetry import TelemetryOptions

__all__ = [
    "ContractHandler",
    "OpenHandler",
    "EventRouter",
    "EventHandler",
    "HandlerInput",
    "create_contract_handler",
    "create_open_handler",
    "create_router",
    "create_output_events",
    "create_error_event",
    "EventFactory",
    "create_event",
    "Domain",
    "resolve_domain",
    "Contract",
    "ContractVersion",
    "create_contract",
    "Event",
    "HandlerOutput",
    "ErrorData",
    "TelemetryOptions",
    "EventforgeError",
    "ConfigurationError",
    "EventValidationError",
    "RoutingError",
    "DestinationMismatchError",
    "HandlerNotFoundError",
    "EventTypeMismatchError",
    "HandlerExecutionError",
    "__version__",
]
