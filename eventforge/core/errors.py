"""Exception hierarchy for eventforge.

Only ``ConfigurationError`` is ever raised out of a handler or router, and only
while it is being constructed.  Every other error below is raised internally
during ``execute`` and converted into a returned system error event.
"""

from __future__ import annotations


class EventforgeError(Exception):
    """Base class for all eventforge errors."""


class ConfigurationError(EventforgeError):
    """Raised when a handler, router or contract is misconfigured.

    Duplicate type registrations, invalid source identifiers and missing
    per-version handler functions all raise this at construction time.  It
    must not be caught and ignored: the process should not continue with a
    misconfigured handler.
    """


class EventValidationError(EventforgeError, ValueError):
    """Raised when an event payload or dataschema fails contract validation."""


class RoutingError(EventforgeError):
    """Raised when an event cannot be routed to handler logic."""


class DestinationMismatchError(RoutingError):
    """Raised when ``event.to`` does not address the receiving handler."""


class HandlerNotFoundError(RoutingError):
    """Raised when a router has no handler registered for ``event.type``."""


class EventTypeMismatchError(RoutingError):
    """Raised when a contract-bound handler receives a foreign event type."""


class HandlerExecutionError(EventforgeError):
    """Raised when handler logic returns something that is not a handler output."""


def safe_message(error: BaseException) -> str:
    """Return ``str(error)``, or a placeholder when ``__str__`` itself raises."""
    try:
        return str(error)
    except Exception:  # noqa: BLE001
        return f"<unprintable {type(error).__name__}>"
