"""Validated event construction.

``EventFactory`` binds a ``VersionedContract`` and builds the three kinds of
event a contract-bound handler deals with: accepted events (mostly for
producers and tests), emitted events and system error events.  Every payload
goes through the contract's schema before the ``Event`` is built, and the
versioned ``dataschema`` is stamped on the result.

``create_event`` is the unchecked counterpart used by open handlers.
"""

from __future__ import annotations

import traceback
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from eventforge.core.errors import EventValidationError, safe_message
from eventforge.models.contracts import VersionedContract
from eventforge.models.events import ErrorData, Event


def error_payload(error: BaseException, *, include_stack: bool = True) -> dict[str, Any]:
    """Return the ``ErrorData`` payload describing *error*."""
    stack = None
    if include_stack:
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    return ErrorData(
        errorName=type(error).__name__,
        errorMessage=safe_message(error),
        errorStack=stack,
    ).model_dump()


def create_event(**fields: Any) -> Event:
    """Build an ``Event`` without any contract validation of ``data``.

    Raises
    ------
    EventValidationError
        If the envelope fields themselves are invalid (empty type, malformed
        ``traceparent`` and so on).
    """
    fields = {key: value for key, value in fields.items() if value is not None}
    try:
        return Event(**fields)
    except PydanticValidationError as exc:
        raise EventValidationError(f"Invalid event envelope: {exc}") from exc


class EventFactory:
    """Builds contract-validated events for one contract version.

    Usage
    -----
    >>> factory = EventFactory(contract.version("1.0.0"))
    >>> event = factory.accepts(source="caller.x", subject="s1",
    ...                         to="payment.service", data={"amount": 10})
    >>> event.dataschema
    '#/pay/charge/1.0.0'
    """

    def __init__(self, contract: VersionedContract) -> None:
        self._contract = contract

    @property
    def contract(self) -> VersionedContract:
        return self._contract

    def accepts(self, *, data: Any, **fields: Any) -> Event:
        """Build an event of the contract's accepted type."""
        validated = self._contract.validate_accepts(data)
        return create_event(
            **fields,
            type=self._contract.accepts.type,
            data=validated,
            dataschema=self._contract.dataschema,
        )

    def emits(self, *, type: str, data: Any, **fields: Any) -> Event:
        """Build an event of one of the version's declared emit types."""
        validated = self._contract.validate_emits(type, data)
        return create_event(
            **fields,
            type=type,
            data=validated,
            dataschema=self._contract.dataschema,
        )

    def system_error(
        self, *, error: BaseException, include_stack: bool = True, **fields: Any
    ) -> Event:
        """Build the contract's ``sys.<type>.error`` event for *error*."""
        return create_event(
            **fields,
            type=self._contract.system_error.type,
            data=error_payload(error, include_stack=include_stack),
            dataschema=self._contract.dataschema,
        )
