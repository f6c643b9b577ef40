"""Domain resolution for emitted events.

A handler output may list several domains; one event is emitted per resolved
domain.  Entries are either concrete domain strings, ``None`` (stay local) or
one of the symbolic values on ``Domain``, which are resolved against the
execution context at emit time.
"""

from __future__ import annotations

from collections.abc import Iterable

from eventforge.models.events import Event


class Domain:
    """Symbolic domain entries understood by ``resolve_domain``."""

    #: Keep the event in the current execution context (no domain).
    LOCAL = None

    #: Fall back through the emitted event's contract domain, the triggering
    #: event's domain, then the handler's own domain.
    INHERIT = "domain.inherit"

    #: The emitting handler's own contract (or configured) domain.
    FROM_SELF_CONTRACT = "domain.contract.self.inherit"

    #: The domain of the contract that declares the emitted event.
    FROM_EVENT_CONTRACT = "domain.contract.inherit"

    #: The ``domain`` field of the triggering event.
    FROM_TRIGGERING_EVENT = "domain.event.inherit"

    SYMBOLIC = frozenset(
        {INHERIT, FROM_SELF_CONTRACT, FROM_EVENT_CONTRACT, FROM_TRIGGERING_EVENT}
    )


def resolve_domain(
    entry: str | None,
    *,
    triggering_event: Event,
    handler_domain: str | None = None,
    event_contract_domain: str | None = None,
) -> str | None:
    """Resolve one domain entry to a concrete domain string or ``None``.

    Examples
    --------
    >>> resolve_domain("audit", triggering_event=event)
    'audit'
    >>> resolve_domain(Domain.FROM_SELF_CONTRACT, triggering_event=event,
    ...                handler_domain="payments")
    'payments'
    """
    if entry is None:
        return None
    if entry == Domain.INHERIT:
        for candidate in (event_contract_domain, triggering_event.domain, handler_domain):
            if candidate is not None:
                return candidate
        return None
    if entry == Domain.FROM_SELF_CONTRACT:
        return handler_domain
    if entry == Domain.FROM_EVENT_CONTRACT:
        return event_contract_domain
    if entry == Domain.FROM_TRIGGERING_EVENT:
        return triggering_event.domain
    return entry


def resolve_domains(
    entries: Iterable[str | None],
    *,
    triggering_event: Event,
    handler_domain: str | None = None,
    event_contract_domain: str | None = None,
) -> list[str | None]:
    """Resolve every entry, dropping repeated resolved values (first wins)."""
    resolved: list[str | None] = []
    for entry in entries:
        value = resolve_domain(
            entry,
            triggering_event=triggering_event,
            handler_domain=handler_domain,
            event_contract_domain=event_contract_domain,
        )
        if value not in resolved:
            resolved.append(value)
    return resolved
