"""eventforge data models — all Pydantic v2, all frozen (immutable)."""

from eventforge.models.contracts import (
    ANY_VERSION,
    LATEST_VERSION,
    WILDCARD_VERSION,
    Contract,
    ContractRecord,
    ContractVersion,
    VersionedContract,
    build_dataschema,
    create_contract,
    parse_dataschema,
    system_error_type,
)
from eventforge.models.events import ErrorData, Event, HandlerOutput

__all__ = [
    # events
    "Event",
    "HandlerOutput",
    "ErrorData",
    # contracts
    "Contract",
    "ContractRecord",
    "ContractVersion",
    "VersionedContract",
    "create_contract",
    "build_dataschema",
    "parse_dataschema",
    "system_error_type",
    "LATEST_VERSION",
    "ANY_VERSION",
    "WILDCARD_VERSION",
]
