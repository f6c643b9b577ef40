"""Immutable event envelopes and handler output records.

Every event crossing a handler boundary is a frozen Pydantic model.  Handlers
never mutate an inbound event; each transformation builds a new ``Event`` via
``model_copy(update=...)`` so unrelated fields are carried forward untouched.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# W3C trace-context header: version-traceid-parentid-flags
TRACEPARENT_PATTERN = re.compile(r"^[0-9a-f]{2}-[0-9a-f]{32}-[0-9a-f]{16}-[0-9a-f]{2}$")

DEFAULT_DATACONTENTTYPE = "application/cloudevents+json;charset=UTF-8"

ExtensionValue = Union[str, int, float, bool]


class ErrorData(BaseModel):
    """Payload schema of every system error event."""

    model_config = ConfigDict(frozen=True)

    errorName: str
    errorMessage: str
    errorStack: str | None = None


class Event(BaseModel):
    """A self-describing, immutable event envelope.

    The field names follow the CloudEvents attribute naming (all lowercase)
    so an ``Event`` serializes straight onto the wire with
    ``model_dump(mode="json")``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: str = Field(min_length=1)
    source: str = Field(min_length=1)
    subject: str = Field(min_length=1)
    to: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    dataschema: str | None = None
    traceparent: str | None = None
    tracestate: str | None = None
    executionunits: float | None = None
    redirectto: str | None = None
    accesscontrol: str | None = None
    domain: str | None = None
    parentid: str | None = None
    specversion: str = "1.0"
    datacontenttype: str = DEFAULT_DATACONTENTTYPE
    time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    extensions: dict[str, ExtensionValue] = Field(default_factory=dict)

    @field_validator("traceparent")
    @classmethod
    def _check_traceparent(cls, value: str | None) -> str | None:
        if value is not None and not TRACEPARENT_PATTERN.match(value):
            raise ValueError(f"traceparent {value!r} is not a W3C trace-context header")
        return value

    @field_validator("executionunits")
    @classmethod
    def _check_executionunits(cls, value: float | None) -> float | None:
        if value is not None and value < 0:
            raise ValueError("executionunits must not be negative")
        return value

    @property
    def otel_attributes(self) -> dict[str, str | float]:
        """Span attributes describing this event (``cloudevents.event_*``)."""
        attributes: dict[str, str | float] = {
            "cloudevents.event_id": self.id,
            "cloudevents.event_type": self.type,
            "cloudevents.event_source": self.source,
            "cloudevents.event_subject": self.subject,
            "cloudevents.event_spec_version": self.specversion,
            "cloudevents.event_time": self.time.isoformat(),
        }
        optional = {
            "to": self.to,
            "dataschema": self.dataschema,
            "redirectto": self.redirectto,
            "domain": self.domain,
            "parentid": self.parentid,
            "executionunits": self.executionunits,
        }
        for key, value in optional.items():
            if value is not None:
                attributes[f"cloudevents.event_{key}"] = value
        return attributes

    def without_trace_headers(self) -> Event:
        """Return a copy with ``traceparent`` and ``tracestate`` cleared."""
        return self.model_copy(update={"traceparent": None, "tracestate": None})


class HandlerOutput(BaseModel):
    """A logical record returned by handler logic, not yet an addressed Event.

    ``domain`` may be a single value or a list whose entries are concrete
    domain strings, ``None`` (stay local) or one of the symbolic values in
    ``eventforge.core.domain.Domain``.  Omitting it means one undomained event.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: str = Field(min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)
    to: str | None = None
    domain: list[str | None] = Field(default_factory=lambda: [None])
    executionunits: float | None = None
    id: str | None = None
    accesscontrol: str | None = None
    redirectto: str | None = None
    extensions: dict[str, ExtensionValue] = Field(
        default_factory=dict, alias="__extensions"
    )

    @field_validator("domain", mode="before")
    @classmethod
    def _domain_as_list(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return [value]
        return value
