"""Versioned event contracts.

A ``Contract`` declares the single event type a handler accepts and, per
semantic version, the accept schema plus the event types (and schemas) the
handler may emit.  Schemas are anything ``pydantic.TypeAdapter`` understands,
usually ``BaseModel`` subclasses.

``Contract.version()`` pins the contract to one version and returns a
``VersionedContract``, which is what validation and event construction work
against.  Two sentinels are understood:

* ``"latest"`` — the highest declared semantic version.
* ``"any"`` — the wildcard version ``0.0.0``: accepts any payload and emits
  nothing.  Used to build system errors when the addressed version of the
  contract cannot be trusted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic import ValidationError as PydanticValidationError

from eventforge.core.errors import ConfigurationError, EventValidationError
from eventforge.models.events import ErrorData

SEMVER_PATTERN = re.compile(r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)$")

LATEST_VERSION = "latest"
ANY_VERSION = "any"
WILDCARD_VERSION = "0.0.0"


def is_semantic_version(value: str) -> bool:
    """Return ``True`` for a plain ``MAJOR.MINOR.PATCH`` version string."""
    return bool(SEMVER_PATTERN.match(value))


def semver_key(version: str) -> tuple[int, int, int]:
    """Sort key for semantic version strings."""
    major, minor, patch = (int(part) for part in version.split("."))
    return major, minor, patch


def system_error_type(name: str) -> str:
    """Return the system error event type for an accepted type or source."""
    return f"sys.{name}.error"


def build_dataschema(uri: str, version: str) -> str:
    """Build the ``dataschema`` value ``<uri>/<version>``."""
    return f"{uri}/{version}"


def parse_dataschema(dataschema: str | None) -> tuple[str, str] | None:
    """Split a ``<uri>/<version>`` dataschema into ``(uri, version)``.

    Returns ``None`` when the value is missing or its trailing segment is not
    a semantic version.
    """
    if not dataschema or "/" not in dataschema:
        return None
    uri, _, version = dataschema.rpartition("/")
    if not uri or not is_semantic_version(version):
        return None
    return uri, version


@dataclass(frozen=True)
class ContractRecord:
    """An event type paired with the schema its ``data`` must satisfy."""

    type: str
    schema: Any


class ContractVersion(BaseModel):
    """Schemas declared for one semantic version of a contract."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    accepts: Any
    emits: dict[str, Any] = Field(default_factory=dict)


@lru_cache(maxsize=None)
def schema_adapter(schema: Any) -> TypeAdapter:
    """Return the ``TypeAdapter`` for *schema*, built once per schema."""
    return TypeAdapter(schema)


def _validate_against(schema: Any, data: Any, label: str) -> dict[str, Any]:
    try:
        validated = schema_adapter(schema).validate_python(data)
    except PydanticValidationError as exc:
        raise EventValidationError(f"Invalid {label} payload: {exc}") from exc
    if isinstance(validated, BaseModel):
        return validated.model_dump(mode="json")
    if isinstance(validated, dict):
        return validated
    raise EventValidationError(
        f"Invalid {label} payload: schema produced {type(validated).__name__}, expected an object"
    )


class VersionedContract(BaseModel):
    """A contract pinned to one concrete version (or the ``any`` wildcard)."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    uri: str
    version: str
    accepts: ContractRecord
    emits: dict[str, Any] = Field(default_factory=dict)
    system_error: ContractRecord
    domain: str | None = None
    description: str | None = None

    @property
    def dataschema(self) -> str:
        return build_dataschema(self.uri, self.version)

    def validate_accepts(self, data: Any) -> dict[str, Any]:
        """Validate an inbound payload against the accept schema."""
        return _validate_against(self.accepts.schema, data, f"'{self.accepts.type}'")

    def validate_emits(self, event_type: str, data: Any) -> dict[str, Any]:
        """Validate an outbound payload against the schema of *event_type*.

        Raises
        ------
        EventValidationError
            If *event_type* is not declared by this version, or the payload
            fails its schema.
        """
        if event_type == self.system_error.type:
            return _validate_against(ErrorData, data, f"'{event_type}'")
        schema = self.emits.get(event_type)
        if schema is None:
            raise EventValidationError(
                f"Event type '{event_type}' is not emitted by contract "
                f"'{self.uri}' version {self.version}. "
                f"Declared: {sorted(self.emits)}"
            )
        return _validate_against(schema, data, f"'{event_type}'")


class Contract(BaseModel):
    """A versioned declaration of one accepted event type and its emits.

    Examples
    --------
    >>> from pydantic import BaseModel
    >>> class Charge(BaseModel):
    ...     amount: int
    >>> class Charged(BaseModel):
    ...     ok: bool
    >>> contract = Contract(
    ...     uri="#/pay/charge",
    ...     type="com.pay.charge",
    ...     versions={"1.0.0": ContractVersion(
    ...         accepts=Charge, emits={"evt.pay.charge.done": Charged})},
    ... )
    >>> contract.system_error.type
    'sys.com.pay.charge.error'
    >>> contract.version("latest").version
    '1.0.0'
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    uri: str = Field(min_length=1)
    type: str = Field(min_length=1)
    versions: dict[str, ContractVersion]
    domain: str | None = None
    description: str | None = None

    @model_validator(mode="after")
    def _check_versions(self) -> Contract:
        if not self.versions:
            raise ConfigurationError(f"Contract '{self.uri}' declares no versions.")
        error_type = system_error_type(self.type)
        for version, declared in self.versions.items():
            if not is_semantic_version(version) or version == WILDCARD_VERSION:
                raise ConfigurationError(
                    f"Contract '{self.uri}' has invalid version {version!r}. "
                    "Versions must be MAJOR.MINOR.PATCH and not 0.0.0."
                )
            if error_type in declared.emits:
                raise ConfigurationError(
                    f"Contract '{self.uri}' version {version} must not declare "
                    f"the reserved system error type '{error_type}' in emits."
                )
        return self

    @property
    def system_error(self) -> ContractRecord:
        """The system error record: ``sys.<type>.error`` with ``ErrorData``."""
        return ContractRecord(type=system_error_type(self.type), schema=ErrorData)

    @property
    def latest_version(self) -> str:
        return max(self.versions, key=semver_key)

    def version(self, version: str) -> VersionedContract:
        """Pin the contract to *version*, ``"latest"`` or ``"any"``.

        Raises
        ------
        EventValidationError
            If *version* is not declared by the contract.
        """
        if version == ANY_VERSION:
            return VersionedContract(
                uri=self.uri,
                version=WILDCARD_VERSION,
                accepts=ContractRecord(type=self.type, schema=Any),
                emits={},
                system_error=self.system_error,
                domain=self.domain,
                description=self.description,
            )
        if version == LATEST_VERSION:
            version = self.latest_version
        declared = self.versions.get(version)
        if declared is None:
            raise EventValidationError(
                f"Contract '{self.uri}' has no version {version!r}. "
                f"Available: {sorted(self.versions, key=semver_key)}"
            )
        return VersionedContract(
            uri=self.uri,
            version=version,
            accepts=ContractRecord(type=self.type, schema=declared.accepts),
            emits=dict(declared.emits),
            system_error=self.system_error,
            domain=self.domain,
            description=self.description,
        )


def create_contract(
    *,
    uri: str,
    type: str,
    versions: dict[str, dict[str, Any] | ContractVersion],
    domain: str | None = None,
    description: str | None = None,
) -> Contract:
    """Build a ``Contract`` from plain ``{"accepts": ..., "emits": {...}}`` dicts."""
    return Contract(
        uri=uri,
        type=type,
        versions={
            version: spec if isinstance(spec, ContractVersion) else ContractVersion(**spec)
            for version, spec in versions.items()
        },
        domain=domain,
        description=description,
    )
