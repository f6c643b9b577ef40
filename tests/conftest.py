"""Shared test fixtures for eventforge."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from pydantic import BaseModel

from eventforge.config import EventforgeSettings
from eventforge.core.handler import ContractHandler
from eventforge.core.interface import HandlerInput
from eventforge.core.open_handler import OpenHandler
from eventforge.models.contracts import Contract, ContractVersion
from eventforge.models.events import Event
from eventforge.telemetry.tracing import TelemetryOptions


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class ChargeRequest(BaseModel):
    amount: int
    currency: str = "EUR"


class ChargeRequestV2(BaseModel):
    amount: int
    currency: str
    customer: str


class ChargeDone(BaseModel):
    ok: bool


class ChargeAudited(BaseModel):
    amount: int


# ---------------------------------------------------------------------------
# Tracing
# ---------------------------------------------------------------------------


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def tracer_provider(span_exporter: InMemorySpanExporter) -> TracerProvider:
    """A test-local provider; the global provider is never touched."""
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    return provider


@pytest.fixture
def telemetry(tracer_provider: TracerProvider) -> TelemetryOptions:
    return TelemetryOptions(tracer=tracer_provider.get_tracer("eventforge-tests"))


@pytest.fixture
def test_settings() -> EventforgeSettings:
    """Settings with defaults only (no .env, no environment overrides)."""
    return EventforgeSettings(
        _env_file=None,
        environment="test",
        telemetry_inherit_from="event",
        record_event_attributes=True,
        include_error_stack=True,
    )


# ---------------------------------------------------------------------------
# Contracts and events
# ---------------------------------------------------------------------------


@pytest.fixture
def charge_contract() -> Contract:
    return Contract(
        uri="#/pay/charge",
        type="com.pay.charge",
        domain="payments",
        versions={
            "1.0.0": ContractVersion(
                accepts=ChargeRequest,
                emits={"evt.pay.charge.done": ChargeDone},
            ),
            "2.0.0": ContractVersion(
                accepts=ChargeRequestV2,
                emits={
                    "evt.pay.charge.done": ChargeDone,
                    "evt.pay.charge.audited": ChargeAudited,
                },
            ),
        },
    )


@pytest.fixture
def make_event() -> Callable[..., Event]:
    """Factory fixture: build an Event with sensible defaults."""

    def _factory(**overrides: Any) -> Event:
        defaults: dict[str, Any] = {
            "type": "com.pay.charge",
            "source": "caller.x",
            "subject": "s1",
            "to": "payment.service",
            "data": {"amount": 10},
            "dataschema": "#/pay/charge/1.0.0",
        }
        defaults.update(overrides)
        return Event(**defaults)

    return _factory


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


class CallRecorder:
    """Async handler function that records every call it receives."""

    def __init__(self, result: Any = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[HandlerInput] = []

    @property
    def count(self) -> int:
        return len(self.calls)

    async def __call__(self, ctx: HandlerInput) -> Any:
        self.calls.append(ctx)
        if self.error is not None:
            raise self.error
        if callable(self.result):
            return self.result(ctx)
        return self.result


@pytest.fixture
def make_recorder() -> Callable[..., CallRecorder]:
    return CallRecorder


@pytest.fixture
def make_contract_handler(
    charge_contract: Contract,
    telemetry: TelemetryOptions,
    test_settings: EventforgeSettings,
) -> Callable[..., ContractHandler]:
    """Factory fixture: ContractHandler for the charge contract."""

    def _factory(
        v1: Any = None,
        v2: Any = None,
        **overrides: Any,
    ) -> ContractHandler:
        kwargs: dict[str, Any] = {
            "contract": charge_contract,
            "executionunits": 1,
            "handler": {
                "1.0.0": v1 or CallRecorder(
                    {"type": "evt.pay.charge.done", "data": {"ok": True}}
                ),
                "2.0.0": v2 or CallRecorder(
                    {"type": "evt.pay.charge.done", "data": {"ok": True}}
                ),
            },
            "telemetry": telemetry,
            "settings": test_settings,
        }
        kwargs.update(overrides)
        return ContractHandler(**kwargs)

    return _factory


@pytest.fixture
def make_open_handler(
    telemetry: TelemetryOptions,
    test_settings: EventforgeSettings,
) -> Callable[..., OpenHandler]:
    """Factory fixture: OpenHandler with a recording handler function."""

    def _factory(handler: Any = None, **overrides: Any) -> OpenHandler:
        kwargs: dict[str, Any] = {
            "source": "open.worker",
            "executionunits": 2,
            "handler": handler or CallRecorder({"type": "evt.open.done", "data": {}}),
            "telemetry": telemetry,
            "settings": test_settings,
        }
        kwargs.update(overrides)
        return OpenHandler(**kwargs)

    return _factory
