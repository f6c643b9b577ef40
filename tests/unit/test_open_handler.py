"""Tests for OpenHandler."""

from __future__ import annotations

import pytest
from opentelemetry.trace import StatusCode

from eventforge.core.domain import Domain
from eventforge.core.errors import ConfigurationError
from eventforge.core.interface import EventHandler
from eventforge.core.open_handler import OpenHandler, create_open_handler


class TestConstruction:
    def test_properties(self, make_open_handler):
        handler = make_open_handler(accepts=["com.open.a", "com.open.b"], domain="h")
        assert handler.source == "open.worker"
        assert handler.accepted_types == ("com.open.a", "com.open.b")
        assert handler.domain == "h"
        assert handler.system_error_schema.type == "sys.open.worker.error"
        assert isinstance(handler, EventHandler)

    def test_accepts_nothing_by_default(self, make_open_handler):
        assert make_open_handler().accepted_types == ()

    @pytest.mark.parametrize("source", ["Open", "open-worker", "open.", ".open"])
    def test_invalid_source(self, make_open_handler, source):
        with pytest.raises(ConfigurationError, match="source"):
            make_open_handler(source=source)

    def test_non_callable(self, make_open_handler):
        with pytest.raises(ConfigurationError, match="not callable"):
            make_open_handler(handler=object())

    def test_empty_accepts_entry(self, make_open_handler):
        with pytest.raises(ConfigurationError, match="accepts"):
            make_open_handler(accepts=["com.a", ""])

    def test_factory_function(self, make_recorder):
        handler = create_open_handler(
            source="open.worker", executionunits=0, handler=make_recorder()
        )
        assert isinstance(handler, OpenHandler)


class TestExecute:
    async def test_any_type_accepted(self, make_open_handler, make_event, make_recorder):
        recorder = make_recorder({"type": "evt.open.done", "data": {"free": "form"}})
        handler = make_open_handler(handler=recorder)
        [event] = await handler.execute(
            make_event(type="anything.at.all", to="open.worker", data={"x": [1, 2]})
        )
        assert event.type == "evt.open.done"
        assert event.data == {"free": "form"}
        assert event.source == "open.worker"
        assert event.to == "caller.x"
        assert event.executionunits == 2
        assert event.dataschema is None

        [ctx] = recorder.calls
        assert ctx.contract is None
        assert ctx.source == "open.worker"

    async def test_destination_mismatch_before_logic(self, make_open_handler, make_event, make_recorder):
        recorder = make_recorder()
        handler = make_open_handler(handler=recorder)
        [event] = await handler.execute(make_event(to="someone.else", redirectto="reply.here"))

        assert event.type == "sys.open.worker.error"
        assert event.to == "caller.x"
        assert event.data["errorName"] == "DestinationMismatchError"
        assert recorder.count == 0

    async def test_user_exception(self, make_open_handler, make_event, make_recorder, span_exporter):
        handler = make_open_handler(handler=make_recorder(error=RuntimeError("broken")))
        [event] = await handler.execute(make_event(to="open.worker"))

        assert event.type == "sys.open.worker.error"
        assert event.data["errorMessage"] == "broken"
        [span] = span_exporter.get_finished_spans()
        assert span.name == "OpenHandler<open.worker>"
        assert span.status.status_code == StatusCode.ERROR

    async def test_domain_broadcast(self, make_open_handler, make_event, make_recorder):
        recorder = make_recorder(
            {"type": "evt.open.done", "domain": ["a", "a", None, Domain.INHERIT]}
        )
        handler = make_open_handler(handler=recorder, domain="h")
        events = await handler.execute(make_event(to="open.worker"))
        assert [e.domain for e in events] == ["a", None, "h"]

    async def test_triggering_domain_beats_handler_domain(self, make_open_handler, make_event, make_recorder):
        recorder = make_recorder({"type": "evt.open.done", "domain": Domain.INHERIT})
        handler = make_open_handler(handler=recorder, domain="h")
        [event] = await handler.execute(make_event(to="open.worker", domain="inbound"))
        assert event.domain == "inbound"

    async def test_output_to_override(self, make_open_handler, make_event, make_recorder):
        recorder = make_recorder(lambda ctx: [{"type": "evt.a", "to": "audit.sink"}, {"type": "evt.b"}])
        events = await make_open_handler(handler=recorder).execute(make_event(to="open.worker"))
        assert [e.to for e in events] == ["audit.sink", "caller.x"]
