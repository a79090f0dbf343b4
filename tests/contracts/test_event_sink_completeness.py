"""Contract tests for WalkEventSink implementations.

Ensures FakeEventSink and BaseEventSink implement every method of the
WalkEventSink protocol, so a new event cannot be added to the protocol
without the sinks following.
"""

import inspect

import pytest

from revwalk.core.protocols import WalkEventSink
from revwalk.infra.io.base_sink import BaseEventSink, NullEventSink
from revwalk.infra.io.console_sink import ConsoleEventSink
from tests.fakes.event_sink import FakeEventSink


def _public_methods(cls: type) -> set[str]:
    return {
        name
        for name, _ in inspect.getmembers(cls, predicate=inspect.isfunction)
        if not name.startswith("_")
    }


@pytest.mark.unit
@pytest.mark.parametrize("sink_cls", [FakeEventSink, BaseEventSink])
def test_sink_implements_all_protocol_methods(sink_cls: type) -> None:
    protocol_methods = _public_methods(WalkEventSink)
    missing = protocol_methods - _public_methods(sink_cls)
    assert not missing, f"{sink_cls.__name__} missing protocol methods: {sorted(missing)}"


@pytest.mark.unit
@pytest.mark.parametrize("sink", [FakeEventSink(), NullEventSink(), ConsoleEventSink()])
def test_sinks_satisfy_runtime_protocol(sink: object) -> None:
    assert isinstance(sink, WalkEventSink)


@pytest.mark.unit
def test_fake_event_sink_has_event_helper() -> None:
    """has_event() correctly identifies recorded events."""
    sink = FakeEventSink()

    assert not sink.has_event("cancel_observed")

    sink.on_cancel_observed()
    assert sink.has_event("cancel_observed")
    assert not sink.has_event("walk_completed")


@pytest.mark.unit
def test_fake_event_sink_get_events_helper() -> None:
    """get_events() returns all events of a given type."""
    sink = FakeEventSink()

    sink.on_setup_step_started(name="deps")
    sink.on_setup_step_started(name="build")
    sink.on_setup_step_completed(name="deps", duration_seconds=1.0)

    events = sink.get_events("setup_step_started")
    assert len(events) == 2
    assert events[0].kwargs["name"] == "deps"
    assert events[1].kwargs["name"] == "build"


@pytest.mark.unit
def test_fake_event_sink_clear() -> None:
    """clear() removes all recorded events."""
    sink = FakeEventSink()

    sink.on_output(line="x")
    sink.on_fatal_error(message="boom", cleaned_up=True)
    assert len(sink.events) == 2

    sink.clear()
    assert len(sink.events) == 0
    assert not sink.has_event("output")
