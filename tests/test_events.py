"""Unit tests for :mod:`tidysave.events`."""

from __future__ import annotations

import gc
import logging
from dataclasses import dataclass

import pytest

from tidysave.events import DocumentOpened, DocumentSaved, Event, EventBus, StatusMessage


@dataclass(slots=True)
class SampleEvent(Event):
    """A sample event for testing."""

    message: str
    value: int = 0


class _Receiver:
    def __init__(self) -> None:
        self.received: list[Event] = []

    def handle(self, event: Event) -> None:
        self.received.append(event)


class TestEventBusSubscription:
    def test_subscribe_and_publish(self) -> None:
        """Handlers receive events of the subscribed type only."""
        bus: EventBus[Event] = EventBus()
        received: list[Event] = []

        def handler(event: Event) -> None:
            received.append(event)

        bus.subscribe(SampleEvent, handler)
        bus.publish(SampleEvent(message="hello", value=1))
        bus.publish(DocumentSaved(document_id="doc", path="/tmp/doc.txt"))

        assert received == [SampleEvent(message="hello", value=1)]

    def test_handlers_run_in_registration_order(self) -> None:
        bus: EventBus[Event] = EventBus()
        calls: list[str] = []

        def first(_event: Event) -> None:
            calls.append("first")

        def second(_event: Event) -> None:
            calls.append("second")

        bus.subscribe(DocumentOpened, first)
        bus.subscribe(DocumentOpened, second)
        bus.publish(DocumentOpened(document_id="doc"))

        assert calls == ["first", "second"]

    def test_unsubscribe_removes_handler(self) -> None:
        bus: EventBus[Event] = EventBus()
        receiver = _Receiver()
        bus.subscribe(SampleEvent, receiver.handle)

        bus.unsubscribe(SampleEvent, receiver.handle)
        bus.unsubscribe(StatusMessage, receiver.handle)
        bus.publish(SampleEvent(message="ignored"))

        assert receiver.received == []
        assert bus.handler_count(SampleEvent) == 0

    def test_publish_without_handlers_is_a_noop(self) -> None:
        bus: EventBus[Event] = EventBus()

        bus.publish(StatusMessage(message="nobody listening"))


class TestEventBusRobustness:
    def test_failing_handler_is_logged_and_others_still_run(self, caplog: pytest.LogCaptureFixture) -> None:
        bus: EventBus[Event] = EventBus()
        received: list[Event] = []

        def failing(_event: Event) -> None:
            raise RuntimeError("boom")

        def healthy(event: Event) -> None:
            received.append(event)

        bus.subscribe(SampleEvent, failing)
        bus.subscribe(SampleEvent, healthy)

        with caplog.at_level(logging.ERROR, logger="tidysave.events"):
            bus.publish(SampleEvent(message="x"))

        assert len(received) == 1
        assert "failing" in caplog.text

    def test_bound_methods_are_held_weakly(self) -> None:
        bus: EventBus[Event] = EventBus()
        receiver = _Receiver()
        bus.subscribe(SampleEvent, receiver.handle)
        assert bus.handler_count(SampleEvent) == 1

        del receiver
        gc.collect()
        bus.publish(SampleEvent(message="late"))

        assert bus.handler_count(SampleEvent) == 0

    def test_clear_and_counts(self) -> None:
        bus: EventBus[Event] = EventBus()

        def handler(_event: Event) -> None:
            return None

        bus.subscribe(SampleEvent, handler)
        bus.subscribe(StatusMessage, handler)
        assert bus.handler_count() == 2

        bus.clear()

        assert bus.handler_count() == 0


def test_status_message_defaults() -> None:
    message = StatusMessage(message="done")

    assert message.source == ""
    assert message.document_id is None
