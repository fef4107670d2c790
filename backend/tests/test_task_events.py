"""
Tests for the task event bus.
"""

from clipflow.tasks.events import TaskEvent, TaskEventBus, TaskEventType
from clipflow.tasks.models import Task


def _event(event_type=TaskEventType.STARTED, message=None):
    return TaskEvent(event_type=event_type, task=Task(kind="extract"), message=message)


class TestTaskEventBus:
    """Multi-subscriber, non-raising publication."""

    def test_all_subscribers_receive(self):
        bus = TaskEventBus()
        first, second = [], []
        bus.subscribe(first.append)
        bus.subscribe(second.append)

        event = _event()
        bus.publish(event)

        assert first == [event]
        assert second == [event]

    def test_unsubscribe(self):
        bus = TaskEventBus()
        received = []
        unsubscribe = bus.subscribe(received.append)

        unsubscribe()
        bus.publish(_event())

        assert received == []
        assert bus.subscriber_count == 0

    def test_unsubscribe_twice_is_harmless(self):
        bus = TaskEventBus()
        unsubscribe = bus.subscribe(lambda e: None)
        unsubscribe()
        unsubscribe()
        assert bus.subscriber_count == 0

    def test_failing_subscriber_is_isolated(self, caplog):
        bus = TaskEventBus()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(broken)
        bus.subscribe(received.append)

        bus.publish(_event(TaskEventType.FAILED))

        assert len(received) == 1
        assert "Subscriber failed" in caplog.text

    def test_publish_without_subscribers(self):
        TaskEventBus().publish(_event())


class TestTaskEvent:
    """Event formatting."""

    def test_str_includes_type_and_message(self):
        text = str(_event(TaskEventType.FAILED, "Input file not found"))
        assert "failed" in text
        assert "extract" in text
        assert "Input file not found" in text
