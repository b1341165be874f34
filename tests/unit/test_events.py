"""Unit tests for the task event channel."""

import logging

import pytest

from src.modules.tasks.events import EventChannel, TaskEvent, TaskEventKind


@pytest.mark.unit
class TestEventChannel:
    """Tests for EventChannel."""

    def test_delivers_in_subscription_order(self):
        channel = EventChannel()
        received = []
        channel.subscribe(lambda e: received.append(("first", e.kind)))
        channel.subscribe(lambda e: received.append(("second", e.kind)))

        channel.publish(TaskEvent(kind=TaskEventKind.TASKS_LOADED))

        assert received == [("first", TaskEventKind.TASKS_LOADED), ("second", TaskEventKind.TASKS_LOADED)]

    def test_kind_filter(self):
        channel = EventChannel()
        received = []
        channel.subscribe(received.append, kinds=[TaskEventKind.ERROR_RAISED])

        channel.publish(TaskEvent(kind=TaskEventKind.TASK_ADDED, task_id="1"))
        channel.publish(TaskEvent(kind=TaskEventKind.ERROR_RAISED, task_id="1"))

        assert [e.kind for e in received] == [TaskEventKind.ERROR_RAISED]

    def test_unsubscribe(self):
        channel = EventChannel()
        received = []
        unsubscribe = channel.subscribe(received.append)

        unsubscribe()
        unsubscribe()
        channel.publish(TaskEvent(kind=TaskEventKind.TASK_DELETED, task_id="1"))

        assert received == []
        assert len(channel) == 0

    def test_failing_handler_does_not_block_others(self, caplog):
        channel = EventChannel()
        received = []

        def broken(_event: TaskEvent) -> None:
            raise RuntimeError("render failed")

        channel.subscribe(broken)
        channel.subscribe(received.append)

        with caplog.at_level(logging.ERROR):
            channel.publish(TaskEvent(kind=TaskEventKind.TASK_UPDATED, task_id="1"))

        assert len(received) == 1
        assert "Event handler failed" in caplog.text
