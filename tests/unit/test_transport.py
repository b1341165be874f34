"""Unit tests for the store record adapter."""

import json
from datetime import UTC, datetime

import pytest

from src.domain.schedule import Schedule, ScheduleMode
from src.domain.task import Priority, TaskType
from src.interface.transport import subtask_from_record, subtask_to_payload, task_from_record, task_to_payload
from tests.unit.mocks import FIXED_NOW, make_subtask, make_task, schedule_json


@pytest.mark.unit
class TestTaskFromRecord:
    """Tests for task_from_record."""

    def test_full_record(self):
        record = {
            "id": 12,
            "title": "Fix login bug",
            "description": "Special characters",
            "priority": "High",
            "type": "weekly",
            "completed": 1,
            "archived": 0,
            "pinned": True,
            "created_at": "2025-01-09T12:00:00Z",
            "main_assignee_id": 1,
            "supporting_assignees": "[4, 6]",
            "schedule": schedule_json(mode="due", dueAt="2025-01-10"),
            "subtasks": [{"id": 13, "task_id": 12, "title": "Repro", "completed": False}],
        }

        task = task_from_record(record)

        assert task.id == "12"
        assert task.priority == Priority.HIGH
        assert task.type == TaskType.WEEKLY
        assert task.completed
        assert not task.archived
        assert task.pinned
        assert task.created_at == FIXED_NOW
        assert task.main_assignee_id == "1"
        assert task.supporting_assignee_ids == frozenset({"4", "6"})
        assert task.schedule is not None
        assert task.schedule.due_at == datetime(2025, 1, 10, tzinfo=UTC)
        assert task.subtasks[0].id == "13"
        assert task.subtasks[0].task_id == "12"

    def test_missing_fields_get_defaults(self):
        task = task_from_record({"id": "5", "title": "Bare", "priority": None, "type": "", "pinned": None})

        assert task.priority == Priority.MEDIUM
        assert task.type == TaskType.DAILY
        assert task.description == ""
        assert not task.pinned
        assert task.subtasks == ()
        assert task.schedule is None
        assert task.created_at.tzinfo is not None

    def test_naive_created_at_is_utc(self):
        task = task_from_record({"id": "5", "title": "Naive", "created_at": "2025-01-09T12:00:00"})

        assert task.created_at == FIXED_NOW

    def test_malformed_schedule_and_assignees_fall_back(self):
        task = task_from_record(
            {"id": "5", "title": "Broken", "schedule": "{not json", "supporting_assignees": "oops"}
        )

        assert task.schedule is not None
        assert task.schedule.mode == ScheduleMode.NONE
        assert task.supporting_assignee_ids == frozenset()

    def test_unknown_keys_ignored(self):
        assert task_from_record({"id": "5", "title": "Extra", "color": "blue"}).title == "Extra"

    def test_subtask_inherits_owner_id(self):
        task = task_from_record({"id": "5", "title": "Owner", "subtasks": [{"id": "6", "title": "Child"}]})

        assert task.subtasks[0].task_id == "5"


@pytest.mark.unit
class TestSubtaskFromRecord:
    """Tests for subtask_from_record."""

    def test_uses_given_owner(self):
        subtask = subtask_from_record({"id": 7, "title": "Child", "completed": None}, task_id="3")

        assert subtask.task_id == "3"
        assert not subtask.completed

    def test_without_owner_raises(self):
        with pytest.raises(ValueError, match="no owning task"):
            subtask_from_record({"id": 7, "title": "Orphan"})


@pytest.mark.unit
class TestPayloads:
    """Tests for outgoing payloads."""

    def test_task_payload_is_full_snake_case(self):
        schedule = Schedule(mode=ScheduleMode.DUE, expires_in_days=3)
        task = make_task(
            "9",
            main_assignee_id="1",
            supporting_assignee_ids=frozenset({"4", "6"}),
            schedule=schedule,
            subtasks=[make_subtask("10", task_id="9")],
        )

        payload = task_to_payload(task)

        assert set(payload) == {
            "title",
            "description",
            "priority",
            "type",
            "completed",
            "archived",
            "pinned",
            "created_at",
            "main_assignee_id",
            "supporting_assignees",
            "schedule",
        }
        assert payload["main_assignee_id"] == 1
        assert payload["supporting_assignees"] == "[4, 6]"
        assert json.loads(payload["schedule"]) == {"mode": "due", "reset": "none", "expiresInDays": 3}
        assert payload["priority"] == "Medium"

    def test_task_payload_without_schedule(self):
        assert task_to_payload(make_task())["schedule"] is None

    def test_subtask_payload(self):
        payload = subtask_to_payload(make_subtask("2", completed=True, main_assignee_id="guest"))

        assert payload == {
            "title": "Subtask 2",
            "completed": True,
            "main_assignee_id": "guest",
            "supporting_assignees": "[]",
            "schedule": None,
        }

    def test_record_round_trip_keeps_task(self):
        task = make_task("9", pinned=True, schedule=Schedule(mode=ScheduleMode.DUE, due_at=FIXED_NOW))

        assert task_from_record({"id": "9", **task_to_payload(task)}) == task

    def test_non_canonical_ids_stay_strings(self):
        task = make_task("9", main_assignee_id="007", supporting_assignee_ids=frozenset({"007", "²", "12"}))

        payload = task_to_payload(task)

        assert payload["main_assignee_id"] == "007"
        assert json.loads(payload["supporting_assignees"]) == ["007", 12, "²"]
        assert task_from_record({"id": "9", **payload}) == task
