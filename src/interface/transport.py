"""Single adapter between store payloads (snake_case) and the canonical domain shape."""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from src.core.schedule_parser import (
    load_assignees,
    load_schedule,
    serialize_assignees,
    serialize_schedule,
    transport_id,
)
from src.domain.schedule import Schedule
from src.domain.task import Priority, Subtask, Task, TaskType


def _id_to_transport(value: str | None) -> int | str | None:
    return transport_id(value) if value is not None else None


def _schedule_to_transport(schedule: Schedule | None) -> str | None:
    return serialize_schedule(schedule) if schedule is not None else None


def _schedule_from_transport(raw: object) -> Schedule | None:
    if raw is None or raw == "":
        return None
    return load_schedule(raw)  # type: ignore[arg-type]


class SubtaskRecord(BaseModel):
    """Subtask as returned by the store."""

    model_config = ConfigDict(extra="ignore")

    id: str
    task_id: str | None = None
    title: str = ""
    completed: bool = False
    main_assignee_id: str | None = None
    supporting_assignees: frozenset[str] = Field(default_factory=frozenset)
    schedule: Schedule | None = None

    @field_validator("id", "task_id", "main_assignee_id", mode="before")
    @classmethod
    def coerce_id(cls, v: object) -> object:
        """Stores may hand back integer IDs."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("supporting_assignees", mode="before")
    @classmethod
    def parse_supporting(cls, v: object) -> frozenset[str]:
        return load_assignees(v)  # type: ignore[arg-type]

    @field_validator("schedule", mode="before")
    @classmethod
    def parse_schedule_field(cls, v: object) -> Schedule | None:
        return _schedule_from_transport(v)

    @field_validator("completed", mode="before")
    @classmethod
    def coerce_completed(cls, v: object) -> object:
        return False if v is None else v


class TaskRecord(SubtaskRecord):
    """Task as returned by the store."""

    description: str | None = None
    priority: Priority = Priority.MEDIUM
    type: TaskType = TaskType.DAILY
    archived: bool = False
    pinned: bool = False
    created_at: datetime | None = None
    subtasks: list[SubtaskRecord] | None = None

    @field_validator("priority", "type", mode="before")
    @classmethod
    def default_when_missing(cls, v: object, info: ValidationInfo) -> object:
        if v is None or v == "":
            return Priority.MEDIUM if info.field_name == "priority" else TaskType.DAILY
        return v

    @field_validator("archived", "pinned", mode="before")
    @classmethod
    def coerce_flag(cls, v: object) -> object:
        return False if v is None else v


def subtask_from_record(record: Mapping[str, Any], *, task_id: str | None = None) -> Subtask:
    """Build a Subtask from a store record.

    Args:
        record: Store record (snake_case keys)
        task_id: Owning task ID, used when the record omits it
    """
    return _subtask_from_parsed(SubtaskRecord.model_validate(dict(record)), task_id=task_id)


def _subtask_from_parsed(parsed: SubtaskRecord, *, task_id: str | None) -> Subtask:
    owner = parsed.task_id or task_id
    if owner is None:
        raise ValueError(f"Subtask {parsed.id} has no owning task")
    return Subtask(
        id=parsed.id,
        task_id=owner,
        title=parsed.title,
        completed=parsed.completed,
        main_assignee_id=parsed.main_assignee_id,
        supporting_assignee_ids=parsed.supporting_assignees,
        schedule=parsed.schedule,
    )


def task_from_record(record: Mapping[str, Any]) -> Task:
    """Build a Task (with its subtasks) from a store record."""
    parsed = TaskRecord.model_validate(dict(record))
    created_at = parsed.created_at or datetime.now(UTC)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    return Task(
        id=parsed.id,
        title=parsed.title,
        description=parsed.description or "",
        priority=parsed.priority,
        type=parsed.type,
        main_assignee_id=parsed.main_assignee_id,
        supporting_assignee_ids=parsed.supporting_assignees,
        schedule=parsed.schedule,
        completed=parsed.completed,
        archived=parsed.archived,
        pinned=parsed.pinned,
        subtasks=tuple(_subtask_from_parsed(s, task_id=parsed.id) for s in parsed.subtasks or []),
        created_at=created_at,
    )


def task_to_payload(task: Task) -> dict[str, Any]:
    """Full snake_case payload for creating or replacing a task (subtasks excluded)."""
    return {
        "title": task.title,
        "description": task.description,
        "priority": task.priority.value,
        "type": task.type.value,
        "completed": task.completed,
        "archived": task.archived,
        "pinned": task.pinned,
        "created_at": task.created_at.isoformat(),
        "main_assignee_id": _id_to_transport(task.main_assignee_id),
        "supporting_assignees": serialize_assignees(task.supporting_assignee_ids),
        "schedule": _schedule_to_transport(task.schedule),
    }


def subtask_to_payload(subtask: Subtask) -> dict[str, Any]:
    """Full snake_case payload for creating or replacing a subtask."""
    return {
        "title": subtask.title,
        "completed": subtask.completed,
        "main_assignee_id": _id_to_transport(subtask.main_assignee_id),
        "supporting_assignees": serialize_assignees(subtask.supporting_assignee_ids),
        "schedule": _schedule_to_transport(subtask.schedule),
    }
