"""Task domain models and enums."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from src.domain.schedule import Schedule


class Priority(StrEnum):
    """Task priority."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class TaskType(StrEnum):
    """Timeframe a task belongs to."""

    DAILY = "daily"
    WEEKLY = "weekly"
    PROJECT = "project"
    CUSTOM = "custom"


class BoardContainer(StrEnum):
    """Kanban column a task is rendered in (derived, never stored)."""

    TODO = "Todo"
    DONE = "Done"


class Subtask(BaseModel):
    """Subtask owned by exactly one task."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique subtask ID from the store")
    task_id: str = Field(..., description="ID of the owning task")
    title: str = Field(..., description="Subtask title")
    completed: bool = Field(default=False, description="Completion flag")
    main_assignee_id: str | None = Field(default=None, description="Main assignee user ID")
    supporting_assignee_ids: frozenset[str] = Field(default_factory=frozenset, description="Supporting assignees")
    schedule: Schedule | None = Field(default=None, description="When the subtask is due")


class Task(BaseModel):
    """Task data transfer object (canonical in-memory shape)."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique task ID from the store")
    title: str = Field(..., description="Task title")
    description: str = Field(default="", description="Detailed task description")
    priority: Priority = Field(default=Priority.MEDIUM, description="Task priority")
    type: TaskType = Field(default=TaskType.DAILY, description="Timeframe the task belongs to")
    main_assignee_id: str | None = Field(default=None, description="Main assignee user ID")
    supporting_assignee_ids: frozenset[str] = Field(default_factory=frozenset, description="Supporting assignees")
    schedule: Schedule | None = Field(default=None, description="When the task is due")
    completed: bool = Field(default=False, description="Completion flag")
    archived: bool = Field(default=False, description="Hidden from the active views")
    pinned: bool = Field(default=False, description="Sorted ahead of unpinned tasks")
    subtasks: tuple[Subtask, ...] = Field(default=(), description="Owned subtasks, in display order")
    created_at: datetime = Field(..., description="Creation timestamp")

    def get_subtask(self, subtask_id: str) -> Subtask:
        """Return the owned subtask with the given ID.

        Raises:
            KeyError: If the task does not own such a subtask
        """
        for subtask in self.subtasks:
            if subtask.id == subtask_id:
                return subtask
        raise KeyError(f"Subtask {subtask_id} not found on task {self.id}")


class User(BaseModel):
    """Assignable user."""

    id: str
    name: str
