"""Task REST endpoints served over the local SQLite store."""

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, ConfigDict, Field

from src.core.errors import ScheduleParseError
from src.core.schedule_parser import parse_assignees, parse_schedule, serialize_assignees, serialize_schedule
from src.domain.task import Priority, TaskType
from src.interface.local_store import LocalTaskStore


router = APIRouter(tags=["tasks"])
logger = logging.getLogger(__name__)


class SubtaskPayload(BaseModel):
    """Incoming subtask fields (snake_case). Unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    title: str | None = Field(default=None, description="Subtask title")
    completed: bool | None = Field(default=None, description="Completion flag")
    main_assignee_id: int | str | None = Field(default=None, description="Main assignee user ID")
    supporting_assignees: str | list[int | str] | None = Field(
        default=None, description="JSON array string (or array) of user IDs"
    )
    schedule: str | dict[str, Any] | None = Field(default=None, description="Serialized schedule")

    def to_record(self) -> dict[str, Any]:
        """Fields that were sent, with schedule and assignees normalized.

        Raises:
            HTTPException: 400 if the schedule or assignees are malformed
        """
        data = self.model_dump(mode="json", exclude_unset=True)
        try:
            if data.get("schedule") is not None:
                data["schedule"] = serialize_schedule(parse_schedule(data["schedule"]))
            if "supporting_assignees" in data:
                data["supporting_assignees"] = serialize_assignees(parse_assignees(data["supporting_assignees"]))
        except ScheduleParseError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
        return data


class TaskPayload(SubtaskPayload):
    """Incoming task fields (snake_case). Unknown keys are ignored."""

    description: str | None = Field(default=None, description="Detailed task description")
    priority: Priority | None = Field(default=None, description="High, Medium or Low")
    type: TaskType | None = Field(default=None, description="daily, weekly, project or custom")
    archived: bool | None = Field(default=None, description="Hidden from active views")
    pinned: bool | None = Field(default=None, description="Sorted ahead of unpinned tasks")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")


def get_store(request: Request) -> LocalTaskStore:
    """The store opened by the application lifespan."""
    return request.app.state.store


def _require_title(payload: SubtaskPayload) -> None:
    if not payload.title or not payload.title.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="title is required")


@router.get("/tasks")
async def list_tasks(store: LocalTaskStore = Depends(get_store)) -> list[dict[str, Any]]:
    """All tasks, pinned first then newest first, with subtasks embedded."""
    return await store.list_tasks()


@router.get("/tasks/recent")
async def list_recent_tasks(store: LocalTaskStore = Depends(get_store)) -> list[dict[str, Any]]:
    """The newest non-archived tasks."""
    return await store.list_recent_tasks()


@router.post("/tasks", status_code=status.HTTP_201_CREATED)
async def create_task(payload: TaskPayload, store: LocalTaskStore = Depends(get_store)) -> dict[str, Any]:
    _require_title(payload)
    record = await store.create_task(payload.to_record())
    logger.info("Task created via API", extra={"task_id": record["id"]})
    return record


@router.post("/tasks/clear")
async def clear_tasks(store: LocalTaskStore = Depends(get_store)) -> dict[str, Any]:
    """Delete every non-archived task."""
    deleted = await store.clear_tasks()
    logger.info("Tasks cleared via API", extra={"count": deleted})
    return {"status": "cleared", "deleted": deleted}


@router.put("/tasks/{task_id}")
async def update_task(
    task_id: str, payload: TaskPayload, store: LocalTaskStore = Depends(get_store)
) -> dict[str, Any]:
    return await store.update_task(task_id, payload.to_record())


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: str, store: LocalTaskStore = Depends(get_store)) -> dict[str, str]:
    """Delete a task together with its subtasks."""
    await store.delete_task(task_id)
    return {"status": "deleted"}


@router.post("/tasks/{task_id}/subtasks", status_code=status.HTTP_201_CREATED)
async def create_subtask(
    task_id: str, payload: SubtaskPayload, store: LocalTaskStore = Depends(get_store)
) -> dict[str, Any]:
    _require_title(payload)
    return await store.create_subtask(task_id, payload.to_record())


@router.put("/tasks/{task_id}/subtasks/{subtask_id}")
async def update_subtask(
    task_id: str, subtask_id: str, payload: SubtaskPayload, store: LocalTaskStore = Depends(get_store)
) -> dict[str, Any]:
    return await store.update_subtask(task_id, subtask_id, payload.to_record())


@router.delete("/tasks/{task_id}/subtasks/{subtask_id}")
async def delete_subtask(
    task_id: str, subtask_id: str, store: LocalTaskStore = Depends(get_store)
) -> dict[str, str]:
    await store.delete_subtask(task_id, subtask_id)
    return {"status": "deleted"}


@router.get("/users")
async def list_users(store: LocalTaskStore = Depends(get_store)) -> list[dict[str, Any]]:
    return await store.list_users()
