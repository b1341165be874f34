"""Task service for CRUD operations on tasks and subtasks."""

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from src.core.errors import RemoteCallError
from src.core.logging import log_with_task_context, span
from src.core.schedule_parser import arm_countdown
from src.domain.schedule import Schedule
from src.domain.task import Priority, Subtask, Task, TaskType, User
from src.interface.store import TaskStore
from src.interface.transport import subtask_from_record, subtask_to_payload, task_from_record, task_to_payload
from src.modules.tasks.ticker import utc_now


logger = logging.getLogger(__name__)

# Completion is owned by the reconciler; archive/pin have dedicated toggles
EDITABLE_TASK_FIELDS = frozenset(
    {"title", "description", "priority", "type", "main_assignee_id", "supporting_assignee_ids", "schedule"}
)
EDITABLE_SUBTASK_FIELDS = frozenset({"title", "main_assignee_id", "supporting_assignee_ids", "schedule"})


def rearm_schedule(schedule: Schedule | None, previous: Schedule | None, now: datetime) -> Schedule | None:
    """Restart a countdown that is new or changed by an edit; other schedules pass through."""
    if schedule is None or not schedule.is_countdown or schedule == previous:
        return schedule
    # Countdown schedules always carry a positive countdownSeconds
    assert schedule.countdown_seconds is not None
    return arm_countdown(seconds=schedule.countdown_seconds, now=now, reset=schedule.reset)


def _check_fields(changes: dict[str, Any], allowed: frozenset[str]) -> None:
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Cannot edit field(s): {', '.join(sorted(unknown))}")


class TaskService:
    """Create, edit, archive, pin and delete tasks and their subtasks.

    Every method returns new domain objects; nothing passed in is mutated.
    Store failures propagate as ``RemoteCallError``.
    """

    def __init__(self, store: TaskStore, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._store = store
        self._clock = clock

    async def load_tasks(self) -> list[Task]:
        """Fetch every task with its subtasks."""
        with span("task_service.load_tasks"):
            records = await self._store.list_tasks()
            tasks = [task_from_record(record) for record in records]
            logger.info("Loaded tasks", extra={"count": len(tasks)})
            return tasks

    async def load_users(self) -> list[User]:
        with span("task_service.load_users"):
            records = await self._store.list_users()
            return [User(id=str(record["id"]), name=record.get("name", "")) for record in records]

    async def create_task(
        self,
        *,
        title: str,
        description: str = "",
        priority: Priority = Priority.MEDIUM,
        type: TaskType = TaskType.DAILY,  # noqa: A002
        main_assignee_id: str | None = None,
        supporting_assignee_ids: Iterable[str] = (),
        schedule: Schedule | None = None,
        pinned: bool = False,
    ) -> Task:
        """Create a new, incomplete, unarchived task.

        A countdown schedule starts counting at creation time.

        Returns:
            The created task as stored

        Raises:
            ValueError: If the title is empty
            RemoteCallError: If the store rejects the task
        """
        if not title.strip():
            raise ValueError("Task title is required")

        with span("task_service.create_task"):
            now = self._clock()
            draft = Task(
                id="",
                title=title.strip(),
                description=description,
                priority=priority,
                type=type,
                main_assignee_id=main_assignee_id,
                supporting_assignee_ids=frozenset(supporting_assignee_ids),
                schedule=rearm_schedule(schedule, None, now),
                completed=False,
                archived=False,
                pinned=pinned,
                created_at=now,
            )
            record = await self._store.create_task(task_to_payload(draft))
            task = task_from_record(record)
            log_with_task_context(logger, "info", "Created task", task_id=task.id, title=task.title)
            return task

    async def edit_task(self, task: Task, **changes: Any) -> Task:
        """Apply metadata edits and send the full reconstructed task.

        Raises:
            ValueError: If a non-editable field is given
            RemoteCallError: If the store update fails
        """
        _check_fields(changes, EDITABLE_TASK_FIELDS)
        if "schedule" in changes:
            changes["schedule"] = rearm_schedule(changes["schedule"], task.schedule, self._clock())
        return await self._replace_task(task, changes, operation="edit_task")

    async def set_archived(self, task: Task, archived: bool) -> Task:
        return await self._replace_task(task, {"archived": archived}, operation="set_archived")

    async def set_pinned(self, task: Task, pinned: bool) -> Task:
        return await self._replace_task(task, {"pinned": pinned}, operation="set_pinned")

    async def delete_task(self, task: Task) -> None:
        """Delete a task and every subtask it owns.

        Subtasks are deleted concurrently before the task itself; if any of
        them fails the task is kept and the first error is raised.
        """
        with span("task_service.delete_task"):
            results = await asyncio.gather(
                *(self._store.delete_subtask(task.id, subtask.id) for subtask in task.subtasks),
                return_exceptions=True,
            )
            errors = [result for result in results if isinstance(result, BaseException)]
            if errors:
                logger.error("Subtask deletion failed", extra={"task_id": task.id, "failed": len(errors)})
                if isinstance(errors[0], RemoteCallError):
                    raise errors[0]
                raise RemoteCallError("delete_subtask", str(errors[0])) from errors[0]

            await self._store.delete_task(task.id)
            log_with_task_context(logger, "info", "Deleted task", task_id=task.id, subtasks=len(task.subtasks))

    async def add_subtask(
        self,
        task: Task,
        *,
        title: str,
        main_assignee_id: str | None = None,
        supporting_assignee_ids: Iterable[str] = (),
        schedule: Schedule | None = None,
    ) -> Task:
        """Create a subtask and return the owning task with it appended."""
        if not title.strip():
            raise ValueError("Subtask title is required")

        with span("task_service.add_subtask"):
            draft = Subtask(
                id="",
                task_id=task.id,
                title=title.strip(),
                completed=False,
                main_assignee_id=main_assignee_id,
                supporting_assignee_ids=frozenset(supporting_assignee_ids),
                schedule=rearm_schedule(schedule, None, self._clock()),
            )
            record = await self._store.create_subtask(task.id, subtask_to_payload(draft))
            subtask = subtask_from_record(record, task_id=task.id)
            log_with_task_context(logger, "info", "Added subtask", task_id=task.id, subtask_id=subtask.id)
            return task.model_copy(update={"subtasks": (*task.subtasks, subtask)})

    async def edit_subtask(self, task: Task, subtask_id: str, **changes: Any) -> Task:
        """Edit a subtask's metadata (not its completion flag).

        Raises:
            KeyError: If the task does not own the subtask
            ValueError: If a non-editable field is given
            RemoteCallError: If the store update fails
        """
        _check_fields(changes, EDITABLE_SUBTASK_FIELDS)
        current = task.get_subtask(subtask_id)
        if "schedule" in changes:
            changes["schedule"] = rearm_schedule(changes["schedule"], current.schedule, self._clock())

        with span("task_service.edit_subtask"):
            updated = Subtask.model_validate({**dict(current), **changes})
            await self._store.update_subtask(task.id, subtask_id, subtask_to_payload(updated))
            subtasks = tuple(updated if s.id == subtask_id else s for s in task.subtasks)
            return task.model_copy(update={"subtasks": subtasks})

    async def remove_subtask(self, task: Task, subtask_id: str) -> Task:
        """Delete a subtask and return the owning task without it."""
        task.get_subtask(subtask_id)
        with span("task_service.remove_subtask"):
            await self._store.delete_subtask(task.id, subtask_id)
            log_with_task_context(logger, "info", "Removed subtask", task_id=task.id, subtask_id=subtask_id)
            return task.model_copy(update={"subtasks": tuple(s for s in task.subtasks if s.id != subtask_id)})

    async def _replace_task(self, task: Task, changes: dict[str, Any], *, operation: str) -> Task:
        with span(f"task_service.{operation}"):
            updated = Task.model_validate({**dict(task), **changes})
            await self._store.update_task(task.id, task_to_payload(updated))
            log_with_task_context(logger, "info", "Updated task", task_id=task.id, fields=sorted(changes))
            return updated
