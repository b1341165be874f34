"""Top-level controller tying the store, board, views and event channel together."""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, tzinfo
from typing import Any, TypeVar
from zoneinfo import ZoneInfo

from src.core.config import settings
from src.core.errors import (
    ErrorResponse,
    GestureError,
    PartialCascadeError,
    RemoteCallError,
    ScheduleParseError,
    classify_error_with_response,
)
from src.domain.schedule import DueState
from src.domain.task import BoardContainer, Task, TaskType, User
from src.interface.store import TaskStore
from src.modules.tasks import views
from src.modules.tasks.board import Board, BoardTransitionController, HoverTarget, TransitionOutcome
from src.modules.tasks.due_state import due_state_for
from src.modules.tasks.events import EventChannel, TaskEvent, TaskEventKind
from src.modules.tasks.reconciler import CompletionReconciler
from src.modules.tasks.service import TaskService
from src.modules.tasks.ticker import CountdownTicker, utc_now


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors that become a dismissible error state instead of propagating
_RECOVERABLE = (RemoteCallError, PartialCascadeError, GestureError, ScheduleParseError)


class TaskWorkspace:
    """The application state a UI renders.

    Owns the task collection (through the Board), the user directory, the
    event channel and the single dismissible error. Store and reconciler
    failures never escape: they are recorded as an ErrorResponse, published
    on the channel, and the action returns None so the user can retry.
    """

    def __init__(
        self,
        store: TaskStore,
        *,
        clock: Callable[[], datetime] = utc_now,
        tz: tzinfo | None = None,
    ) -> None:
        self.store = store
        self.clock = clock
        self.tz = tz or ZoneInfo(settings.display_timezone)
        self.service = TaskService(store, clock=clock)
        self.board = Board()
        self.controller = BoardTransitionController(self.board, CompletionReconciler(store))
        self.events = EventChannel()
        self.users: list[User] = []
        self.error: ErrorResponse | None = None

    @property
    def tasks(self) -> tuple[Task, ...]:
        return self.board.tasks

    def get_task(self, task_id: str) -> Task:
        return self.board.get(task_id)

    # Errors

    def dismiss_error(self) -> None:
        self.error = None
        self.controller.dismiss_error()
        self.events.publish(TaskEvent(kind=TaskEventKind.ERROR_DISMISSED))

    def _record_error(self, exc: BaseException, *, task_id: str | None = None) -> None:
        self.error = classify_error_with_response(exc)
        logger.warning(
            "Action failed",
            extra={"task_id": task_id, "error_code": self.error.code, "error": str(exc)},
        )
        self.events.publish(TaskEvent(kind=TaskEventKind.ERROR_RAISED, task_id=task_id, error=self.error))

    async def _attempt(self, action: Awaitable[T], *, task_id: str | None = None) -> T | None:
        try:
            return await action
        except _RECOVERABLE as e:
            self._record_error(e, task_id=task_id)
            return None

    async def _mutate(self, task_id: str, action: Callable[[Task], Awaitable[T]]) -> T | None:
        """Run a store write for one task while holding it against concurrent writes."""
        try:
            with self.controller.exclusive(task_id):
                return await action(self.board.get(task_id))
        except _RECOVERABLE as e:
            self._record_error(e, task_id=task_id)
            return None

    def _updated(self, task: Task | None) -> Task | None:
        if task is not None:
            self.board.replace(task)
            self.events.publish(TaskEvent(kind=TaskEventKind.TASK_UPDATED, task_id=task.id, task=task))
        return task

    # Loading

    async def refresh(self) -> bool:
        """Reload tasks and users from the store. Returns False on failure."""
        tasks = await self._attempt(self.service.load_tasks())
        if tasks is None:
            return False
        users = await self._attempt(self.service.load_users())
        self.board.load(tasks)
        self.users = users or []
        self.events.publish(TaskEvent(kind=TaskEventKind.TASKS_LOADED))
        return True

    # Task CRUD

    async def create_task(self, **fields: Any) -> Task | None:
        task = await self._attempt(self.service.create_task(**fields))
        if task is not None:
            self.board.add(task)
            self.events.publish(TaskEvent(kind=TaskEventKind.TASK_ADDED, task_id=task.id, task=task))
        return task

    async def edit_task(self, task_id: str, **changes: Any) -> Task | None:
        return self._updated(await self._mutate(task_id, lambda task: self.service.edit_task(task, **changes)))

    async def set_archived(self, task_id: str, archived: bool) -> Task | None:
        return self._updated(await self._mutate(task_id, lambda task: self.service.set_archived(task, archived)))

    async def set_pinned(self, task_id: str, pinned: bool) -> Task | None:
        return self._updated(await self._mutate(task_id, lambda task: self.service.set_pinned(task, pinned)))

    async def delete_task(self, task_id: str) -> bool:
        async def delete(task: Task) -> bool:
            await self.service.delete_task(task)
            return True

        if not await self._mutate(task_id, delete):
            return False
        self.board.remove(task_id)
        self.events.publish(TaskEvent(kind=TaskEventKind.TASK_DELETED, task_id=task_id))
        return True

    # Subtasks

    async def add_subtask(self, task_id: str, **fields: Any) -> Task | None:
        return self._updated(await self._mutate(task_id, lambda task: self.service.add_subtask(task, **fields)))

    async def edit_subtask(self, task_id: str, subtask_id: str, **changes: Any) -> Task | None:
        return self._updated(
            await self._mutate(task_id, lambda task: self.service.edit_subtask(task, subtask_id, **changes))
        )

    async def remove_subtask(self, task_id: str, subtask_id: str) -> Task | None:
        return self._updated(
            await self._mutate(task_id, lambda task: self.service.remove_subtask(task, subtask_id))
        )

    # Completion

    async def set_completion(self, task_id: str, completed: bool) -> Task | None:
        """Task checkbox. On failure the task keeps its prior state."""
        task = await self._attempt(self.controller.set_completion(task_id, completed), task_id=task_id)
        if task is not None:
            self.events.publish(TaskEvent(kind=TaskEventKind.TASK_UPDATED, task_id=task.id, task=task))
        return task

    async def set_subtask_completion(self, task_id: str, subtask_id: str, completed: bool) -> Task | None:
        task = await self._attempt(
            self.controller.set_subtask_completion(task_id, subtask_id, completed), task_id=task_id
        )
        if task is not None:
            self.events.publish(TaskEvent(kind=TaskEventKind.TASK_UPDATED, task_id=task.id, task=task))
        return task

    # Drag and drop

    def grab(self, task_id: str) -> BoardContainer | None:
        try:
            return self.controller.grab(task_id)
        except GestureError as e:
            self._record_error(e, task_id=task_id)
            return None

    def hover(self, target: HoverTarget) -> BoardContainer | None:
        return self.controller.hover(target)

    async def release(self, target: HoverTarget | None = None) -> TransitionOutcome:
        outcome = await self.controller.release(target)
        if outcome.error is not None:
            self.error = outcome.error
            self.events.publish(
                TaskEvent(kind=TaskEventKind.ERROR_RAISED, task_id=outcome.task_id, error=outcome.error)
            )
        elif outcome.completion_changed:
            task = self.board.get(outcome.task_id)
            self.events.publish(TaskEvent(kind=TaskEventKind.TASK_UPDATED, task_id=task.id, task=task))
        return outcome

    def cancel_drag(self) -> TransitionOutcome | None:
        return self.controller.cancel()

    # Views

    def list_view(self, task_filter: views.TaskFilter | None = None) -> list[Task]:
        return views.filter_tasks(self.board.tasks, task_filter)

    def timeframe_view(self, task_filter: views.TaskFilter | None = None) -> dict[TaskType, list[Task]]:
        return views.group_by_timeframe(self.board.tasks, task_filter)

    def kanban_view(self) -> dict[BoardContainer, list[Task]]:
        return self.board.columns()

    def recent_tasks(self) -> list[Task]:
        return views.recent_tasks(self.board.tasks)

    def archived_tasks(self) -> list[Task]:
        return views.archived_tasks(self.board.tasks)

    # Due display

    def due_state(self, task_id: str, subtask_id: str | None = None) -> DueState:
        """Current due state of a task, or of one of its subtasks."""
        task = self.board.get(task_id)
        if subtask_id is None:
            return due_state_for(task, now=self.clock(), tz=self.tz)
        return due_state_for(task.get_subtask(subtask_id), owner=task, now=self.clock(), tz=self.tz)

    def ticker(self, on_tick: Callable[[DueState], None]) -> CountdownTicker:
        """A fresh ticker for one observer (task card, detail view, ...)."""
        return CountdownTicker(on_tick=on_tick, clock=self.clock, tz=self.tz)
