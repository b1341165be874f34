"""Kanban board state and the drag-and-drop gesture machine."""

import contextlib
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from src.core.errors import (
    ErrorResponse,
    GestureError,
    GestureInProgressError,
    PartialCascadeError,
    RemoteCallError,
    TaskBusyError,
    classify_error_with_response,
)
from src.core.logging import log_with_task_context, span
from src.domain.task import BoardContainer, Task
from src.modules.tasks.reconciler import CompletionReconciler, derive_container


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoardSnapshot:
    """Exact pre-gesture state of one task: the Task object and the board order."""

    task: Task
    order: tuple[str, ...]


class Board:
    """Ordered task collection with derived Todo/Done columns.

    While a task is being dragged it may carry an optimistic placement that
    overrides its derived container; everything else is derived from the
    tasks themselves.
    """

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        self._tasks: dict[str, Task] = {}
        self._order: list[str] = []
        self._placements: dict[str, BoardContainer] = {}
        self.load(tasks)

    def load(self, tasks: Iterable[Task]) -> None:
        """Replace the whole collection."""
        self._tasks = {task.id: task for task in tasks}
        self._order = list(self._tasks)
        self._placements.clear()

    @property
    def tasks(self) -> tuple[Task, ...]:
        return tuple(self._tasks[task_id] for task_id in self._order)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __len__(self) -> int:
        return len(self._order)

    def get(self, task_id: str) -> Task:
        """Return a task by ID, raising KeyError if it is not on the board."""
        return self._tasks[task_id]

    def container_of(self, task_id: str) -> BoardContainer:
        """Column the task is rendered in (optimistic placement first)."""
        if task_id in self._placements:
            return self._placements[task_id]
        return derive_container(self._tasks[task_id])

    def columns(self) -> dict[BoardContainer, list[Task]]:
        """Non-archived tasks per column, in board order."""
        result: dict[BoardContainer, list[Task]] = {container: [] for container in BoardContainer}
        for task_id in self._order:
            task = self._tasks[task_id]
            if not task.archived:
                result[self.container_of(task_id)].append(task)
        return result

    def add(self, task: Task, *, first: bool = True) -> None:
        if task.id in self._tasks:
            self.replace(task)
            return
        self._tasks[task.id] = task
        if first:
            self._order.insert(0, task.id)
        else:
            self._order.append(task.id)

    def replace(self, task: Task) -> None:
        """Swap in a new Task object, keeping its position."""
        if task.id not in self._tasks:
            raise KeyError(f"Task {task.id} is not on the board")
        self._tasks[task.id] = task

    def remove(self, task_id: str) -> None:
        self._tasks.pop(task_id, None)
        self._placements.pop(task_id, None)
        if task_id in self._order:
            self._order.remove(task_id)

    def place(self, task_id: str, container: BoardContainer) -> None:
        self._placements[task_id] = container

    def clear_placement(self, task_id: str) -> None:
        self._placements.pop(task_id, None)

    def move_before(self, task_id: str, anchor_id: str | None) -> None:
        """Move a task in front of ``anchor_id`` (to the end when None or unknown)."""
        if task_id == anchor_id:
            return
        self._order.remove(task_id)
        if anchor_id is not None and anchor_id in self._tasks:
            self._order.insert(self._order.index(anchor_id), task_id)
        else:
            self._order.append(task_id)

    def snapshot(self, task_id: str) -> BoardSnapshot:
        return BoardSnapshot(task=self._tasks[task_id], order=tuple(self._order))

    def restore(self, snapshot: BoardSnapshot) -> None:
        """Put the snapshotted Task object back at its pre-gesture position.

        Tasks moved by other gestures since the snapshot keep their place.
        """
        task_id = snapshot.task.id
        if task_id not in self._tasks:
            return
        self._tasks[task_id] = snapshot.task
        self._placements.pop(task_id, None)

        following = snapshot.order[snapshot.order.index(task_id) + 1 :]
        anchor = next((other for other in following if other in self._tasks), None)
        self.move_before(task_id, anchor)


class GesturePhase(StrEnum):
    """Phases of a drag gesture."""

    IDLE = "idle"
    DRAGGING = "dragging"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


class HoverTarget(BaseModel):
    """What the pointer is over: a column, a task card, or both."""

    model_config = ConfigDict(frozen=True)

    container: BoardContainer | None = Field(default=None, description="Column under the pointer")
    task_id: str | None = Field(default=None, description="Task card under the pointer")


class TransitionOutcome(BaseModel):
    """Result of a finished drag gesture."""

    task_id: str = Field(..., description="Dragged task ID")
    phase: GesturePhase = Field(..., description="RESOLVED or CANCELLED")
    origin: BoardContainer = Field(..., description="Column at grab time")
    container: BoardContainer | None = Field(default=None, description="Resolved drop column")
    completion_changed: bool = Field(default=False, description="Whether a completion change was committed")
    rolled_back: bool = Field(default=False, description="Whether the optimistic move was reverted after a failure")
    error: ErrorResponse | None = Field(default=None, description="Dismissible error when rolled back")


@dataclass
class _Gesture:
    task_id: str
    snapshot: BoardSnapshot
    origin: BoardContainer
    last_valid_container: BoardContainer | None = None


class BoardTransitionController:
    """Turns drag gestures on a Board into completion transitions.

    Only one gesture is active at a time, and a task whose previous
    transition is still reconciling cannot be grabbed again. Other tasks
    can be dragged while a reconciliation is in flight.
    """

    def __init__(self, board: Board, reconciler: CompletionReconciler) -> None:
        self.board = board
        self._reconciler = reconciler
        self._gesture: _Gesture | None = None
        self._busy: set[str] = set()
        self.phase = GesturePhase.IDLE
        self.error: ErrorResponse | None = None

    @property
    def active_task_id(self) -> str | None:
        return self._gesture.task_id if self._gesture is not None else None

    def is_busy(self, task_id: str) -> bool:
        """Whether the task's last completion transition is still reconciling."""
        return task_id in self._busy

    def dismiss_error(self) -> None:
        self.error = None

    def grab(self, task_id: str) -> BoardContainer:
        """Start dragging a task.

        Returns:
            The origin container

        Raises:
            GestureInProgressError: If another gesture is active
            TaskBusyError: If the task is still reconciling
            KeyError: If the task is not on the board
        """
        if self._gesture is not None:
            raise GestureInProgressError(f"Task {self._gesture.task_id} is already being dragged")
        if task_id in self._busy:
            raise TaskBusyError(f"Task {task_id} is still being saved")

        origin = self.board.container_of(task_id)
        self._gesture = _Gesture(task_id=task_id, snapshot=self.board.snapshot(task_id), origin=origin)
        self.phase = GesturePhase.DRAGGING
        log_with_task_context(logger, "debug", "Gesture started", task_id=task_id, origin=origin.value)
        return origin

    def hover(self, target: HoverTarget) -> BoardContainer | None:
        """Track the pointer, updating the optimistic placement and order.

        Returns:
            The container resolved from the target, if any
        """
        gesture = self._require_gesture()
        container = self._resolve(gesture, target)
        if container is None:
            return None

        gesture.last_valid_container = container
        self.board.place(gesture.task_id, container)
        if target.task_id is not None and target.task_id != gesture.task_id and target.task_id in self.board:
            self.board.move_before(gesture.task_id, target.task_id)
        return container

    async def release(self, target: HoverTarget | None = None) -> TransitionOutcome:
        """Drop the dragged task, committing a completion change when the column changed.

        An unresolvable drop (no target and no valid hover seen) cancels the
        gesture without any remote call.
        """
        gesture = self._require_gesture()
        container = self._resolve(gesture, target) or gesture.last_valid_container
        if container is None:
            return self._cancel(gesture)

        task_id = gesture.task_id
        self._gesture = None
        self.phase = GesturePhase.RESOLVED

        if container == gesture.origin:
            self.board.clear_placement(task_id)
            return TransitionOutcome(task_id=task_id, phase=self.phase, origin=gesture.origin, container=container)

        new_completed = container == BoardContainer.DONE
        if new_completed == gesture.snapshot.task.completed:
            # Nothing to commit; the card falls back to its derived column
            self.board.clear_placement(task_id)
            return TransitionOutcome(task_id=task_id, phase=self.phase, origin=gesture.origin, container=container)

        self.board.place(task_id, container)
        return await self._commit(gesture, container, new_completed)

    async def set_completion(self, task_id: str, completed: bool) -> Task:
        """Checkbox toggle of a task's completion, outside any drag gesture.

        The board keeps the prior Task object unless the reconciler commits.

        Raises:
            TaskBusyError: If the task is still reconciling
            RemoteCallError: If the task update failed
            PartialCascadeError: If a subtask update failed
        """
        with self.exclusive(task_id):
            task = self.board.get(task_id)
            committed = await self._reconciler.set_completion(task, completed)
        self.board.replace(committed)
        return committed

    async def set_subtask_completion(self, task_id: str, subtask_id: str, completed: bool) -> Task:
        """Checkbox toggle of one subtask; the task's column is re-derived."""
        with self.exclusive(task_id):
            task = self.board.get(task_id)
            committed = await self._reconciler.set_subtask_completion(task, subtask_id, completed)
        self.board.replace(committed)
        return committed

    @contextlib.contextmanager
    def exclusive(self, task_id: str) -> Iterator[None]:
        """Hold a task for one remote write at a time.

        Completion changes and metadata edits of the same task never overlap.

        Raises:
            TaskBusyError: If the task is being dragged or another write is in flight
        """
        if self._gesture is not None and self._gesture.task_id == task_id:
            raise TaskBusyError(f"Task {task_id} is being dragged")
        if task_id in self._busy:
            raise TaskBusyError(f"Task {task_id} is still being saved")
        self._busy.add(task_id)
        try:
            yield
        finally:
            self._busy.discard(task_id)

    def cancel(self) -> TransitionOutcome | None:
        """Abort the active gesture, if any, restoring the board."""
        if self._gesture is None:
            return None
        return self._cancel(self._gesture)

    async def _commit(self, gesture: _Gesture, container: BoardContainer, completed: bool) -> TransitionOutcome:
        task_id = gesture.task_id
        try:
            with self.exclusive(task_id), span("board.commit_transition"):
                committed = await self._reconciler.set_completion(gesture.snapshot.task, completed)
        except (RemoteCallError, PartialCascadeError, TaskBusyError) as e:
            self.board.restore(gesture.snapshot)
            self.error = classify_error_with_response(e)
            logger.warning(
                "Board transition rolled back",
                extra={"task_id": task_id, "container": container.value, "error": str(e)},
            )
            return TransitionOutcome(
                task_id=task_id,
                phase=GesturePhase.RESOLVED,
                origin=gesture.origin,
                container=container,
                rolled_back=True,
                error=self.error,
            )

        if task_id in self.board:
            self.board.replace(committed)
            self.board.clear_placement(task_id)
        log_with_task_context(logger, "info", "Board transition committed", task_id=task_id, completed=completed)
        return TransitionOutcome(
            task_id=task_id,
            phase=GesturePhase.RESOLVED,
            origin=gesture.origin,
            container=container,
            completion_changed=True,
        )

    def _cancel(self, gesture: _Gesture) -> TransitionOutcome:
        self.board.restore(gesture.snapshot)
        self._gesture = None
        self.phase = GesturePhase.CANCELLED
        log_with_task_context(logger, "debug", "Gesture cancelled", task_id=gesture.task_id)
        return TransitionOutcome(task_id=gesture.task_id, phase=self.phase, origin=gesture.origin)

    def _resolve(self, gesture: _Gesture, target: HoverTarget | None) -> BoardContainer | None:
        if target is None:
            return None
        if target.container is not None:
            return target.container
        if target.task_id is not None and target.task_id != gesture.task_id and target.task_id in self.board:
            return self.board.container_of(target.task_id)
        return None

    def _require_gesture(self) -> _Gesture:
        if self._gesture is None:
            raise GestureError("No drag gesture is active")
        return self._gesture
