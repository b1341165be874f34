"""Completion reconciliation between a task, its subtasks and the task store."""

import asyncio
import logging
from collections.abc import Awaitable

from src.core.errors import PartialCascadeError, RemoteCallError
from src.core.logging import log_with_task_context, span
from src.domain.task import BoardContainer, Subtask, Task
from src.interface.store import TaskStore
from src.interface.transport import subtask_to_payload, task_to_payload


logger = logging.getLogger(__name__)


def derive_container(task: Task) -> BoardContainer:
    """Kanban column of a task: Done iff it is completed and every subtask is too."""
    if task.completed and all(subtask.completed for subtask in task.subtasks):
        return BoardContainer.DONE
    return BoardContainer.TODO


async def _guarded(operation: str, call: Awaitable[object]) -> object:
    """Await a store call, normalising unexpected failures to RemoteCallError."""
    try:
        return await call
    except RemoteCallError:
        raise
    except Exception as e:
        raise RemoteCallError(operation, f"{type(e).__name__}: {e}") from e


class CompletionReconciler:
    """Single entry point for changing completion flags.

    The task update is always awaited first. Completing a task then cascades
    to its subtasks concurrently; un-completing leaves subtasks untouched.
    Nothing is retried and no compensating writes are issued: on failure
    the caller keeps (or restores) its own snapshot.
    """

    def __init__(self, store: TaskStore) -> None:
        self._store = store

    async def set_completion(self, task: Task, completed: bool) -> Task:
        """Set a task's completion flag and, when completing, all of its subtasks'.

        Args:
            task: Current task state (never mutated)
            completed: Desired completion flag

        Returns:
            A new Task reflecting the committed state

        Raises:
            RemoteCallError: If the task update failed (no subtask call was made)
            PartialCascadeError: If the task update succeeded but a subtask update failed
        """
        with span("completion_reconciler.set_completion"):
            updated = task.model_copy(update={"completed": completed})
            await _guarded("update_task", self._store.update_task(task.id, task_to_payload(updated)))
            log_with_task_context(logger, "info", "Task completion updated", task_id=task.id, completed=completed)

            if not completed or not task.subtasks:
                return updated

            targets = [subtask.model_copy(update={"completed": True}) for subtask in task.subtasks]
            results = await asyncio.gather(
                *(
                    _guarded("update_subtask", self._store.update_subtask(task.id, s.id, subtask_to_payload(s)))
                    for s in targets
                ),
                return_exceptions=True,
            )

            failed: list[str] = []
            errors: list[BaseException] = []
            merged: list[Subtask] = []
            for original, target, result in zip(task.subtasks, targets, results, strict=True):
                if isinstance(result, BaseException):
                    failed.append(original.id)
                    errors.append(result)
                    merged.append(original)
                else:
                    merged.append(target)

            committed = updated.model_copy(update={"subtasks": tuple(merged)})
            if failed:
                logger.error(
                    "Subtask cascade partially failed",
                    extra={"task_id": task.id, "failed_subtask_ids": failed, "error": str(errors[0])},
                )
                raise PartialCascadeError(
                    task_id=task.id, failed_subtask_ids=failed, committed_task=committed, errors=errors
                )

            log_with_task_context(logger, "info", "Subtasks completed", task_id=task.id, subtasks=len(targets))
            return committed

    async def set_subtask_completion(self, task: Task, subtask_id: str, completed: bool) -> Task:
        """Toggle one subtask's completion flag.

        The owning task's own flag is left alone; its board column follows
        from ``derive_container``.

        Raises:
            KeyError: If the task does not own the subtask
            RemoteCallError: If the subtask update failed
        """
        with span("completion_reconciler.set_subtask_completion"):
            target = task.get_subtask(subtask_id).model_copy(update={"completed": completed})
            await _guarded(
                "update_subtask", self._store.update_subtask(task.id, subtask_id, subtask_to_payload(target))
            )
            subtasks = tuple(target if s.id == subtask_id else s for s in task.subtasks)
            return task.model_copy(update={"subtasks": subtasks})
