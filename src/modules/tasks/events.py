"""Typed event channel for signalling between task views."""

import logging
from collections.abc import Callable, Iterable
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from src.core.errors import ErrorResponse
from src.domain.task import Task


logger = logging.getLogger(__name__)


class TaskEventKind(StrEnum):
    """Things views need to hear about."""

    TASKS_LOADED = "tasks_loaded"
    TASK_ADDED = "task_added"
    TASK_UPDATED = "task_updated"
    TASK_DELETED = "task_deleted"
    ERROR_RAISED = "error_raised"
    ERROR_DISMISSED = "error_dismissed"


class TaskEvent(BaseModel):
    """One message on the channel."""

    model_config = ConfigDict(frozen=True)

    kind: TaskEventKind
    task_id: str | None = Field(default=None, description="Task the event is about")
    task: Task | None = Field(default=None, description="Task state after the change")
    error: ErrorResponse | None = Field(default=None, description="Error for ERROR_RAISED")


EventHandler = Callable[[TaskEvent], None]


class EventChannel:
    """Explicit publish/subscribe channel owned by the workspace.

    Handlers run synchronously in subscription order. A failing handler is
    logged and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._subscribers: list[tuple[EventHandler, frozenset[TaskEventKind] | None]] = []

    def subscribe(self, handler: EventHandler, kinds: Iterable[TaskEventKind] | None = None) -> Callable[[], None]:
        """Register a handler, optionally for a subset of event kinds.

        Returns:
            A callable that removes the subscription
        """
        entry = (handler, frozenset(kinds) if kinds is not None else None)
        self._subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def publish(self, event: TaskEvent) -> None:
        for handler, kinds in list(self._subscribers):
            if kinds is not None and event.kind not in kinds:
                continue
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler failed", extra={"kind": event.kind.value, "task_id": event.task_id})

    def __len__(self) -> int:
        return len(self._subscribers)
