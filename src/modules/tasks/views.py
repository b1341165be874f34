"""View projections: list filters, timeframe groups, recent and archived tasks."""

from collections.abc import Iterable

from pydantic import BaseModel, Field

from src.core.config import constants
from src.domain.task import Priority, Task, TaskType


class TaskFilter(BaseModel):
    """Filters shared by the list and timeframe views."""

    priority: Priority | None = Field(default=None, description="Only tasks with this priority")
    assignee_id: str | None = Field(default=None, description="Only tasks with this main or supporting assignee")
    search: str = Field(default="", description="Case-insensitive substring of the title")
    timeframe: TaskType | None = Field(default=None, description="Only tasks of this type")
    include_archived: bool = Field(default=False, description="Keep archived tasks in the result")

    def matches(self, task: Task) -> bool:
        if task.archived and not self.include_archived:
            return False
        if self.priority is not None and task.priority != self.priority:
            return False
        if self.timeframe is not None and task.type != self.timeframe:
            return False
        if self.assignee_id is not None and not (
            task.main_assignee_id == self.assignee_id or self.assignee_id in task.supporting_assignee_ids
        ):
            return False
        return self.search.casefold() in task.title.casefold()


def sort_tasks(tasks: Iterable[Task]) -> list[Task]:
    """Pinned tasks first, then newest first."""
    return sorted(tasks, key=lambda task: (not task.pinned, -task.created_at.timestamp()))


def filter_tasks(tasks: Iterable[Task], task_filter: TaskFilter | None = None) -> list[Task]:
    """Apply a filter, keeping the pinned-first, newest-first order."""
    task_filter = task_filter or TaskFilter()
    return [task for task in sort_tasks(tasks) if task_filter.matches(task)]


def group_by_timeframe(tasks: Iterable[Task], task_filter: TaskFilter | None = None) -> dict[TaskType, list[Task]]:
    """Group filtered tasks by type; every timeframe is present, possibly empty."""
    groups: dict[TaskType, list[Task]] = {task_type: [] for task_type in TaskType}
    for task in filter_tasks(tasks, task_filter):
        groups[task.type].append(task)
    return groups


def recent_tasks(tasks: Iterable[Task], limit: int = constants.RECENT_TASKS_LIMIT) -> list[Task]:
    """Newest non-archived tasks, completed ones included."""
    active = [task for task in tasks if not task.archived]
    return sorted(active, key=lambda task: task.created_at, reverse=True)[:limit]


def archived_tasks(tasks: Iterable[Task]) -> list[Task]:
    return [task for task in sort_tasks(tasks) if task.archived]
