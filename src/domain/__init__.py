"""Domain models and DTOs."""

from src.domain.schedule import NO_SCHEDULE, DueKind, DueState, ResetPolicy, Schedule, ScheduleMode
from src.domain.task import BoardContainer, Priority, Subtask, Task, TaskType, User


__all__ = [
    "NO_SCHEDULE",
    "BoardContainer",
    "DueKind",
    "DueState",
    "Priority",
    "ResetPolicy",
    "Schedule",
    "ScheduleMode",
    "Subtask",
    "Task",
    "TaskType",
    "User",
]
