"""Error taxonomy and classification into dismissible UI errors."""

from enum import Enum
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel


if TYPE_CHECKING:
    from src.domain.task import Task


class ScheduleParseError(ValueError):
    """Transport schedule or assignee data could not be parsed."""


class RecordNotFoundError(KeyError):
    """A task or subtask record does not exist in the store."""


class RemoteCallError(Exception):
    """A task store operation failed. Never retried automatically."""

    def __init__(self, operation: str, message: str, *, status_code: int | None = None) -> None:
        self.operation = operation
        self.status_code = status_code
        super().__init__(f"{operation} failed: {message}")


class PartialCascadeError(Exception):
    """The task update was committed but one or more subtask updates failed."""

    def __init__(
        self,
        *,
        task_id: str,
        failed_subtask_ids: list[str],
        committed_task: "Task",
        errors: list[BaseException],
    ) -> None:
        self.task_id = task_id
        self.failed_subtask_ids = failed_subtask_ids
        self.committed_task = committed_task
        self.errors = errors
        super().__init__(
            f"Completed task {task_id} but {len(failed_subtask_ids)} subtask update(s) failed: "
            f"{', '.join(failed_subtask_ids)}"
        )


class GestureError(RuntimeError):
    """A drag gesture was started while the board could not accept it."""


class GestureInProgressError(GestureError):
    """Another drag gesture is already active."""


class TaskBusyError(GestureError):
    """The task's previous completion transition has not resolved yet."""


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    ERR_REMOTE_CALL_FAILED = "ERR_REMOTE_CALL_FAILED"
    ERR_PARTIAL_CASCADE = "ERR_PARTIAL_CASCADE"
    ERR_NETWORK_ERROR = "ERR_NETWORK_ERROR"
    ERR_TASK_NOT_FOUND = "ERR_TASK_NOT_FOUND"
    ERR_TASK_BUSY = "ERR_TASK_BUSY"
    ERR_GESTURE_IN_PROGRESS = "ERR_GESTURE_IN_PROGRESS"
    ERR_INVALID_SCHEDULE = "ERR_INVALID_SCHEDULE"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured, dismissible error shown to the user."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


_NETWORK_PATTERNS: dict[Literal["phrases", "exception_types"], list[str] | set[str]] = {
    "phrases": [
        "connection",
        "timeout",
        "timed out",
        "network",
        "unreachable",
    ],
    "exception_types": {"ConnectionError", "TimeoutError", "ConnectError", "ReadTimeout", "ConnectTimeout"},
}


def _is_network_error(exception: BaseException) -> bool:
    """Return True if the exception (or its cause) looks like a connectivity problem."""
    for candidate in (exception, exception.__cause__):
        if candidate is None:
            continue
        error_str = str(candidate).lower()
        if any(phrase in error_str for phrase in _NETWORK_PATTERNS["phrases"]):
            return True
        if type(candidate).__name__ in _NETWORK_PATTERNS["exception_types"]:
            return True
    return False


def classify_error_with_response(exception: BaseException) -> ErrorResponse:  # noqa: PLR0911
    """Classify an error and return a structured response with a recovery suggestion.

    Args:
        exception: The exception raised while handling a user action

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    if isinstance(exception, PartialCascadeError):
        count = len(exception.failed_subtask_ids)
        return ErrorResponse(
            code=ErrorCode.ERR_PARTIAL_CASCADE,
            message=f"The task could not be completed: {count} subtask(s) failed to update.",
            suggestion="The task was moved back. Try completing it again.",
            severity=ErrorSeverity.MEDIUM,
        )

    if isinstance(exception, TaskBusyError):
        return ErrorResponse(
            code=ErrorCode.ERR_TASK_BUSY,
            message="This task is still being saved.",
            suggestion="Wait a moment and try again.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, GestureInProgressError):
        return ErrorResponse(
            code=ErrorCode.ERR_GESTURE_IN_PROGRESS,
            message="Another task is already being moved.",
            suggestion="Drop the current task first.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, ScheduleParseError):
        return ErrorResponse(
            code=ErrorCode.ERR_INVALID_SCHEDULE,
            message="The schedule is not valid.",
            suggestion="Pick a countdown, a due date, or no schedule.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, RemoteCallError) and exception.status_code == 404:  # noqa: PLR2004
        return ErrorResponse(
            code=ErrorCode.ERR_TASK_NOT_FOUND,
            message="That task no longer exists.",
            suggestion="Refresh the board to load the latest tasks.",
            severity=ErrorSeverity.LOW,
        )

    if _is_network_error(exception):
        return ErrorResponse(
            code=ErrorCode.ERR_NETWORK_ERROR,
            message="Network error occurred.",
            suggestion="Please check your connection and try again.",
            severity=ErrorSeverity.MEDIUM,
        )

    if isinstance(exception, RemoteCallError):
        return ErrorResponse(
            code=ErrorCode.ERR_REMOTE_CALL_FAILED,
            message="The change could not be saved.",
            suggestion="Please try again.",
            severity=ErrorSeverity.MEDIUM,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again. If the problem persists, reload the board.",
        severity=ErrorSeverity.MEDIUM,
    )
