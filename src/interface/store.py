"""Task store protocol and backend factory."""

from typing import TYPE_CHECKING, Any, Protocol


if TYPE_CHECKING:
    from src.core.config import Settings


Record = dict[str, Any]


class TaskStore(Protocol):
    """Remote (or local) persistence for tasks, subtasks and users.

    Payloads and records use snake_case keys, with ``schedule`` and
    ``supporting_assignees`` carried as JSON strings (see
    ``src.interface.transport``). Every failed call raises
    ``RemoteCallError``; implementations never retry.
    """

    async def list_tasks(self) -> list[Record]:
        """Return every task, pinned first then newest first, subtasks embedded."""
        ...

    async def list_users(self) -> list[Record]:
        """Return the user directory."""
        ...

    async def create_task(self, payload: Record) -> Record:
        """Create a task and return the stored record."""
        ...

    async def update_task(self, task_id: str, payload: Record) -> Record:
        """Replace a task's fields and return the stored record."""
        ...

    async def delete_task(self, task_id: str) -> None:
        """Delete a task."""
        ...

    async def create_subtask(self, task_id: str, payload: Record) -> Record:
        """Create a subtask under a task and return the stored record."""
        ...

    async def update_subtask(self, task_id: str, subtask_id: str, payload: Record) -> Record:
        """Replace a subtask's fields and return the stored record."""
        ...

    async def delete_subtask(self, task_id: str, subtask_id: str) -> None:
        """Delete a subtask."""
        ...

    async def close(self) -> None:
        """Release any held resources."""
        ...


def build_store(config: "Settings") -> TaskStore:
    """Create the store selected by ``config.store_backend``."""
    if config.store_backend == "local":
        from src.interface.local_store import LocalTaskStore

        return LocalTaskStore(db_path=config.sqlite_db_path)

    from src.interface.rest_store import RestTaskStore

    return RestTaskStore(base_url=config.api_base_url, timeout=config.api_timeout_seconds)
