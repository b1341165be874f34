"""Task store persisted to a local SQLite file."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from src.core import db_client
from src.core.config import constants
from src.core.errors import RecordNotFoundError, RemoteCallError
from src.core.schema import init_db
from src.interface.store import Record


logger = logging.getLogger(__name__)

TASK_COLUMNS = frozenset(
    {
        "title",
        "description",
        "priority",
        "type",
        "completed",
        "archived",
        "pinned",
        "created_at",
        "main_assignee_id",
        "supporting_assignees",
        "schedule",
    }
)
SUBTASK_COLUMNS = frozenset({"title", "completed", "main_assignee_id", "supporting_assignees", "schedule"})
_FLAG_COLUMNS = ("completed", "archived", "pinned")
_TASK_ORDER = "pinned DESC, created_at DESC, id DESC"


def _columns(payload: Record, allowed: frozenset[str]) -> dict[str, Any]:
    """Keep only known columns; unknown keys (id, subtasks, ...) are ignored."""
    data = {key: value for key, value in payload.items() if key in allowed}
    if data.get("main_assignee_id") is not None:
        data["main_assignee_id"] = str(data["main_assignee_id"])
    if data.get("supporting_assignees") is None:
        data.pop("supporting_assignees", None)
    return data


def _with_flags(record: Record) -> Record:
    """SQLite stores booleans as integers."""
    for flag in _FLAG_COLUMNS:
        if flag in record and record[flag] is not None:
            record[flag] = bool(record[flag])
    return record


class LocalTaskStore:
    """TaskStore implementation over ``src.core.db_client``.

    Database failures surface as ``RemoteCallError`` so callers handle both
    backends the same way; a missing record carries status code 404.
    """

    def __init__(self, *, db_path: str | None = None) -> None:
        self.db_path = db_path
        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def _ensure_schema(self) -> None:
        if self._initialized:
            return
        async with self._init_lock:
            if not self._initialized:
                await init_db(db_path=self.db_path)
                self._initialized = True

    async def _call(self, operation: str, coro_factory: Callable[[], Awaitable[Any]]) -> Any:
        await self._ensure_schema()
        try:
            return await coro_factory()
        except RecordNotFoundError as e:
            raise RemoteCallError(operation, str(e), status_code=constants.HTTP_NOT_FOUND) from e
        except (RuntimeError, ValueError) as e:
            raise RemoteCallError(operation, str(e), status_code=constants.HTTP_SERVER_ERROR) from e

    async def _subtasks_of(self, task_id: str) -> list[Record]:
        records = await db_client.list_records(
            collection="subtasks", filters={"task_id": task_id}, sort="id ASC", db_path=self.db_path
        )
        return [_with_flags(r) for r in records]

    async def _task_with_subtasks(self, task_id: str) -> Record:
        record = await db_client.get_record(collection="tasks", record_id=task_id, db_path=self.db_path)
        record["subtasks"] = await self._subtasks_of(task_id)
        return _with_flags(record)

    async def _owned_subtask(self, task_id: str, subtask_id: str) -> Record:
        record = await db_client.get_record(collection="subtasks", record_id=subtask_id, db_path=self.db_path)
        if record["task_id"] != task_id:
            msg = f"Subtask {subtask_id} does not belong to task {task_id}"
            raise RecordNotFoundError(msg)
        return record

    async def list_tasks(self) -> list[Record]:
        async def run() -> list[Record]:
            records = await db_client.list_records(collection="tasks", sort=_TASK_ORDER, db_path=self.db_path)
            for record in records:
                record["subtasks"] = await self._subtasks_of(record["id"])
                _with_flags(record)
            return records

        return await self._call("list_tasks", run)

    async def list_recent_tasks(self, limit: int = constants.RECENT_TASKS_LIMIT) -> list[Record]:
        """Newest non-archived tasks (completed ones included), without subtasks."""

        async def run() -> list[Record]:
            records = await db_client.list_records(
                collection="tasks",
                filters={"archived": False},
                sort="created_at DESC, id DESC",
                limit=limit,
                db_path=self.db_path,
            )
            return [_with_flags(r) for r in records]

        return await self._call("list_recent_tasks", run)

    async def list_users(self) -> list[Record]:
        return await self._call(
            "list_users",
            lambda: db_client.list_records(collection="users", sort="id ASC", db_path=self.db_path),
        )

    async def create_user(self, name: str) -> Record:
        return await self._call(
            "create_user",
            lambda: db_client.create_record(collection="users", data={"name": name}, db_path=self.db_path),
        )

    async def create_task(self, payload: Record) -> Record:
        async def run() -> Record:
            data = _columns(payload, TASK_COLUMNS)
            data.setdefault("completed", False)
            data.setdefault("archived", False)
            created = await db_client.create_record(collection="tasks", data=data, db_path=self.db_path)
            created["subtasks"] = []
            return _with_flags(created)

        return await self._call("create_task", run)

    async def update_task(self, task_id: str, payload: Record) -> Record:
        async def run() -> Record:
            data = _columns(payload, TASK_COLUMNS)
            if data:
                await db_client.update_record(collection="tasks", record_id=task_id, data=data, db_path=self.db_path)
            return await self._task_with_subtasks(task_id)

        return await self._call("update_task", run)

    async def delete_task(self, task_id: str) -> None:
        # Subtasks go with it through ON DELETE CASCADE
        await self._call(
            "delete_task",
            lambda: db_client.delete_record(collection="tasks", record_id=task_id, db_path=self.db_path),
        )

    async def clear_tasks(self) -> int:
        """Delete every non-archived task. Returns the number deleted."""
        return await self._call(
            "clear_tasks",
            lambda: db_client.delete_records(collection="tasks", filters={"archived": False}, db_path=self.db_path),
        )

    async def create_subtask(self, task_id: str, payload: Record) -> Record:
        async def run() -> Record:
            await db_client.get_record(collection="tasks", record_id=task_id, db_path=self.db_path)
            data = _columns(payload, SUBTASK_COLUMNS)
            data["task_id"] = task_id
            data.setdefault("completed", False)
            created = await db_client.create_record(collection="subtasks", data=data, db_path=self.db_path)
            return _with_flags(created)

        return await self._call("create_subtask", run)

    async def update_subtask(self, task_id: str, subtask_id: str, payload: Record) -> Record:
        async def run() -> Record:
            await self._owned_subtask(task_id, subtask_id)
            data = _columns(payload, SUBTASK_COLUMNS)
            if not data:
                return _with_flags(await self._owned_subtask(task_id, subtask_id))
            updated = await db_client.update_record(
                collection="subtasks", record_id=subtask_id, data=data, db_path=self.db_path
            )
            return _with_flags(updated)

        return await self._call("update_subtask", run)

    async def delete_subtask(self, task_id: str, subtask_id: str) -> None:
        async def run() -> None:
            await self._owned_subtask(task_id, subtask_id)
            await db_client.delete_record(collection="subtasks", record_id=subtask_id, db_path=self.db_path)

        await self._call("delete_subtask", run)

    async def close(self) -> None:
        await db_client.close_connection(db_path=self.db_path)
        logger.debug("Local task store closed", extra={"db_path": self.db_path})
