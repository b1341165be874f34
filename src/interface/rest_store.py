"""Task store backed by the REST task service over httpx."""

import logging
from typing import Any

import httpx

from src.core.config import constants
from src.core.errors import RemoteCallError
from src.interface.store import Record


logger = logging.getLogger(__name__)


class RestTaskStore:
    """TaskStore implementation talking to the task REST service.

    Any non-success response or transport failure raises ``RemoteCallError``.
    Calls are never retried.
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float = constants.API_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )

    async def _request(self, operation: str, method: str, path: str, payload: Record | None = None) -> Any:
        try:
            response = await self._client.request(method, path, json=payload)
        except httpx.HTTPError as e:
            logger.error("store_request_failed", extra={"operation": operation, "path": path, "error": str(e)})
            raise RemoteCallError(operation, f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            logger.error(
                "store_request_rejected",
                extra={"operation": operation, "path": path, "status_code": response.status_code},
            )
            raise RemoteCallError(operation, _error_detail(response), status_code=response.status_code)

        logger.debug("store_request_ok", extra={"operation": operation, "path": path})
        if not response.content:
            return None
        return response.json()

    async def list_tasks(self) -> list[Record]:
        return await self._request("list_tasks", "GET", "/tasks") or []

    async def list_users(self) -> list[Record]:
        return await self._request("list_users", "GET", "/users") or []

    async def create_task(self, payload: Record) -> Record:
        return await self._request("create_task", "POST", "/tasks", payload)

    async def update_task(self, task_id: str, payload: Record) -> Record:
        return await self._request("update_task", "PUT", f"/tasks/{task_id}", payload)

    async def delete_task(self, task_id: str) -> None:
        await self._request("delete_task", "DELETE", f"/tasks/{task_id}")

    async def create_subtask(self, task_id: str, payload: Record) -> Record:
        return await self._request("create_subtask", "POST", f"/tasks/{task_id}/subtasks", payload)

    async def update_subtask(self, task_id: str, subtask_id: str, payload: Record) -> Record:
        return await self._request("update_subtask", "PUT", f"/tasks/{task_id}/subtasks/{subtask_id}", payload)

    async def delete_subtask(self, task_id: str, subtask_id: str) -> None:
        await self._request("delete_subtask", "DELETE", f"/tasks/{task_id}/subtasks/{subtask_id}")

    async def close(self) -> None:
        await self._client.aclose()


def _error_detail(response: httpx.Response) -> str:
    """Extract the service's error message, falling back to the status line."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        detail = body.get("error") or body.get("detail")
        if detail:
            return str(detail)
    return f"HTTP {response.status_code}"
