#!/usr/bin/env python3
"""Seed the local task store with the default users and tasks.

Usage:
    uv run python scripts/seed_tasks.py [db_path]

Does nothing when the store already holds tasks.
"""

import asyncio
import logging
import sys

from src.core.config import settings
from src.domain.task import Priority, TaskType
from src.interface.local_store import LocalTaskStore
from src.modules.tasks.service import TaskService


logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)

DEFAULT_USERS = ["Ada", "Ben", "Chloe", "Dev", "Ema", "Femi", "Grace", "Hugo"]

DEFAULT_TASKS = [
    {
        "title": "Fix login bug",
        "description": "Users can't log in with special characters in password.",
        "type": TaskType.DAILY,
        "priority": Priority.HIGH,
        "main_assignee_id": "1",
        "supporting_assignee_ids": ["4", "6"],
    },
    {
        "title": "Update dashboard layout",
        "description": "Redesign layout for better responsiveness.",
        "type": TaskType.WEEKLY,
        "priority": Priority.MEDIUM,
        "main_assignee_id": "4",
    },
    {
        "title": "Client Onboarding Project",
        "description": "Full project setup with multiple tasks.",
        "type": TaskType.PROJECT,
        "priority": Priority.HIGH,
        "main_assignee_id": "6",
        "supporting_assignee_ids": ["2", "3"],
    },
    {
        "title": "Write monthly report",
        "description": "Summarize key activities and performance.",
        "type": TaskType.CUSTOM,
        "priority": Priority.LOW,
        "main_assignee_id": "8",
    },
]


async def seed(db_path: str) -> int:
    """Create the default users and tasks. Returns the number of tasks created."""
    store = LocalTaskStore(db_path=db_path)
    try:
        if await store.list_tasks():
            logger.info("Store already has tasks, nothing to seed")
            return 0

        if not await store.list_users():
            for name in DEFAULT_USERS:
                await store.create_user(name)
            logger.info(f"Created {len(DEFAULT_USERS)} users")

        service = TaskService(store)
        for fields in DEFAULT_TASKS:
            task = await service.create_task(**fields)
            logger.info(f"Created task {task.id}: {task.title}")
        return len(DEFAULT_TASKS)
    finally:
        await store.close()


def main() -> None:
    db_path = sys.argv[1] if len(sys.argv) > 1 else settings.sqlite_db_path
    created = asyncio.run(seed(db_path))
    logger.info(f"Seeded {created} tasks into {db_path}")


if __name__ == "__main__":
    main()
