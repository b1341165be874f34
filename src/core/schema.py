"""SQLite schema for the local task store (code-first approach)."""

import logging

from src.core.db_client import get_connection


logger = logging.getLogger(__name__)


TABLE_SCHEMAS: dict[str, str] = {
    "users": """CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL
    )""",
    "tasks": """CREATE TABLE IF NOT EXISTS tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        description TEXT,
        priority TEXT NOT NULL DEFAULT 'Medium'
            CHECK (priority IN ('High', 'Medium', 'Low')),
        type TEXT NOT NULL DEFAULT 'daily'
            CHECK (type IN ('daily', 'weekly', 'project', 'custom')),
        completed INTEGER NOT NULL DEFAULT 0,
        archived INTEGER NOT NULL DEFAULT 0,
        pinned INTEGER NOT NULL DEFAULT 0,
        main_assignee_id INTEGER,
        supporting_assignees TEXT NOT NULL DEFAULT '[]',
        schedule TEXT,
        created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
    )""",
    "subtasks": """CREATE TABLE IF NOT EXISTS subtasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
        title TEXT NOT NULL,
        completed INTEGER NOT NULL DEFAULT 0,
        main_assignee_id INTEGER,
        supporting_assignees TEXT NOT NULL DEFAULT '[]',
        schedule TEXT
    )""",
}

INDEXES: list[str] = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_archived ON tasks (archived)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_created_at ON tasks (created_at)",
    "CREATE INDEX IF NOT EXISTS idx_subtasks_task_id ON subtasks (task_id)",
]


async def init_db(*, db_path: str | None = None) -> None:
    """Create every table and index if missing. Safe to call repeatedly."""
    conn = await get_connection(db_path=db_path)
    for table_name, ddl in TABLE_SCHEMAS.items():
        await conn.execute(ddl)
        logger.debug("Ensured table", extra={"table": table_name})
    for ddl in INDEXES:
        await conn.execute(ddl)
    await conn.commit()
    logger.info("Database schema initialized", extra={"tables": list(TABLE_SCHEMAS)})
