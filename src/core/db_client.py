"""SQLite database client wrapper with CRUD operations."""

import asyncio
import json
import logging
import re
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from src.core.config import settings
from src.core.errors import RecordNotFoundError


logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
_SORT_TERM = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\s*(ASC|DESC)?$", re.IGNORECASE)


def _validate_identifier(name: str, *, kind: str = "collection") -> None:
    """Validate that a table or column name contains only alphanumeric characters and underscores."""
    if not _IDENTIFIER.match(name):
        msg = f"Invalid {kind} name: {name}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def _convert_record_ids(record: dict[str, Any]) -> dict[str, Any]:
    """Convert integer ID and foreign key fields to strings for Pydantic compatibility."""
    converted = record.copy()
    for key, value in converted.items():
        if isinstance(value, int) and (key == "id" or key.endswith("_id")):
            converted[key] = str(value)
    return converted


def _to_sql_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict | list):
        return json.dumps(value)
    return value


def _to_sql_id(record_id: str) -> int | str:
    # Only canonical decimal strings name integer rows ("007" does not)
    if record_id.isdecimal() and str(int(record_id)) == record_id:
        return int(record_id)
    return record_id


def build_where(filters: dict[str, Any] | None) -> tuple[str, list[Any]]:
    """Build a WHERE clause from equality filters (all conditions ANDed)."""
    if not filters:
        return "", []

    conditions = []
    params = []
    for field, value in filters.items():
        _validate_identifier(field, kind="column")
        if value is None:
            conditions.append(f"{field} IS NULL")
        else:
            conditions.append(f"{field} = ?")
            params.append(_to_sql_id(value) if field == "id" or field.endswith("_id") else _to_sql_value(value))
    return f"WHERE {' AND '.join(conditions)}", params


def build_order_by(sort: str) -> str:
    """Validate a comma-separated sort expression, e.g. ``"pinned DESC, created_at DESC"``.

    Invalid terms are dropped with a warning; an empty result sorts by id.
    """
    terms = []
    for raw_term in sort.split(","):
        term = raw_term.strip()
        if not term:
            continue
        if _SORT_TERM.match(term):
            terms.append(term)
        else:
            logger.warning("Invalid sort term, ignoring", extra={"sort": term})
    return ", ".join(terms) if terms else "id ASC"


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_db_lock = asyncio.Lock()


def _cache_key(db_path: str | None) -> tuple[int, int, str]:
    loop = asyncio.get_running_loop()
    return threading.get_ident(), id(loop), str(get_db_path(db_path))


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    cache_key = _cache_key(db_path)

    if cache_key in _db_connections:
        return _db_connections[cache_key]

    async with _db_lock:
        # Double-check after acquiring lock
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        path = get_db_path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(path))
        await conn.execute("PRAGMA foreign_keys = ON")
        await conn.execute("PRAGMA journal_mode = WAL")

        _db_connections[cache_key] = conn

        logger.info("Created new SQLite connection", extra={"db_path": str(path)})
        return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    cache_key = _cache_key(db_path)
    if cache_key not in _db_connections:
        return

    async with _db_lock:
        conn = _db_connections.pop(cache_key, None)
    if conn is None:
        return

    try:
        await conn.close()
        logger.info("Closed SQLite connection", extra={"db_path": cache_key[2]})
    except aiosqlite.Error as e:
        logger.warning("Error closing SQLite connection", extra={"error": str(e), "db_path": cache_key[2]})


def _wrap_failure(action: str, collection: str, e: Exception) -> RuntimeError:
    if isinstance(e, aiosqlite.OperationalError) and "no such table" in str(e):
        logger.error("Table not found", extra={"collection": collection})
        return RuntimeError(f"Table '{collection}' does not exist. Call init_db() first.")
    logger.error(f"{action}_failed", extra={"collection": collection, "error": str(e)})
    return RuntimeError(f"Failed to {action.replace('_', ' ')} in {collection}: {e}")


async def create_record(*, collection: str, data: dict[str, Any], db_path: str | None = None) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""
    _validate_identifier(collection)
    for column in data:
        _validate_identifier(column, kind="column")

    try:
        conn = await get_connection(db_path=db_path)

        columns_str = ", ".join(data)
        placeholders_str = ", ".join("?" for _ in data)
        values = [_to_sql_value(v) for v in data.values()]

        query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - validated
        cursor = await conn.execute(query, values)
        await conn.commit()
        record_id = cursor.lastrowid
    except Exception as e:
        raise _wrap_failure("create_record", collection, e) from e

    logger.info("Created record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=str(record_id), db_path=db_path)


async def get_record(*, collection: str, record_id: str, db_path: str | None = None) -> dict[str, Any]:
    """Fetch a single record by ID, raising RecordNotFoundError if not found."""
    _validate_identifier(collection)
    try:
        conn = await get_connection(db_path=db_path)

        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (_to_sql_id(record_id),))
        row = await cursor.fetchone()
        columns = [description[0] for description in cursor.description]
    except Exception as e:
        raise _wrap_failure("get_record", collection, e) from e

    if row is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    return _convert_record_ids(dict(zip(columns, row, strict=True)))


async def update_record(
    *, collection: str, record_id: str, data: dict[str, Any], db_path: str | None = None
) -> dict[str, Any]:
    """Update a record by ID and return the updated record."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    _validate_identifier(collection)
    for column in data:
        _validate_identifier(column, kind="column")

    try:
        conn = await get_connection(db_path=db_path)

        set_clause = ", ".join(f"{key} = ?" for key in data)
        values = [_to_sql_value(v) for v in data.values()]
        values.append(_to_sql_id(record_id))

        query = f"UPDATE {collection} SET {set_clause} WHERE id = ?"  # noqa: S608 - names are validated
        cursor = await conn.execute(query, values)
        await conn.commit()
    except Exception as e:
        raise _wrap_failure("update_record", collection, e) from e

    if cursor.rowcount == 0:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=record_id, db_path=db_path)


async def delete_record(*, collection: str, record_id: str, db_path: str | None = None) -> None:
    """Delete a record by ID, raising RecordNotFoundError if not found."""
    _validate_identifier(collection)
    try:
        conn = await get_connection(db_path=db_path)

        query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (_to_sql_id(record_id),))
        await conn.commit()
    except Exception as e:
        raise _wrap_failure("delete_record", collection, e) from e

    if cursor.rowcount == 0:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})


async def delete_records(
    *, collection: str, filters: dict[str, Any] | None = None, db_path: str | None = None
) -> int:
    """Delete every record matching the filters. Returns the number deleted."""
    _validate_identifier(collection)
    where_clause, params = build_where(filters)
    try:
        conn = await get_connection(db_path=db_path)

        query = f"DELETE FROM {collection} {where_clause}"  # noqa: S608 - names are validated
        cursor = await conn.execute(query, params)
        await conn.commit()
    except Exception as e:
        raise _wrap_failure("delete_records", collection, e) from e

    logger.info("Deleted records", extra={"collection": collection, "count": cursor.rowcount})
    return cursor.rowcount


async def list_records(
    *,
    collection: str,
    filters: dict[str, Any] | None = None,
    sort: str = "",
    limit: int | None = None,
    db_path: str | None = None,
) -> list[dict[str, Any]]:
    """List records with optional equality filters, sorting and a row limit."""
    _validate_identifier(collection)
    where_clause, params = build_where(filters)
    order_by = build_order_by(sort)

    query = f"SELECT * FROM {collection} {where_clause} ORDER BY {order_by}"  # noqa: S608 - names are validated
    if limit is not None:
        query += " LIMIT ?"
        params.append(limit)

    try:
        conn = await get_connection(db_path=db_path)
        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        columns = [description[0] for description in cursor.description]
    except Exception as e:
        raise _wrap_failure("list_records", collection, e) from e

    records = [_convert_record_ids(dict(zip(columns, row, strict=True))) for row in rows]
    logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
    return records
