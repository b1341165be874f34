"""Pytest configuration and fixtures for integration tests."""

import pytest

from src.interface.local_store import LocalTaskStore


@pytest.fixture
async def local_store(db_path):
    """LocalTaskStore on a fresh SQLite file, closed after the test."""
    store = LocalTaskStore(db_path=db_path)
    yield store
    await store.close()
