"""Pytest configuration and shared fixtures."""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from src.core.config import settings


@pytest.fixture
def db_path(tmp_path) -> str:
    """Path of a throwaway SQLite file for one test."""
    return str(tmp_path / "taskboard.db")


@pytest.fixture
def client(db_path, monkeypatch) -> Generator[TestClient]:
    """FastAPI test client whose lifespan opens a fresh SQLite store."""
    monkeypatch.setattr(settings, "sqlite_db_path", db_path)
    from src.main import app

    with TestClient(app) as test_client:
        yield test_client
