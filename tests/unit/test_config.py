"""Tests for configuration validation."""

import pytest
from pydantic import ValidationError

from src.core.config import Settings, constants
from src.interface.local_store import LocalTaskStore
from src.interface.rest_store import RestTaskStore
from src.interface.store import build_store


def test_defaults_select_rest_backend() -> None:
    """Test the default store is the REST service."""
    settings = Settings(_env_file=None)

    assert settings.store_backend == "rest"
    assert settings.api_base_url == "http://localhost:8080"
    assert settings.display_timezone == "UTC"


def test_store_backend_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test STORE_BACKEND is read from the environment."""
    monkeypatch.setenv("STORE_BACKEND", "local")
    monkeypatch.setenv("SQLITE_DB_PATH", "/tmp/tasks.db")

    settings = Settings(_env_file=None)

    assert settings.store_backend == "local"
    assert settings.sqlite_db_path == "/tmp/tasks.db"


def test_unknown_store_backend_rejected() -> None:
    """Test an unsupported backend name fails validation."""
    with pytest.raises(ValidationError):
        Settings(_env_file=None, store_backend="mongo")


def test_build_store_local(tmp_path) -> None:
    """Test the local backend builds a SQLite store on the configured path."""
    settings = Settings(_env_file=None, store_backend="local", sqlite_db_path=str(tmp_path / "t.db"))

    store = build_store(settings)

    assert isinstance(store, LocalTaskStore)
    assert store.db_path == str(tmp_path / "t.db")


async def test_build_store_rest() -> None:
    """Test the REST backend builds an httpx-backed store."""
    settings = Settings(_env_file=None, store_backend="rest", api_base_url="http://tasks.test")

    store = build_store(settings)

    assert isinstance(store, RestTaskStore)
    await store.close()


def test_constants() -> None:
    """Test the display constants."""
    assert constants.NO_DUE_DISPLAY == "--:--"
    assert constants.TIME_UP_DISPLAY == "TIME UP"
    assert constants.RECENT_TASKS_LIMIT == 5
