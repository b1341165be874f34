"""Unit tests for SQLite query helpers."""

import pytest

from src.core.db_client import _convert_record_ids, build_order_by, build_where


@pytest.mark.unit
class TestBuildWhere:
    """Tests for build_where."""

    def test_no_filters(self):
        assert build_where(None) == ("", [])

    def test_equality_and_null(self):
        clause, params = build_where({"task_id": "12", "archived": False, "schedule": None})

        assert clause == "WHERE task_id = ? AND archived = ? AND schedule IS NULL"
        assert params == [12, False]

    def test_only_canonical_ids_become_integers(self):
        _, params = build_where({"task_id": "007", "main_assignee_id": "²", "id": "0"})

        assert params == ["007", "²", 0]

    def test_rejects_injected_column(self):
        with pytest.raises(ValueError, match="Invalid column name"):
            build_where({"id; DROP TABLE tasks": 1})


@pytest.mark.unit
class TestBuildOrderBy:
    """Tests for build_order_by."""

    def test_multiple_terms(self):
        assert build_order_by("pinned DESC, created_at DESC, id") == "pinned DESC, created_at DESC, id"

    def test_invalid_terms_dropped(self):
        assert build_order_by("created_at DESC, 1=1; --") == "created_at DESC"

    def test_empty_sorts_by_id(self):
        assert build_order_by("") == "id ASC"


@pytest.mark.unit
def test_convert_record_ids():
    record = _convert_record_ids({"id": 3, "task_id": 4, "main_assignee_id": None, "completed": 1})

    assert record == {"id": "3", "task_id": "4", "main_assignee_id": None, "completed": 1}
