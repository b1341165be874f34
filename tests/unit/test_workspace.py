"""Unit tests for TaskWorkspace."""

import asyncio
from datetime import UTC, timedelta

import pytest

from src.core.errors import ErrorCode
from src.domain.schedule import DueKind, Schedule, ScheduleMode
from src.domain.task import BoardContainer, TaskType
from src.modules.tasks.board import HoverTarget
from src.modules.tasks.events import TaskEventKind
from src.modules.tasks.ticker import CountdownTicker
from src.modules.tasks.views import TaskFilter
from src.modules.tasks.workspace import TaskWorkspace
from tests.unit.mocks import schedule_json


async def settle() -> None:
    """Let pending tasks run up to their next real suspension point."""
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def events():
    return []


@pytest.fixture
async def workspace(seeded_store, clock, events):
    seeded_store.seed_user("Ada")
    workspace = TaskWorkspace(seeded_store, clock=clock, tz=UTC)
    workspace.events.subscribe(events.append)
    assert await workspace.refresh()
    seeded_store.calls.clear()
    events.clear()
    return workspace


@pytest.mark.unit
class TestLoading:
    """Tests for refresh."""

    async def test_refresh_loads_tasks_and_users(self, seeded_store, clock):
        seeded_store.seed_user("Ada")
        workspace = TaskWorkspace(seeded_store, clock=clock, tz=UTC)
        kinds = []
        workspace.events.subscribe(lambda e: kinds.append(e.kind))

        assert await workspace.refresh()

        assert [t.id for t in workspace.tasks] == ["1003", "1000"]
        assert [u.name for u in workspace.users] == ["Ada"]
        assert kinds == [TaskEventKind.TASKS_LOADED]

    async def test_refresh_failure_records_error(self, workspace, seeded_store, events):
        seeded_store.fail_on("list_tasks")

        assert not await workspace.refresh()

        assert workspace.error is not None
        assert workspace.error.code == ErrorCode.ERR_REMOTE_CALL_FAILED
        assert [e.kind for e in events] == [TaskEventKind.ERROR_RAISED]
        assert len(workspace.tasks) == 2

    def test_default_timezone_from_settings(self, store):
        assert TaskWorkspace(store).tz.key == "UTC"

    async def test_dismiss_error(self, workspace, seeded_store, events):
        seeded_store.fail_on("list_tasks")
        await workspace.refresh()

        workspace.dismiss_error()

        assert workspace.error is None
        assert workspace.controller.error is None
        assert events[-1].kind == TaskEventKind.ERROR_DISMISSED


@pytest.mark.unit
class TestTaskActions:
    """Tests for CRUD through the workspace."""

    async def test_create_task(self, workspace, events):
        task = await workspace.create_task(title="Update dashboard layout", type=TaskType.WEEKLY)

        assert task is not None
        assert workspace.tasks[0] is task
        assert events[0].kind == TaskEventKind.TASK_ADDED
        assert events[0].task is task

    async def test_create_task_failure_is_recoverable(self, workspace, seeded_store):
        seeded_store.fail_on("create_task")

        assert await workspace.create_task(title="Doomed") is None
        assert workspace.error is not None
        assert len(workspace.tasks) == 2

    async def test_create_task_without_title_raises(self, workspace):
        with pytest.raises(ValueError):
            await workspace.create_task(title="")

    async def test_edit_task(self, workspace, events):
        task = await workspace.edit_task("1003", title="Write quarterly report")

        assert task is not None
        assert workspace.get_task("1003").title == "Write quarterly report"
        assert events[0].kind == TaskEventKind.TASK_UPDATED

    async def test_archive_moves_task_to_archive(self, workspace):
        await workspace.set_archived("1003", True)

        assert [t.id for t in workspace.archived_tasks()] == ["1003"]
        assert [t.id for t in workspace.list_view()] == ["1000"]
        assert "1003" not in [t.id for t in workspace.kanban_view()[BoardContainer.TODO]]

    async def test_pin_sorts_first(self, workspace):
        await workspace.set_pinned("1000", True)

        assert [t.id for t in workspace.list_view()] == ["1000", "1003"]

    async def test_delete_task(self, workspace, seeded_store, events):
        assert await workspace.delete_task("1000")

        assert "1000" not in workspace.board
        assert events[-1].kind == TaskEventKind.TASK_DELETED
        assert [r["id"] for r in await seeded_store.list_tasks()] == ["1003"]

    async def test_delete_failure_keeps_task(self, workspace, seeded_store):
        seeded_store.fail_on("delete_task")

        assert not await workspace.delete_task("1003")
        assert "1003" in workspace.board

    async def test_subtask_lifecycle(self, workspace):
        added = await workspace.add_subtask("1003", title="Gather numbers")
        assert added is not None
        subtask_id = added.subtasks[-1].id

        edited = await workspace.edit_subtask("1003", subtask_id, title="Gather sales numbers")
        assert edited is not None
        assert edited.get_subtask(subtask_id).title == "Gather sales numbers"

        removed = await workspace.remove_subtask("1003", subtask_id)
        assert removed is not None
        assert workspace.get_task("1003").subtasks == ()


@pytest.mark.unit
class TestCompletion:
    """Tests for checkbox and drag completion."""

    async def test_checkbox_completion(self, workspace, events):
        task = await workspace.set_completion("1000", True)

        assert task is not None
        assert task.completed
        assert workspace.kanban_view()[BoardContainer.DONE] == [task]
        assert events[0].kind == TaskEventKind.TASK_UPDATED

    async def test_checkbox_failure_keeps_prior_state(self, workspace, seeded_store):
        before = workspace.get_task("1000")
        seeded_store.fail_on("update_subtask", "1001")

        assert await workspace.set_completion("1000", True) is None

        assert workspace.get_task("1000") is before
        assert workspace.error is not None
        assert workspace.error.code == ErrorCode.ERR_PARTIAL_CASCADE

    async def test_subtask_checkbox(self, workspace):
        task = await workspace.set_subtask_completion("1000", "1001", True)

        assert task is not None
        assert task.get_subtask("1001").completed
        assert not task.completed

    async def test_drag_to_done(self, workspace, events):
        assert workspace.grab("1003") == BoardContainer.TODO
        workspace.hover(HoverTarget(container=BoardContainer.DONE))

        outcome = await workspace.release()

        assert outcome.completion_changed
        assert workspace.get_task("1003").completed
        assert [e.kind for e in events] == [TaskEventKind.TASK_UPDATED]

    async def test_drag_rollback_raises_error_event(self, workspace, seeded_store, events):
        seeded_store.fail_on("update_subtask", "1002")

        workspace.grab("1000")
        outcome = await workspace.release(HoverTarget(container=BoardContainer.DONE))

        assert outcome.rolled_back
        assert workspace.error is not None
        assert workspace.error.code == ErrorCode.ERR_PARTIAL_CASCADE
        assert events[-1].kind == TaskEventKind.ERROR_RAISED
        assert workspace.board.container_of("1000") == BoardContainer.TODO

    async def test_second_grab_records_error(self, workspace):
        workspace.grab("1000")

        assert workspace.grab("1003") is None
        assert workspace.error is not None
        assert workspace.error.code == ErrorCode.ERR_GESTURE_IN_PROGRESS

        assert workspace.cancel_drag() is not None


@pytest.mark.unit
class TestConcurrentWrites:
    """Tests for writes to a task whose previous write has not resolved yet."""

    async def test_archive_during_completion_cascade_is_refused(self, workspace, seeded_store):
        gate = seeded_store.hold("update_subtask")
        completing = asyncio.create_task(workspace.set_completion("1000", True))
        await settle()

        assert await workspace.set_archived("1000", True) is None
        assert workspace.error is not None
        assert workspace.error.code == ErrorCode.ERR_TASK_BUSY

        gate.set()
        task = await completing

        assert task is not None
        record = seeded_store.task_record("1000")
        assert (record["completed"], record["archived"]) == (True, False)
        assert (task.completed, task.archived) == (True, False)
        assert workspace.get_task("1000") is task

    async def test_checkbox_during_metadata_edit_is_refused(self, workspace, seeded_store):
        gate = seeded_store.hold("update_task")
        editing = asyncio.create_task(workspace.edit_task("1003", title="Renamed"))
        await settle()

        assert await workspace.set_completion("1003", True) is None
        assert workspace.error is not None
        assert workspace.error.code == ErrorCode.ERR_TASK_BUSY
        assert workspace.grab("1003") is None

        gate.set()
        edited = await editing

        assert edited is not None
        assert not edited.completed
        assert not seeded_store.task_record("1003")["completed"]
        assert len(seeded_store.calls_for("update_task")) == 1

    async def test_other_tasks_stay_editable(self, workspace, seeded_store):
        gate = seeded_store.hold("update_subtask")
        completing = asyncio.create_task(workspace.set_completion("1000", True))
        await settle()

        assert await workspace.set_pinned("1003", True) is not None

        gate.set()
        assert await completing is not None
        assert workspace.error is None

    async def test_dragged_task_cannot_be_edited(self, workspace, seeded_store):
        workspace.grab("1003")

        assert await workspace.edit_task("1003", title="Renamed") is None
        assert await workspace.delete_task("1003") is False
        assert workspace.error is not None
        assert workspace.error.code == ErrorCode.ERR_TASK_BUSY
        assert seeded_store.calls == []

        workspace.cancel_drag()
        assert await workspace.edit_task("1003", title="Renamed") is not None


@pytest.mark.unit
class TestDueDisplay:
    """Tests for due state and tickers."""

    async def test_task_and_subtask_due_state(self, seeded_store, clock):
        record = seeded_store.seed_task(
            "Timed", schedule=schedule_json(mode="due", expiresInDays=3), created_at=clock().isoformat()
        )
        seeded_store.seed_subtask(
            record["id"],
            "Quick",
            schedule=schedule_json(mode="countdown", countdownSeconds=90, countdownStartAt=clock().isoformat()),
        )
        workspace = TaskWorkspace(seeded_store, clock=clock, tz=UTC)
        await workspace.refresh()
        subtask_id = workspace.get_task(record["id"]).subtasks[0].id
        clock.advance(days=1)

        assert workspace.due_state(record["id"]).display == "Expires in 2 days"
        assert workspace.due_state(record["id"], subtask_id).kind == DueKind.EXPIRED

    async def test_ticker_uses_workspace_clock(self, workspace, clock):
        states = []
        schedule = Schedule(
            mode=ScheduleMode.COUNTDOWN, countdown_seconds=90, countdown_start_at=clock() - timedelta(seconds=30)
        )

        async with workspace.ticker(states.append) as ticker:
            assert isinstance(ticker, CountdownTicker)
            assert ticker.watch(schedule).display == "00:01:00"

    async def test_timeframe_view(self, workspace):
        groups = workspace.timeframe_view(TaskFilter(timeframe=TaskType.PROJECT))

        assert [t.id for t in groups[TaskType.PROJECT]] == ["1000"]
        assert groups[TaskType.CUSTOM] == []

    async def test_recent_tasks(self, workspace):
        assert {t.id for t in workspace.recent_tasks()} == {"1000", "1003"}
