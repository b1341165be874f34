"""Pure due-state computation for task and subtask schedules."""

import math
from datetime import UTC, datetime, time, timedelta, tzinfo

from src.core.config import constants
from src.domain.schedule import DueKind, DueState, Schedule, ScheduleMode
from src.domain.task import Subtask, Task


ONE_DAY = timedelta(days=1)
ONE_SECOND = timedelta(seconds=1)

NO_DUE_STATE = DueState(kind=DueKind.NONE, display=constants.NO_DUE_DISPLAY)
EXPIRED_STATE = DueState(kind=DueKind.EXPIRED, display=constants.TIME_UP_DISPLAY, is_expired=True)


def format_countdown(total_seconds: int) -> str:
    """Format whole seconds as zero-padded HH:MM:SS (hours are not capped)."""
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_due_date(value: datetime, tz: tzinfo = UTC) -> str:
    """Format a due instant as a calendar date, e.g. 'Jan 10, 2025'."""
    local = value.astimezone(tz)
    return f"{local:%b} {local.day}, {local.year}"


def _countdown_state(schedule: Schedule, now: datetime) -> DueState:
    # The model validator guarantees both fields on countdown schedules
    assert schedule.countdown_start_at is not None
    assert schedule.countdown_seconds is not None

    end = schedule.countdown_start_at + timedelta(seconds=schedule.countdown_seconds)
    if now >= end:
        return EXPIRED_STATE

    remaining = (end - now) // ONE_SECOND
    return DueState(
        kind=DueKind.COUNTDOWN,
        display=format_countdown(remaining),
        seconds_remaining=remaining,
    )


def _repeat_state(schedule: Schedule, now: datetime, created_at: datetime, tz: tzinfo) -> DueState:
    # dueWeekday is stored on weekly schedules but does not constrain dueToday here
    assert schedule.repeat_days is not None
    assert schedule.due_time is not None

    days_since = (now - created_at) // ONE_DAY
    cycle_day = days_since % schedule.repeat_days

    hour, minute = (int(part) for part in schedule.due_time.split(":"))
    local_now = now.astimezone(tz)
    due_today = datetime.combine(local_now.date(), time(hour, minute), tzinfo=tz)

    if cycle_day == 0 and now > due_today:
        return EXPIRED_STATE
    return DueState(kind=DueKind.RECURRING, display=f"Every {schedule.repeat_days} days @ {schedule.due_time}")


def _expiry_state(schedule: Schedule, now: datetime, created_at: datetime) -> DueState:
    assert schedule.expires_in_days is not None

    expiry = created_at + timedelta(days=schedule.expires_in_days)
    if now > expiry:
        return EXPIRED_STATE

    days_left = math.ceil((expiry - now) / ONE_DAY)
    unit = "day" if days_left == 1 else "days"
    return DueState(kind=DueKind.ONETIME, display=f"Expires in {days_left} {unit}")


def compute_due_state(
    schedule: Schedule | None,
    now: datetime,
    created_at: datetime | None = None,
    tz: tzinfo = UTC,
) -> DueState:
    """Derive the current due state of a schedule.

    Branches are evaluated in precedence order, first match wins:
    no schedule, countdown, one-time due date, every-N-days repeat,
    expires-in-days, and finally the 'no due state' fallback.

    Args:
        schedule: The schedule to evaluate (None means no schedule)
        now: Current instant (timezone-aware)
        created_at: Creation instant of the owning task, used by the
            repeat and expiry branches; defaults to ``now``
        tz: Timezone for calendar dates (date display, time-of-day due)

    Returns:
        The computed DueState
    """
    if schedule is None or schedule.mode == ScheduleMode.NONE:
        return NO_DUE_STATE

    if schedule.mode == ScheduleMode.COUNTDOWN:
        return _countdown_state(schedule, now)

    if schedule.due_at is not None:
        if schedule.due_at < now:
            return EXPIRED_STATE
        return DueState(kind=DueKind.ONETIME, display=format_due_date(schedule.due_at, tz))

    origin = created_at or now

    if schedule.repeat_days is not None and schedule.due_time is not None:
        return _repeat_state(schedule, now, origin, tz)

    if schedule.expires_in_days is not None:
        return _expiry_state(schedule, now, origin)

    return NO_DUE_STATE


def due_state_for(item: Task | Subtask, *, owner: Task | None = None, now: datetime, tz: tzinfo = UTC) -> DueState:
    """Compute the due state of a task or subtask.

    Subtasks have no creation timestamp of their own; the owning task's
    ``created_at`` is used for the repeat and expiry branches.
    """
    if isinstance(item, Task):
        created_at = item.created_at
    else:
        created_at = owner.created_at if owner is not None else None
    return compute_due_state(item.schedule, now, created_at, tz)
