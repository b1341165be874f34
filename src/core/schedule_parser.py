"""Schedule and assignee parsing for the transport boundary.

The store transmits ``schedule`` and ``supporting_assignees`` as JSON strings.
These helpers turn them into canonical values and back. ``parse_*`` raise
``ScheduleParseError``; ``load_*`` absorb it and fall back to an empty value.
"""

import json
import logging
from collections.abc import Iterable, Mapping
from datetime import datetime

from pydantic import ValidationError

from src.core.errors import ScheduleParseError
from src.domain.schedule import NO_SCHEDULE, ResetPolicy, Schedule, ScheduleMode


logger = logging.getLogger(__name__)

_EMPTY_MARKERS = {"", "null", "{}"}


def parse_schedule(raw: Schedule | Mapping | str | None) -> Schedule:
    """Parse a schedule from a structured value or its serialized string.

    Args:
        raw: A Schedule, a mapping with camelCase keys, a JSON string, or None

    Returns:
        The parsed Schedule; empty input is the 'none' schedule

    Raises:
        ScheduleParseError: If the input is malformed or violates the timing invariants
    """
    if raw is None:
        return NO_SCHEDULE
    if isinstance(raw, Schedule):
        return raw

    data: object = raw
    if isinstance(raw, str):
        if raw.strip() in _EMPTY_MARKERS:
            return NO_SCHEDULE
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ScheduleParseError(f"Schedule is not valid JSON: {raw!r}") from e
        if data is None:
            return NO_SCHEDULE

    if not isinstance(data, Mapping):
        raise ScheduleParseError(f"Schedule must be an object, got {type(data).__name__}")

    try:
        return Schedule.model_validate(dict(data))
    except ValidationError as e:
        raise ScheduleParseError(f"Invalid schedule: {e.error_count()} error(s): {e.errors()[0]['msg']}") from e


def load_schedule(raw: Schedule | Mapping | str | None) -> Schedule:
    """Parse a schedule, falling back to the 'none' schedule on malformed input."""
    try:
        return parse_schedule(raw)
    except ScheduleParseError as e:
        logger.warning("schedule_parse_failed", extra={"error": str(e)})
        return NO_SCHEDULE


def serialize_schedule(schedule: Schedule) -> str:
    """Serialize a schedule to its compact camelCase transport string."""
    return schedule.model_dump_json(by_alias=True, exclude_none=True)


def parse_assignees(raw: Iterable | str | None) -> frozenset[str]:
    """Parse supporting assignee IDs from a JSON array string or an iterable.

    Raises:
        ScheduleParseError: If the input is not an array of scalar IDs
    """
    if raw is None:
        return frozenset()

    data: object = raw
    if isinstance(raw, str):
        if raw.strip() in _EMPTY_MARKERS:
            return frozenset()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ScheduleParseError(f"Assignees are not valid JSON: {raw!r}") from e

    if data is None:
        return frozenset()
    if isinstance(data, (str, bytes, Mapping)) or not isinstance(data, Iterable):
        raise ScheduleParseError(f"Assignees must be an array, got {type(data).__name__}")

    ids = []
    for item in data:
        if isinstance(item, bool) or not isinstance(item, (int, str)):
            raise ScheduleParseError(f"Assignee IDs must be numbers or strings, got {item!r}")
        ids.append(str(item))
    return frozenset(ids)


def load_assignees(raw: Iterable | str | None) -> frozenset[str]:
    """Parse supporting assignee IDs, falling back to the empty set on malformed input."""
    try:
        return parse_assignees(raw)
    except ScheduleParseError as e:
        logger.warning("assignees_parse_failed", extra={"error": str(e)})
        return frozenset()


def transport_id(value: str) -> int | str:
    """Numeric IDs travel as numbers, matching what the REST service stores.

    Only IDs that survive the round trip are converted, so "007" stays a string.
    """
    if value.isdecimal() and str(int(value)) == value:
        return int(value)
    return value


def serialize_assignees(assignee_ids: Iterable[str]) -> str:
    """Serialize assignee IDs to a JSON array string."""
    values = [transport_id(i) for i in sorted(assignee_ids)]
    return json.dumps(values)


def arm_countdown(*, seconds: int, now: datetime, reset: ResetPolicy = ResetPolicy.NONE) -> Schedule | None:
    """Build a countdown schedule starting at ``now``.

    Returns:
        The armed schedule, or None when ``seconds`` is not positive
    """
    if seconds <= 0:
        return None
    return Schedule(mode=ScheduleMode.COUNTDOWN, reset=reset, countdown_seconds=seconds, countdown_start_at=now)
