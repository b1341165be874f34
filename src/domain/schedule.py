"""Schedule and due-state domain models."""

from datetime import UTC, date, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ScheduleMode(StrEnum):
    """How a task becomes due."""

    NONE = "none"
    COUNTDOWN = "countdown"
    DUE = "due"


class ResetPolicy(StrEnum):
    """Recurrence policy, independent of the schedule mode."""

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"


class Schedule(BaseModel):
    """Declarative description of when a task or subtask is due.

    Field aliases are the camelCase names used inside the serialized
    transport string.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    mode: ScheduleMode = Field(default=ScheduleMode.NONE, description="Schedule mode")
    reset: ResetPolicy = Field(default=ResetPolicy.NONE, description="Recurrence policy")
    countdown_seconds: int | None = Field(default=None, alias="countdownSeconds", gt=0)
    countdown_start_at: datetime | None = Field(default=None, alias="countdownStartAt")
    due_at: datetime | None = Field(default=None, alias="dueAt", description="One-time due instant")
    due_time: str | None = Field(
        default=None,
        alias="dueTime",
        pattern=r"^([01]\d|2[0-3]):[0-5]\d$",
        description="Time of day (HH:MM) for recurring tasks",
    )
    due_weekday: int | None = Field(default=None, alias="dueWeekday", ge=0, le=6, description="Sunday = 0")
    repeat_days: int | None = Field(default=None, alias="repeatDays", gt=0)
    expires_in_days: int | None = Field(default=None, alias="expiresInDays", gt=0)

    @field_validator("due_at", mode="before")
    @classmethod
    def parse_bare_date(cls, v: object) -> object:
        """Treat a bare YYYY-MM-DD as midnight UTC of that date."""
        if isinstance(v, str) and len(v) == 10:  # noqa: PLR2004
            return datetime.combine(date.fromisoformat(v), datetime.min.time(), tzinfo=UTC)
        if isinstance(v, date) and not isinstance(v, datetime):
            return datetime.combine(v, datetime.min.time(), tzinfo=UTC)
        return v

    @field_validator("countdown_start_at", "due_at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        """Interpret naive timestamps as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @model_validator(mode="after")
    def check_timing_fields(self) -> "Schedule":
        """Exactly one timing group may be populated, consistent with the mode."""
        if self.due_weekday is not None and self.due_time is None:
            raise ValueError("dueWeekday requires dueTime")
        if self.repeat_days is not None and self.due_time is None:
            raise ValueError("repeatDays requires dueTime")

        groups = self.timing_groups()

        if self.mode == ScheduleMode.NONE:
            if groups:
                raise ValueError(f"Schedule with mode 'none' cannot carry timing fields: {sorted(groups)}")
            return self

        if self.mode == ScheduleMode.COUNTDOWN:
            if self.countdown_seconds is None or self.countdown_start_at is None:
                raise ValueError("Countdown schedules need countdownSeconds and countdownStartAt")
            if groups != {"countdown"}:
                raise ValueError(f"Countdown schedules cannot carry other timing fields: {sorted(groups)}")
            return self

        if len(groups) != 1 or "countdown" in groups:
            raise ValueError(
                f"Due schedules need exactly one of dueAt, dueTime, repeatDays, expiresInDays: {sorted(groups)}"
            )
        return self

    def timing_groups(self) -> set[str]:
        """Names of the populated timing groups."""
        groups: set[str] = set()
        if self.countdown_seconds is not None or self.countdown_start_at is not None:
            groups.add("countdown")
        if self.due_at is not None:
            groups.add("due_at")
        if self.repeat_days is not None:
            groups.add("repeat")
        elif self.due_time is not None:
            groups.add("due_time")
        if self.expires_in_days is not None:
            groups.add("expires")
        return groups

    @property
    def is_countdown(self) -> bool:
        return self.mode == ScheduleMode.COUNTDOWN


NO_SCHEDULE = Schedule()


class DueKind(StrEnum):
    """Kind of computed due state."""

    COUNTDOWN = "countdown"
    ONETIME = "onetime"
    RECURRING = "recurring"
    EXPIRED = "expired"
    NONE = "none"


class DueState(BaseModel):
    """Point-in-time due status derived from a schedule."""

    model_config = ConfigDict(frozen=True)

    kind: DueKind
    display: str
    seconds_remaining: int | None = None
    is_expired: bool = False
