"""Per-observer countdown ticker driving live due-state updates."""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, tzinfo

from src.core.config import constants
from src.domain.schedule import DueKind, DueState, Schedule
from src.modules.tasks.due_state import compute_due_state


logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Current wall-clock instant in UTC."""
    return datetime.now(UTC)


class CountdownTicker:
    """Re-evaluates one observed schedule once per tick while a countdown runs.

    Each observer (task card, detail view, ...) owns its own ticker. A ticker
    holds at most one outstanding timer: watching the same schedule object
    again is a no-op, and watching a different one cancels the old timer
    before anything else happens.

    Usage:
        async with CountdownTicker(on_tick=render) as ticker:
            ticker.watch(task.schedule, task.created_at)
            ...
    """

    def __init__(
        self,
        *,
        on_tick: Callable[[DueState], None],
        clock: Callable[[], datetime] = utc_now,
        interval: float = constants.COUNTDOWN_TICK_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        tz: tzinfo = UTC,
    ) -> None:
        self._on_tick = on_tick
        self._clock = clock
        self._interval = interval
        self._sleep = sleep
        self._tz = tz
        self._schedule: Schedule | None = None
        self._created_at: datetime | None = None
        self._timer: asyncio.Task[None] | None = None
        self._closed = False
        self.state: DueState | None = None

    @property
    def is_running(self) -> bool:
        """Whether a timer is currently outstanding."""
        return self._timer is not None and not self._timer.done()

    def watch(self, schedule: Schedule | None, created_at: datetime | None = None) -> DueState:
        """Observe a schedule, emitting its current state immediately.

        Returns:
            The state emitted for the current instant
        """
        if self._closed:
            raise RuntimeError("Cannot watch with a closed ticker")

        if schedule is self._schedule and self.state is not None:
            return self.state

        self.stop()
        self._schedule = schedule
        self._created_at = created_at

        state = self._evaluate()
        if schedule is not None and schedule.is_countdown and state.kind != DueKind.EXPIRED:
            self._timer = asyncio.get_running_loop().create_task(self._run(schedule))
        return state

    def stop(self) -> None:
        """Cancel the outstanding timer, if any. No callback fires afterwards."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._schedule = None
        self.state = None

    async def close(self) -> None:
        """Tear the ticker down and wait for its timer to finish cancelling."""
        timer = self._timer
        self.stop()
        self._closed = True
        if timer is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await timer

    async def wait(self) -> None:
        """Wait until the current countdown reaches expiry (or the timer is cancelled)."""
        if self._timer is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._timer

    async def __aenter__(self) -> "CountdownTicker":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _evaluate(self) -> DueState:
        state = compute_due_state(self._schedule, self._clock(), self._created_at, self._tz)
        self.state = state
        self._on_tick(state)
        return state

    async def _run(self, schedule: Schedule) -> None:
        while True:
            await self._sleep(self._interval)
            if schedule is not self._schedule:
                return
            try:
                state = self._evaluate()
            except Exception:
                logger.exception(
                    "Countdown tick handler failed", extra={"countdown_seconds": schedule.countdown_seconds}
                )
                state = self.state
            if state is not None and state.kind == DueKind.EXPIRED:
                logger.debug("countdown_expired", extra={"countdown_seconds": schedule.countdown_seconds})
                return
