"""Playback scheduler: start a unit exactly once at a shared-clock instant.

State machine::

    IDLE --arm(target)--> ARMED --now >= target--> PLAYING --cancel()--> IDLE
    IDLE --arm(None or past target)---------------> PLAYING

While armed the wait is re-evaluated at least every ``tick`` seconds, so a
clock-offset change during the countdown moves the start accordingly.
"""

import asyncio
import enum
import logging
import typing as t

from lockstep.clock import SharedClock
from lockstep.exceptions import PlaybackError, SchedulerError
from lockstep.units import PlayableUnit

log = logging.getLogger(__name__)


class SchedulerState(str, enum.Enum):
    IDLE = "idle"
    ARMED = "armed"
    PLAYING = "playing"


class PlaybackScheduler:
    """Countdown from a play command to ``PlayableUnit.play()``.

    Parameters
    ----------
    clock : SharedClock
        Source of shared time.
    unit : PlayableUnit
        Unit to start.
    on_started : callable, optional
        Called with the effective target instant (ms) once the unit plays.
    on_failed : callable, optional
        Called with a :class:`SchedulerError` when play() was rejected twice.
    tick : float
        Longest single wait in seconds while armed.
    retry_delay : float
        Pause before the one retry of a rejected play().
    """

    def __init__(
        self,
        clock: SharedClock,
        unit: PlayableUnit,
        on_started: t.Callable[[float], None] | None = None,
        on_failed: t.Callable[[SchedulerError], None] | None = None,
        tick: float = 0.01,
        retry_delay: float = 0.25,
    ) -> None:
        self.clock = clock
        self.unit = unit
        self.on_started = on_started
        self.on_failed = on_failed
        self.tick = tick
        self.retry_delay = retry_delay
        self.state = SchedulerState.IDLE
        self.target_instant: float | None = None
        self._task: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def arm(self, target_instant: float | None = None) -> SchedulerState:
        """Accept a play command.

        ``None`` means play immediately. A target already in the past also
        starts immediately. Any previous countdown or retry is dropped.
        """
        self.cancel()
        now = self.clock.now()
        if target_instant is None:
            target_instant = now
        self.target_instant = target_instant

        remaining = target_instant - now
        if remaining <= 0:
            if remaining < 0:
                log.info(f"Target instant passed {-remaining:.0f}ms ago, starting now")
            self._start()
        else:
            log.info(f"Scheduled playback of {self.unit.source_id} in {remaining:.0f}ms")
            self.state = SchedulerState.ARMED
            self._task = asyncio.create_task(self._countdown())
        return self.state

    def cancel(self) -> None:
        """Drop any pending countdown or retry and return to IDLE."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self.state = SchedulerState.IDLE
        self.target_instant = None

    async def _countdown(self) -> None:
        assert self.target_instant is not None
        while True:
            remaining = self.target_instant - self.clock.now()
            if remaining <= 0:
                break
            await asyncio.sleep(min(remaining / 1000.0, self.tick))
        self._task = None
        self._start()

    def _start(self) -> None:
        try:
            self.unit.play()
        except PlaybackError as e:
            log.warning(
                f"play() rejected for {self.unit.source_id} ({e}), "
                f"retrying in {self.retry_delay}s"
            )
            self.state = SchedulerState.ARMED
            self._task = asyncio.create_task(self._retry())
            return
        self._enter_playing()

    async def _retry(self) -> None:
        await asyncio.sleep(self.retry_delay)
        self._task = None
        try:
            self.unit.play()
        except PlaybackError as e:
            error = SchedulerError(f"Could not start {self.unit.source_id}: {e}")
            log.error(str(error))
            self.state = SchedulerState.IDLE
            self.target_instant = None
            if self.on_failed is not None:
                self.on_failed(error)
            return
        self._enter_playing()

    def _enter_playing(self) -> None:
        assert self.target_instant is not None
        self.state = SchedulerState.PLAYING
        log.info(f"Started {self.unit.source_id}")
        if self.on_started is not None:
            self.on_started(self.target_instant)
