"""Drift correction: keep a playing unit on the shared timeline.

While a session plays, a periodic check compares where the unit *should* be
(derived from the shared clock and the session's target instant, wrapped into
the loop) with where it *is*, and seeks when the two diverge by more than a
threshold.

On the timing-reference device (``Role.MASTER``) with an attached audio track
the audio position is ground truth: visuals follow the audio and the audio is
never touched. Everywhere else an attached audio track is aligned to the
shared timeline with the tighter audio threshold.
"""

import asyncio
import enum
import logging
import typing as t
from dataclasses import dataclass

from lockstep.clock import SharedClock
from lockstep.exceptions import PlaybackError
from lockstep.units import PlayableUnit

log = logging.getLogger(__name__)


class Role(str, enum.Enum):
    MASTER = "master"
    SLAVE = "slave"


@dataclass
class PlaybackSession:
    """Shared-timeline anchor of the current playback.

    ``active`` implies ``target_instant`` is set.
    """

    target_instant: float | None = None
    active: bool = False
    role: Role = Role.SLAVE

    def __post_init__(self):
        if self.active and self.target_instant is None:
            raise ValueError("An active session needs a target instant")

    def begin(self, target_instant: float) -> None:
        self.target_instant = target_instant
        self.active = True

    def clear(self) -> None:
        self.target_instant = None
        self.active = False


@dataclass(frozen=True)
class Correction:
    """A seek issued by the corrector."""

    track: t.Literal["visual", "audio"]
    expected: float
    actual: float

    @property
    def drift(self) -> float:
        return self.actual - self.expected


def expected_position(
    now: float, target_instant: float, duration: float | None
) -> float:
    """Timeline position in seconds at shared time ``now`` (ms).

    Looping content wraps into one period; before the target instant the
    position is 0.
    """
    expected = max(0.0, (now - target_instant) / 1000.0)
    if duration is not None and duration > 0:
        expected = expected % duration
    return expected


class DriftCorrector:
    """Periodic comparison of expected and actual position for one unit.

    Parameters
    ----------
    clock : SharedClock
        Source of shared time.
    unit : PlayableUnit
        Visual unit being kept in line.
    interval : float
        Seconds between checks.
    threshold : float
        Visual drift (s) tolerated before seeking.
    audio_threshold : float
        Audio drift (s) tolerated before seeking a secondary audio track.
    role : Role
        ``MASTER`` marks this device as the audio timing reference.
    """

    def __init__(
        self,
        clock: SharedClock,
        unit: PlayableUnit,
        interval: float = 1.0,
        threshold: float = 0.1,
        audio_threshold: float = 0.05,
        role: Role = Role.SLAVE,
    ) -> None:
        self.clock = clock
        self.unit = unit
        self.audio: PlayableUnit | None = None
        self.interval = interval
        self.threshold = threshold
        self.audio_threshold = audio_threshold
        self.session = PlaybackSession(role=role)
        self._task: asyncio.Task | None = None

    @property
    def role(self) -> Role:
        return self.session.role

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def attach_audio(self, audio: PlayableUnit | None) -> None:
        self.audio = audio

    def start(self, target_instant: float) -> None:
        """Anchor the session at ``target_instant`` (ms) and begin periodic checks."""
        self.session.begin(target_instant)
        self._cancel_task()
        self._task = asyncio.create_task(self._run())
        log.debug(
            f"Drift correction started for {self.unit.source_id} "
            f"(every {self.interval}s, threshold {self.threshold}s)"
        )

    def stop(self) -> None:
        """Halt checks and clear the session; no check runs after this returns."""
        was_running = self.running
        self._cancel_task()
        self.session.clear()
        if was_running:
            log.debug(f"Drift correction stopped for {self.unit.source_id}")

    def _cancel_task(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.check()
            except PlaybackError as e:
                log.error(f"Drift correction failed for {self.unit.source_id}: {e}")

    def expected(self, duration: float | None = None) -> float | None:
        if self.session.target_instant is None:
            return None
        return expected_position(
            self.clock.now(), self.session.target_instant, duration
        )

    def check(self) -> list[Correction]:
        """Compare positions once and seek what drifted."""
        if not self.session.active:
            return []

        if self.role is Role.MASTER and self.audio is not None:
            return self._follow_audio()

        corrections = []
        visual = self._align(
            self.unit, "visual", self.expected(self.unit.get_duration()), self.threshold
        )
        if visual is not None:
            corrections.append(visual)
        if self.audio is not None:
            audio = self._align(
                self.audio,
                "audio",
                self.expected(self.audio.get_duration()),
                self.audio_threshold,
            )
            if audio is not None:
                corrections.append(audio)
        return corrections

    def force_resync(self) -> list[Correction]:
        """Run a check immediately, outside the interval."""
        if self.session.active:
            log.info(f"Forced resync of {self.unit.source_id}")
        return self.check()

    def handle_offset_change(self, magnitude: float) -> None:
        """Offset-change listener for :meth:`SharedClock.on_offset_change`."""
        if self.session.active:
            log.info(f"Clock offset moved by {magnitude:.1f}ms, resyncing")
            self.force_resync()

    def _follow_audio(self) -> list[Correction]:
        assert self.audio is not None
        reference = self.audio.get_position()
        duration = self.unit.get_duration()
        if duration:
            reference = reference % duration
        correction = self._align(self.unit, "visual", reference, self.threshold)
        return [correction] if correction is not None else []

    def _align(
        self,
        unit: PlayableUnit,
        track: t.Literal["visual", "audio"],
        expected: float | None,
        threshold: float,
    ) -> Correction | None:
        if expected is None:
            return None
        actual = unit.get_position()
        drift = abs(expected - actual)
        duration = unit.get_duration()
        if duration:
            # across the loop seam 9.99s and 0.01s are neighbours
            drift = min(drift, duration - drift)
        if drift <= threshold:
            return None
        log.info(
            f"Drift detected on {track} {unit.source_id}: {drift:.3f}s. "
            f"Resyncing from {actual:.3f}s to {expected:.3f}s"
        )
        unit.seek(expected)
        return Correction(track=track, expected=expected, actual=actual)
