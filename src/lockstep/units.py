"""Playable units: one transport surface over every kind of content.

A unit keeps its own transport clock (``position`` advances with a monotonic
clock while playing) and loops over its duration. The presentation layer reads
``get_position()`` / ``current_frame`` to render; the synchronization core only
ever calls the methods defined on :class:`PlayableUnit`.
"""

import abc
import enum
import logging
import math
import time
import typing as t

from lockstep.exceptions import DecoderNotReady

log = logging.getLogger(__name__)


class UnitKind(str, enum.Enum):
    STREAM = "stream"
    FRAME_SEQUENCE = "frame-sequence"


class PlayableUnit(abc.ABC):
    """Uniform transport control over a decodable media resource.

    Parameters
    ----------
    source_id : str
        Identifier of the content this unit renders.
    monotonic : callable
        Source of monotonic seconds; injectable for tests.
    """

    kind: t.ClassVar[UnitKind]

    def __init__(
        self, source_id: str, monotonic: t.Callable[[], float] = time.monotonic
    ) -> None:
        self.source_id = source_id
        self._monotonic = monotonic
        self._anchor_position = 0.0
        self._anchor_time: float | None = None

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(source_id={self.source_id!r}, "
            f"position={self.get_position():.3f}, playing={self.playing})"
        )

    @property
    @abc.abstractmethod
    def ready(self) -> bool:
        """True once the unit can produce output."""

    @abc.abstractmethod
    def get_duration(self) -> float | None:
        """Loop length in seconds, or None while unknown."""

    @property
    def playing(self) -> bool:
        return self._anchor_time is not None

    def play(self) -> None:
        if not self.ready:
            raise DecoderNotReady(f"{self.source_id} is not ready to play")
        if self.playing:
            return
        self._anchor_time = self._monotonic()

    def pause(self) -> None:
        if not self.playing:
            return
        self._anchor_position = self._raw_position()
        self._anchor_time = None

    def stop(self) -> None:
        self.pause()
        self._anchor_position = 0.0

    def seek(self, position: float) -> None:
        self._anchor_position = self._wrap(max(0.0, position))
        if self.playing:
            self._anchor_time = self._monotonic()

    def get_position(self) -> float:
        return self._wrap(self._raw_position())

    def _raw_position(self) -> float:
        if self._anchor_time is None:
            return self._anchor_position
        return self._anchor_position + (self._monotonic() - self._anchor_time)

    def _wrap(self, position: float) -> float:
        duration = self.get_duration()
        if duration:
            return position % duration
        return position


class StreamUnit(PlayableUnit):
    """A decoded video or audio stream.

    The duration is unknown until the presentation layer reports the media
    as loaded via :meth:`load`.
    """

    kind = UnitKind.STREAM

    def __init__(
        self,
        source_id: str,
        url: str | None = None,
        muted: bool = True,
        monotonic: t.Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(source_id, monotonic=monotonic)
        self.url = url
        self.muted = muted
        self._duration: float | None = None

    @property
    def ready(self) -> bool:
        return self._duration is not None

    def load(self, duration: float) -> None:
        if duration <= 0 or math.isnan(duration):
            raise ValueError(f"Invalid stream duration: {duration}")
        self._duration = duration
        log.debug(f"Stream {self.source_id} loaded ({duration:.3f}s)")

    def get_duration(self) -> float | None:
        return self._duration


class FrameSequenceUnit(PlayableUnit):
    """An image sequence shown at a fixed frame rate.

    Position is quantized to whole frames: ``frame_index / frame_rate``.
    """

    kind = UnitKind.FRAME_SEQUENCE

    def __init__(
        self,
        source_id: str,
        frames: t.Sequence[str] = (),
        frame_rate: int = 24,
        monotonic: t.Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(source_id, monotonic=monotonic)
        if frame_rate < 1:
            raise ValueError(f"Invalid frame rate: {frame_rate}")
        self.frame_rate = frame_rate
        self.frames: list[str] = list(frames)

    def set_frames(self, frames: t.Sequence[str]) -> None:
        self.frames = list(frames)
        self._anchor_position = self._wrap(self._anchor_position)

    @property
    def ready(self) -> bool:
        return len(self.frames) > 0

    def get_duration(self) -> float | None:
        if not self.frames:
            return None
        return len(self.frames) / self.frame_rate

    @property
    def frame_index(self) -> int:
        if not self.frames:
            return 0
        frame = math.floor(self._raw_position() * self.frame_rate + 1e-9)
        return frame % len(self.frames)

    @property
    def current_frame(self) -> str | None:
        if not self.frames:
            return None
        return self.frames[self.frame_index]

    def seek(self, position: float) -> None:
        if self.frames:
            # snap to the frame boundary the renderer will show
            frame = math.floor(max(0.0, position) * self.frame_rate + 1e-9)
            position = (frame % len(self.frames)) / self.frame_rate
        super().seek(position)

    def get_position(self) -> float:
        return self.frame_index / self.frame_rate
