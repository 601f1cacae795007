"""Shared clock: server-aligned time estimated from round-trip offset samples.

All instants are epoch milliseconds. ``SharedClock.now()`` never blocks and
never fails; without a usable offset it is plain local time.
"""

import logging
import statistics
import typing as t
from dataclasses import dataclass

from lockstep.utils.time import epoch_ms

log = logging.getLogger(__name__)

OffsetListener = t.Callable[[float], None]


@dataclass(frozen=True)
class OffsetSample:
    """One request/response exchange with the time server.

    Attributes
    ----------
    sent : float
        Local time the request left (ms).
    server : float
        Server time stamped in the response (ms).
    received : float
        Local time the response arrived (ms).
    """

    sent: float
    server: float
    received: float

    @property
    def rtt(self) -> float:
        return self.received - self.sent

    @property
    def offset(self) -> float:
        """Server minus local, assuming a symmetric path."""
        return self.server + self.rtt / 2.0 - self.received


class OffsetEstimator:
    """Rolling window of samples; median offset over the low-latency ones."""

    WINDOW = 8
    OUTLIER_FACTOR = 2.0

    def __init__(self) -> None:
        self._samples: list[OffsetSample] = []

    def add_sample(self, sample: OffsetSample) -> float:
        self._samples.append(sample)
        if len(self._samples) > self.WINDOW:
            self._samples.pop(0)
        return self.offset

    @property
    def offset(self) -> float:
        if not self._samples:
            return 0.0
        good = self._samples
        if len(self._samples) >= 3:
            median_rtt = statistics.median(s.rtt for s in self._samples)
            good = [
                s for s in self._samples if s.rtt <= median_rtt * self.OUTLIER_FACTOR
            ] or self._samples
        return statistics.median(s.offset for s in good)

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    def reset(self) -> None:
        self._samples.clear()


class SharedClock:
    """Local time corrected by the current server offset.

    Parameters
    ----------
    local_time : callable
        Source of local epoch milliseconds.
    """

    def __init__(self, local_time: t.Callable[[], float] = epoch_ms) -> None:
        self._local_time = local_time
        self.offset: float = 0.0
        self.last_offset_change_magnitude: float = 0.0
        self.synchronized = False
        self._listeners: list[tuple[float, OffsetListener]] = []

    def now(self) -> float:
        """Estimated server time in epoch milliseconds."""
        return self._local_time() + self.offset

    def local_now(self) -> float:
        return self._local_time()

    def on_offset_change(
        self, threshold: float, callback: OffsetListener
    ) -> t.Callable[[], None]:
        """Call ``callback(magnitude)`` when the offset jumps by more than ``threshold`` ms.

        Returns a function that removes the listener.
        """
        entry = (threshold, callback)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def update_offset(self, offset: float) -> None:
        """Apply a new offset estimate from the exchange service."""
        self.synchronized = True
        self._set_offset(offset)

    def degrade(self) -> None:
        """Fall back to unadjusted local time."""
        if self.synchronized:
            log.warning(
                f"Clock offset exchange unavailable, falling back to local time "
                f"(dropping offset {self.offset:.1f}ms)"
            )
        self.synchronized = False
        self._set_offset(0.0)

    def _set_offset(self, offset: float) -> None:
        magnitude = abs(offset - self.offset)
        self.offset = offset
        self.last_offset_change_magnitude = magnitude
        if magnitude > 0:
            log.debug(f"Clock offset now {offset:.1f}ms (changed by {magnitude:.1f}ms)")
        for threshold, callback in list(self._listeners):
            if magnitude > threshold:
                callback(magnitude)
