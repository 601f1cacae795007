"""Client side of the clock-offset exchange.

Polls ``POST /timesync`` on the server and feeds the resulting samples into a
:class:`~lockstep.clock.SharedClock`.
"""

import asyncio
import logging
import uuid

import httpx

from lockstep.clock import OffsetEstimator, OffsetSample, SharedClock

log = logging.getLogger(__name__)

TIMESYNC_PATH = "/timesync"


class TimesyncClient:
    """Periodic round-trip offset exchange.

    Parameters
    ----------
    clock : SharedClock
        Clock receiving offset updates.
    url : str
        Base URL of the server.
    interval : float
        Seconds between exchanges.
    max_failures : int
        Consecutive failed exchanges after which the clock degrades.
    http : httpx.AsyncClient | None
        Client to use; one is created (and owned) if omitted.
    """

    def __init__(
        self,
        clock: SharedClock,
        url: str,
        interval: float = 1.0,
        max_failures: int = 3,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.clock = clock
        self.url = url.rstrip("/")
        self.interval = interval
        self.max_failures = max_failures
        self.estimator = OffsetEstimator()
        self.failures = 0
        self._http = http
        self._owns_http = http is None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sync_once(self) -> OffsetSample | None:
        """Run one exchange; returns the sample, or None if it failed."""
        if self._http is None:
            self._http = httpx.AsyncClient()
        request_id = uuid.uuid4().hex
        sent = self.clock.local_now()
        try:
            response = await self._http.post(
                f"{self.url}{TIMESYNC_PATH}", json={"id": request_id}
            )
            response.raise_for_status()
            payload = response.json()
            received = self.clock.local_now()
            if payload.get("id") != request_id:
                raise ValueError(f"Mismatched timesync response id {payload.get('id')!r}")
            server = float(payload["result"])
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            self._record_failure(e)
            return None

        self.failures = 0
        sample = OffsetSample(sent=sent, server=server, received=received)
        self.clock.update_offset(self.estimator.add_sample(sample))
        return sample

    def _record_failure(self, exc: Exception) -> None:
        self.failures += 1
        log.warning(
            f"Timesync exchange failed ({self.failures}/{self.max_failures}): {exc}"
        )
        if self.failures >= self.max_failures:
            self.estimator.reset()
            self.clock.degrade()

    async def run(self) -> None:
        """Exchange forever at the configured interval."""
        while True:
            await self.sync_once()
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None
