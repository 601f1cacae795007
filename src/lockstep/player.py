"""Device-side playback controller.

Glues the wire protocol to the synchronization core: server messages select
content, arm the scheduler and drive the drift corrector for the unit that is
currently loaded.
"""

import logging
import typing as t

from lockstep.clock import SharedClock
from lockstep.config import LockstepConfig, get_config
from lockstep.drift import DriftCorrector, Role, expected_position
from lockstep.exceptions import LockstepException, MediaLoadError, PlaybackError, SchedulerError
from lockstep.loader import MediaLoader
from lockstep.messages import (
    ClientInfo,
    ClientsUpdate,
    Echo,
    ErrorMessage,
    MalformedMessage,
    PauseBroadcast,
    PlayBroadcast,
    ReloadBroadcast,
    ServerMessage,
    SetSource,
    SourceUpdate,
    StopBroadcast,
    UnknownMessageType,
    Welcome,
    parse_server_message,
)
from lockstep.scheduler import PlaybackScheduler
from lockstep.units import PlayableUnit

log = logging.getLogger(__name__)

SendFn = t.Callable[[dict[str, t.Any]], t.Awaitable[None]]


class PlaybackController:
    """State of one playback device.

    Parameters
    ----------
    clock : SharedClock
        Shared clock kept current by a :class:`~lockstep.timesync.TimesyncClient`.
    loader : MediaLoader | None
        Used to turn source ids into units. Without one, units are attached
        manually via :meth:`attach`.
    role : Role
        ``MASTER`` makes this device's audio the timing reference.
    config : LockstepConfig | None
        Timing parameters; the global config if omitted.
    send : callable | None
        Coroutine function delivering a wire dict to the server.
    on_reload : callable | None
        Called after a ``reload`` command has re-fetched the source.
    """

    def __init__(
        self,
        clock: SharedClock,
        loader: MediaLoader | None = None,
        role: Role = Role.SLAVE,
        config: LockstepConfig | None = None,
        send: SendFn | None = None,
        on_reload: t.Callable[[], None] | None = None,
    ) -> None:
        self.clock = clock
        self.loader = loader
        self.role = role
        self.config = config or get_config()
        self.send = send
        self.on_reload = on_reload

        self.client_id: int | None = None
        self.source: str | None = None
        self.clients: list[ClientInfo] = []
        self.unit: PlayableUnit | None = None
        self.audio: PlayableUnit | None = None
        self.scheduler: PlaybackScheduler | None = None
        self.corrector: DriftCorrector | None = None
        self.last_error: SchedulerError | None = None
        self._play_deferred = False
        self._pending_target: float | None = None

        self._unsubscribe = clock.on_offset_change(
            self.config.offset_change_threshold_ms, self._on_offset_change
        )

    # -------------------------------------------------------------------------
    # Wire messages
    # -------------------------------------------------------------------------

    async def handle_raw(self, raw: t.Any) -> None:
        """Parse and apply a payload received on the message event."""
        try:
            message = parse_server_message(raw)
        except UnknownMessageType as e:
            log.debug(f"Ignoring message: {e}")
            return
        except MalformedMessage as e:
            log.warning(f"Dropping malformed message: {e}")
            return
        await self.handle(message)

    async def handle(self, message: ServerMessage) -> None:
        match message:
            case Welcome():
                self.client_id = message.client_id
                log.info(f"Connected as client {message.client_id}")
            case SourceUpdate():
                await self.set_source(message.source)
            case PlayBroadcast():
                self.play(message.target_time)
            case PauseBroadcast():
                self.pause()
            case StopBroadcast():
                self.stop()
            case ReloadBroadcast():
                await self.reload()
            case ClientsUpdate():
                self.clients = list(message.clients)
            case Echo():
                log.debug(f"Server echoed {message.data!r}")
            case ErrorMessage():
                log.warning(f"Server reported an error: {message.message}")
            case _:
                t.assert_never(message)

    # -------------------------------------------------------------------------
    # Content
    # -------------------------------------------------------------------------

    async def set_source(self, source: str) -> None:
        """Switch to ``source``; a repeat of the current source is ignored."""
        if source == self.source:
            log.debug(f"Source {source} already selected")
            return
        self.stop()
        self.source = source
        self.detach()
        if self.loader is None:
            return
        try:
            unit, audio = await self.loader.load(source)
        except MediaLoadError as e:
            log.error(f"Could not load {source}: {e}")
            return
        # a newer source may have been selected while loading
        if self.source == source:
            self.attach(unit, audio)

    def attach(self, unit: PlayableUnit, audio: PlayableUnit | None = None) -> None:
        """Make ``unit`` (and optional secondary audio) the active content."""
        self.detach()
        self.unit = unit
        self.audio = audio
        self.scheduler = PlaybackScheduler(
            self.clock,
            unit,
            on_started=self._on_started,
            on_failed=self._on_failed,
            tick=self.config.scheduler_tick,
            retry_delay=self.config.play_retry_delay,
        )
        self.corrector = DriftCorrector(
            self.clock,
            unit,
            interval=self.config.sync_interval,
            threshold=self.config.sync_threshold,
            audio_threshold=self.config.audio_sync_threshold,
            role=self.role,
        )
        self.corrector.attach_audio(audio)
        if self._play_deferred:
            target, self._pending_target = self._pending_target, None
            self._play_deferred = False
            self.play(target)

    def detach(self) -> None:
        if self.scheduler is not None:
            self.scheduler.cancel()
        if self.corrector is not None:
            self.corrector.stop()
        self.unit = self.audio = None
        self.scheduler = self.corrector = None

    async def reload(self) -> None:
        """Fetch the current source again from scratch."""
        source = self.source
        self.stop()
        self.source = None
        if source is not None:
            await self.set_source(source)
        if self.on_reload is not None:
            self.on_reload()

    async def navigate(self, source: str) -> None:
        """Ask the server to make ``source`` the global selection."""
        if self.send is None:
            raise LockstepException("No connection to send setSource on")
        await self.send(SetSource(source=source).dump())

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def play(self, target_instant: float | None = None) -> None:
        """Start at ``target_instant`` (ms, shared clock), or resume now if None."""
        if self.scheduler is None or self.unit is None:
            log.warning("Play received before any content is loaded, deferring")
            self._play_deferred = True
            self._pending_target = target_instant
            return
        if target_instant is None:
            # keep the current position on the shared timeline
            target_instant = self.clock.now() - self.unit.get_position() * 1000.0
        self.corrector.stop()
        self.last_error = None
        self.scheduler.arm(target_instant)

    def pause(self) -> None:
        self._halt()
        for unit in self._units():
            unit.pause()

    def stop(self) -> None:
        self._halt()
        for unit in self._units():
            unit.stop()

    def close(self) -> None:
        self.stop()
        self.detach()
        self._unsubscribe()

    def _halt(self) -> None:
        self._play_deferred = False
        self._pending_target = None
        if self.scheduler is not None:
            self.scheduler.cancel()
        if self.corrector is not None:
            self.corrector.stop()

    def _units(self) -> list[PlayableUnit]:
        return [u for u in (self.unit, self.audio) if u is not None]

    def _on_started(self, target_instant: float) -> None:
        assert self.unit is not None and self.corrector is not None
        now = self.clock.now()
        self.unit.seek(expected_position(now, target_instant, self.unit.get_duration()))
        if self.audio is not None:
            self.audio.seek(
                expected_position(now, target_instant, self.audio.get_duration())
            )
            try:
                self.audio.play()
            except PlaybackError as e:
                log.error(f"Could not start audio {self.audio.source_id}: {e}")
        self.corrector.start(target_instant)

    def _on_failed(self, error: SchedulerError) -> None:
        self.last_error = error

    def _on_offset_change(self, magnitude: float) -> None:
        if self.corrector is not None:
            self.corrector.handle_offset_change(magnitude)
