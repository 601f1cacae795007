"""Session coordinator: the single owner of server-side playback state.

One instance per server process. Every Socket.IO handler calls into it; each
handler mutates state before its first ``await`` so concurrent connection
events never observe a half-applied command.
"""

import enum
import logging
import typing as t
from dataclasses import dataclass

from lockstep.config import LockstepConfig, get_config
from lockstep.messages import (
    DEFAULT_DELAY_MS,
    DEFAULT_VIDEO,
    MESSAGE_EVENT,
    ClientsUpdate,
    Echo,
    ErrorMessage,
    GetClients,
    Identify,
    MalformedMessage,
    PauseBroadcast,
    PauseRequest,
    PlayBroadcast,
    PlayRequest,
    ReloadBroadcast,
    ReloadRequest,
    SetSource,
    SourceUpdate,
    StopBroadcast,
    StopRequest,
    UnknownMessageType,
    Welcome,
    WireModel,
    parse_client_message,
)
from lockstep.registry import ClientRecord, ClientRegistry
from lockstep.utils.time import epoch_ms

log = logging.getLogger(__name__)


class Emitter(t.Protocol):
    """The part of ``socketio.AsyncServer`` the coordinator uses."""

    async def emit(self, event: str, data: t.Any = None, to: str | None = None) -> None: ...


class TransportState(str, enum.Enum):
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass
class ContentSelection:
    """Globally selected source id."""

    source: str

    def select(self, source: str) -> bool:
        """Set the selection; returns True if it changed."""
        if source == self.source:
            return False
        self.source = source
        return True


class SessionCoordinator:
    """Turns commands from any connection into broadcasts.

    Parameters
    ----------
    sio : Emitter
        Socket.IO server used to deliver messages.
    selection : ContentSelection
        Initial content selection.
    registry : ClientRegistry | None
        Live connections; a fresh one if omitted.
    config : LockstepConfig | None
        Supplies ``play_lead_ms``; the global config if omitted.
    clock : callable
        Server time in epoch milliseconds.
    """

    def __init__(
        self,
        sio: Emitter,
        selection: ContentSelection,
        registry: ClientRegistry | None = None,
        config: LockstepConfig | None = None,
        clock: t.Callable[[], float] = epoch_ms,
    ) -> None:
        self.sio = sio
        self.selection = selection
        self.registry = registry if registry is not None else ClientRegistry()
        self.config = config or get_config()
        self.clock = clock
        self.state = TransportState.STOPPED
        self.active_play: PlayBroadcast | None = None

    # -------------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------------

    async def send(self, sid: str, message: WireModel) -> None:
        await self.sio.emit(MESSAGE_EVENT, message.dump(), to=sid)

    async def broadcast(self, message: WireModel) -> None:
        """Deliver to every playback client; commanders are skipped."""
        payload = message.dump()
        for sid in self.registry.playback_clients():
            await self.sio.emit(MESSAGE_EVENT, payload, to=sid)

    def clients_update(self) -> ClientsUpdate:
        clients = self.registry.snapshot()
        return ClientsUpdate(clients=clients, total=len(clients))

    async def push_clients(self) -> None:
        """Send the current client list to every commander."""
        payload = self.clients_update().dump()
        for sid in self.registry.commanders():
            await self.sio.emit(MESSAGE_EVENT, payload, to=sid)

    # -------------------------------------------------------------------------
    # Connection lifecycle
    # -------------------------------------------------------------------------

    async def handle_connect(self, sid: str) -> ClientRecord:
        record = self.registry.connect(sid)
        active_play = self.active_play if self.state is TransportState.PLAYING else None
        await self.send(sid, Welcome(client_id=record.id))
        await self.send(sid, SourceUpdate(source=self.selection.source))
        if active_play is not None:
            log.info(f"Client {record.id} joined during playback, sending active play")
            await self.send(sid, active_play)
        await self.push_clients()
        return record

    async def handle_disconnect(self, sid: str) -> None:
        if self.registry.disconnect(sid) is not None:
            await self.push_clients()

    async def handle_message(self, sid: str, raw: t.Any) -> None:
        """Parse one inbound payload and dispatch it."""
        try:
            message = parse_client_message(raw)
        except UnknownMessageType as e:
            await self.send(sid, Echo(data=e.data))
            return
        except MalformedMessage as e:
            log.warning(f"Malformed message from {sid}: {e}")
            await self.send(sid, ErrorMessage(message=str(e)))
            return

        log.debug(f"Received {message.type} from {sid}")
        match message:
            case Identify():
                await self.identify(sid, message.role)
            case GetClients():
                await self.send(sid, self.clients_update())
            case PlayRequest():
                await self.play(message.target_time, message.delay, message.video)
            case PauseRequest():
                await self.pause()
            case StopRequest():
                await self.stop()
            case ReloadRequest():
                await self.reload()
            case SetSource():
                await self.set_source(message.source)
            case _:
                t.assert_never(message)

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def identify(self, sid: str, role: str) -> None:
        record = self.registry.get(sid)
        if record is None or role != "commander":
            return
        if record.is_commander:
            await self.send(sid, self.clients_update())
            return
        self.registry.identify(sid, role)
        # the new commander is among the recipients
        await self.push_clients()

    async def play(
        self,
        target_time: float | None = None,
        delay: int | None = None,
        video: str | None = None,
    ) -> PlayBroadcast:
        """Broadcast a play command stamped with the shared-timeline instant."""
        if target_time is None:
            target_time = self.clock() + self.config.play_lead_ms
        message = PlayBroadcast(
            video=video or DEFAULT_VIDEO,
            target_time=target_time,
            delay=delay if delay is not None else DEFAULT_DELAY_MS,
        )
        self.state = TransportState.PLAYING
        self.active_play = message
        log.info(
            f"Broadcasting play at {target_time:.0f} "
            f"({target_time - self.clock():.0f}ms from now)"
        )
        await self.broadcast(message)
        return message

    async def pause(self) -> None:
        """Broadcast pause; devices ignore it when already paused."""
        self.state = TransportState.PAUSED
        self.active_play = None
        await self.broadcast(PauseBroadcast())

    async def stop(self) -> None:
        """Broadcast stop; devices ignore it when already stopped."""
        self.state = TransportState.STOPPED
        self.active_play = None
        await self.broadcast(StopBroadcast())

    async def reload(self) -> None:
        await self.broadcast(ReloadBroadcast())

    async def set_source(self, source: str) -> None:
        """Make ``source`` the global selection and tell every playback client."""
        if not source:
            log.debug("Ignoring setSource without a source")
            return
        if self.selection.select(source):
            log.info(f"Source changed to: {source}")
            self.state = TransportState.STOPPED
            self.active_play = None
        await self.broadcast(SourceUpdate(source=source))
