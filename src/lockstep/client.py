"""Socket.IO clients: a headless playback device and a commander.

Both speak the ``message`` event of :mod:`lockstep.messages`.
"""

import asyncio
import logging
import typing as t

import socketio

from lockstep.clock import SharedClock
from lockstep.config import LockstepConfig, get_config
from lockstep.drift import Role
from lockstep.exceptions import LockstepException
from lockstep.loader import MediaLoader
from lockstep.messages import (
    MESSAGE_EVENT,
    ClientInfo,
    ClientsUpdate,
    GetClients,
    Identify,
    MalformedMessage,
    PauseRequest,
    PlayRequest,
    ReloadRequest,
    SetSource,
    SourceUpdate,
    StopRequest,
    UnknownMessageType,
    Welcome,
    WireModel,
    parse_server_message,
)
from lockstep.player import PlaybackController
from lockstep.timesync import TimesyncClient

log = logging.getLogger(__name__)


class PlaybackClient:
    """A playback device: shared clock, media loader and controller.

    Server messages are queued on arrival and applied by a single consumer
    task, so they take effect strictly in arrival order even when one of
    them (a source change) has to fetch the catalog.
    """

    def __init__(
        self,
        url: str | None = None,
        role: Role = Role.SLAVE,
        config: LockstepConfig | None = None,
        sio: socketio.AsyncClient | None = None,
        stream_duration: float | None = None,
    ) -> None:
        self.config = config or get_config()
        self.url = (url or self.config.server_url).rstrip("/")
        self.role = role
        self.sio = sio if sio is not None else socketio.AsyncClient()
        self.clock = SharedClock()
        self.timesync = TimesyncClient(
            self.clock,
            self.url,
            interval=self.config.clock_poll_interval,
            max_failures=self.config.clock_max_failures,
        )
        self.loader = MediaLoader(
            self.url,
            master=role is Role.MASTER,
            frame_rate=self.config.frame_rate,
            stream_duration=stream_duration,
        )
        self.controller = PlaybackController(
            self.clock,
            loader=self.loader,
            role=role,
            config=self.config,
            send=self.send,
        )
        self._queue: asyncio.Queue[t.Any] = asyncio.Queue()
        self._consumer: asyncio.Task | None = None

        self.sio.on("connect", self._on_connect)
        self.sio.on("disconnect", self._on_disconnect)
        self.sio.on(MESSAGE_EVENT, self._on_message)

    @property
    def connected(self) -> bool:
        return self.sio.connected

    async def connect(self) -> None:
        self.timesync.start()
        if self._consumer is None:
            self._consumer = asyncio.create_task(self._consume())
        await self.sio.connect(self.url, wait=True)

    async def send(self, payload: dict[str, t.Any]) -> None:
        await self.sio.emit(MESSAGE_EVENT, payload)

    async def wait(self) -> None:
        """Block until the connection is closed for good."""
        await self.sio.wait()

    async def close(self) -> None:
        self.controller.close()
        if self._consumer is not None:
            self._consumer.cancel()
            self._consumer = None
        await self.timesync.stop()
        await self.loader.close()
        if self.sio.connected:
            await self.sio.disconnect()

    async def _on_connect(self) -> None:
        log.info(f"Connected to {self.url} as {self.role.value}")

    async def _on_disconnect(self, *args: t.Any) -> None:
        log.warning(f"Disconnected from {self.url}")

    async def _on_message(self, data: t.Any) -> None:
        self._queue.put_nowait(data)

    async def _consume(self) -> None:
        while True:
            data = await self._queue.get()
            try:
                await self.controller.handle_raw(data)
            except LockstepException as e:
                log.error(f"Failed to apply server message: {e}")
            except Exception:
                # the consumer must outlive any single message
                log.exception(f"Unexpected error applying server message: {data!r}")
            finally:
                self._queue.task_done()


class CommanderClient:
    """Control surface: issues commands and watches the client list.

    Use as an async context manager::

        async with CommanderClient("http://localhost:3000") as commander:
            await commander.play()
    """

    def __init__(
        self,
        url: str | None = None,
        timeout: float = 5.0,
        sio: socketio.AsyncClient | None = None,
    ) -> None:
        self.url = (url or get_config().server_url).rstrip("/")
        self.timeout = timeout
        self.sio = sio if sio is not None else socketio.AsyncClient()
        self.client_id: int | None = None
        self.source: str | None = None
        self.clients: list[ClientInfo] = []
        self._clients_event = asyncio.Event()
        self.sio.on(MESSAGE_EVENT, self._on_message)

    async def __aenter__(self) -> "CommanderClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc: t.Any) -> None:
        await self.disconnect()

    async def connect(self) -> None:
        await self.sio.connect(self.url, wait=True)
        await self._command(Identify(role="commander"))

    async def disconnect(self) -> None:
        if self.sio.connected:
            await self.sio.disconnect()

    async def _command(self, message: WireModel) -> None:
        # call() returns once the server has handled the message
        await self.sio.call(MESSAGE_EVENT, message.dump(), timeout=self.timeout)

    async def _on_message(self, data: t.Any) -> None:
        try:
            message = parse_server_message(data)
        except (UnknownMessageType, MalformedMessage) as e:
            log.debug(f"Ignoring message: {e}")
            return
        match message:
            case Welcome():
                self.client_id = message.client_id
            case SourceUpdate():
                self.source = message.source
            case ClientsUpdate():
                self.clients = list(message.clients)
                self._clients_event.set()
            case _:
                log.debug(f"Commander ignoring {message.type}")

    async def play(
        self,
        target_time: float | None = None,
        delay: int | None = None,
        video: str | None = None,
    ) -> None:
        await self._command(PlayRequest(video=video, target_time=target_time, delay=delay))

    async def pause(self) -> None:
        await self._command(PauseRequest())

    async def stop(self) -> None:
        await self._command(StopRequest())

    async def reload(self) -> None:
        await self._command(ReloadRequest())

    async def set_source(self, source: str) -> None:
        await self._command(SetSource(source=source))

    async def get_clients(self) -> list[ClientInfo]:
        """Request and return a fresh client list."""
        self._clients_event.clear()
        await self._command(GetClients())
        await asyncio.wait_for(self._clients_event.wait(), self.timeout)
        return self.clients
