"""Socket.IO server bound to the session coordinator."""

import logging
import typing as t

import socketio

from lockstep.coordinator import SessionCoordinator
from lockstep.messages import MESSAGE_EVENT

log = logging.getLogger(__name__)


def create_sio() -> socketio.AsyncServer:
    return socketio.AsyncServer(async_mode="asgi", cors_allowed_origins="*")


def register_handlers(sio: socketio.AsyncServer, coordinator: SessionCoordinator) -> None:
    """Route connection lifecycle and ``message`` events to ``coordinator``."""

    @sio.on("connect")
    async def on_connect(sid: str, environ: dict, auth: dict | None = None) -> bool:
        await coordinator.handle_connect(sid)
        return True

    @sio.on("disconnect")
    async def on_disconnect(sid: str, reason: t.Any = None) -> None:
        """Remove the connection; also reached after transport errors."""
        log.debug(f"Socket {sid} disconnected ({reason})")
        await coordinator.handle_disconnect(sid)

    @sio.on(MESSAGE_EVENT)
    async def on_message(sid: str, data: t.Any = None) -> None:
        await coordinator.handle_message(sid, data)
