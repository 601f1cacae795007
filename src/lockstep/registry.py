"""Client registry: who is connected and which connections are commanders."""

import itertools
import logging
from dataclasses import dataclass, field

from lockstep.messages import ClientInfo
from lockstep.utils.time import utc_now_iso

log = logging.getLogger(__name__)


@dataclass
class ClientRecord:
    """One live connection.

    ``id`` is unique for the server process lifetime and never reused.
    """

    id: int
    sid: str
    connected_at: str = field(default_factory=utc_now_iso)
    is_commander: bool = False

    def info(self) -> ClientInfo:
        return ClientInfo(
            id=self.id, connected_at=self.connected_at, is_commander=self.is_commander
        )


class ClientRegistry:
    """Live connections keyed by Socket.IO session id, in connection order."""

    def __init__(self) -> None:
        self._clients: dict[str, ClientRecord] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._clients)

    def __contains__(self, sid: object) -> bool:
        return sid in self._clients

    def connect(self, sid: str) -> ClientRecord:
        """Register a new connection under a fresh id."""
        record = ClientRecord(id=next(self._ids), sid=sid)
        self._clients[sid] = record
        log.info(f"Client {record.id} connected ({len(self)} total)")
        return record

    def disconnect(self, sid: str) -> ClientRecord | None:
        """Remove a connection; repeated calls for the same sid do nothing."""
        record = self._clients.pop(sid, None)
        if record is not None:
            log.info(f"Client {record.id} disconnected ({len(self)} total)")
        return record

    def get(self, sid: str) -> ClientRecord | None:
        return self._clients.get(sid)

    def identify(self, sid: str, role: str) -> bool:
        """Apply an identify message; returns True if the sid is now a commander."""
        record = self._clients.get(sid)
        if record is None:
            return False
        if role == "commander" and not record.is_commander:
            record.is_commander = True
            log.info(f"Client {record.id} identified as commander")
        return record.is_commander

    def snapshot(self) -> list[ClientInfo]:
        return [record.info() for record in self._clients.values()]

    def commanders(self) -> list[str]:
        return [sid for sid, r in self._clients.items() if r.is_commander]

    def playback_clients(self) -> list[str]:
        """Session ids that receive playback broadcasts."""
        return [sid for sid, r in self._clients.items() if not r.is_commander]
