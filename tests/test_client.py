import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from lockstep.client import CommanderClient, PlaybackClient
from lockstep.drift import Role
from lockstep.units import StreamUnit


def _mock_client_sio() -> MagicMock:
    sio = MagicMock()
    sio.connected = True
    sio.connect = AsyncMock()
    sio.disconnect = AsyncMock()
    sio.emit = AsyncMock()
    sio.call = AsyncMock()
    return sio


@pytest.fixture
def client_sio() -> MagicMock:
    return _mock_client_sio()


@pytest.mark.asyncio
async def test_commander_identifies_on_connect(client_sio, config):
    async with CommanderClient("http://test/", sio=client_sio) as commander:
        assert commander.url == "http://test"

    client_sio.connect.assert_awaited_once_with("http://test", wait=True)
    client_sio.call.assert_awaited_once_with(
        "message", {"type": "identify", "role": "commander"}, timeout=5.0
    )
    client_sio.disconnect.assert_awaited_once()


@pytest.mark.asyncio
async def test_commander_commands(client_sio, config):
    commander = CommanderClient("http://test", sio=client_sio)

    await commander.play(target_time=1000.0)
    await commander.pause()
    await commander.set_source("demo/album/2")

    payloads = [call.args[1] for call in client_sio.call.await_args_list]
    assert payloads == [
        {"type": "play", "video": None, "targetTime": 1000.0, "delay": None},
        {"type": "pause"},
        {"type": "setSource", "source": "demo/album/2"},
    ]


@pytest.mark.asyncio
async def test_commander_get_clients(client_sio, config):
    commander = CommanderClient("http://test", sio=client_sio)

    async def reply(event, data, timeout):
        await commander._on_message(
            {
                "type": "clientsUpdate",
                "clients": [
                    {"id": 1, "connectedAt": "2026-01-01T00:00:00+00:00", "isCommander": True},
                    {"id": 2, "connectedAt": "2026-01-01T00:00:01+00:00", "isCommander": False},
                ],
                "total": 2,
            }
        )

    client_sio.call.side_effect = reply

    clients = await commander.get_clients()

    assert [c.id for c in clients] == [1, 2]
    assert clients[0].is_commander


@pytest.mark.asyncio
async def test_commander_get_clients_times_out(client_sio, config):
    commander = CommanderClient("http://test", timeout=0.05, sio=client_sio)

    with pytest.raises(TimeoutError):
        await commander.get_clients()


@pytest.mark.asyncio
async def test_commander_tracks_welcome_and_source(client_sio, config):
    commander = CommanderClient("http://test", sio=client_sio)

    await commander._on_message({"type": "welcome", "clientId": 7})
    await commander._on_message({"type": "source", "source": "demo/phone"})
    await commander._on_message({"type": "pause"})
    await commander._on_message("garbage")

    assert commander.client_id == 7
    assert commander.source == "demo/phone"


@pytest.mark.asyncio
async def test_playback_client_applies_messages_in_order(client_sio, config):
    client = PlaybackClient("http://test", role=Role.MASTER, config=config, sio=client_sio)
    client.timesync = MagicMock(stop=AsyncMock())
    loaded = asyncio.Event()

    async def slow_load(source):
        await asyncio.sleep(0.02)
        unit = StreamUnit(source)
        unit.load(10.0)
        loaded.set()
        return unit, None

    client.controller.loader = MagicMock(load=slow_load)

    await client.connect()
    await client._on_message({"type": "source", "source": "demo/phone"})
    await client._on_message(
        {"type": "play", "targetTime": client.clock.now() - 1000.0}
    )
    await asyncio.wait_for(loaded.wait(), 1.0)
    await asyncio.wait_for(client._queue.join(), 1.0)

    # play was applied after the slow source change, not dropped before it
    assert client.controller.unit.playing
    assert client.controller.unit.get_position() == pytest.approx(1.0, abs=0.1)
    assert client.loader.master

    await client.close()
    client_sio.disconnect.assert_awaited_once()


@pytest.mark.asyncio
async def test_playback_client_survives_a_failing_message(client_sio, config, caplog):
    client = PlaybackClient("http://test", config=config, sio=client_sio)
    client.timesync = MagicMock(stop=AsyncMock())
    client.controller.loader = MagicMock(load=AsyncMock(side_effect=RuntimeError("boom")))

    await client.connect()
    with caplog.at_level(logging.ERROR, logger="lockstep.client"):
        await client._on_message({"type": "source", "source": "demo/phone"})
        await client._on_message({"type": "welcome", "clientId": 3})
        await asyncio.wait_for(client._queue.join(), 1.0)

    assert client.controller.client_id == 3
    assert "Unexpected error applying server message" in caplog.text
    await client.close()


@pytest.mark.asyncio
async def test_playback_client_navigate_emits(client_sio, config):
    client = PlaybackClient("http://test", config=config, sio=client_sio)

    await client.controller.navigate("demo/poster")

    client_sio.emit.assert_awaited_once_with(
        "message", {"type": "setSource", "source": "demo/poster"}
    )
    client.controller.close()
    await client.loader.close()
