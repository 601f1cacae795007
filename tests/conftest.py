import os
from collections.abc import AsyncIterator
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from lockstep.app import create_app
from lockstep.clock import SharedClock
from lockstep.config import LockstepConfig


class FakeTime:
    """Manually advanced time source shared by clocks and units."""

    def __init__(self, start_ms: float = 1_000_000.0) -> None:
        self.ms = start_ms

    def epoch_ms(self) -> float:
        return self.ms

    def monotonic(self) -> float:
        return self.ms / 1000.0

    def advance(self, seconds: float) -> None:
        self.ms += seconds * 1000.0


def emitted(mock_sio: MagicMock, sid: str | None = None) -> list[dict]:
    """Payloads emitted on the message event, optionally only those to ``sid``."""
    payloads = []
    for call in mock_sio.emit.call_args_list:
        event, payload = call.args[0], call.args[1]
        if event != "message":
            continue
        if sid is None or call.kwargs.get("to") == sid:
            payloads.append(payload)
    return payloads


def write_file(path: Path, content: bytes = b"x") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


@pytest.fixture
def clean_env():
    """Save and restore environment variables after test."""
    original_env = os.environ.copy()
    for key in list(os.environ):
        if key.startswith("LOCKSTEP_"):
            del os.environ[key]
    yield
    os.environ.clear()
    os.environ.update(original_env)
    from lockstep import config as config_module

    config_module._config = None


@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()


@pytest.fixture
def clock(fake_time: FakeTime) -> SharedClock:
    return SharedClock(local_time=fake_time.epoch_ms)


@pytest.fixture
def media_root(tmp_path: Path) -> Path:
    """Two projects plus the legacy folders the scanner must skip."""
    root = tmp_path / "videos"
    for name in ("0003.png", "0001.png", "0002.png", "notes.txt"):
        write_file(root / "demo" / "poster" / name)
    write_file(root / "demo" / "phone" / "clip.mp4")
    write_file(root / "demo" / "music" / "b.mp3")
    write_file(root / "demo" / "music" / "a.mp3")
    write_file(root / "demo" / "billboard" / "0001.png")
    write_file(root / "demo" / "billboard" / "0002.png")
    write_file(root / "demo" / "album" / "10" / "a.png")
    write_file(root / "demo" / "album" / "2" / "a.png")
    write_file(root / "demo" / "album" / "1" / "a.png")
    write_file(root / "demo" / "album" / "1" / "b.png")
    write_file(root / "demo" / "thumb.png", b"\x89PNG")
    write_file(root / "second" / "album" / "1" / "frame.png")
    write_file(root / "mp4" / "old.mp4")
    write_file(root / "png_sequence" / "0001.png")
    return root


@pytest.fixture
def config(clean_env, media_root: Path) -> LockstepConfig:
    return LockstepConfig(media_path=str(media_root))


@pytest_asyncio.fixture(name="mock_sio")
async def mock_sio_fixture() -> MagicMock:
    """Create a mock Socket.IO server for testing."""
    sio_mock = MagicMock()
    sio_mock.emit = AsyncMock()
    return sio_mock


@pytest_asyncio.fixture(name="server_app")
async def server_app_fixture(config: LockstepConfig, mock_sio: MagicMock):
    return create_app(config, sio=mock_sio)


@pytest_asyncio.fixture(name="http_client")
async def http_client_fixture(server_app) -> AsyncIterator[AsyncClient]:
    """Async test client talking to the FastAPI app in-process."""
    async with AsyncClient(
        transport=ASGITransport(app=server_app),
        base_url="http://test",
    ) as client:
        yield client
