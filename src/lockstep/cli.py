import asyncio
import logging
import typing as t

import socketio
import typer
import uvicorn

from lockstep import __version__
from lockstep.app import create_asgi_app
from lockstep.client import CommanderClient, PlaybackClient
from lockstep.config import LockstepConfig, get_config
from lockstep.drift import Role

app = typer.Typer(help="Synchronized multi-device media playback.")


def _setup_logging(config: LockstepConfig) -> None:
    logging.getLogger("lockstep").setLevel(config.log_level.upper())


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"lockstep {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """Synchronized multi-device media playback."""


@app.command()
def serve(
    host: str | None = typer.Option(None, help="Bind host (LOCKSTEP_SERVER_HOST)."),
    port: int | None = typer.Option(None, help="Bind port (LOCKSTEP_SERVER_PORT)."),
    media_path: str | None = typer.Option(
        None, help="Media directory (LOCKSTEP_MEDIA_PATH)."
    ),
) -> None:
    """Run the coordination server."""
    config = get_config()
    if host is not None:
        config.server_host = host
    if port is not None:
        config.server_port = port
    if media_path is not None:
        config.media_path = media_path
    _setup_logging(config)

    typer.echo(f"Serving on http://{config.server_host}:{config.server_port}")
    uvicorn.run(
        create_asgi_app(config),
        host=config.server_host,
        port=config.server_port,
        log_level=config.log_level.lower(),
    )


@app.command()
def player(
    url: str | None = typer.Option(None, help="Server URL (LOCKSTEP_SERVER_URL)."),
    master: bool = typer.Option(
        False, "--master", help="Use this device's audio as the timing reference."
    ),
    stream_duration: float | None = typer.Option(
        None,
        help="Duration in seconds assumed for video/audio streams, "
        "which a headless player cannot decode.",
    ),
) -> None:
    """Run a headless playback device."""
    if stream_duration is not None and stream_duration <= 0:
        typer.echo(f"✗ --stream-duration must be positive, got {stream_duration}", err=True)
        raise typer.Exit(code=1)
    config = get_config()
    _setup_logging(config)
    role = Role.MASTER if master else Role.SLAVE

    async def run() -> None:
        client = PlaybackClient(
            url, role=role, config=config, stream_duration=stream_duration
        )
        try:
            await client.connect()
            await client.wait()
        finally:
            await client.close()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        typer.echo("Player stopped.")


def _command(
    url: str | None, action: t.Callable[[CommanderClient], t.Awaitable[t.Any]]
) -> t.Any:
    _setup_logging(get_config())

    async def run() -> t.Any:
        async with CommanderClient(url) as commander:
            return await action(commander)

    try:
        return asyncio.run(run())
    except (socketio.exceptions.SocketIOError, TimeoutError) as e:
        typer.echo(f"✗ Could not reach server: {e}", err=True)
        raise typer.Exit(code=1)


UrlOption = typer.Option(None, "--url", help="Server URL (LOCKSTEP_SERVER_URL).")


@app.command()
def play(
    url: str | None = UrlOption,
    target_time: float | None = typer.Option(
        None, help="Shared-clock instant (epoch ms); default is now plus the lead."
    ),
    delay: int | None = typer.Option(None, help="Delay value passed on to clients (ms)."),
    video: str | None = typer.Option(None, help="Video name passed on to clients."),
) -> None:
    """Start playback on every device."""
    _command(url, lambda c: c.play(target_time=target_time, delay=delay, video=video))
    typer.echo("✓ Play sent")


@app.command()
def pause(url: str | None = UrlOption) -> None:
    """Pause playback on every device."""
    _command(url, lambda c: c.pause())
    typer.echo("✓ Pause sent")


@app.command()
def stop(url: str | None = UrlOption) -> None:
    """Stop playback and rewind on every device."""
    _command(url, lambda c: c.stop())
    typer.echo("✓ Stop sent")


@app.command()
def reload(url: str | None = UrlOption) -> None:
    """Make every device reload its content."""
    _command(url, lambda c: c.reload())
    typer.echo("✓ Reload sent")


@app.command()
def source(
    source_id: str = typer.Argument(..., help="Source id, e.g. 'demo/poster' or 'demo/album/2'."),
    url: str | None = UrlOption,
) -> None:
    """Select the content every device shows."""
    _command(url, lambda c: c.set_source(source_id))
    typer.echo(f"✓ Source set to {source_id}")


@app.command()
def clients(url: str | None = UrlOption) -> None:
    """List connected clients."""
    listing = _command(url, lambda c: c.get_clients())
    typer.echo(f"{len(listing)} client(s) connected")
    for info in listing:
        role = "commander" if info.is_commander else "player"
        typer.echo(f"  #{info.id:<4} {role:<10} since {info.connected_at}")
