"""Server assembly: FastAPI routes plus the Socket.IO coordinator."""

import logging
from pathlib import Path

import socketio
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.staticfiles import StaticFiles

from lockstep.catalog import MediaCatalog
from lockstep.config import LockstepConfig, get_config
from lockstep.coordinator import ContentSelection, SessionCoordinator
from lockstep.exceptions import (
    ProblemException,
    UnprocessableContent,
    problem_exception_handler,
)
from lockstep.routes.media import router as media_router
from lockstep.routes.timesync import router as timesync_router
from lockstep.routes.utility import router as utility_router
from lockstep.socketio import create_sio, register_handlers

log = logging.getLogger(__name__)


async def _validation_exception_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Convert FastAPI validation errors to RFC 9457 problem detail."""
    detail = "; ".join(
        f"{'.'.join(str(x) for x in e['loc'])}: {e['msg']}" for e in exc.errors()
    )
    problem = UnprocessableContent.create(detail=detail)
    return JSONResponse(
        status_code=422,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
    )


def create_app(
    config: LockstepConfig | None = None,
    sio: socketio.AsyncServer | None = None,
) -> FastAPI:
    """Build the FastAPI app and its coordinator.

    Everything shared lives on ``app.state``: ``config``, ``catalog``,
    ``coordinator`` and ``sio``.
    """
    config = config or get_config()
    if sio is None:
        sio = create_sio()

    catalog = MediaCatalog.load(config.media_path)
    selection = ContentSelection(source=catalog.default_source())
    log.info(f"Default source set to: {selection.source}")
    coordinator = SessionCoordinator(sio, selection, config=config)

    app = FastAPI(title="Lockstep API")
    app.state.config = config
    app.state.catalog = catalog
    app.state.coordinator = coordinator
    app.state.sio = sio

    app.add_exception_handler(ProblemException, problem_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)

    app.include_router(media_router)
    app.include_router(timesync_router)
    app.include_router(utility_router)

    media_dir = Path(config.media_path)
    if media_dir.is_dir():
        app.mount("/media", StaticFiles(directory=media_dir), name="media")
    else:
        log.warning(f"Media directory {media_dir} missing, /media not served")

    return app


def create_asgi_app(config: LockstepConfig | None = None) -> socketio.ASGIApp:
    """FastAPI app with the Socket.IO server mounted in front of it."""
    sio = create_sio()
    app = create_app(config, sio=sio)
    register_handlers(sio, app.state.coordinator)
    return socketio.ASGIApp(sio, other_asgi_app=app)
