"""Utility and system routes.

Handles version, health checks, and a snapshot of the coordination state.
"""

from fastapi import APIRouter

import lockstep
from lockstep.dependencies import CoordinatorDep
from lockstep.schemas import HealthResponse, StatusResponse, VersionResponse

router = APIRouter(prefix="/v1", tags=["utility"])


@router.get("/health", response_model=HealthResponse)
async def get_health() -> HealthResponse:
    """Health check endpoint.

    Returns OK status if the server is running.
    """
    return HealthResponse(status="ok")


@router.get("/version", response_model=VersionResponse)
async def get_version() -> VersionResponse:
    """Get the Lockstep server version from the package metadata."""
    return VersionResponse(version=lockstep.__version__)


@router.get("/status", response_model=StatusResponse)
async def get_status(coordinator: CoordinatorDep) -> StatusResponse:
    """Current source, transport state and number of connections."""
    return StatusResponse(
        source=coordinator.selection.source,
        transport=coordinator.state.value,
        clients=len(coordinator.registry),
    )
