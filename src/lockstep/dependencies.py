"""FastAPI dependencies for the server's shared resources.

All resources live on ``request.app.state``, set up by :func:`lockstep.app.create_app`.
"""

from typing import Annotated

from fastapi import Depends, Request

from lockstep.catalog import MediaCatalog
from lockstep.coordinator import SessionCoordinator


def get_catalog(request: Request) -> MediaCatalog:
    """Get the media catalog from app.state."""
    return request.app.state.catalog


CatalogDep = Annotated[MediaCatalog, Depends(get_catalog)]


def get_coordinator(request: Request) -> SessionCoordinator:
    """Get the session coordinator from app.state."""
    return request.app.state.coordinator


CoordinatorDep = Annotated[SessionCoordinator, Depends(get_coordinator)]
