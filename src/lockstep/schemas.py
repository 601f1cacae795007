from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serialized with camelCase keys, like the wire messages."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Media Catalog Schemas
# =============================================================================


class MediaFile(CamelModel):
    file_name: str
    url: str  # /media/<project>/<type>/<file>


class Project(CamelModel):
    """Everything one project folder offers."""

    name: str
    poster: list[MediaFile] = []
    phone: list[MediaFile] = []
    music: list[MediaFile] = []
    billboard: list[MediaFile] = []
    album: dict[str, list[MediaFile]] | None = None
    thumb: MediaFile | None = None


class ProjectCounts(CamelModel):
    poster: int
    phone: int
    music: int
    billboard: int
    album: int


class ProjectSummary(CamelModel):
    name: str
    has_poster: bool
    has_phone: bool
    has_music: bool
    has_billboard: bool
    has_album: bool
    has_thumb: bool
    counts: ProjectCounts


class MediaSummary(CamelModel):
    project_count: int
    projects: list[ProjectSummary]


class Thumbnail(MediaFile):
    project_name: str


class CatalogResponse(CamelModel):
    catalog: dict[str, Project]
    summary: MediaSummary


class ProjectListResponse(CamelModel):
    projects: list[str]
    count: int


class ProjectResponse(Project):
    project_name: str


class ThumbnailListResponse(CamelModel):
    thumbnails: list[Thumbnail]
    count: int


class MediaResponse(CamelModel):
    """One media type of a project (or one album subfolder)."""

    project_name: str
    media_type: str
    data: list[MediaFile] | dict[str, list[MediaFile]] | MediaFile


# =============================================================================
# Clock Offset Schemas
# =============================================================================


class TimesyncRequest(BaseModel):
    id: Any = None


class TimesyncResponse(BaseModel):
    id: Any = None
    result: float  # server epoch milliseconds


# =============================================================================
# Utility Schemas
# =============================================================================


class HealthResponse(BaseModel):
    """Response model for health endpoint."""

    status: str


class VersionResponse(BaseModel):
    """Response model for version endpoint."""

    version: str


class StatusResponse(BaseModel):
    """Snapshot of the coordination state."""

    source: str
    transport: str
    clients: int
