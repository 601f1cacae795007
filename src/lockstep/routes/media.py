"""Media catalog REST API endpoints."""

from fastapi import APIRouter

from lockstep.catalog import MEDIA_TYPES
from lockstep.dependencies import CatalogDep
from lockstep.exceptions import (
    InvalidMediaType,
    MediaNotFound,
    ProjectNotFound,
    SubfolderNotFound,
    problem_responses,
)
from lockstep.schemas import (
    CatalogResponse,
    MediaResponse,
    Project,
    ProjectListResponse,
    ProjectResponse,
    ThumbnailListResponse,
)

router = APIRouter(prefix="/api/media", tags=["media"])


def verify_project(catalog: CatalogDep, project_name: str) -> Project:
    project = catalog.get_project(project_name)
    if project is None:
        raise ProjectNotFound.exception("Project not found")
    return project


@router.get("", response_model=CatalogResponse)
async def get_catalog(catalog: CatalogDep) -> CatalogResponse:
    """Full catalog with a per-project summary."""
    return CatalogResponse(catalog=catalog.projects, summary=catalog.summary())


@router.get("/projects", response_model=ProjectListResponse)
async def list_projects(catalog: CatalogDep) -> ProjectListResponse:
    projects = catalog.project_names()
    return ProjectListResponse(projects=projects, count=len(projects))


@router.get("/thumbnails", response_model=ThumbnailListResponse)
async def list_thumbnails(catalog: CatalogDep) -> ThumbnailListResponse:
    thumbnails = catalog.thumbnails()
    return ThumbnailListResponse(thumbnails=thumbnails, count=len(thumbnails))


@router.get(
    "/projects/{project_name}",
    response_model=ProjectResponse,
    responses=problem_responses(ProjectNotFound),
)
async def get_project(catalog: CatalogDep, project_name: str) -> ProjectResponse:
    project = verify_project(catalog, project_name)
    return ProjectResponse(project_name=project_name, **project.model_dump())


@router.get(
    "/projects/{project_name}/{media_type}",
    response_model=MediaResponse,
    responses=problem_responses(
        ProjectNotFound, MediaNotFound, InvalidMediaType
    ),
)
async def get_media(
    catalog: CatalogDep, project_name: str, media_type: str
) -> MediaResponse:
    """Files of one media type of a project."""
    return _media_response(catalog, project_name, media_type, None)


@router.get(
    "/projects/{project_name}/{media_type}/{subfolder}",
    response_model=MediaResponse,
    responses=problem_responses(
        ProjectNotFound, MediaNotFound, SubfolderNotFound, InvalidMediaType
    ),
)
async def get_media_subfolder(
    catalog: CatalogDep, project_name: str, media_type: str, subfolder: str
) -> MediaResponse:
    """Files of one album subfolder.

    Subfolders only exist for albums; for other media types the subfolder
    is ignored.
    """
    return _media_response(catalog, project_name, media_type, subfolder)


def _media_response(
    catalog: CatalogDep, project_name: str, media_type: str, subfolder: str | None
) -> MediaResponse:
    project = verify_project(catalog, project_name)

    if media_type not in MEDIA_TYPES:
        raise InvalidMediaType.exception(
            f"Invalid media type. Must be one of: {', '.join(MEDIA_TYPES)}"
        )

    data = getattr(project, media_type)
    if media_type == "album" and subfolder is not None:
        if not data or subfolder not in data:
            raise SubfolderNotFound.exception(
                f"Album subfolder '{subfolder}' not found"
            )
        data = data[subfolder]

    if not data:
        raise MediaNotFound.exception(f"No {media_type} found for this project")

    return MediaResponse(project_name=project_name, media_type=media_type, data=data)
