"""Lockstep exception classes and RFC 9457 problem details.

Domain errors raised inside the playback core derive from
:class:`LockstepException`. HTTP errors are expressed as problem types::

    raise ProjectNotFound.exception(f"Project '{name}' not found")
"""

import typing as t

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class LockstepException(Exception):
    """Base exception for all Lockstep errors."""
    pass


class PlaybackError(LockstepException):
    """Raised when a playable unit cannot carry out a transport command."""
    pass


class DecoderNotReady(PlaybackError):
    """Raised when play() is invoked before the unit can produce frames."""
    pass


class SchedulerError(LockstepException):
    """Raised when a scheduled start could not be carried out."""
    pass


class ProtocolError(LockstepException):
    """Raised when an inbound wire message cannot be understood."""
    pass


class MediaLoadError(LockstepException):
    """Raised when a source id cannot be turned into a playable unit."""
    pass


# =============================================================================
# RFC 9457 Problem Details
# =============================================================================


class ProblemDetail(BaseModel):
    """Problem document returned for HTTP errors."""

    type: str
    title: str
    status: int
    detail: str | None = None
    instance: str | None = None


class ProblemException(Exception):
    """Exception carrying a problem document, converted by the handler."""

    def __init__(
        self, problem: ProblemDetail, headers: dict[str, str] | None = None
    ) -> None:
        super().__init__(problem.detail or problem.title)
        self.problem = problem
        self.headers = headers


class ProblemType:
    """Base class for problem types.

    Subclasses set ``id``, ``title``, ``status`` and ``description``.
    """

    id: t.ClassVar[str]
    title: t.ClassVar[str]
    status: t.ClassVar[int]
    description: t.ClassVar[str] = ""

    @classmethod
    def create(
        cls, detail: str | None = None, instance: str | None = None
    ) -> ProblemDetail:
        return ProblemDetail(
            type=f"/v1/problems/{cls.id}",
            title=cls.title,
            status=cls.status,
            detail=detail,
            instance=instance,
        )

    @classmethod
    def exception(
        cls,
        detail: str | None = None,
        instance: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> ProblemException:
        return ProblemException(cls.create(detail, instance), headers=headers)


class ProjectNotFound(ProblemType):
    id = "project-not-found"
    title = "Not Found"
    status = 404
    description = "The requested project does not exist in the media catalog."


class MediaNotFound(ProblemType):
    id = "media-not-found"
    title = "Not Found"
    status = 404
    description = "The project has no media of the requested type."


class SubfolderNotFound(ProblemType):
    id = "subfolder-not-found"
    title = "Not Found"
    status = 404
    description = "The requested album subfolder does not exist."


class InvalidMediaType(ProblemType):
    id = "invalid-media-type"
    title = "Bad Request"
    status = 400
    description = "The media type is not one the catalog knows about."


class UnprocessableContent(ProblemType):
    id = "unprocessable-content"
    title = "Unprocessable Content"
    status = 422
    description = "The request failed validation."


def problem_responses(*problem_types: type[ProblemType]) -> dict[int, dict[str, t.Any]]:
    """Build an OpenAPI ``responses`` mapping for the given problem types.

    Types sharing a status code are merged into one entry.
    """
    responses: dict[int, dict[str, t.Any]] = {}
    for problem_type in problem_types:
        entry = responses.setdefault(
            problem_type.status,
            {"model": ProblemDetail, "description": ""},
        )
        if entry["description"]:
            entry["description"] += " / "
        entry["description"] += problem_type.description or problem_type.title
    return responses


async def problem_exception_handler(
    _request: Request, exc: ProblemException
) -> JSONResponse:
    """Render a ProblemException as ``application/problem+json``."""
    return JSONResponse(
        status_code=exc.problem.status,
        content=exc.problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
        headers=exc.headers,
    )
