import json

import pytest

from lockstep.exceptions import (
    DecoderNotReady,
    InvalidMediaType,
    LockstepException,
    MediaLoadError,
    MediaNotFound,
    PlaybackError,
    ProblemDetail,
    ProblemException,
    ProjectNotFound,
    ProtocolError,
    SchedulerError,
    SubfolderNotFound,
    UnprocessableContent,
    problem_exception_handler,
    problem_responses,
)


class TestProblemTypeCreate:
    """Tests for ProblemType.create() method."""

    def test_create_with_detail(self) -> None:
        problem = ProjectNotFound.create(detail="Project not found")

        assert problem.type == "/v1/problems/project-not-found"
        assert problem.title == "Not Found"
        assert problem.status == 404
        assert problem.detail == "Project not found"
        assert problem.instance is None

    def test_create_with_instance(self) -> None:
        problem = SubfolderNotFound.create(
            detail="Album subfolder '7' not found",
            instance="/api/media/projects/demo/album/7",
        )

        assert problem.status == 404
        assert problem.instance == "/api/media/projects/demo/album/7"

    @pytest.mark.parametrize(
        ("problem_type", "expected_id", "expected_status"),
        [
            (ProjectNotFound, "project-not-found", 404),
            (MediaNotFound, "media-not-found", 404),
            (SubfolderNotFound, "subfolder-not-found", 404),
            (InvalidMediaType, "invalid-media-type", 400),
            (UnprocessableContent, "unprocessable-content", 422),
        ],
    )
    def test_problem_type_attributes(
        self, problem_type, expected_id: str, expected_status: int
    ) -> None:
        problem = problem_type.create()
        assert problem.type == f"/v1/problems/{expected_id}"
        assert problem.status == expected_status


class TestProblemException:
    def test_exception_carries_problem(self) -> None:
        exc = InvalidMediaType.exception("Invalid media type", headers={"X-A": "1"})

        assert isinstance(exc, ProblemException)
        assert exc.problem.status == 400
        assert exc.headers == {"X-A": "1"}
        assert str(exc) == "Invalid media type"

    def test_exception_without_detail_uses_title(self) -> None:
        assert str(MediaNotFound.exception()) == "Not Found"


def test_problem_responses_merges_same_status() -> None:
    responses = problem_responses(ProjectNotFound, MediaNotFound, InvalidMediaType)

    assert set(responses) == {400, 404}
    assert responses[404]["model"] is ProblemDetail
    assert responses[404]["description"] == (
        f"{ProjectNotFound.description} / {MediaNotFound.description}"
    )
    assert responses[400]["description"] == InvalidMediaType.description


@pytest.mark.asyncio
async def test_problem_exception_handler_renders_problem_json() -> None:
    exc = ProjectNotFound.exception("Project not found")

    response = await problem_exception_handler(None, exc)  # type: ignore[arg-type]

    assert response.status_code == 404
    assert response.media_type == "application/problem+json"
    body = json.loads(response.body)
    assert body == {
        "type": "/v1/problems/project-not-found",
        "title": "Not Found",
        "status": 404,
        "detail": "Project not found",
    }


@pytest.mark.parametrize(
    "exc_type",
    [PlaybackError, DecoderNotReady, SchedulerError, ProtocolError, MediaLoadError],
)
def test_domain_errors_share_base(exc_type) -> None:
    assert issubclass(exc_type, LockstepException)


def test_decoder_not_ready_is_playback_error() -> None:
    with pytest.raises(PlaybackError):
        raise DecoderNotReady("not loaded")
