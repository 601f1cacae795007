"""Tests for the media catalog, timesync and utility endpoints."""

import pytest

import lockstep


@pytest.mark.asyncio
async def test_catalog(http_client):
    response = await http_client.get("/api/media")

    assert response.status_code == 200
    data = response.json()
    assert list(data["catalog"]) == ["demo", "second"]
    assert data["catalog"]["demo"]["poster"][0] == {
        "fileName": "0001.png",
        "url": "/media/demo/poster/0001.png",
    }
    assert data["summary"]["projectCount"] == 2
    assert data["summary"]["projects"][0]["hasPoster"] is True


@pytest.mark.asyncio
async def test_list_projects(http_client):
    response = await http_client.get("/api/media/projects")

    assert response.status_code == 200
    assert response.json() == {"projects": ["demo", "second"], "count": 2}


@pytest.mark.asyncio
async def test_list_thumbnails(http_client):
    response = await http_client.get("/api/media/thumbnails")

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 1
    assert data["thumbnails"][0] == {
        "fileName": "thumb.png",
        "url": "/media/demo/thumb.png",
        "projectName": "demo",
    }


@pytest.mark.asyncio
async def test_get_project(http_client):
    response = await http_client.get("/api/media/projects/demo")

    assert response.status_code == 200
    data = response.json()
    assert data["projectName"] == "demo"
    assert list(data["album"]) == ["1", "2", "10"]
    assert data["thumb"]["url"] == "/media/demo/thumb.png"


@pytest.mark.asyncio
async def test_get_project_not_found(http_client):
    response = await http_client.get("/api/media/projects/nope")

    assert response.status_code == 404
    assert response.headers["content-type"] == "application/problem+json"
    problem = response.json()
    assert problem["type"] == "/v1/problems/project-not-found"
    assert problem["detail"] == "Project not found"


@pytest.mark.asyncio
async def test_get_media_type(http_client):
    response = await http_client.get("/api/media/projects/demo/music")

    assert response.status_code == 200
    data = response.json()
    assert data["projectName"] == "demo"
    assert data["mediaType"] == "music"
    assert [f["fileName"] for f in data["data"]] == ["a.mp3", "b.mp3"]


@pytest.mark.asyncio
async def test_get_album_without_subfolder(http_client):
    response = await http_client.get("/api/media/projects/demo/album")

    assert response.status_code == 200
    assert list(response.json()["data"]) == ["1", "2", "10"]


@pytest.mark.asyncio
async def test_get_album_subfolder(http_client):
    response = await http_client.get("/api/media/projects/demo/album/2")

    assert response.status_code == 200
    assert response.json()["data"] == [
        {"fileName": "a.png", "url": "/media/demo/album/2/a.png"}
    ]


@pytest.mark.asyncio
async def test_subfolder_ignored_for_other_types(http_client):
    response = await http_client.get("/api/media/projects/demo/poster/whatever")

    assert response.status_code == 200
    assert len(response.json()["data"]) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("path", "status", "problem", "detail"),
    [
        (
            "/api/media/projects/demo/video",
            400,
            "invalid-media-type",
            "Invalid media type. Must be one of: poster, phone, music, billboard, album, thumb",
        ),
        (
            "/api/media/projects/second/poster",
            404,
            "media-not-found",
            "No poster found for this project",
        ),
        (
            "/api/media/projects/second/thumb",
            404,
            "media-not-found",
            "No thumb found for this project",
        ),
        (
            "/api/media/projects/demo/album/7",
            404,
            "subfolder-not-found",
            "Album subfolder '7' not found",
        ),
        (
            "/api/media/projects/second/billboard",
            404,
            "media-not-found",
            None,
        ),
        (
            "/api/media/projects/nope/poster",
            404,
            "project-not-found",
            "Project not found",
        ),
    ],
)
async def test_media_problems(http_client, path, status, problem, detail):
    response = await http_client.get(path)

    assert response.status_code == status
    body = response.json()
    assert body["type"] == f"/v1/problems/{problem}"
    assert body["status"] == status
    if detail is not None:
        assert body["detail"] == detail


@pytest.mark.asyncio
async def test_static_media_files(http_client):
    response = await http_client.get("/media/demo/thumb.png")

    assert response.status_code == 200
    assert response.content == b"\x89PNG"


@pytest.mark.asyncio
async def test_timesync_echoes_id(http_client):
    response = await http_client.post("/timesync", json={"id": "abc"})

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == "abc"
    assert data["result"] > 1_600_000_000_000


@pytest.mark.asyncio
async def test_timesync_rejects_bad_body(http_client):
    response = await http_client.post(
        "/timesync", content="[1, 2", headers={"content-type": "application/json"}
    )

    assert response.status_code == 422
    assert response.json()["type"] == "/v1/problems/unprocessable-content"


@pytest.mark.asyncio
async def test_health(http_client):
    response = await http_client.get("/v1/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_version(http_client):
    response = await http_client.get("/v1/version")

    assert response.status_code == 200
    assert response.json() == {"version": lockstep.__version__}


@pytest.mark.asyncio
async def test_status(http_client, server_app):
    await server_app.state.coordinator.handle_connect("sid-1")

    response = await http_client.get("/v1/status")

    assert response.status_code == 200
    assert response.json() == {
        "source": "demo/poster",
        "transport": "stopped",
        "clients": 1,
    }
