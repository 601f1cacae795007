import logging

import pytest

from conftest import write_file
from lockstep.catalog import MediaCatalog, scan_project


@pytest.fixture
def catalog(media_root) -> MediaCatalog:
    return MediaCatalog.load(media_root)


def test_projects_are_sorted_and_legacy_folders_skipped(catalog):
    assert catalog.project_names() == ["demo", "second"]


def test_project_structure(catalog):
    demo = catalog.get_project("demo")

    assert [f.file_name for f in demo.poster] == ["0001.png", "0002.png", "0003.png"]
    assert demo.poster[0].url == "/media/demo/poster/0001.png"
    assert [f.file_name for f in demo.phone] == ["clip.mp4"]
    assert [f.file_name for f in demo.music] == ["a.mp3", "b.mp3"]
    assert len(demo.billboard) == 2
    assert demo.thumb.url == "/media/demo/thumb.png"


def test_album_subfolders_in_numeric_order(catalog):
    album = catalog.get_project("demo").album

    assert list(album) == ["1", "2", "10"]
    assert [f.url for f in album["1"]] == [
        "/media/demo/album/1/a.png",
        "/media/demo/album/1/b.png",
    ]


def test_missing_folders_are_empty(catalog):
    second = catalog.get_project("second")

    assert second.poster == []
    assert second.music == []
    assert second.thumb is None
    assert list(second.album) == ["1"]
    assert catalog.get_project("nope") is None


def test_music_only_accepts_mp3(tmp_path):
    write_file(tmp_path / "p" / "music" / "track.mp3")
    write_file(tmp_path / "p" / "music" / "cover.png")

    project = scan_project(tmp_path / "p")

    assert [f.file_name for f in project.music] == ["track.mp3"]
    assert project.album is None


def test_thumbnails(catalog):
    thumbnails = catalog.thumbnails()

    assert len(thumbnails) == 1
    assert thumbnails[0].project_name == "demo"
    assert thumbnails[0].file_name == "thumb.png"


def test_summary(catalog):
    summary = catalog.summary()

    assert summary.project_count == 2
    demo, second = summary.projects
    assert demo.has_poster and demo.has_thumb
    assert demo.counts.poster == 3
    assert demo.counts.album == 3
    assert not second.has_poster
    assert second.has_album


@pytest.mark.parametrize(
    ("folders", "expected"),
    [
        (["poster/1.png", "phone/1.mp4"], "first/poster"),
        (["phone/1.mp4", "billboard/1.png"], "first/phone"),
        (["billboard/1.png", "album/1/1.png"], "first/billboard"),
        (["album/3/1.png"], "first/album/1"),
        (["music/1.mp3"], "0"),
        ([], "0"),
    ],
)
def test_default_source(tmp_path, folders, expected):
    (tmp_path / "first").mkdir()
    for relative in folders:
        write_file(tmp_path / "first" / relative)
    write_file(tmp_path / "later" / "poster" / "1.png")

    assert MediaCatalog.load(tmp_path).default_source() == expected


def test_default_source_without_projects(tmp_path):
    assert MediaCatalog.load(tmp_path).default_source() == "0"


def test_missing_root(tmp_path, caplog):
    with caplog.at_level(logging.WARNING, logger="lockstep.catalog"):
        catalog = MediaCatalog.load(tmp_path / "missing")

    assert catalog.projects == {}
    assert "Media directory not found" in caplog.text


def test_rescan_picks_up_new_files(catalog, media_root):
    write_file(media_root / "demo" / "poster" / "0004.png")
    write_file(media_root / "third" / "phone" / "x.mp4")

    catalog.scan()

    assert len(catalog.get_project("demo").poster) == 4
    assert catalog.project_names() == ["demo", "second", "third"]
