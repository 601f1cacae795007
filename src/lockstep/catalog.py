"""Media catalog: scan the media directory into projects.

Layout under the media root::

    <project>/
        poster/      png sequence or mp4
        phone/       png sequence or mp4
        billboard/   png sequence or mp4
        music/       mp3
        album/<n>/   png sequence or mp4 per numbered subfolder
        thumb.png

Top-level ``mp4`` and ``png_sequence`` folders belong to an older layout and
are skipped.
"""

import logging
from pathlib import Path

from lockstep.schemas import (
    MediaFile,
    MediaSummary,
    Project,
    ProjectCounts,
    ProjectSummary,
    Thumbnail,
)

log = logging.getLogger(__name__)

MEDIA_TYPES = ("poster", "phone", "music", "billboard", "album", "thumb")
SKIPPED_FOLDERS = frozenset({"mp4", "png_sequence"})
VISUAL_SUFFIXES = (".png", ".mp4")
MUSIC_SUFFIXES = (".mp3",)

# default selection order; album entries name a subfolder
SOURCE_PRIORITY = ("poster", "phone", "billboard", "album/1")
FALLBACK_SOURCE = "0"


def _scan_files(directory: Path, url_prefix: str, suffixes: tuple[str, ...]) -> list[MediaFile]:
    if not directory.is_dir():
        return []
    names = sorted(
        p.name for p in directory.iterdir() if p.is_file() and p.name.endswith(suffixes)
    )
    return [MediaFile(file_name=name, url=f"{url_prefix}/{name}") for name in names]


def _album_order(name: str) -> tuple[int, int, str]:
    if name.isdigit():
        return (0, int(name), name)
    return (1, 0, name)


def _scan_album(directory: Path, url_prefix: str) -> dict[str, list[MediaFile]] | None:
    if not directory.is_dir():
        return None
    subfolders = sorted(
        (p.name for p in directory.iterdir() if p.is_dir()), key=_album_order
    )
    return {
        name: _scan_files(directory / name, f"{url_prefix}/{name}", VISUAL_SUFFIXES)
        for name in subfolders
    }


def scan_project(path: Path) -> Project:
    """Build the catalog entry for one project folder."""
    url_base = f"/media/{path.name}"
    thumb = None
    if (path / "thumb.png").is_file():
        thumb = MediaFile(file_name="thumb.png", url=f"{url_base}/thumb.png")
    return Project(
        name=path.name,
        poster=_scan_files(path / "poster", f"{url_base}/poster", VISUAL_SUFFIXES),
        phone=_scan_files(path / "phone", f"{url_base}/phone", VISUAL_SUFFIXES),
        music=_scan_files(path / "music", f"{url_base}/music", MUSIC_SUFFIXES),
        billboard=_scan_files(path / "billboard", f"{url_base}/billboard", VISUAL_SUFFIXES),
        album=_scan_album(path / "album", f"{url_base}/album"),
        thumb=thumb,
    )


class MediaCatalog:
    """In-memory index of the media root, rebuilt by :meth:`scan`."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.projects: dict[str, Project] = {}

    @classmethod
    def load(cls, root: str | Path) -> "MediaCatalog":
        catalog = cls(root)
        catalog.scan()
        return catalog

    def scan(self) -> None:
        if not self.root.is_dir():
            log.warning(f"Media directory not found: {self.root}")
            self.projects = {}
            return
        folders = sorted(
            p for p in self.root.iterdir() if p.is_dir() and p.name not in SKIPPED_FOLDERS
        )
        self.projects = {p.name: scan_project(p) for p in folders}
        log.info(f"Media catalog loaded: {len(self.projects)} project(s)")
        for s in self.summary().projects:
            log.info(
                f"  - {s.name}: poster({s.counts.poster}), phone({s.counts.phone}), "
                f"music({s.counts.music}), billboard({s.counts.billboard}), "
                f"album({s.counts.album})"
            )

    def project_names(self) -> list[str]:
        return list(self.projects)

    def get_project(self, name: str) -> Project | None:
        return self.projects.get(name)

    def thumbnails(self) -> list[Thumbnail]:
        return [
            Thumbnail(project_name=name, **project.thumb.model_dump())
            for name, project in self.projects.items()
            if project.thumb is not None
        ]

    def summary(self) -> MediaSummary:
        projects = []
        for name, p in self.projects.items():
            album_count = len(p.album) if p.album else 0
            projects.append(
                ProjectSummary(
                    name=name,
                    has_poster=bool(p.poster),
                    has_phone=bool(p.phone),
                    has_music=bool(p.music),
                    has_billboard=bool(p.billboard),
                    has_album=album_count > 0,
                    has_thumb=p.thumb is not None,
                    counts=ProjectCounts(
                        poster=len(p.poster),
                        phone=len(p.phone),
                        music=len(p.music),
                        billboard=len(p.billboard),
                        album=album_count,
                    ),
                )
            )
        return MediaSummary(project_count=len(projects), projects=projects)

    def default_source(self) -> str:
        """First available source of the first project, or ``"0"``."""
        if not self.projects:
            return FALLBACK_SOURCE
        project = next(iter(self.projects.values()))
        for candidate in SOURCE_PRIORITY:
            media_type = candidate.partition("/")[0]
            if getattr(project, media_type):
                return f"{project.name}/{candidate}"
        return FALLBACK_SOURCE
