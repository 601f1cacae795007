"""Turn a source id into playable units using the server's media catalog.

A source id is ``<project>/<mediaType>[/<subfolder>]`` and maps directly onto
``GET /api/media/projects/<source id>``.
"""

import logging
import typing as t
from pathlib import PurePosixPath

import httpx

from lockstep.exceptions import MediaLoadError
from lockstep.units import FrameSequenceUnit, PlayableUnit, StreamUnit

log = logging.getLogger(__name__)

FRAME_SUFFIXES = {".png", ".jpg", ".jpeg", ".webp"}
STREAM_SUFFIXES = {".mp4", ".webm", ".mov", ".mp3", ".wav", ".ogg"}


def parse_source(source: str) -> tuple[str, str, str | None]:
    """Split a source id into project, media type and optional subfolder."""
    parts = [p for p in source.split("/") if p]
    if len(parts) not in (2, 3):
        raise MediaLoadError(
            f"Invalid source '{source}', expected '<project>/<mediaType>[/<subfolder>]'"
        )
    project, media_type = parts[0], parts[1]
    subfolder = parts[2] if len(parts) == 3 else None
    return project, media_type, subfolder


class MediaLoader:
    """Fetch catalog entries over HTTP and build units from them.

    Parameters
    ----------
    base_url : str
        Server URL; relative file URLs are resolved against it.
    master : bool
        Visual streams are unmuted only on the timing-reference device.
    frame_rate : int
        Frame rate given to frame-sequence units.
    http : httpx.AsyncClient | None
        Client to use; one is created (and owned) if omitted.
    stream_duration : float | None
        Duration reported for every stream right away. Headless devices have
        no decoder to report it, so without this their streams never become
        ready.
    """

    def __init__(
        self,
        base_url: str,
        master: bool = False,
        frame_rate: int = 24,
        http: httpx.AsyncClient | None = None,
        stream_duration: float | None = None,
    ) -> None:
        if stream_duration is not None and stream_duration <= 0:
            raise ValueError(f"stream_duration must be positive, got {stream_duration}")
        self.base_url = base_url.rstrip("/")
        self.stream_duration = stream_duration
        self.master = master
        self.frame_rate = frame_rate
        self._http = http
        self._owns_http = http is None

    async def _get_files(self, path: str) -> list[dict[str, t.Any]]:
        if self._http is None:
            self._http = httpx.AsyncClient()
        url = f"{self.base_url}/api/media/projects/{path}"
        try:
            response = await self._http.get(url)
        except httpx.HTTPError as e:
            raise MediaLoadError(f"Could not reach media catalog for '{path}': {e}") from e
        if response.status_code != 200:
            try:
                detail = response.json().get("detail")
            except (ValueError, AttributeError):
                detail = response.text
            raise MediaLoadError(
                f"Catalog lookup for '{path}' failed ({response.status_code}): {detail}"
            )
        try:
            data = response.json().get("data")
        except (ValueError, AttributeError) as e:
            raise MediaLoadError(f"Unreadable catalog response for '{path}'") from e
        if not isinstance(data, list):
            raise MediaLoadError(f"'{path}' is not a list of playable files")
        return data

    def _absolute(self, url: str) -> str:
        if url.startswith(("http://", "https://")):
            return url
        return f"{self.base_url}{url}"

    async def load(self, source: str) -> tuple[PlayableUnit, PlayableUnit | None]:
        """Build the visual unit for ``source`` and, for billboards, its audio."""
        project, media_type, _ = parse_source(source)
        files = await self._get_files(source)
        try:
            unit = self._build_visual(source, files)
        except (KeyError, TypeError, ValueError) as e:
            raise MediaLoadError(f"Malformed catalog entry for '{source}': {e!r}") from e
        audio = None
        if media_type == "billboard":
            audio = await self.load_music(project)
        log.info(
            f"Loaded {source}: {unit.kind.value} with {len(files)} file(s)"
            + (", with music" if audio is not None else "")
        )
        return unit, audio

    async def load_music(self, project: str) -> StreamUnit | None:
        """First music track of ``project``, or None if it has none."""
        try:
            files = await self._get_files(f"{project}/music")
        except MediaLoadError as e:
            log.info(f"No music for project {project}: {e}")
            return None
        if not files:
            return None
        try:
            url = self._absolute(files[0]["url"])
        except (KeyError, TypeError, AttributeError) as e:
            raise MediaLoadError(f"Malformed music entry for '{project}': {e!r}") from e
        return self._stream(f"{project}/music", url, muted=False)

    def _build_visual(self, source: str, files: list[dict[str, t.Any]]) -> PlayableUnit:
        if not files:
            raise MediaLoadError(f"No files for source '{source}'")
        suffixes = {PurePosixPath(f["fileName"]).suffix.lower() for f in files}
        if suffixes <= FRAME_SUFFIXES:
            return FrameSequenceUnit(
                source,
                frames=[self._absolute(f["url"]) for f in files],
                frame_rate=self.frame_rate,
            )
        streams = [
            f for f in files
            if PurePosixPath(f["fileName"]).suffix.lower() in STREAM_SUFFIXES
        ]
        if streams:
            return self._stream(
                source, self._absolute(streams[0]["url"]), muted=not self.master
            )
        raise MediaLoadError(
            f"Unsupported media for source '{source}': {', '.join(sorted(suffixes))}"
        )

    def _stream(self, source_id: str, url: str, muted: bool) -> StreamUnit:
        unit = StreamUnit(source_id, url=url, muted=muted)
        if self.stream_duration is not None:
            unit.load(self.stream_duration)
        return unit

    async def close(self) -> None:
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None
