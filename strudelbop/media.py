from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import yt_dlp
from pydantic import BaseModel, ConfigDict, ValidationError
from yt_dlp.utils import download_range_func, parse_duration

from .errors import InvalidInputError, MediaFetchError

_LOGGER = logging.getLogger("strudelbop.media")
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")
_MAX_NAME_CHARS = 50
_AUDIO_EXTENSIONS = (".mp3", ".wav")
SAMPLES_URL_PREFIX = "/samples"

DownloaderFactory = Callable[[dict[str, Any]], Any]

_BASE_OPTIONS: Mapping[str, Any] = {
    "quiet": True,
    "no_warnings": True,
    "noplaylist": True,
}


class MediaInfo(BaseModel):
    title: str | None = None
    duration_seconds: float | None = None
    thumbnail_url: str | None = None
    uploader: str | None = None
    url: str

    model_config = ConfigDict(frozen=True, extra="forbid")


class DownloadedSample(BaseModel):
    filename: str
    relative_path: str
    size_bytes: int

    model_config = ConfigDict(frozen=True, extra="forbid")


class _YtDlpInfo(BaseModel):
    title: str | None = None
    duration: float | None = None
    thumbnail: str | None = None
    uploader: str | None = None

    model_config = ConfigDict(extra="ignore")


def safe_sample_name(filename: str | None, *, now_ms: int | None = None) -> str:
    if not filename:
        stamp = now_ms if now_ms is not None else int(time.time() * 1000)
        filename = f"sample_{stamp}"
    return _UNSAFE_CHARS.sub("_", filename)[:_MAX_NAME_CHARS]


def _seconds(label: str, value: str) -> float:
    seconds = parse_duration(value.strip())
    if seconds is None or seconds < 0:
        raise InvalidInputError(f"Invalid {label} timestamp: {value!r}")
    return float(seconds)


def clip_range(start: str | None, end: str | None) -> tuple[float, float] | None:
    """Parse a ``start``/``end`` pair like ``0:05``/``0:12`` into seconds.

    A clip is only cut when both ends are given; otherwise the whole track is kept.
    """

    if not start or not end:
        return None
    begin, finish = _seconds("start", start), _seconds("end", end)
    if finish <= begin:
        raise InvalidInputError(f"Clip end {end!r} must come after start {start!r}")
    return begin, finish


class MediaService:
    """Fetches audio clips from external media URLs with yt-dlp."""

    def __init__(
        self,
        samples_dir: Path,
        *,
        ffmpeg_path: str = "ffmpeg",
        downloader: DownloaderFactory | None = None,
    ) -> None:
        self._samples_dir = samples_dir
        self._ffmpeg_path = ffmpeg_path
        self._downloader = downloader or yt_dlp.YoutubeDL

    @property
    def samples_dir(self) -> Path:
        return self._samples_dir

    async def fetch_info(self, url: str) -> MediaInfo:
        if not url or not url.strip():
            raise InvalidInputError("URL is required")
        options = {**_BASE_OPTIONS, "skip_download": True}
        raw = await self._extract(url, options, download=False)
        try:
            info = _YtDlpInfo.model_validate(raw)
        except ValidationError as exc:
            _LOGGER.warning("Unparseable yt-dlp info for %s", url, exc_info=True)
            raise MediaFetchError("Failed to parse info") from exc
        return MediaInfo(
            title=info.title,
            duration_seconds=info.duration,
            thumbnail_url=info.thumbnail,
            uploader=info.uploader,
            url=url,
        )

    async def download(
        self,
        url: str,
        *,
        start: str | None = None,
        end: str | None = None,
        filename: str | None = None,
    ) -> DownloadedSample:
        if not url or not url.strip():
            raise InvalidInputError("URL is required")
        clip = clip_range(start, end)
        self._samples_dir.mkdir(parents=True, exist_ok=True)
        safe_name = safe_sample_name(filename)
        output_path = self._samples_dir / f"{safe_name}.mp3"

        options: dict[str, Any] = {
            **_BASE_OPTIONS,
            "format": "bestaudio/best",
            "outtmpl": str(self._samples_dir / f"{safe_name}.%(ext)s"),
            "ffmpeg_location": self._ffmpeg_path,
            "postprocessors": [
                {"key": "FFmpegExtractAudio", "preferredcodec": "mp3", "preferredquality": "0"}
            ],
        }
        if clip is not None:
            options["download_ranges"] = download_range_func(None, [clip])
            options["force_keyframes_at_cuts"] = True

        _LOGGER.info("Downloading %s to %s (clip=%s)", url, output_path.name, clip)
        await self._extract(url, options, download=True)

        if output_path.exists():
            return self._describe(output_path)
        # yt-dlp may pick a different extension than requested.
        matches = sorted(path for path in self._samples_dir.iterdir() if safe_name in path.name)
        if not matches:
            raise MediaFetchError("Download completed but file not found")
        return self._describe(matches[0])

    def list_samples(self) -> list[DownloadedSample]:
        if not self._samples_dir.exists():
            return []
        return [
            self._describe(path)
            for path in sorted(self._samples_dir.iterdir())
            if path.suffix.lower() in _AUDIO_EXTENSIONS
        ]

    def delete_sample(self, filename: str) -> None:
        if not filename or Path(filename).name != filename:
            raise InvalidInputError(f"Invalid sample filename: {filename!r}")
        path = self._samples_dir / filename
        if not path.exists():
            raise MediaFetchError(f"Sample not found: {filename}")
        path.unlink()
        _LOGGER.info("Deleted sample %s", filename)

    async def _extract(
        self, url: str, options: dict[str, Any], *, download: bool
    ) -> Mapping[str, Any]:
        def run() -> Any:
            with self._downloader(options) as ydl:
                return ydl.extract_info(url, download=download)

        try:
            info = await asyncio.to_thread(run)
        except Exception as exc:
            _LOGGER.warning("yt-dlp failed for %s: %s", url, exc)
            raise MediaFetchError(str(exc).strip() or "Download failed") from exc
        if not isinstance(info, Mapping):
            raise MediaFetchError(f"yt-dlp returned no info for {url}")
        return info

    @staticmethod
    def _describe(path: Path) -> DownloadedSample:
        return DownloadedSample(
            filename=path.name,
            relative_path=f"{SAMPLES_URL_PREFIX}/{path.name}",
            size_bytes=path.stat().st_size,
        )
