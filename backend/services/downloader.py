"""Fetch a single video from a social-media URL with the yt-dlp CLI."""

from __future__ import annotations

import logging
import re
import uuid
from pathlib import Path

from services.errors import DownloadError
from services.process import CommandTimeout, run_command

logger = logging.getLogger(__name__)

# Prefer an mp4 single-file format, fall back to whatever is best.
DOWNLOAD_FORMAT = "best[ext=mp4]/best"
# yt-dlp leftovers that never count as a finished download.
PARTIAL_SUFFIXES = (".part", ".ytdl", ".temp")

_PLATFORM_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("YouTube", re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/|youtube\.com/shorts/)")),
    ("Instagram", re.compile(r"(?:instagram\.com/p/|instagram\.com/reel/|instagram\.com/tv/)")),
    ("Twitter/X", re.compile(r"(?:twitter\.com/.*/status/|x\.com/.*/status/)")),
    ("TikTok", re.compile(r"(?:tiktok\.com/@.*/video/|vm\.tiktok\.com/)")),
    ("Facebook", re.compile(r"(?:facebook\.com/.*/videos/|fb\.watch/)")),
    ("LinkedIn", re.compile(r"(?:linkedin\.com/posts/|linkedin\.com/feed/update/)")),
    ("Snapchat", re.compile(r"(?:snapchat\.com/spotlight/)")),
]

SUPPORTED_PLATFORMS = [name for name, _ in _PLATFORM_PATTERNS]


def detect_platform(url: str) -> str:
    """Classify a URL by source platform. Informational only; "Unknown" is not an error."""
    for name, pattern in _PLATFORM_PATTERNS:
        if pattern.search(url):
            return name
    return "Unknown"


class MediaAcquirer:
    def __init__(
        self,
        temp_dir: Path,
        *,
        binary: str = "yt-dlp",
        timeout: float | None = None,
    ) -> None:
        self._temp_dir = Path(temp_dir)
        self._binary = binary
        self._timeout = timeout

    @property
    def temp_dir(self) -> Path:
        return self._temp_dir

    def ensure_temp_dir(self) -> None:
        self._temp_dir.mkdir(parents=True, exist_ok=True)
        logger.info("[downloader] Temp directory ensured: %s", self._temp_dir)

    def build_command(self, url: str, file_id: str) -> list[str]:
        output_template = str(self._temp_dir / f"{file_id}.%(ext)s")
        return [
            self._binary,
            url,
            "--output", output_template,
            "--format", DOWNLOAD_FORMAT,
            "--no-playlist",
            "--no-progress",
        ]

    def find_output(self, file_id: str) -> Path | None:
        """The finished file whose stem is file_id, ignoring partial downloads."""
        for candidate in sorted(self._temp_dir.glob(f"{file_id}.*")):
            if candidate.is_file() and not candidate.name.endswith(PARTIAL_SUFFIXES):
                return candidate
        return None

    def discard(self, file_id: str) -> None:
        for leftover in self._temp_dir.glob(f"{file_id}.*"):
            try:
                leftover.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("[downloader] Could not remove leftover %s: %s", leftover, exc)

    async def download(self, url: str, *, file_id: str | None = None) -> Path:
        """
        Download `url` to <temp_dir>/<file_id>.<ext> and return the path.

        The extension is whatever yt-dlp picked for the content. Raises
        DownloadError when yt-dlp fails or exits cleanly without producing a file.
        """
        file_id = file_id or uuid.uuid4().hex
        platform = detect_platform(url)
        logger.info("[downloader] Downloading url=%s platform=%s file_id=%s", url, platform, file_id)
        self.ensure_temp_dir()

        try:
            result = await run_command(self.build_command(url, file_id), timeout=self._timeout)
        except FileNotFoundError as exc:
            raise DownloadError(f"Failed to download video: {self._binary} is not installed", cause=exc) from exc
        except CommandTimeout as exc:
            self.discard(file_id)
            raise DownloadError(f"Failed to download video: {exc}", cause=exc) from exc

        if not result.ok:
            self.discard(file_id)
            logger.error("[downloader] yt-dlp exited with %d: %s", result.returncode, result.stderr_tail())
            raise DownloadError(f"Failed to download video: {result.stderr_tail(lines=1)}")

        path = self.find_output(file_id)
        if path is None:
            self.discard(file_id)
            raise DownloadError("Failed to download video: Downloaded file not found")

        logger.info("[downloader] Downloaded %s (%d bytes, platform=%s)", path, path.stat().st_size, platform)
        return path
