"""Audio extraction and probing via the ffmpeg / ffprobe binaries."""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path

from models import MediaInfo
from services.errors import ExtractionError
from services.process import CommandTimeout, run_command

logger = logging.getLogger(__name__)

# Whisper-friendly target: 16 kHz mono signed 16-bit PCM in a WAV container.
AUDIO_CODEC = "pcm_s16le"
AUDIO_CHANNELS = 1
AUDIO_SAMPLE_RATE = 16000
SUPPORTED_VIDEO_FORMATS = (".mp4", ".avi", ".mov", ".mkv", ".webm", ".flv", ".wmv")
PROGRESS_LOG_STEP = 25


def is_supported_video(path: Path) -> bool:
    return Path(path).suffix.lower() in SUPPORTED_VIDEO_FORMATS


def _as_int(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_float(value) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class ProgressTracker:
    """Turns ffmpeg `-progress` key=value lines into percent-complete log lines."""

    def __init__(self, duration: float | None, *, step: int = PROGRESS_LOG_STEP) -> None:
        self._duration = duration
        self._step = step
        self._next = step
        self.percent: float | None = None

    def feed(self, line: str) -> None:
        key, _, value = line.partition("=")
        # out_time_ms is in microseconds despite its name.
        if key != "out_time_ms" or not self._duration:
            return
        micros = _as_int(value)
        if micros is None:
            return
        self.percent = min(100.0, micros / 1_000_000 / self._duration * 100)
        while self.percent >= self._next and self._next <= 100:
            logger.info("[audio] Extraction progress: %d%%", self._next)
            self._next += self._step


class AudioExtractor:
    def __init__(
        self,
        temp_dir: Path,
        *,
        ffmpeg_binary: str = "ffmpeg",
        ffprobe_binary: str = "ffprobe",
        timeout: float | None = None,
    ) -> None:
        self._temp_dir = Path(temp_dir)
        self._ffmpeg = ffmpeg_binary
        self._ffprobe = ffprobe_binary
        self._timeout = timeout

    def build_command(self, video_path: Path, audio_path: Path) -> list[str]:
        return [
            self._ffmpeg,
            "-y",
            "-i", str(video_path),
            "-vn",
            "-acodec", AUDIO_CODEC,
            "-ac", str(AUDIO_CHANNELS),
            "-ar", str(AUDIO_SAMPLE_RATE),
            "-f", "wav",
            "-progress", "pipe:1",
            "-nostats",
            str(audio_path),
        ]

    async def probe(self, path: Path) -> MediaInfo:
        """Read format and first audio stream details with ffprobe."""
        args = [
            self._ffprobe,
            "-v", "error",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            str(path),
        ]
        try:
            result = await run_command(args, timeout=self._timeout)
        except (FileNotFoundError, CommandTimeout) as exc:
            raise ExtractionError(f"Failed to probe media: {exc}", cause=exc) from exc
        if not result.ok:
            raise ExtractionError(f"Failed to probe media: {result.stderr_tail(lines=1)}")

        try:
            metadata = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as exc:
            raise ExtractionError("Failed to probe media: unreadable ffprobe output", cause=exc) from exc

        audio = next((s for s in metadata.get("streams", []) if s.get("codec_type") == "audio"), None)
        if audio is None:
            raise ExtractionError(f"No audio stream found in {Path(path).name}")

        fmt = metadata.get("format", {})
        return MediaInfo(
            duration=_as_float(fmt.get("duration")),
            codec=audio.get("codec_name"),
            channels=_as_int(audio.get("channels")),
            sample_rate=_as_int(audio.get("sample_rate")),
            bit_rate=_as_int(fmt.get("bit_rate")),
            size=_as_int(fmt.get("size")),
        )

    async def _input_duration(self, video_path: Path) -> float | None:
        try:
            return (await self.probe(video_path)).duration
        except ExtractionError as exc:
            # Progress reporting only; ffmpeg itself decides whether the input is usable.
            logger.warning("[audio] Could not read input duration, progress disabled: %s", exc)
            return None

    async def extract(self, video_path: Path, *, file_id: str | None = None) -> Path:
        """Convert `video_path` into a normalized WAV next to it in temp_dir and return its path."""
        video_path = Path(video_path)
        if not video_path.exists():
            raise ExtractionError(f"Video file not found: {video_path}")
        if not is_supported_video(video_path):
            logger.warning("[audio] Unusual video extension %s; letting ffmpeg try anyway", video_path.suffix)

        self._temp_dir.mkdir(parents=True, exist_ok=True)
        audio_path = self._temp_dir / f"{file_id or uuid.uuid4().hex}.wav"
        tracker = ProgressTracker(await self._input_duration(video_path))
        logger.info("[audio] Extracting audio %s -> %s", video_path, audio_path)

        try:
            result = await run_command(
                self.build_command(video_path, audio_path),
                timeout=self._timeout,
                on_stdout_line=tracker.feed,
            )
        except FileNotFoundError as exc:
            raise ExtractionError(f"Failed to extract audio: {self._ffmpeg} is not installed", cause=exc) from exc
        except CommandTimeout as exc:
            audio_path.unlink(missing_ok=True)
            raise ExtractionError(f"Failed to extract audio: {exc}", cause=exc) from exc

        if not result.ok:
            audio_path.unlink(missing_ok=True)
            logger.error("[audio] ffmpeg exited with %d: %s", result.returncode, result.stderr_tail())
            raise ExtractionError(f"Failed to extract audio: {result.stderr_tail(lines=1)}")
        if not audio_path.exists():
            raise ExtractionError("Failed to extract audio: ffmpeg produced no output file")

        logger.info("[audio] Audio extracted: %s (%s, %d Hz mono)", audio_path, AUDIO_CODEC, AUDIO_SAMPLE_RATE)
        return audio_path
