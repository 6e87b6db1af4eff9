"""Environment-backed settings. Missing credentials stop the service at startup."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_TEMP_DIR = "./temp"
DEFAULT_TRANSCRIPTION_MODEL = "whisper-1"
DEFAULT_ANALYSIS_MODEL = "gpt-4-turbo-preview"
DEFAULT_ANALYSIS_MAX_TOKENS = 1000
DEFAULT_ANALYSIS_TEMPERATURE = 0.7


class ConfigError(RuntimeError):
    """Required configuration is missing or malformed."""


@dataclass(frozen=True)
class Settings:
    openai_api_key: str
    gcs_bucket: str
    gcs_project: str | None = None
    gcs_signed_url_seconds: int = 0
    temp_dir: Path = Path(DEFAULT_TEMP_DIR)
    ytdlp_binary: str = "yt-dlp"
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    stage_timeout_seconds: float | None = None
    transcription_model: str = DEFAULT_TRANSCRIPTION_MODEL
    transcription_language: str | None = None
    analysis_model: str = DEFAULT_ANALYSIS_MODEL
    analysis_max_tokens: int = DEFAULT_ANALYSIS_MAX_TOKENS
    analysis_temperature: float = DEFAULT_ANALYSIS_TEMPERATURE
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    environment: str = "development"


def _env(name: str) -> str | None:
    value = os.environ.get(name, "").strip()
    return value or None


def _env_number(name: str, cast: type, default):
    raw = _env(name)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def parse_origins(raw: str | None) -> list[str]:
    """Comma-separated CORS origins; empty or unset means any origin."""
    origins = [origin.strip() for origin in (raw or "").split(",") if origin.strip()]
    return origins or ["*"]


def load_settings(*, env_file: str | None = None) -> Settings:
    """
    Build Settings from the process environment (after loading .env).

    Raises ConfigError when OPENAI_API_KEY or GCS_BUCKET is absent so the app
    refuses to start instead of failing on the first request.
    """
    load_dotenv(env_file)

    missing = [name for name in ("OPENAI_API_KEY", "GCS_BUCKET") if _env(name) is None]
    if missing:
        raise ConfigError(
            f"Missing required configuration: {', '.join(missing)}. Set it in backend/.env or the environment."
        )

    return Settings(
        openai_api_key=_env("OPENAI_API_KEY"),
        gcs_bucket=_env("GCS_BUCKET"),
        gcs_project=_env("GCS_PROJECT"),
        gcs_signed_url_seconds=_env_number("GCS_SIGNED_URL_SECONDS", int, 0),
        temp_dir=Path(_env("TEMP_DIR") or DEFAULT_TEMP_DIR),
        ytdlp_binary=_env("YTDLP_BINARY") or "yt-dlp",
        ffmpeg_binary=_env("FFMPEG_BINARY") or "ffmpeg",
        ffprobe_binary=_env("FFPROBE_BINARY") or "ffprobe",
        stage_timeout_seconds=_env_number("STAGE_TIMEOUT_SECONDS", float, None),
        transcription_model=_env("TRANSCRIPTION_MODEL") or DEFAULT_TRANSCRIPTION_MODEL,
        transcription_language=_env("TRANSCRIPTION_LANGUAGE"),
        analysis_model=_env("ANALYSIS_MODEL") or DEFAULT_ANALYSIS_MODEL,
        analysis_max_tokens=_env_number("ANALYSIS_MAX_TOKENS", int, DEFAULT_ANALYSIS_MAX_TOKENS),
        analysis_temperature=_env_number("ANALYSIS_TEMPERATURE", float, DEFAULT_ANALYSIS_TEMPERATURE),
        cors_origins=parse_origins(_env("CORS_ORIGINS")),
        log_level=(_env("LOG_LEVEL") or "INFO").upper(),
        environment=_env("APP_ENV") or "development",
    )
