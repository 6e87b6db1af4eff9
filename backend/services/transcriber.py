"""Speech-to-text through the OpenAI Whisper API."""

from __future__ import annotations

import logging
from pathlib import Path

import openai
from openai import AsyncOpenAI

from services.errors import TranscriptionError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "whisper-1"
SUPPORTED_AUDIO_FORMATS = (".mp3", ".mp4", ".mpeg", ".mpga", ".m4a", ".wav", ".webm")


def is_supported_audio(path: Path) -> bool:
    return Path(path).suffix.lower() in SUPPORTED_AUDIO_FORMATS


class TranscriptionClient:
    """
    Single-attempt Whisper transcription.

    The OpenAI client should be built with max_retries=0; a failed call surfaces
    as TranscriptionError and the pipeline run ends there.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model: str = DEFAULT_MODEL,
        language: str | None = None,
    ) -> None:
        self._client = client
        self._model = model
        self._language = language

    async def transcribe(self, audio_path: Path, *, language: str | None = None) -> str:
        audio_path = Path(audio_path)
        if not audio_path.exists():
            raise TranscriptionError(f"Audio file not found: {audio_path}")
        if not is_supported_audio(audio_path):
            raise TranscriptionError(f"Unsupported audio format: {audio_path.suffix or '(none)'}")

        language = language or self._language
        size_mb = audio_path.stat().st_size / 1024 / 1024
        logger.info(
            "[transcriber] Sending %s (%.2f MB) to %s language=%s",
            audio_path.name,
            size_mb,
            self._model,
            language,
        )

        options = {"model": self._model, "response_format": "text"}
        if language:
            options["language"] = language

        try:
            with audio_path.open("rb") as audio_file:
                transcription = await self._client.audio.transcriptions.create(file=audio_file, **options)
        except openai.OpenAIError as exc:
            logger.error("[transcriber] Whisper request failed: %s", exc)
            raise TranscriptionError(f"Failed to transcribe audio: {exc}", cause=exc) from exc

        # response_format="text" yields a plain string; older SDKs wrap it in an object.
        text = transcription if isinstance(transcription, str) else getattr(transcription, "text", "")
        text = (text or "").strip()
        if not text:
            raise TranscriptionError("Failed to transcribe audio: no speech was recognised")

        logger.info("[transcriber] Transcribed %d chars: %.100s...", len(text), text)
        return text
