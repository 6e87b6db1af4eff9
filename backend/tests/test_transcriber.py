from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from services.errors import TranscriptionError
from services.transcriber import TranscriptionClient, is_supported_audio


def _client(create: AsyncMock) -> MagicMock:
    client = MagicMock()
    client.audio.transcriptions.create = create
    return client


def test_is_supported_audio() -> None:
    assert is_supported_audio(Path("a.wav"))
    assert is_supported_audio(Path("a.M4A"))
    assert not is_supported_audio(Path("a.flac"))


@pytest.mark.anyio
async def test_transcribe_returns_stripped_text(tmp_path: Path) -> None:
    audio = tmp_path / "s-audio.wav"
    audio.write_bytes(b"RIFF")
    create = AsyncMock(return_value="  hello world \n")
    transcriber = TranscriptionClient(_client(create), language="en")

    text = await transcriber.transcribe(audio)

    assert text == "hello world"
    kwargs = create.await_args.kwargs
    assert kwargs["model"] == "whisper-1"
    assert kwargs["response_format"] == "text"
    assert kwargs["language"] == "en"


@pytest.mark.anyio
async def test_transcribe_accepts_object_response(tmp_path: Path) -> None:
    audio = tmp_path / "s-audio.wav"
    audio.write_bytes(b"RIFF")
    create = AsyncMock(return_value=MagicMock(text="from object"))
    assert await TranscriptionClient(_client(create)).transcribe(audio) == "from object"
    assert "language" not in create.await_args.kwargs


@pytest.mark.anyio
async def test_missing_file_fails_before_network(tmp_path: Path) -> None:
    create = AsyncMock()
    with pytest.raises(TranscriptionError, match="not found"):
        await TranscriptionClient(_client(create)).transcribe(tmp_path / "nope.wav")
    create.assert_not_awaited()


@pytest.mark.anyio
async def test_unsupported_format_fails_before_network(tmp_path: Path) -> None:
    audio = tmp_path / "s.flac"
    audio.write_bytes(b"fLaC")
    create = AsyncMock()
    with pytest.raises(TranscriptionError, match="Unsupported audio format"):
        await TranscriptionClient(_client(create)).transcribe(audio)
    create.assert_not_awaited()


@pytest.mark.anyio
async def test_api_error_becomes_transcription_error(tmp_path: Path) -> None:
    audio = tmp_path / "s.wav"
    audio.write_bytes(b"RIFF")
    request = httpx.Request("POST", "https://api.openai.com/v1/audio/transcriptions")
    create = AsyncMock(side_effect=openai.APIConnectionError(request=request))
    with pytest.raises(TranscriptionError, match="Failed to transcribe audio") as excinfo:
        await TranscriptionClient(_client(create)).transcribe(audio)
    assert isinstance(excinfo.value.cause, openai.APIConnectionError)


@pytest.mark.anyio
async def test_blank_transcript_is_an_error(tmp_path: Path) -> None:
    audio = tmp_path / "s.wav"
    audio.write_bytes(b"RIFF")
    with pytest.raises(TranscriptionError, match="no speech"):
        await TranscriptionClient(_client(AsyncMock(return_value="   "))).transcribe(audio)
