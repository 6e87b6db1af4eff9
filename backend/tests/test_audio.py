import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from services.audio import AudioExtractor, ProgressTracker, is_supported_video
from services.errors import ExtractionError
from services.process import CommandResult

PROBE_OUTPUT = json.dumps(
    {
        "streams": [
            {"codec_type": "video", "codec_name": "h264"},
            {"codec_type": "audio", "codec_name": "aac", "channels": 2, "sample_rate": "44100"},
        ],
        "format": {"duration": "12.5", "bit_rate": "128000", "size": "204800"},
    }
)


def test_is_supported_video() -> None:
    assert is_supported_video(Path("clip.MP4"))
    assert is_supported_video(Path("clip.webm"))
    assert not is_supported_video(Path("clip.txt"))


def test_build_command_targets_mono_16k_pcm(tmp_path: Path) -> None:
    extractor = AudioExtractor(tmp_path)
    args = extractor.build_command(Path("in.mp4"), Path("out.wav"))
    assert args[0] == "ffmpeg"
    assert args[args.index("-acodec") + 1] == "pcm_s16le"
    assert args[args.index("-ac") + 1] == "1"
    assert args[args.index("-ar") + 1] == "16000"
    assert "-vn" in args
    assert args[-1] == "out.wav"


def test_progress_tracker_parses_out_time_ms() -> None:
    tracker = ProgressTracker(10.0)
    tracker.feed("frame=10")
    assert tracker.percent is None
    tracker.feed("out_time_ms=5000000")
    assert tracker.percent == 50.0
    tracker.feed("out_time_ms=not-a-number")
    assert tracker.percent == 50.0


def test_progress_tracker_without_duration_is_inert() -> None:
    tracker = ProgressTracker(None)
    tracker.feed("out_time_ms=5000000")
    assert tracker.percent is None


@pytest.mark.anyio
async def test_probe_reads_audio_stream(tmp_path: Path) -> None:
    extractor = AudioExtractor(tmp_path)
    result = CommandResult(returncode=0, stdout=PROBE_OUTPUT, stderr="")
    with patch("services.audio.run_command", AsyncMock(return_value=result)):
        info = await extractor.probe(tmp_path / "in.mp4")
    assert info.duration == 12.5
    assert info.codec == "aac"
    assert info.channels == 2
    assert info.sample_rate == 44100
    assert info.size == 204800


@pytest.mark.anyio
async def test_probe_without_audio_stream_raises(tmp_path: Path) -> None:
    extractor = AudioExtractor(tmp_path)
    silent = json.dumps({"streams": [{"codec_type": "video"}], "format": {}})
    with patch("services.audio.run_command", AsyncMock(return_value=CommandResult(0, silent, ""))):
        with pytest.raises(ExtractionError, match="No audio stream"):
            await extractor.probe(tmp_path / "in.mp4")


@pytest.mark.anyio
async def test_extract_missing_input_raises(tmp_path: Path) -> None:
    extractor = AudioExtractor(tmp_path)
    with pytest.raises(ExtractionError, match="not found"):
        await extractor.extract(tmp_path / "missing.mp4")


@pytest.mark.anyio
async def test_extract_writes_wav_named_by_file_id(tmp_path: Path) -> None:
    video = tmp_path / "sess-video.mp4"
    video.write_bytes(b"video")
    extractor = AudioExtractor(tmp_path)

    async def fake_run(args, **kwargs):
        if args[0] == "ffprobe":
            return CommandResult(0, PROBE_OUTPUT, "")
        Path(args[-1]).write_bytes(b"RIFF")
        kwargs["on_stdout_line"]("out_time_ms=12500000")
        return CommandResult(0, "", "")

    with patch("services.audio.run_command", side_effect=fake_run):
        audio = await extractor.extract(video, file_id="sess-audio")

    assert audio == tmp_path / "sess-audio.wav"
    assert audio.exists()


@pytest.mark.anyio
async def test_extract_failure_removes_partial_output(tmp_path: Path) -> None:
    video = tmp_path / "v.mp4"
    video.write_bytes(b"video")
    extractor = AudioExtractor(tmp_path)

    async def fake_run(args, **kwargs):
        if args[0] == "ffprobe":
            return CommandResult(1, "", "Invalid data found when processing input")
        Path(args[-1]).write_bytes(b"partial")
        return CommandResult(1, "", "Invalid data found when processing input")

    with patch("services.audio.run_command", side_effect=fake_run):
        with pytest.raises(ExtractionError, match="Invalid data"):
            await extractor.extract(video, file_id="a1")

    assert not (tmp_path / "a1.wav").exists()
