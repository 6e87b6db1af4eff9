from __future__ import annotations

import asyncio
import json

import pytest

from models import ProgressEvent, ProgressStep, TerminalEvent
from services.errors import StreamClosedError
from services.progress import ProgressStream, encode_sse


def _event(step: ProgressStep, message: str = "msg") -> ProgressEvent:
    return ProgressEvent(session_id="s1", step=step, message=message)


def test_encode_sse_frame() -> None:
    frame = encode_sse({"step": "download"})
    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    assert json.loads(frame[len("data: "):].strip()) == {"step": "download"}


@pytest.mark.anyio
async def test_stream_yields_events_in_order_and_stops_after_terminal() -> None:
    stream = ProgressStream()
    stream.publish(_event(ProgressStep.VALIDATION))
    stream.publish(_event(ProgressStep.DOWNLOAD))
    stream.finish(TerminalEvent.final({"success": True}))

    items = [item async for item in stream]

    assert [type(i).__name__ for i in items] == ["ProgressEvent", "ProgressEvent", "TerminalEvent"]
    assert items[0].step is ProgressStep.VALIDATION
    assert items[1].step is ProgressStep.DOWNLOAD
    assert items[2].is_success


@pytest.mark.anyio
async def test_stream_rejects_writes_after_terminal() -> None:
    stream = ProgressStream()
    stream.finish(TerminalEvent.error({"error": "boom"}))
    assert stream.closed

    with pytest.raises(StreamClosedError):
        stream.publish(_event(ProgressStep.DOWNLOAD))
    with pytest.raises(StreamClosedError):
        stream.finish(TerminalEvent.final({}))

    items = [item async for item in stream]
    assert len(items) == 1
    assert stream.terminal is items[0]


@pytest.mark.anyio
async def test_consumer_waits_for_producer() -> None:
    stream = ProgressStream()

    async def produce() -> None:
        await asyncio.sleep(0.01)
        stream.publish(_event(ProgressStep.UPLOAD, "late"))
        stream.finish(TerminalEvent.final({}))

    producer = asyncio.create_task(produce())
    frames = [frame async for frame in stream.frames()]
    await producer

    assert len(frames) == 2
    first = json.loads(frames[0][len("data: "):])
    last = json.loads(frames[1][len("data: "):])
    assert first["step"] == "upload"
    assert first["message"] == "late"
    assert last == {"type": "final", "result": {}}
