from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator

from models import ProgressEvent, TerminalEvent
from services.errors import StreamClosedError


def encode_sse(payload: dict[str, Any]) -> str:
    """One Server-Sent Events frame: `data: <json>` followed by a blank line."""
    return f"data: {json.dumps(payload)}\n\n"


class ProgressStream:
    """
    Ordered, single-session channel between the coordinator and a transport.

    The producer writes any number of ProgressEvents, then exactly one
    TerminalEvent. Writes after the terminal event raise StreamClosedError.
    Iterating yields every item in order and stops after the terminal event.

    The queue is unbounded: if the consumer disappears the producer keeps
    running and undelivered events are dropped with the stream.
    """

    def __init__(self, session_id: str | None = None) -> None:
        self.session_id = session_id
        self._queue: asyncio.Queue[ProgressEvent | TerminalEvent] = asyncio.Queue()
        self._terminal: TerminalEvent | None = None

    @property
    def closed(self) -> bool:
        return self._terminal is not None

    @property
    def terminal(self) -> TerminalEvent | None:
        return self._terminal

    def publish(self, event: ProgressEvent) -> None:
        if self.closed:
            raise StreamClosedError(f"Progress stream already finished; dropped {event.step.value} event")
        self._queue.put_nowait(event)

    def finish(self, terminal: TerminalEvent) -> None:
        if self.closed:
            raise StreamClosedError("Progress stream accepts a single terminal event")
        self._terminal = terminal
        self._queue.put_nowait(terminal)

    async def __aiter__(self) -> AsyncIterator[ProgressEvent | TerminalEvent]:
        while True:
            item = await self._queue.get()
            yield item
            if isinstance(item, TerminalEvent):
                return

    async def frames(self) -> AsyncIterator[str]:
        """SSE-encoded frames for every item, ending with the terminal one."""
        async for item in self:
            yield encode_sse(item.to_dict())
