"""Async subprocess helper shared by the downloader and the audio extractor."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence

logger = logging.getLogger(__name__)

# Grace period between terminate() and kill() when a command times out.
TERMINATE_GRACE_SECONDS = 5.0


class CommandTimeout(Exception):
    def __init__(self, program: str, timeout: float) -> None:
        super().__init__(f"{program} timed out after {timeout:.0f}s")
        self.program = program
        self.timeout = timeout


@dataclass
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def stderr_tail(self, lines: int = 5) -> str:
        tail = [line for line in self.stderr.strip().splitlines() if line.strip()][-lines:]
        return "\n".join(tail) or f"exit code {self.returncode}"


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    proc.terminate()
    try:
        await asyncio.wait_for(proc.wait(), timeout=TERMINATE_GRACE_SECONDS)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()


async def run_command(
    args: Sequence[str],
    *,
    timeout: float | None = None,
    on_stdout_line: Callable[[str], Awaitable[None] | None] | None = None,
) -> CommandResult:
    """
    Run a command to completion and capture its output.

    Raises FileNotFoundError if the executable does not exist and CommandTimeout
    if it runs past `timeout` (the process is terminated first). When
    `on_stdout_line` is given, stdout is streamed line by line to it instead
    of being buffered.
    """
    logger.debug("[process] exec: %s", " ".join(args))
    proc = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    async def _collect() -> tuple[str, str]:
        if on_stdout_line is None:
            out, err = await proc.communicate()
            return out.decode("utf-8", errors="replace"), err.decode("utf-8", errors="replace")

        stderr_task = asyncio.create_task(proc.stderr.read())
        lines: list[str] = []
        async for raw_line in proc.stdout:
            line = raw_line.decode("utf-8", errors="replace").rstrip()
            lines.append(line)
            result = on_stdout_line(line)
            if asyncio.iscoroutine(result):
                await result
        err = await stderr_task
        await proc.wait()
        return "\n".join(lines), err.decode("utf-8", errors="replace")

    try:
        stdout, stderr = await asyncio.wait_for(_collect(), timeout=timeout)
    except asyncio.TimeoutError:
        await _terminate(proc)
        raise CommandTimeout(args[0], timeout or 0) from None
    except asyncio.CancelledError:
        await _terminate(proc)
        raise

    returncode = proc.returncode if proc.returncode is not None else -1
    return CommandResult(returncode=returncode, stdout=stdout, stderr=stderr)
