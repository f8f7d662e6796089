"""Process runner with subprocess isolation and reliable termination.

cargo-test-stream runtime module v0.1.0

This module provides:
- Spawning a ``CommandSpec`` with its environment additions
- Line-by-line stdout reading, including an unterminated final line
- Concurrent stderr draining so the child never blocks on a full pipe
- Optional termination (SIGTERM -> timeout -> SIGKILL) of the process group

Key design points:
- POSIX: start_new_session=True to create new process group
- Windows: CREATE_NEW_PROCESS_GROUP for signal isolation
- Spawn failures are raised as SpawnError before any output is read
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
import sys
from collections import deque
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any

from ..command.types import CommandSpec
from ..errors import SpawnError

__all__ = [
    "ProcessRunner",
    "SpawnedProcess",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

# Default timeouts
DEFAULT_TERM_TIMEOUT = 2.0  # seconds to wait after SIGTERM
DEFAULT_KILL_TIMEOUT = 1.0  # seconds to wait after SIGKILL

READ_CHUNK_SIZE = 64 * 1024
STDERR_TAIL_LINES = 200


def _decode_line(raw: bytes) -> str:
    """Decode one output line, dropping a trailing carriage return."""
    if raw.endswith(b"\r"):
        raw = raw[:-1]
    return raw.decode("utf-8", errors="replace")


async def _read_lines(stream: asyncio.StreamReader) -> AsyncIterator[bytes]:
    """Split a byte stream on newlines, yielding raw lines without the newline.

    Each byte is scanned once, so very long lines cost linear time. A final
    unterminated line is yielded at EOF.
    """
    buffer = bytearray()
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            if buffer:
                yield bytes(buffer)
            return

        # Bytes already in the buffer hold no newline
        scan_from = len(buffer)
        buffer += chunk
        start = 0
        while True:
            newline = buffer.find(b"\n", scan_from)
            if newline < 0:
                break
            yield bytes(buffer[start:newline])
            start = scan_from = newline + 1
        if start:
            del buffer[:start]


class SpawnedProcess:
    """A running test process.

    Created by ``ProcessRunner.spawn``. Owns the asyncio process object, the
    stderr draining task and, once the reader lets go of stdout, the task
    that discards the rest of stdout.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        runner: ProcessRunner,
    ) -> None:
        self._process = process
        self._runner = runner
        self._stderr_task: asyncio.Task[None] | None = None
        self._discard_task: asyncio.Task[None] | None = None
        self.stderr_tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    def _start_stderr_drain(self) -> None:
        if self._stderr_task is None:
            self._stderr_task = asyncio.create_task(self._drain_stderr())

    async def lines(self) -> AsyncIterator[str]:
        """Yield stdout line by line, without line terminators.

        A final line that is not newline-terminated is still yielded. Lines
        are not length-limited; they are split from raw chunks rather than
        read with ``readline``.
        """
        self._start_stderr_drain()

        stdout = self._process.stdout
        if stdout is None:
            return

        async with aclosing(_read_lines(stdout)) as raw_lines:
            async for raw in raw_lines:
                yield _decode_line(raw)

    async def _drain_stderr(self) -> None:
        """Drain stderr to prevent buffer deadlock, keeping the last lines."""
        stderr = self._process.stderr
        if stderr is None:
            return

        async with aclosing(_read_lines(stderr)) as raw_lines:
            async for raw in raw_lines:
                line = _decode_line(raw)
                self.stderr_tail.append(line)
                logger.debug(f"[stderr pid={self.pid}] {line[:200]}")

    async def _discard_stdout(self) -> None:
        stdout = self._process.stdout
        if stdout is None:
            return
        discarded = 0
        while True:
            chunk = await stdout.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            discarded += len(chunk)
        logger.debug(f"Discarded {discarded} bytes of stdout pid={self.pid}")

    def discard_stdout(self) -> None:
        """Read and drop the rest of stdout in the background until EOF.

        Call only once nothing iterates ``lines()`` any more.
        """
        if self._discard_task is None:
            self._discard_task = asyncio.create_task(self._discard_stdout())

    async def wait(self) -> int:
        """Wait for the process to exit and for its pipes to be drained."""
        returncode = await self._process.wait()
        for task in (self._stderr_task, self._discard_task):
            if task is not None:
                await task
        logger.debug(
            f"Subprocess completed pid={self.pid} "
            f"returncode={returncode}"
        )
        return returncode

    async def terminate(self) -> None:
        """Stop the process group, escalating to a kill if needed."""
        if self._process.returncode is None:
            await self._runner._terminate_process(self._process)

    async def release(self) -> None:
        """Let go of the output without touching the process.

        Both pipes keep being drained in the background until EOF, so a
        process that outlives its reader never blocks on a full pipe.
        """
        self._start_stderr_drain()
        self.discard_stdout()


@dataclass
class ProcessRunner:
    """Cross-platform process runner with isolation and reliable termination.

    Example:
        runner = ProcessRunner()
        process = await runner.spawn(spec)

        async for line in process.lines():
            handle_line(line)
        returncode = await process.wait()
    """

    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT

    async def spawn(self, spec: CommandSpec) -> SpawnedProcess:
        """Start the process described by ``spec``.

        Returns as soon as the process exists; nothing is read yet.

        Raises:
            SpawnError: Missing executable, permission error, bad working
                directory or pipe creation failure
        """
        kwargs = self._build_subprocess_kwargs(spec)

        try:
            # stdin=None would inherit the parent's stdin (the MCP stdio channel)
            process = await asyncio.create_subprocess_exec(
                *spec.argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=spec.cwd,
                **kwargs,
            )
        except OSError as e:
            logger.error(f"Failed to spawn {spec.program}: {e}")
            raise SpawnError(spec.program, e) from e

        logger.debug(
            f"Started subprocess pid={process.pid} "
            f"argv={spec.argv[0]} cwd={spec.cwd}"
        )
        return SpawnedProcess(process, self)

    def _build_subprocess_kwargs(self, spec: CommandSpec) -> dict[str, Any]:
        """Build platform-specific subprocess kwargs.

        Args:
            spec: Command specification

        Returns:
            Dict of kwargs for asyncio.create_subprocess_exec
        """
        kwargs: dict[str, Any] = {}

        # Environment: inherited, plus the command's additions
        if spec.env:
            kwargs["env"] = {**os.environ, **spec.env}

        # Platform-specific isolation
        if IS_WINDOWS:
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            kwargs["start_new_session"] = True

        return kwargs

    async def _terminate_process(
        self,
        process: asyncio.subprocess.Process,
    ) -> None:
        """Terminate subprocess gracefully, then forcefully if needed.

        Termination strategy:
        1. Send SIGTERM (or CTRL_BREAK_EVENT on Windows)
        2. Wait up to term_timeout for graceful exit
        3. If still running, send SIGKILL (or kill() on Windows)
        4. Wait up to kill_timeout for forced exit

        Args:
            process: The subprocess to terminate
        """
        pid = process.pid
        logger.debug(f"Terminating subprocess pid={pid}")

        try:
            if IS_WINDOWS:
                await self._windows_terminate(process)
            else:
                await self._posix_signal(process, signal.SIGTERM)

            try:
                await asyncio.wait_for(process.wait(), timeout=self.term_timeout)
                logger.debug(
                    f"Subprocess terminated gracefully pid={pid} "
                    f"returncode={process.returncode}"
                )
                return
            except asyncio.TimeoutError:
                pass

            logger.debug(f"Force killing subprocess pid={pid}")
            if IS_WINDOWS:
                process.kill()
            else:
                await self._posix_signal(process, signal.SIGKILL)

            try:
                await asyncio.wait_for(process.wait(), timeout=self.kill_timeout)
                logger.debug(
                    f"Subprocess killed pid={pid} "
                    f"returncode={process.returncode}"
                )
            except asyncio.TimeoutError:
                logger.warning(f"Subprocess did not exit after kill pid={pid}")

        except ProcessLookupError:
            logger.debug(f"Subprocess already exited pid={pid}")

    async def _posix_signal(
        self,
        process: asyncio.subprocess.Process,
        sig: signal.Signals,
    ) -> None:
        """Send a signal to the process group on POSIX systems.

        Args:
            process: The subprocess
            sig: SIGTERM or SIGKILL
        """
        try:
            # Same as pid because of start_new_session
            pgid = os.getpgid(process.pid)
            os.killpg(pgid, sig)
            logger.debug(f"Sent {sig.name} to process group pgid={pgid}")
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.debug(f"killpg failed, falling back to send_signal: {e}")
            process.send_signal(sig)

    async def _windows_terminate(
        self,
        process: asyncio.subprocess.Process,
    ) -> None:
        """Send CTRL_BREAK_EVENT on Windows.

        Args:
            process: The subprocess
        """
        try:
            # Works because of CREATE_NEW_PROCESS_GROUP
            os.kill(process.pid, signal.CTRL_BREAK_EVENT)
            logger.debug(f"Sent CTRL_BREAK_EVENT to pid={process.pid}")
        except (ProcessLookupError, OSError) as e:
            logger.debug(f"CTRL_BREAK_EVENT failed, falling back: {e}")
            process.terminate()
