"""Run handle: runs a test command in the background and streams its events.

cargo-test-stream runtime module v0.1.0

``CargoTestHandle.start`` spawns the test driver and returns right away.
A background task reads the driver's stdout, parses each line into an
event and sends it, in arrival order, into an unbounded anyio memory object
stream. The handle's ``events`` is the receiving side of that stream.

Closing the handle stops forwarding; the remaining output is read and
dropped in the background. It does not kill the process; call
``terminate()`` first when the process must go away too.
"""

from __future__ import annotations

import asyncio
import logging
import math
from contextlib import aclosing
from pathlib import Path
from types import TracebackType
from typing import AsyncIterator

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from ..command import CargoOptions, CommandSpec, TestTarget, TestToolKind, build_command
from ..parsers import CargoTestParser
from ..parsers.cargo_test import Event
from .process_runner import ProcessRunner, SpawnedProcess

__all__ = ["CargoTestHandle"]

logger = logging.getLogger(__name__)


class CargoTestHandle:
    """One test run and its event channel.

    Each handle owns its process, parser, forwarding task and channel; no
    state is shared between handles, so several runs may proceed at once.

    Example:
        async with await CargoTestHandle.start(
            TestToolKind.CARGO_TEST, None, CargoOptions(), root, WorkspaceTarget(),
        ) as handle:
            async for event in handle.events:
                print(event)
    """

    def __init__(
        self,
        command: CommandSpec,
        process: SpawnedProcess,
        send_stream: MemoryObjectSendStream[Event],
        receive_stream: MemoryObjectReceiveStream[Event],
    ) -> None:
        self.command = command
        self._process = process
        self._parser = CargoTestParser()
        self._buf: list[str] = []
        self._send_stream = send_stream
        self._receive_stream = receive_stream
        self._task: asyncio.Task[None] | None = None

    @classmethod
    async def start(
        cls,
        tool: TestToolKind,
        path: str | None,
        options: CargoOptions,
        root: Path,
        target: TestTarget,
        *,
        cargo: str = "cargo",
        runner: ProcessRunner | None = None,
    ) -> "CargoTestHandle":
        """Build the test command and start it.

        Args:
            tool: Test driver to invoke
            path: Test filter (see ``build_command``)
            options: Pass-through cargo options
            root: Project root
            target: Workspace or package/target scope
            cargo: cargo executable
            runner: Process runner, a default one if omitted

        Returns:
            Handle of the running test process

        Raises:
            SpawnError: The process could not be started
        """
        command = build_command(tool, path, options, root, target, cargo=cargo)
        return await cls.spawn(command, runner=runner)

    @classmethod
    async def spawn(
        cls,
        command: CommandSpec,
        *,
        runner: ProcessRunner | None = None,
    ) -> "CargoTestHandle":
        """Start an already built command.

        Raises:
            SpawnError: The process could not be started
        """
        runner = runner or ProcessRunner()
        logger.info(f"Test command: {command.display()}")

        process = await runner.spawn(command)

        send_stream, receive_stream = anyio.create_memory_object_stream(math.inf)
        handle = cls(command, process, send_stream, receive_stream)
        handle._task = asyncio.create_task(
            handle._forward(),
            name=f"cargo-test-{process.pid}",
        )
        return handle

    @property
    def events(self) -> MemoryObjectReceiveStream[Event]:
        """Receiving side of the event channel.

        Ends (``async for`` stops) after the terminal ``FinishedEvent``.
        """
        return self._receive_stream

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def stderr_tail(self) -> list[str]:
        """Last lines the driver wrote to stderr."""
        return list(self._process.stderr_tail)

    def __aiter__(self) -> AsyncIterator[Event]:
        return self._receive_stream.__aiter__()

    async def _forward(self) -> None:
        """Read, parse and send every line, then the terminal event."""
        async with self._send_stream:
            try:
                async with aclosing(self._process.lines()) as lines:
                    async for line in lines:
                        event = self._parser.from_line(line, self._buf)
                        await self._send_stream.send(event)
                await self._send_stream.send(self._parser.from_eof())
            except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                logger.debug(f"Event receiver closed, stop forwarding pid={self.pid}")
                # Nobody reads the events any more, but the process must not
                # block on a full stdout pipe
                self._process.discard_stdout()
            finally:
                logger.debug(
                    f"Forwarding finished pid={self.pid} "
                    f"lines={self._parser.line_count}"
                )

    async def wait(self) -> int:
        """Wait until all output has been forwarded and the process exited.

        Returns:
            Process exit code. Test failures make cargo exit non-zero; the
            code is not interpreted here.
        """
        if self._task is not None:
            await asyncio.wait({self._task})
        return await self._process.wait()

    async def terminate(self) -> None:
        """Stop the test process (SIGTERM, then SIGKILL after a timeout)."""
        await self._process.terminate()

    def close(self) -> None:
        """Stop receiving events. The forwarding task exits on its next send."""
        self._receive_stream.close()

    async def aclose(self) -> None:
        """Close the channel and stop the forwarding task.

        The process itself keeps running unless ``terminate()`` was called.
        """
        self.close()
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        await self._process.release()

    async def __aenter__(self) -> "CargoTestHandle":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
