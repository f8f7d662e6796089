"""cargo-test-stream MCP server.

Exposes a single tool, ``run_tests``, that runs a Rust project's tests and
returns a summary of the streamed results.

Environment variables: see ``cargo_test_stream.config``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from mcp.server import Server
from mcp.types import TextContent, Tool
from pydantic import ValidationError

from .collector import ResultCollector
from .config import Config, get_config
from .errors import SpawnError
from .runtime import CargoTestHandle, ProcessRunner
from .tool_schema import TOOL_DESCRIPTION, TOOL_NAME, RunTestsArguments, create_tool_schema

__all__ = ["create_server", "run_tests"]

logger = logging.getLogger(__name__)


def format_error_response(error: str) -> list[TextContent]:
    return [TextContent(type="text", text=f"error: {error}")]


async def run_tests(args: RunTestsArguments, config: Config) -> list[TextContent]:
    """Run one test command to completion and format its summary."""
    workspace = args.workspace
    if not workspace.is_dir():
        return format_error_response(f"workspace is not a directory: {workspace}")

    start_time = time.time()
    runner = ProcessRunner(term_timeout=config.term_timeout)
    try:
        handle = await CargoTestHandle.start(
            args.tool or config.test_tool,
            args.filter,
            args.cargo_options(),
            workspace,
            args.test_target(),
            cargo=config.cargo,
            runner=runner,
        )
    except SpawnError as e:
        return format_error_response(str(e))

    collector = ResultCollector()
    async with handle:
        try:
            async for event in handle.events:
                collector.process_event(event)
            collector.summary.exit_code = await handle.wait()
        except asyncio.CancelledError:
            logger.info(f"run_tests cancelled, terminating pid={handle.pid}")
            await handle.terminate()
            raise

    summary = collector.summary
    logger.info(
        f"run_tests finished in {time.time() - start_time:.1f}s: "
        f"{summary.passed} passed, {summary.failed} failed, "
        f"exit code {summary.exit_code}"
    )
    text = summary.format()
    if summary.exit_code and not summary.tests and handle.stderr_tail:
        # cargo reports build errors on stderr
        text += "\n\n" + "\n".join(handle.stderr_tail[-20:])
    return [TextContent(type="text", text=text)]


def create_server(config: Config | None = None) -> Server:
    """Create the MCP Server instance."""
    config = config or get_config()
    server = Server("cargo-test-stream")

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """List available tools."""
        return [
            Tool(
                name=TOOL_NAME,
                description=TOOL_DESCRIPTION,
                inputSchema=create_tool_schema(),
            )
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """Call a tool."""
        logger.debug(f"[MCP] call_tool request: name={name} arguments={arguments}")

        if name != TOOL_NAME:
            return format_error_response(f"Unknown tool '{name}'")

        try:
            args = RunTestsArguments.model_validate(arguments)
        except ValidationError as e:
            return format_error_response(f"invalid arguments: {e}")

        try:
            return await run_tests(args, config)
        except asyncio.CancelledError:
            logger.info(f"Tool '{name}' cancelled")
            raise

    return server
