"""cargo-test-stream application entry point.

Configures logging and runs the MCP server over stdio.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from mcp.server.stdio import stdio_server

from .config import get_config
from .server import create_server

__all__ = ["run_server", "main"]

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


async def run_server() -> None:
    """Run the MCP server until stdin closes."""
    config = get_config()
    logger.info(f"Starting cargo-test-stream MCP server: {config}")

    server = create_server(config)
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )
    logger.info("MCP server stopped")


def setup_logging() -> None:
    """Send logs to stderr, or to a temp file at DEBUG when CTS_LOG_DEBUG is on.

    stdout carries the MCP protocol and must stay clean.
    """
    config = get_config()
    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(stderr_handler)
        log_level = logging.INFO

    # Third-party libraries stay at WARNING
    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    logging.getLogger("cargo_test_stream").setLevel(log_level)


def main() -> None:
    """Main entry point."""
    setup_logging()
    asyncio.run(run_server())


if __name__ == "__main__":
    main()
