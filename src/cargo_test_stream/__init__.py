"""cargo-test-stream - run cargo test / nextest and stream typed results.

Environment variables:
    CTS_CARGO: cargo executable (default "cargo")
    CTS_TEST_TOOL: default driver, cargo_test or cargo_nextest
    CTS_TERM_TIMEOUT: SIGTERM to SIGKILL delay in seconds (default 2.0)
    CTS_LOG_DEBUG: log to a temp file at DEBUG (default false)

Usage:
    uvx cargo-test-stream          # MCP server over stdio

    handle = await CargoTestHandle.start(
        TestToolKind.CARGO_TEST, None, CargoOptions(), root, WorkspaceTarget(),
    )
    async for event in handle.events:
        ...
"""

__version__ = "0.1.0"

from .collector import ResultCollector, TestRunSummary, collect
from .command import (
    CargoOptions,
    CommandSpec,
    PackageTarget,
    TargetKind,
    TestTarget,
    TestToolKind,
    WorkspaceTarget,
    build_command,
)
from .errors import CargoTestStreamError, SpawnError
from .parsers import (
    CargoTestParser,
    CustomEvent,
    FinishedEvent,
    SuiteEvent,
    TestEvent,
    TestFailed,
    TestIgnored,
    TestOk,
    TestStarted,
    parse_eof,
    parse_line,
)
from .runtime import CargoTestHandle, ProcessRunner

__all__ = [
    "__version__",
    "build_command",
    "collect",
    "parse_eof",
    "parse_line",
    "CargoOptions",
    "CargoTestHandle",
    "CargoTestParser",
    "CargoTestStreamError",
    "CommandSpec",
    "CustomEvent",
    "FinishedEvent",
    "PackageTarget",
    "ProcessRunner",
    "ResultCollector",
    "SpawnError",
    "SuiteEvent",
    "TargetKind",
    "TestEvent",
    "TestFailed",
    "TestIgnored",
    "TestOk",
    "TestRunSummary",
    "TestStarted",
    "TestTarget",
    "TestToolKind",
    "WorkspaceTarget",
]
