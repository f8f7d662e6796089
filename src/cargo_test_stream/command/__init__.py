"""Test command construction.

cargo-test-stream command v0.1.0

Usage:
    from cargo_test_stream.command import (
        CargoOptions, TestToolKind, WorkspaceTarget, build_command,
    )

    spec = build_command(
        TestToolKind.CARGO_TEST,
        None,
        CargoOptions(),
        Path("/path/to/project"),
        WorkspaceTarget(),
    )
"""

from __future__ import annotations

from .builder import build_command
from .types import (
    MANIFEST_FILE_NAME,
    CargoOptions,
    CommandSpec,
    PackageTarget,
    TargetKind,
    TestTarget,
    TestToolKind,
    WorkspaceTarget,
)

__all__ = [
    "build_command",
    "CargoOptions",
    "CommandSpec",
    "MANIFEST_FILE_NAME",
    "PackageTarget",
    "TargetKind",
    "TestTarget",
    "TestToolKind",
    "WorkspaceTarget",
]
