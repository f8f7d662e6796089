"""Tool schema for the run_tests MCP tool.

Contains the tool description, the JSON schema of its arguments and the
model that validates incoming arguments.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .command import (
    CargoOptions,
    PackageTarget,
    TargetKind,
    TestTarget,
    TestToolKind,
    WorkspaceTarget,
)

__all__ = [
    "TOOL_NAME",
    "TOOL_DESCRIPTION",
    "RunTestsArguments",
    "create_tool_schema",
]

TOOL_NAME = "run_tests"

TOOL_DESCRIPTION = """Run the tests of a Rust project with cargo test or cargo nextest.

Returns a libtest-style summary: counts of passed/failed/ignored tests,
the captured output of every failing test, and the tail of any plain
output (build errors) when no test ran.

SCOPE:
- No package: the whole workspace.
- package + kind (+ target): one build target, e.g. kind=bin target=my-tool.
  kind=lib needs no target name.

FILTER:
- cargo_test: a test name substring, e.g. "parser::tests".
- cargo_nextest: a filterset expression, e.g. "test(parse)"."""

PROPERTIES: dict[str, Any] = {
    "workspace": {
        "type": "string",
        "description": "Project root containing Cargo.toml. Must be an absolute path.",
    },
    "tool": {
        "type": "string",
        "enum": [kind.value for kind in TestToolKind],
        "description": "Test driver. Defaults to the server's CTS_TEST_TOOL.",
    },
    "package": {
        "type": "string",
        "description": "Restrict to one package. Omit for the whole workspace.",
    },
    "kind": {
        "type": "string",
        "default": TargetKind.LIB.value,
        "description": "Target kind within the package: lib, bin, test, example, bench.",
    },
    "target": {
        "type": "string",
        "default": "",
        "description": "Target name (required for every kind except lib).",
    },
    "filter": {
        "type": "string",
        "description": "Test name filter (cargo_test) or filterset expression (cargo_nextest).",
    },
    "features": {
        "type": "array",
        "items": {"type": "string"},
        "default": [],
        "description": "Features to enable.",
    },
    "all_features": {
        "type": "boolean",
        "default": False,
        "description": "Enable all features.",
    },
    "no_default_features": {
        "type": "boolean",
        "default": False,
        "description": "Disable default features.",
    },
    "extra_args": {
        "type": "array",
        "items": {"type": "string"},
        "default": [],
        "description": "Extra cargo arguments.",
    },
    "extra_test_bin_args": {
        "type": "array",
        "items": {"type": "string"},
        "default": [],
        "description": "Extra arguments for the test binary (cargo_test only), e.g. --test-threads=1.",
    },
}


class RunTestsArguments(BaseModel):
    """Validated arguments of the run_tests tool."""

    model_config = ConfigDict(extra="ignore")

    workspace: Path
    tool: TestToolKind | None = None
    package: str | None = None
    kind: str = TargetKind.LIB.value
    target: str = ""
    filter: str | None = None
    features: list[str] = Field(default_factory=list)
    all_features: bool = False
    no_default_features: bool = False
    extra_args: list[str] = Field(default_factory=list)
    extra_test_bin_args: list[str] = Field(default_factory=list)

    def test_target(self) -> TestTarget:
        if not self.package:
            return WorkspaceTarget()
        return PackageTarget(package=self.package, target=self.target, kind=self.kind)

    def cargo_options(self) -> CargoOptions:
        return CargoOptions(
            features=tuple(self.features),
            all_features=self.all_features,
            no_default_features=self.no_default_features,
            extra_args=tuple(self.extra_args),
            extra_test_bin_args=tuple(self.extra_test_bin_args),
        )


def create_tool_schema() -> dict[str, Any]:
    """JSON schema of the run_tests arguments."""
    return {
        "type": "object",
        "properties": dict(PROPERTIES),
        "required": ["workspace"],
    }
