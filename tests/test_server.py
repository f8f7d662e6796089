"""Server tests.

Drives the run_tests tool end to end with a cargo wrapper script that
runs the fake cargo fixture.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
from mcp.types import CallToolRequest, CallToolRequestParams, ListToolsRequest

from cargo_test_stream.config import Config
from cargo_test_stream.runtime.process_runner import IS_WINDOWS
from cargo_test_stream.server import create_server, run_tests
from cargo_test_stream.tool_schema import TOOL_NAME, RunTestsArguments, create_tool_schema

from conftest import FAKE_CARGO_PATH

pytestmark = pytest.mark.skipif(IS_WINDOWS, reason="cargo wrapper is a shell script")


@pytest.fixture
def fake_cargo(tmp_path: Path) -> str:
    """Executable that behaves like cargo, driven by FAKE_CARGO_SCENARIO."""
    wrapper = tmp_path / "cargo"
    wrapper.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{FAKE_CARGO_PATH}" "$@"\n')
    wrapper.chmod(0o755)
    return str(wrapper)


@pytest.fixture
def config(fake_cargo: str) -> Config:
    return Config(cargo=fake_cargo, term_timeout=0.5)


class TestRunTests:
    @pytest.mark.asyncio
    async def test_passing_run(self, project_root: Path, config: Config, monkeypatch):
        monkeypatch.setenv("FAKE_CARGO_SCENARIO", "pass")
        result = await run_tests(RunTestsArguments(workspace=project_root), config)

        assert len(result) == 1
        text = result[0].text
        assert text.startswith("test result: ok. 2 passed; 0 failed; 1 ignored; 0 unfinished")
        assert "exit code: 0" in text

    @pytest.mark.asyncio
    async def test_failing_run(self, project_root: Path, config: Config, monkeypatch):
        monkeypatch.setenv("FAKE_CARGO_SCENARIO", "fail")
        result = await run_tests(RunTestsArguments(workspace=project_root), config)

        text = result[0].text
        assert text.startswith("test result: FAILED. 1 passed; 1 failed")
        assert "---- tests::bad ----" in text
        assert "panicked at src/lib.rs:10:9" in text
        assert "exit code: 101" in text

    @pytest.mark.asyncio
    async def test_crash_reports_unfinished(self, project_root: Path, config: Config, monkeypatch):
        monkeypatch.setenv("FAKE_CARGO_SCENARIO", "crash")
        result = await run_tests(RunTestsArguments(workspace=project_root), config)

        assert "unfinished: tests::boom" in result[0].text

    @pytest.mark.asyncio
    async def test_nonzero_exit_without_tests(self, project_root: Path, config: Config, monkeypatch):
        monkeypatch.setenv("FAKE_CARGO_SCENARIO", "silent")
        monkeypatch.setenv("FAKE_CARGO_EXIT", "101")
        result = await run_tests(RunTestsArguments(workspace=project_root), config)

        text = result[0].text
        assert "exit code: 101" in text
        assert "0 passed" in text

    @pytest.mark.asyncio
    async def test_missing_cargo(self, project_root: Path):
        config = Config(cargo="no-such-cargo-executable")
        result = await run_tests(RunTestsArguments(workspace=project_root), config)

        assert result[0].text.startswith("error: failed to spawn 'no-such-cargo-executable'")

    @pytest.mark.asyncio
    async def test_workspace_not_a_directory(self, tmp_path: Path, config: Config):
        result = await run_tests(RunTestsArguments(workspace=tmp_path / "missing"), config)
        assert result[0].text.startswith("error: workspace is not a directory")


class TestArguments:
    def test_workspace_scope_by_default(self, tmp_path: Path):
        args = RunTestsArguments(workspace=tmp_path)
        assert type(args.test_target()).__name__ == "WorkspaceTarget"

    def test_package_scope(self, tmp_path: Path):
        args = RunTestsArguments(workspace=tmp_path, package="demo", kind="bin", target="cli")
        target = args.test_target()
        assert target.package == "demo"
        assert target.kind.value == "bin"
        assert target.target == "cli"

    def test_options(self, tmp_path: Path):
        args = RunTestsArguments(
            workspace=tmp_path,
            features=["a"],
            extra_test_bin_args=["--test-threads=1"],
        )
        options = args.cargo_options()
        assert options.features == ("a",)
        assert options.extra_test_bin_args == ("--test-threads=1",)

    def test_schema_requires_workspace(self):
        schema = create_tool_schema()
        assert schema["required"] == ["workspace"]
        assert "filter" in schema["properties"]


class TestServerHandlers:
    @pytest.mark.asyncio
    async def test_list_tools(self, config: Config):
        server = create_server(config)
        handler = server.request_handlers[ListToolsRequest]
        result = await handler(ListToolsRequest(method="tools/list"))
        tools = result.root.tools
        assert [tool.name for tool in tools] == [TOOL_NAME]

    @pytest.mark.asyncio
    async def test_call_tool(self, project_root: Path, config: Config, monkeypatch):
        monkeypatch.setenv("FAKE_CARGO_SCENARIO", "pass")
        server = create_server(config)
        handler = server.request_handlers[CallToolRequest]
        request = CallToolRequest(
            method="tools/call",
            params=CallToolRequestParams(
                name=TOOL_NAME,
                arguments={"workspace": str(project_root)},
            ),
        )
        result = await handler(request)
        assert not result.root.isError
        assert result.root.content[0].text.startswith("test result: ok.")

    @pytest.mark.asyncio
    async def test_unknown_tool(self, config: Config):
        server = create_server(config)
        handler = server.request_handlers[CallToolRequest]
        request = CallToolRequest(
            method="tools/call",
            params=CallToolRequestParams(name="nope", arguments={}),
        )
        result = await handler(request)
        assert "Unknown tool 'nope'" in result.root.content[0].text
