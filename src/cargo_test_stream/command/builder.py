"""Test command builder.

cargo-test-stream command v0.1.0

Maps (tool kind, filter, options, project root, test target) to a
``CommandSpec``. Pure: no I/O, no ambient environment mutation.

Command formats:
    RUSTC_BOOTSTRAP=1 cargo test --workspace --no-fail-fast \
      --manifest-path {root}/Cargo.toml [options] \
      -- [filter] -Z unstable-options --format=json [test bin args]

    RUSTC_BOOTSTRAP=1 NEXTEST_EXPERIMENTAL_LIBTEST_JSON=1 \
      cargo nextest run [-E {filter}] --no-fail-fast \
      --manifest-path {root}/Cargo.toml [options] \
      --message-format libtest-json --
"""

from __future__ import annotations

from pathlib import Path

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

__all__ = ["build_command"]


def _target_selector(target: PackageTarget) -> list[str]:
    """Arguments selecting one build target of a package."""
    args = ["--package", target.package]
    if target.kind is TargetKind.LIB:
        # a package has at most one lib target, no name needed
        args.append("--lib")
    elif target.kind is TargetKind.OTHER:
        # cargo has no selector for it
        pass
    else:
        kind = target.kind.value if isinstance(target.kind, TargetKind) else target.kind
        args.extend([f"--{kind}", target.target])
    return args


def build_command(
    tool: TestToolKind,
    path: str | None,
    options: CargoOptions,
    root: Path,
    target: TestTarget,
    *,
    cargo: str = "cargo",
) -> CommandSpec:
    """Build the test command.

    Args:
        tool: Test driver to invoke
        path: Test name filter for ``cargo test``, filterset expression
            for nextest, or None to run everything
        options: Pass-through cargo options
        root: Project root holding the manifest
        target: Workspace or package/target scope
        cargo: cargo executable

    Returns:
        The command description
    """
    root = Path(root)
    args: list[str] = []
    env: dict[str, str] = {"RUSTC_BOOTSTRAP": "1"}

    if tool is TestToolKind.CARGO_TEST:
        args.append("test")
        if isinstance(target, PackageTarget):
            args.extend(_target_selector(target))
        elif isinstance(target, WorkspaceTarget):
            args.append("--workspace")
    else:
        env["NEXTEST_EXPERIMENTAL_LIBTEST_JSON"] = "1"
        args.extend(["nextest", "run"])
        if path is not None:
            args.extend(["-E", path])

    # keep going after the first failing test binary
    args.append("--no-fail-fast")
    args.extend(["--manifest-path", str(root / MANIFEST_FILE_NAME)])
    options.apply_on_command(args, env)

    if tool is TestToolKind.CARGO_TEST:
        args.append("--")
        if path is not None:
            args.append(path)
        args.extend(["-Z", "unstable-options"])
        args.append("--format=json")
        args.extend(options.extra_test_bin_args)
    else:
        args.extend(["--message-format", "libtest-json"])
        args.append("--")

    return CommandSpec(program=cargo, args=tuple(args), cwd=root, env=env)
