"""Command description types.

cargo-test-stream command v0.1.0

Defines the inputs of the command builder (tool kind, test target, cargo
options) and its output, ``CommandSpec``.
"""

from __future__ import annotations

import shlex
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType

__all__ = [
    "TestToolKind",
    "TargetKind",
    "WorkspaceTarget",
    "PackageTarget",
    "TestTarget",
    "CargoOptions",
    "CommandSpec",
    "MANIFEST_FILE_NAME",
]

MANIFEST_FILE_NAME = "Cargo.toml"


class TestToolKind(str, Enum):
    """Which test driver is invoked.

    - CARGO_TEST: ``cargo test`` with libtest's unstable JSON output
    - CARGO_NEXTEST: ``cargo nextest run`` with its libtest-json emulation
    """

    CARGO_TEST = "cargo_test"
    CARGO_NEXTEST = "cargo_nextest"

    @classmethod
    def from_string(cls, value: str) -> "TestToolKind":
        """Parse a tool name.

        Accepts the enum values plus the short forms ``test`` and ``nextest``.

        Raises:
            ValueError: Unknown tool name
        """
        value = value.lower().strip().replace("-", "_")
        aliases = {"test": cls.CARGO_TEST, "nextest": cls.CARGO_NEXTEST}
        if value in aliases:
            return aliases[value]
        return cls(value)


class TargetKind(str, Enum):
    """Cargo build target kinds.

    The value doubles as the cargo selector flag name (``--bin``, ``--bench``).
    ``LIB`` and ``OTHER`` are special-cased by the builder.
    """

    BIN = "bin"
    LIB = "lib"
    EXAMPLE = "example"
    TEST = "test"
    BENCH = "bench"
    BUILD_SCRIPT = "custom-build"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: "TargetKind | str") -> "TargetKind | str":
        """Map a known kind name to its member, pass other names through."""
        if isinstance(value, cls):
            return value
        for kind in cls:
            if kind.value == value:
                return kind
        return value


@dataclass(frozen=True)
class WorkspaceTarget:
    """Run every test in the workspace."""


@dataclass(frozen=True)
class PackageTarget:
    """Run the tests of one build target of one package.

    Attributes:
        package: Cargo package name
        target: Build target name (ignored for ``lib`` and ``other``)
        kind: Target kind; unknown strings are kept as named kinds
    """

    package: str
    target: str
    kind: TargetKind | str = TargetKind.LIB

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", TargetKind.coerce(self.kind))


TestTarget = WorkspaceTarget | PackageTarget


@dataclass(frozen=True)
class CargoOptions:
    """Cargo flags passed through to the test command.

    The builder never interprets these; ``apply_on_command`` appends them
    after the common flags.

    Attributes:
        target_tuples: ``--target`` triples
        all_targets: Add ``--all-targets``
        no_default_features: Add ``--no-default-features``
        all_features: Add ``--all-features`` (overrides the two below)
        features: Features for ``--features``
        target_dir: Custom ``--target-dir``
        extra_args: Extra arguments for cargo itself
        extra_test_bin_args: Extra arguments for the test binary (after ``--``)
        extra_env: Extra environment variables for the process
    """

    target_tuples: tuple[str, ...] = ()
    all_targets: bool = False
    no_default_features: bool = False
    all_features: bool = False
    features: tuple[str, ...] = ()
    target_dir: Path | None = None
    extra_args: tuple[str, ...] = ()
    extra_test_bin_args: tuple[str, ...] = ()
    extra_env: Mapping[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        """Freeze list-valued fields so options can be shared between runs."""
        for name in ("target_tuples", "features", "extra_args", "extra_test_bin_args"):
            object.__setattr__(self, name, tuple(getattr(self, name)))
        if isinstance(self.target_dir, str):
            object.__setattr__(self, "target_dir", Path(self.target_dir))
        object.__setattr__(self, "extra_env", MappingProxyType(dict(self.extra_env)))

    def apply_on_command(self, args: list[str], env: dict[str, str]) -> None:
        """Append these options to an argument list under construction."""
        for target in self.target_tuples:
            args.extend(["--target", target])
        if self.all_targets:
            args.append("--all-targets")
        if self.all_features:
            args.append("--all-features")
        else:
            if self.no_default_features:
                args.append("--no-default-features")
            if self.features:
                args.extend(["--features", " ".join(self.features)])
        if self.target_dir is not None:
            args.extend(["--target-dir", str(self.target_dir)])
        args.extend(self.extra_args)
        env.update(self.extra_env)


@dataclass(frozen=True)
class CommandSpec:
    """A fully built command, ready to hand to the process runner.

    Attributes:
        program: Executable name or path
        args: Arguments after the program
        cwd: Working directory
        env: Variables added on top of the inherited environment
    """

    program: str
    args: tuple[str, ...]
    cwd: Path
    env: Mapping[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))

    @property
    def argv(self) -> list[str]:
        """Program followed by its arguments."""
        return [self.program, *self.args]

    def display(self) -> str:
        """Shell-quoted rendering for logs, env assignments first."""
        env_part = " ".join(f"{k}={shlex.quote(v)}" for k, v in sorted(self.env.items()))
        cmd_part = shlex.join(self.argv)
        return f"{env_part} {cmd_part}" if env_part else cmd_part
