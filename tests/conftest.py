"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Add src to the Python path
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

FIXTURES_DIR = PROJECT_ROOT / "tests" / "fixtures"
FAKE_CARGO_PATH = FIXTURES_DIR / "fake_cargo.py"

from cargo_test_stream.command import CommandSpec  # noqa: E402


def fake_cargo_command(spec: CommandSpec, **env: str) -> CommandSpec:
    """Run a built command against the fake cargo script instead of cargo.

    Keeps the built arguments and environment; ``env`` adds FAKE_CARGO_*
    settings on top.
    """
    return CommandSpec(
        program=sys.executable,
        args=(str(FAKE_CARGO_PATH), *spec.args),
        cwd=spec.cwd,
        env={**spec.env, **env},
    )


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Minimal cargo project directory."""
    root = tmp_path / "demo"
    root.mkdir()
    (root / "Cargo.toml").write_text('[package]\nname = "demo"\nversion = "0.1.0"\n')
    return root
