"""CTS environment variable configuration.

Environment variables:
    CTS_CARGO: cargo executable name or path
        - default "cargo"

    CTS_TEST_TOOL: default test driver
        - cargo_test / test = cargo test (default)
        - cargo_nextest / nextest = cargo nextest run

    CTS_TERM_TIMEOUT: seconds to wait after SIGTERM before SIGKILL
        - default 2.0, clamped to 0.1-60

    CTS_LOG_DEBUG: log debug output to a temp file
        - true/1/yes = on
        - false/0/no = off (default, logs go to stderr)
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from .command import TestToolKind

__all__ = ["Config", "load_config", "get_config", "reload_config"]

logger = logging.getLogger(__name__)


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse a boolean environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_test_tool(value: str | None) -> TestToolKind:
    """Parse CTS_TEST_TOOL, falling back to cargo test on bad values."""
    if not value or not value.strip():
        return TestToolKind.CARGO_TEST
    try:
        return TestToolKind.from_string(value)
    except ValueError:
        logger.warning(f"Unknown CTS_TEST_TOOL {value!r}, using cargo_test")
        return TestToolKind.CARGO_TEST


def _parse_term_timeout(value: str | None) -> float:
    """Parse CTS_TERM_TIMEOUT."""
    if not value:
        return 2.0
    try:
        timeout = float(value)
        return max(0.1, min(timeout, 60.0))
    except ValueError:
        return 2.0


@dataclass
class Config:
    """CTS configuration.

    Attributes:
        cargo: cargo executable
        test_tool: Default test driver
        term_timeout: Seconds between SIGTERM and SIGKILL
        log_debug: Debug logging to a temp file
        log_file: Log file path (set when log_debug is on)
    """

    cargo: str = "cargo"
    test_tool: TestToolKind = TestToolKind.CARGO_TEST
    term_timeout: float = 2.0
    log_debug: bool = False
    log_file: str | None = None


def _generate_log_file_path() -> str:
    """Log file path in the temp directory, timestamped."""
    log_dir = Path(tempfile.gettempdir()) / "cargo-test-stream"
    log_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return str((log_dir / f"cts_debug_{timestamp}.log").resolve())


def load_config() -> Config:
    """Load the configuration from the environment."""
    log_debug = _parse_bool(os.environ.get("CTS_LOG_DEBUG"), default=False)

    return Config(
        cargo=os.environ.get("CTS_CARGO", "").strip() or "cargo",
        test_tool=_parse_test_tool(os.environ.get("CTS_TEST_TOOL")),
        term_timeout=_parse_term_timeout(os.environ.get("CTS_TERM_TIMEOUT")),
        log_debug=log_debug,
        log_file=_generate_log_file_path() if log_debug else None,
    )


# Global instance, loaded lazily
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload the configuration (for tests)."""
    global _config
    _config = load_config()
    return _config
