"""Exceptions raised by cargo-test-stream.

cargo-test-stream v0.1.0

Only spawn-time failures surface as exceptions. Anything odd that happens
once the process is running (unexpected output, early exit) is folded into
the event stream instead.
"""

from __future__ import annotations

__all__ = [
    "CargoTestStreamError",
    "SpawnError",
]


class CargoTestStreamError(Exception):
    """Base exception for this package."""
    pass


class SpawnError(CargoTestStreamError):
    """The test process could not be started.

    Raised synchronously from ``CargoTestHandle.start`` when the executable
    is missing, not executable, or the pipes could not be created. No events
    are produced for a run that fails this way.

    Attributes:
        program: Executable that was being launched
        cause: Underlying OS error
    """

    def __init__(self, program: str, cause: OSError) -> None:
        self.program = program
        self.cause = cause
        super().__init__(f"failed to spawn {program!r}: {cause}")
