"""Runtime module for subprocess management and event streaming.

This module provides isolated process execution and the run handle that
streams parsed test events to the caller.
"""

from __future__ import annotations

from .handle import CargoTestHandle
from .process_runner import ProcessRunner, SpawnedProcess

__all__ = [
    "CargoTestHandle",
    "ProcessRunner",
    "SpawnedProcess",
]
