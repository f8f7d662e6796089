"""Test output parsing.

cargo-test-stream parsers v0.1.0

Usage:
    from cargo_test_stream.parsers import CargoTestParser, parse_line

    buf: list[str] = []
    event = parse_line('{"type":"test","event":"ok","name":"t"}', buf)
    # TestEvent(type='test', name='t', state=TestOk(event='ok'))
"""

from __future__ import annotations

from .cargo_test import CargoTestParser, decode_json, decode_message, parse_eof, parse_line
from .events import (
    EVENT_ADAPTER,
    CargoTestEvent,
    CustomEvent,
    FinishedEvent,
    SuiteEvent,
    TestEvent,
    TestFailed,
    TestIgnored,
    TestOk,
    TestStarted,
    TestState,
)

__all__ = [
    "CargoTestParser",
    "decode_json",
    "decode_message",
    "parse_eof",
    "parse_line",
    "EVENT_ADAPTER",
    "CargoTestEvent",
    "CustomEvent",
    "FinishedEvent",
    "SuiteEvent",
    "TestEvent",
    "TestFailed",
    "TestIgnored",
    "TestOk",
    "TestStarted",
    "TestState",
]
