"""Line parser for cargo test / nextest output.

cargo-test-stream parsers v0.1.0

Every line of output maps to exactly one event:

1. Try to decode the line as a libtest JSON message (test/suite/finished).
2. On any failure (bad JSON, unknown shape, plain text, blank line) fall
   back to ``CustomEvent(text=line)``.

End of stream always yields ``FinishedEvent``, even if the driver already
printed one, so consumers always see a terminal marker.

JSON is decoded with an explicit stack instead of ``json.loads``, whose
recursive scanner gives up around a thousand nesting levels. Any depth
decodes as long as the line is valid JSON.
"""

from __future__ import annotations

import json
import logging
import re
from json.decoder import scanstring
from typing import Any

from pydantic import ValidationError

from .events import (
    WIRE_MESSAGE_ADAPTER,
    CustomEvent,
    FinishedEvent,
    SuiteEvent,
    TestEvent,
)

__all__ = [
    "CargoTestParser",
    "decode_json",
    "decode_message",
    "parse_line",
    "parse_eof",
]

logger = logging.getLogger(__name__)

Event = TestEvent | SuiteEvent | FinishedEvent | CustomEvent

_WHITESPACE = re.compile(r"[ \t\n\r]*")
_SCALAR_DECODER = json.JSONDecoder()


def _skip_ws(text: str, idx: int) -> int:
    return _WHITESPACE.match(text, idx).end()


def _read_key(text: str, idx: int) -> tuple[str, int]:
    """Read ``"key":`` starting at ``idx``; return the key and the value offset."""
    idx = _skip_ws(text, idx)
    if not text.startswith('"', idx):
        raise ValueError(f"Expecting property name at {idx}")
    key, idx = scanstring(text, idx + 1)
    idx = _skip_ws(text, idx)
    if not text.startswith(":", idx):
        raise ValueError(f"Expecting ':' at {idx}")
    return key, idx + 1


def decode_json(text: str) -> Any:
    """Decode one JSON document without recursion.

    Accepts the same input as ``json.loads`` (including its NaN/Infinity
    extension). Containers are opened and closed on an explicit stack, and
    scalars are handed to the stdlib decoder, which never recurses for them.

    Raises:
        ValueError: The text is not a single JSON document
    """
    stack: list[dict[str, Any] | list[Any]] = []
    keys: list[str | None] = []
    idx = 0
    while True:
        idx = _skip_ws(text, idx)
        char = text[idx:idx + 1]
        if char == "{":
            idx = _skip_ws(text, idx + 1)
            if text.startswith("}", idx):
                value: Any = {}
                idx += 1
            else:
                key, idx = _read_key(text, idx)
                stack.append({})
                keys.append(key)
                continue
        elif char == "[":
            idx = _skip_ws(text, idx + 1)
            if text.startswith("]", idx):
                value = []
                idx += 1
            else:
                stack.append([])
                keys.append(None)
                continue
        else:
            value, idx = _SCALAR_DECODER.raw_decode(text, idx)

        # Attach the value, closing every container it completes
        while True:
            if not stack:
                if _skip_ws(text, idx) != len(text):
                    raise ValueError(f"Extra data at {idx}")
                return value
            container = stack[-1]
            if isinstance(container, dict):
                container[keys[-1]] = value
            else:
                container.append(value)
            idx = _skip_ws(text, idx)
            char = text[idx:idx + 1]
            if char == ",":
                if isinstance(container, dict):
                    keys[-1], idx = _read_key(text, idx + 1)
                else:
                    idx += 1
                break
            closer = "}" if isinstance(container, dict) else "]"
            if char != closer:
                raise ValueError(f"Expecting ',' or {closer!r} at {idx}")
            idx += 1
            value = stack.pop()
            keys.pop()


def decode_message(line: str) -> TestEvent | SuiteEvent | FinishedEvent | None:
    """Decode one line as a structured message.

    Only the fields the event model needs are validated; nested extra
    fields are accepted at any depth and otherwise ignored.

    Returns:
        The decoded message, or None if the line is not one
    """
    try:
        data = decode_json(line)
        return WIRE_MESSAGE_ADAPTER.validate_python(data)
    except (ValueError, ValidationError):
        return None


def parse_line(line: str, buf: list[str]) -> Event:
    """Map one output line to an event.

    Args:
        line: Line without its trailing newline
        buf: Caller-owned accumulator, kept across calls for the same
            stream. Reserved for messages spanning several lines; none of
            the current shapes do.

    Returns:
        The decoded message, or ``CustomEvent`` carrying the line verbatim
    """
    message = decode_message(line)
    if message is not None:
        return message
    return CustomEvent(text=line)


def parse_eof() -> FinishedEvent:
    """Terminal event emitted once the output stream is closed."""
    return FinishedEvent()


class CargoTestParser:
    """Stream parser bound to one run.

    The parsing itself is the stateless ``parse_line``; the accumulator is
    owned by the caller and passed on every call, one list per stream.
    The parser only keeps counters for logging.

    Example:
        parser = CargoTestParser()
        buf: list[str] = []
        for line in lines:
            handle_event(parser.from_line(line, buf))
        handle_event(parser.from_eof())
    """

    def __init__(self) -> None:
        self.line_count = 0
        self.custom_count = 0

    def from_line(self, line: str, buf: list[str]) -> Event:
        """Parse one line with the caller's accumulator."""
        self.line_count += 1
        event = parse_line(line, buf)
        if isinstance(event, CustomEvent):
            self.custom_count += 1
            if line:
                logger.debug(f"Non-JSON line: {line[:100]}")
        return event

    def from_eof(self) -> FinishedEvent:
        """Terminal event for this stream."""
        logger.debug(
            f"End of stream after {self.line_count} lines "
            f"({self.custom_count} unstructured)"
        )
        return parse_eof()
