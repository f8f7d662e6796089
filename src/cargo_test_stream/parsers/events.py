"""Test event model.

cargo-test-stream parsers v0.1.0

One event per line of test-driver output. The wire shapes follow libtest's
JSON format:

    {"type": "suite", "event": "started", "test_count": 3}
    {"type": "test", "event": "started", "name": "tests::it_works"}
    {"type": "test", "event": "failed", "name": "tests::f", "stdout": "..."}
    {"type": "finished"}

Unknown fields are ignored so newer driver versions keep decoding.
Anything that is not one of these shapes becomes a ``CustomEvent``.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

__all__ = [
    # Test states
    "TestStarted",
    "TestOk",
    "TestIgnored",
    "TestFailed",
    "TestState",
    # Events
    "TestEvent",
    "SuiteEvent",
    "FinishedEvent",
    "CustomEvent",
    "CargoTestEvent",
    # Adapters
    "WIRE_MESSAGE_ADAPTER",
    "EVENT_ADAPTER",
]


class _Frozen(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class TestStarted(_Frozen):
    """The test began running."""

    event: Literal["started"] = "started"


class TestOk(_Frozen):
    """The test passed."""

    event: Literal["ok"] = "ok"


class TestIgnored(_Frozen):
    """The test was skipped (``#[ignore]``)."""

    event: Literal["ignored"] = "ignored"


class TestFailed(_Frozen):
    """The test failed.

    Attributes:
        stdout: Captured output; None when libtest sent none or an empty string
    """

    event: Literal["failed"] = "failed"
    stdout: str | None = None

    @field_validator("stdout")
    @classmethod
    def _empty_is_none(cls, value: str | None) -> str | None:
        return value or None


TestState = Annotated[
    Union[TestStarted, TestOk, TestIgnored, TestFailed],
    Field(discriminator="event"),
]


class TestEvent(_Frozen):
    """State change of a single test.

    On the wire the state is flattened into the message (``event`` and
    ``stdout`` sit next to ``name``); it is nested here.
    """

    type: Literal["test"] = "test"
    name: str
    state: TestState

    @model_validator(mode="before")
    @classmethod
    def _nest_state(cls, data: Any) -> Any:
        if isinstance(data, dict) and "state" not in data and "event" in data:
            state = {"event": data["event"]}
            if "stdout" in data:
                state["stdout"] = data["stdout"]
            data = {**data, "state": state}
        return data


class SuiteEvent(_Frozen):
    """Suite-level message (start or end of a test binary)."""

    type: Literal["suite"] = "suite"


class FinishedEvent(_Frozen):
    """End of the run. May be seen twice; treat as idempotent."""

    type: Literal["finished"] = "finished"


class CustomEvent(_Frozen):
    """A line that is not a known structured message, kept verbatim."""

    type: Literal["custom"] = "custom"
    text: str


CargoTestEvent = Annotated[
    Union[TestEvent, SuiteEvent, FinishedEvent, CustomEvent],
    Field(discriminator="type"),
]

# Shapes accepted from the driver's output. ``custom`` is ours, not libtest's.
_WireMessage = Annotated[
    Union[TestEvent, SuiteEvent, FinishedEvent],
    Field(discriminator="type"),
]

WIRE_MESSAGE_ADAPTER: TypeAdapter[TestEvent | SuiteEvent | FinishedEvent] = TypeAdapter(_WireMessage)
EVENT_ADAPTER: TypeAdapter[TestEvent | SuiteEvent | FinishedEvent | CustomEvent] = TypeAdapter(CargoTestEvent)
