"""Result collector.

cargo-test-stream v0.1.0

Folds a run's event stream into a ``TestRunSummary``. Kept apart from the
handle so it can be fed from any event source (a handle, a list of parsed
lines in tests).

Responsibilities:
- Track each test's latest state in first-seen order
- Keep captured stdout of failed tests
- Keep unstructured output lines (compiler messages, panics, warnings)
- Treat repeated ``FinishedEvent`` as one
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, Iterable
from dataclasses import dataclass, field
from enum import Enum

from .parsers import (
    CustomEvent,
    FinishedEvent,
    SuiteEvent,
    TestEvent,
    TestFailed,
    TestIgnored,
    TestOk,
    TestStarted,
)
from .parsers.cargo_test import Event

__all__ = [
    "Outcome",
    "TestOutcome",
    "TestRunSummary",
    "ResultCollector",
    "collect",
]

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    """Final state of one test."""

    RUNNING = "running"   # started, no result seen
    PASSED = "passed"
    FAILED = "failed"
    IGNORED = "ignored"


@dataclass
class TestOutcome:
    name: str
    outcome: Outcome
    stdout: str | None = None


@dataclass
class TestRunSummary:
    """Everything a run reported.

    Attributes:
        tests: Per-test outcomes, in the order tests were first seen
        suites: Number of suite messages
        output: Unstructured output lines, verbatim
        finished: Whether a terminal event was seen
        exit_code: Process exit code, if known
    """

    tests: list[TestOutcome] = field(default_factory=list)
    suites: int = 0
    output: list[str] = field(default_factory=list)
    finished: bool = False
    exit_code: int | None = None

    def _count(self, outcome: Outcome) -> int:
        return sum(1 for t in self.tests if t.outcome is outcome)

    @property
    def passed(self) -> int:
        return self._count(Outcome.PASSED)

    @property
    def failed(self) -> int:
        return self._count(Outcome.FAILED)

    @property
    def ignored(self) -> int:
        return self._count(Outcome.IGNORED)

    @property
    def running(self) -> int:
        return self._count(Outcome.RUNNING)

    @property
    def failures(self) -> list[TestOutcome]:
        return [t for t in self.tests if t.outcome is Outcome.FAILED]

    @property
    def success(self) -> bool:
        """Finished with no failed and no unfinished tests."""
        return self.finished and self.failed == 0 and self.running == 0

    def format(self, max_output_lines: int = 20) -> str:
        """Human-readable report."""
        status = "ok" if self.success else "FAILED"
        lines = [
            f"test result: {status}. {self.passed} passed; {self.failed} failed; "
            f"{self.ignored} ignored; {self.running} unfinished"
        ]
        if self.exit_code is not None:
            lines.append(f"exit code: {self.exit_code}")
        for failure in self.failures:
            lines.append("")
            lines.append(f"---- {failure.name} ----")
            if failure.stdout:
                lines.append(failure.stdout.rstrip("\n"))
        unfinished = [t.name for t in self.tests if t.outcome is Outcome.RUNNING]
        if unfinished:
            lines.append("")
            lines.append("unfinished: " + ", ".join(unfinished))
        if not self.tests and self.output:
            # Nothing structured came out, usually a build error
            lines.append("")
            lines.extend(self.output[-max_output_lines:])
        return "\n".join(lines)


class ResultCollector:
    """Accumulates events into a ``TestRunSummary``.

    Example:
        collector = ResultCollector()
        for event in events:
            collector.process_event(event)
        summary = collector.summary
    """

    def __init__(self) -> None:
        self.summary = TestRunSummary()
        self._index: dict[str, int] = {}

    def process_event(self, event: Event) -> None:
        if isinstance(event, TestEvent):
            self._process_test(event)
        elif isinstance(event, SuiteEvent):
            self.summary.suites += 1
        elif isinstance(event, FinishedEvent):
            self.summary.finished = True
        elif isinstance(event, CustomEvent):
            if event.text:
                self.summary.output.append(event.text)

    def process_events(self, events: Iterable[Event]) -> TestRunSummary:
        for event in events:
            self.process_event(event)
        return self.summary

    def _process_test(self, event: TestEvent) -> None:
        state = event.state
        stdout = None
        if isinstance(state, TestStarted):
            outcome = Outcome.RUNNING
        elif isinstance(state, TestOk):
            outcome = Outcome.PASSED
        elif isinstance(state, TestIgnored):
            outcome = Outcome.IGNORED
        elif isinstance(state, TestFailed):
            outcome = Outcome.FAILED
            stdout = state.stdout
        else:
            logger.warning(f"Unhandled test state: {state!r}")
            return

        index = self._index.get(event.name)
        if index is None:
            self._index[event.name] = len(self.summary.tests)
            self.summary.tests.append(TestOutcome(event.name, outcome, stdout))
        elif outcome is not Outcome.RUNNING:
            self.summary.tests[index] = TestOutcome(event.name, outcome, stdout)


async def collect(events: AsyncIterable[Event]) -> TestRunSummary:
    """Drain an async event source (e.g. ``handle.events``) into a summary."""
    collector = ResultCollector()
    async for event in events:
        collector.process_event(event)
    return collector.summary
