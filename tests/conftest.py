# tests/conftest.py
"""Shared test fixtures and helpers.

Isolation:
- isolated_reporter: A private SuppressionSet + ReporterHook pair whose
  installation is undone after the test. threading.excepthook is replaced by
  a recorder first, so "forwarded to the original reporter" is observable.
- clock: MockClock that records every sleep without blocking.

Background workers:
- Counter + spawn_incrementer mimic "another thread changes shared state
  after a while", the situation the harness exists for.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI - default
- "nightly" profile: Thorough tests

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import os
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

import pytest
from hypothesis import settings

from repeated_assert.clock import MockClock
from repeated_assert.reporter import ReporterHook
from repeated_assert.suppression import SuppressionSet

pytest_plugins = ["pytester"]

settings.register_profile("ci", max_examples=100, deadline=None)
settings.register_profile("nightly", max_examples=1000, deadline=None)
settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE", "ci"))

# Base unit for tests that use real sleeps; kept small so the suite stays fast
STEP_SECONDS = 0.02


class ExceptHookRecorder:
    """Stand-in for the pre-existing threading.excepthook."""

    def __init__(self) -> None:
        self.calls: list[threading.ExceptHookArgs] = []
        self._lock = threading.Lock()

    def __call__(self, args: threading.ExceptHookArgs) -> None:
        with self._lock:
            self.calls.append(args)

    @property
    def exceptions(self) -> list[BaseException | None]:
        with self._lock:
            return [call.exc_value for call in self.calls]


@dataclass
class IsolatedReporter:
    suppressed: SuppressionSet
    hook: ReporterHook
    recorder: ExceptHookRecorder


@pytest.fixture
def isolated_reporter(monkeypatch: pytest.MonkeyPatch) -> IsolatedReporter:
    """Fresh suppression set and interceptor chained to a recording hook."""
    recorder = ExceptHookRecorder()
    # monkeypatch restores the real hook after the test, undoing install()
    monkeypatch.setattr(threading, "excepthook", recorder)
    suppressed = SuppressionSet()
    return IsolatedReporter(suppressed=suppressed, hook=ReporterHook(suppressed), recorder=recorder)


@pytest.fixture
def clock() -> MockClock:
    return MockClock()


@dataclass
class Counter:
    """Integer shared between the test and a background worker."""

    value: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def get(self) -> int:
        with self._lock:
            return self.value

    def set(self, value: int) -> None:
        with self._lock:
            self.value = value

    def increment(self) -> None:
        with self._lock:
            self.value += 1


@pytest.fixture
def spawn_incrementer() -> Iterator[Callable[..., threading.Thread]]:
    """Start daemon threads that increment a Counter every ``period`` seconds."""
    stop = threading.Event()
    threads: list[threading.Thread] = []

    def spawn(counter: Counter, period: float = 10 * STEP_SECONDS) -> threading.Thread:
        def run() -> None:
            while not stop.wait(period):
                counter.increment()

        thread = threading.Thread(target=run, name=f"incrementer-{len(threads)}", daemon=True)
        threads.append(thread)
        thread.start()
        return thread

    yield spawn

    stop.set()
    for thread in threads:
        thread.join(timeout=1.0)


def run_in_thread(target: Callable[[], object], name: str) -> tuple[object, BaseException | None]:
    """Run ``target`` on a thread called ``name`` and return (result, exception).

    An empty name is applied after start, since Thread() would replace it
    with a generated one.
    """
    outcome: dict[str, object] = {}

    def wrapper() -> None:
        threading.current_thread().name = name
        try:
            outcome["result"] = target()
        except BaseException as exc:
            outcome["error"] = exc

    thread = threading.Thread(target=wrapper, name=name or None)
    thread.start()
    thread.join(timeout=10.0)
    assert not thread.is_alive(), f"thread {name!r} did not finish"
    error = outcome.get("error")
    return outcome.get("result"), error if isinstance(error, BaseException) else None
