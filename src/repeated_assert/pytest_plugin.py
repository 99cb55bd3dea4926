# src/repeated_assert/pytest_plugin.py
"""Pytest plugin providing the ``repeated_assert`` fixture.

Registered through the ``pytest11`` entry point, so it is active in every
test session once the package is installed.

Usage:
    # Defaults from REPEATED_ASSERT_* env vars or ini options
    def test_file_appears(repeated_assert, tmp_path):
        start_writer(tmp_path / "out.txt")
        repeated_assert.that(lambda: _exists(tmp_path / "out.txt"))

    # Per-test override via marker
    @pytest.mark.repeated_assert(repetitions=20, delay=0.1)
    def test_slow_service(repeated_assert):
        repeated_assert.that(check_service)

    # Catch phase; catch_after from the marker
    @pytest.mark.repeated_assert(catch_after=5)
    def test_unreliable(repeated_assert):
        repeated_assert.with_catch(service.poke, check_service)

Configuration precedence (highest first): marker kwargs, ini options
(repeated_assert_repetitions, repeated_assert_delay), REPEATED_ASSERT_*
environment variables, built-in defaults.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import pytest

from repeated_assert.config import DEFAULT_FAILURE_TYPES, RepeatedAssertSettings, RetryConfig, load_settings
from repeated_assert.driver import AttemptDriver

T = TypeVar("T")

# Marker kwarg -> settings field
_MARKER_FIELDS = {
    "repetitions": "repetitions",
    "delay": "delay_seconds",
    "catch_after": "catch_after",
}


class RepeatedAssert:
    """Retry harness bound to a test's effective settings.

    Attributes:
        settings: Validated settings every call made through this object uses
        failure_types: Exceptions treated as a failed attempt
    """

    def __init__(
        self,
        settings: RepeatedAssertSettings,
        failure_types: tuple[type[BaseException], ...] = DEFAULT_FAILURE_TYPES,
    ) -> None:
        self.settings = settings
        self.failure_types = failure_types

    def that(self, predicate: Callable[[], T]) -> T:
        """Retry predicate with the bound repetitions and delay."""
        config = RetryConfig.from_settings(self.settings, failure_types=self.failure_types)
        return AttemptDriver(config).run(predicate)

    def with_catch(self, catch_hook: Callable[[], object], predicate: Callable[[], T]) -> T:
        """Retry predicate, running catch_hook once at the configured catch_after.

        Raises:
            ValueError: If no catch_after is configured
        """
        if self.settings.catch_after is None:
            raise ValueError("with_catch() needs catch_after; set it via the repeated_assert marker")
        config = RetryConfig.from_settings(self.settings, catch_hook=catch_hook, failure_types=self.failure_types)
        return AttemptDriver(config).run(predicate)


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register ini options for session-wide defaults."""
    parser.addini(
        "repeated_assert_repetitions",
        help="Default number of attempts for the repeated_assert fixture",
        default=None,
    )
    parser.addini(
        "repeated_assert_delay",
        help="Default delay in seconds between attempts for the repeated_assert fixture",
        default=None,
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register the repeated_assert marker."""
    config.addinivalue_line(
        "markers",
        "repeated_assert(repetitions=None, delay=None, catch_after=None): "
        "Override the repeated_assert fixture's settings for this test.",
    )


def _ini_overrides(config: pytest.Config) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    repetitions = config.getini("repeated_assert_repetitions")
    if repetitions:
        overrides["repetitions"] = int(repetitions)
    delay = config.getini("repeated_assert_delay")
    if delay:
        overrides["delay_seconds"] = float(delay)
    return overrides


def _marker_overrides(marker: pytest.Mark | None) -> dict[str, Any]:
    if marker is None:
        return {}
    unknown = set(marker.kwargs) - set(_MARKER_FIELDS)
    if unknown:
        raise pytest.UsageError(f"Unknown repeated_assert marker arguments: {sorted(unknown)}")
    return {_MARKER_FIELDS[key]: value for key, value in marker.kwargs.items()}


def build_settings(config: pytest.Config, marker: pytest.Mark | None) -> RepeatedAssertSettings:
    """Merge env/ini/marker sources into validated settings."""
    base = load_settings()
    merged = {
        **base.model_dump(),
        **_ini_overrides(config),
        **_marker_overrides(marker),
    }
    return RepeatedAssertSettings(**merged)


@pytest.fixture
def repeated_assert(request: pytest.FixtureRequest) -> RepeatedAssert:
    """Retry harness configured for the requesting test."""
    marker = request.node.get_closest_marker("repeated_assert")
    return RepeatedAssert(build_settings(request.config, marker))
