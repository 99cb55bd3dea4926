# src/repeated_assert/config.py
"""Configuration for retry calls.

Two layers:

1. RepeatedAssertSettings: Pydantic model for user-facing defaults, loaded
   from environment variables (REPEATED_ASSERT_*) and an optional YAML file
   via Dynaconf, or from pytest ini options by the plugin.
2. RetryConfig: Frozen runtime dataclass consumed by the attempt driver.
   One is built per call and never mutated.

Field Mapping (settings -> runtime):
    settings.repetitions -> repetitions (direct)
    settings.delay_seconds -> delay (renamed)
    settings.catch_after -> catch_after (direct, only with a catch hook)
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, model_validator

DEFAULT_REPETITIONS = 10
DEFAULT_DELAY_SECONDS = 0.05

# Only assertion failures are retried unless the caller widens this
DEFAULT_FAILURE_TYPES: tuple[type[BaseException], ...] = (AssertionError,)


def as_seconds(delay: float | timedelta) -> float:
    """Normalise a delay given as seconds or timedelta to float seconds."""
    if isinstance(delay, timedelta):
        return delay.total_seconds()
    return float(delay)


class RepeatedAssertSettings(BaseModel):
    """User-facing defaults for retry calls."""

    model_config = {"frozen": True}

    repetitions: int = Field(default=DEFAULT_REPETITIONS, gt=0, description="Total attempts, final one included")
    delay_seconds: float = Field(default=DEFAULT_DELAY_SECONDS, ge=0, allow_inf_nan=False, description="Sleep between attempts")
    catch_after: int | None = Field(default=None, ge=0, description="Attempt index replaced by the catch hook")

    @model_validator(mode="after")
    def validate_catch_after(self) -> RepeatedAssertSettings:
        if self.catch_after is not None and self.catch_after >= self.repetitions:
            raise ValueError(f"catch_after ({self.catch_after}) must be less than repetitions ({self.repetitions})")
        return self


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Runtime configuration for one retry call.

    repetitions is the TOTAL number of attempts, the authoritative final
    attempt included. So repetitions=3 means: suppressed, suppressed, final.
    """

    repetitions: int
    delay: float  # seconds
    catch_after: int | None = None
    catch_hook: Callable[[], object] | None = None
    failure_types: tuple[type[BaseException], ...] = DEFAULT_FAILURE_TYPES

    def __post_init__(self) -> None:
        """Validate configuration values."""
        # bool is an int subclass; True would silently mean one attempt
        if isinstance(self.repetitions, bool) or not isinstance(self.repetitions, int):
            raise ValueError(f"repetitions must be an int, got {type(self.repetitions).__name__}")
        if self.repetitions < 1:
            raise ValueError("repetitions must be >= 1")
        if math.isnan(self.delay) or math.isinf(self.delay) or self.delay < 0:
            raise ValueError(f"delay must be a finite number >= 0, got {self.delay}")
        if (self.catch_after is None) != (self.catch_hook is None):
            raise ValueError("catch_after and catch_hook must be given together")
        if self.catch_after is not None and not 0 <= self.catch_after < self.repetitions:
            raise ValueError(f"catch_after must be in [0, {self.repetitions}), got {self.catch_after}")
        if not self.failure_types:
            raise ValueError("failure_types must not be empty")
        for failure_type in self.failure_types:
            if not (isinstance(failure_type, type) and issubclass(failure_type, BaseException)):
                raise ValueError(f"failure_types must contain exception classes, got {failure_type!r}")

    @property
    def final_index(self) -> int:
        """Index of the authoritative attempt."""
        return self.repetitions - 1

    @classmethod
    def create(
        cls,
        repetitions: int,
        delay: float | timedelta,
        *,
        catch_after: int | None = None,
        catch_hook: Callable[[], object] | None = None,
        failure_types: tuple[type[BaseException], ...] = DEFAULT_FAILURE_TYPES,
    ) -> RetryConfig:
        """Factory accepting the delay as seconds or timedelta."""
        return cls(
            repetitions=repetitions,
            delay=as_seconds(delay),
            catch_after=catch_after,
            catch_hook=catch_hook,
            failure_types=tuple(failure_types),
        )

    @classmethod
    def default(cls) -> RetryConfig:
        return cls(repetitions=DEFAULT_REPETITIONS, delay=DEFAULT_DELAY_SECONDS)

    @classmethod
    def single_attempt(cls) -> RetryConfig:
        """Factory for a config equivalent to asserting the predicate directly."""
        return cls(repetitions=1, delay=0.0)

    @classmethod
    def from_settings(
        cls,
        settings: RepeatedAssertSettings,
        *,
        catch_hook: Callable[[], object] | None = None,
        failure_types: tuple[type[BaseException], ...] = DEFAULT_FAILURE_TYPES,
    ) -> RetryConfig:
        """Factory from validated settings.

        settings.catch_after is only applied when a catch hook is supplied.
        """
        return cls(
            repetitions=settings.repetitions,
            delay=settings.delay_seconds,
            catch_after=settings.catch_after if catch_hook is not None else None,
            catch_hook=catch_hook,
            failure_types=failure_types,
        )


def load_settings(config_path: Path | None = None) -> RepeatedAssertSettings:
    """Load settings from environment variables and an optional YAML file.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (REPEATED_ASSERT_*) - highest priority
    2. Config file, if given
    3. Defaults from the Pydantic schema - lowest priority

    Args:
        config_path: Optional path to a YAML configuration file

    Returns:
        Validated RepeatedAssertSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config_path is given but doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if config_path is not None and not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="REPEATED_ASSERT",
        settings_files=[str(config_path)] if config_path is not None else [],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys and its own bookkeeping entries
    known_fields = set(RepeatedAssertSettings.model_fields)
    raw_config: dict[str, Any] = {
        key.lower(): value for key, value in dynaconf_settings.as_dict().items() if key.lower() in known_fields
    }
    return RepeatedAssertSettings(**raw_config)
