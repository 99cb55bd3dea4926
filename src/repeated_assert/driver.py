# src/repeated_assert/driver.py
"""Attempt driver: run a predicate until it stops failing.

The driver gives a block of plain assertions N attempts with a fixed delay
between them:

- attempts 0 .. N-2 run inside a protected frame (a tenacity attempt).
  A failure there is reported to the interceptor, which drops it because the
  calling worker is suppressed, and the next attempt follows after the delay.
- attempt N-1 is authoritative. Suppression is lifted first and the predicate
  is called directly, so its failure propagates exactly as if the assertions
  had been written in the test itself.

Only exceptions in the configured failure_types (AssertionError by default)
are retried. Anything else aborts the call at once.

Example:
    def file_appeared() -> None:
        assert Path("should_appear_soon.txt").exists()

    retry(10, 0.05, file_appeared)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Generic, TypeVar

from tenacity import (
    RetryError,
    Retrying,
    TryAgain,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from repeated_assert.catch import CatchPhase
from repeated_assert.clock import DEFAULT_CLOCK, Clock
from repeated_assert.config import DEFAULT_FAILURE_TYPES, RetryConfig
from repeated_assert.logging import get_logger
from repeated_assert.reporter import REPORTER_HOOK, ReporterHook
from repeated_assert.workers import current_worker_id

T = TypeVar("T")

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Success(Generic[T]):
    """Value returned by a successful non-final attempt."""

    value: T


class DriverBase:
    """State and tenacity wiring shared by the sync and async drivers."""

    def __init__(
        self,
        config: RetryConfig,
        *,
        clock: Clock = DEFAULT_CLOCK,
        hook: ReporterHook = REPORTER_HOOK,
    ) -> None:
        """Initialize with config.

        Args:
            config: Retry configuration for this call
            clock: Clock used for the delay between attempts
            hook: Interceptor that protected frames report failures to. The
                calling worker is suppressed in this hook's own set, so the
                guard and the interceptor always agree.
        """
        self._config = config
        self._clock = clock
        self._hook = hook
        self._suppressed = hook.suppressed

    @property
    def config(self) -> RetryConfig:
        return self._config

    def _catch_phase(self) -> CatchPhase | None:
        if self._config.catch_after is None or self._config.catch_hook is None:
            return None
        return CatchPhase(self._config.catch_after, self._config.catch_hook, self._config.final_index)

    def _retrying_kwargs(self) -> dict[str, Any]:
        """Tenacity settings covering the suppressed attempts only.

        stop_after_attempt(N-1) ends the loop after the last suppressed attempt
        without sleeping; the driver sleeps once more itself before the
        authoritative attempt.
        """
        return {
            "stop": stop_after_attempt(self._config.final_index),
            "wait": wait_fixed(self._config.delay),
            "retry": retry_if_exception_type(self._config.failure_types),
            "reraise": False,
        }

    def _record_failure(self, exc: BaseException, index: int, worker_id: str) -> None:
        self._hook.report(exc)
        logger.debug(
            "repeated_assert_attempt_failed",
            worker=worker_id,
            attempt=index,
            repetitions=self._config.repetitions,
            exc_type=type(exc).__name__,
        )


class AttemptDriver(DriverBase):
    """Blocking driver for synchronous predicates.

    Example:
        driver = AttemptDriver(RetryConfig.create(5, timedelta(milliseconds=500)))
        value = driver.run(lambda: read_counter_when_positive())
    """

    def run(self, predicate: Callable[[], T]) -> T:
        """Run predicate until it returns or the final attempt fails.

        Returns:
            Value of the first attempt that did not raise

        Raises:
            Exception: The final attempt's exception, unchanged; any exception
                outside failure_types as soon as it occurs; anything the
                catch hook raises
        """
        self._hook.install()
        worker_id = current_worker_id()
        if worker_id is None:
            # Nothing to scope suppression to: every attempt is authoritative
            logger.warning("repeated_assert_unidentified_worker", repetitions=self._config.repetitions)
            return predicate()

        with self._suppressed.guard(worker_id) as guard:
            if self._config.repetitions > 1:
                outcome = self._run_suppressed(predicate, worker_id)
                if outcome is not None:
                    return outcome.value
                self._clock.sleep(self._config.delay)
            guard.release()
            return predicate()

    def _run_suppressed(self, predicate: Callable[[], T], worker_id: str) -> Success[T] | None:
        catch = self._catch_phase()
        retrying = Retrying(sleep=self._clock.sleep, **self._retrying_kwargs())
        try:
            for attempt in retrying:
                index = attempt.retry_state.attempt_number - 1
                if catch is not None and catch.due(index):
                    # Outside the protected frame: hook failures abort the call
                    catch.fire()
                    with attempt:
                        raise TryAgain
                    continue
                with attempt:
                    return Success(self._attempt(predicate, index, worker_id))
        except RetryError:
            return None
        # Retrying always yields an attempt, raises, or stops with RetryError
        raise RuntimeError("Unexpected state in retry loop")  # pragma: no cover

    def _attempt(self, predicate: Callable[[], T], index: int, worker_id: str) -> T:
        try:
            return predicate()
        except self._config.failure_types as exc:
            self._record_failure(exc, index, worker_id)
            raise


def retry(
    repetitions: int,
    delay: float | timedelta,
    predicate: Callable[[], T],
    *,
    failure_types: tuple[type[BaseException], ...] = DEFAULT_FAILURE_TYPES,
    clock: Clock | None = None,
) -> T:
    """Assert predicate up to ``repetitions`` times, sleeping ``delay`` in between.

    Args:
        repetitions: Total attempts, at least 1
        delay: Seconds (or timedelta) to sleep after each failed attempt
        predicate: Zero-argument callable containing the assertions
        failure_types: Exceptions treated as a failed attempt
        clock: Clock used for sleeping, the system clock by default

    Returns:
        The predicate's return value from the first successful attempt
    """
    config = RetryConfig.create(repetitions, delay, failure_types=failure_types)
    return AttemptDriver(config, clock=clock or DEFAULT_CLOCK).run(predicate)


def retry_with_catch(
    repetitions: int,
    delay: float | timedelta,
    catch_after: int,
    catch_hook: Callable[[], object],
    predicate: Callable[[], T],
    *,
    failure_types: tuple[type[BaseException], ...] = DEFAULT_FAILURE_TYPES,
    clock: Clock | None = None,
) -> T:
    """Like retry(), but spend attempt ``catch_after`` on running ``catch_hook`` once.

    Example:
        # Poke an unreliable service after 5 unsuccessful attempts
        retry_with_catch(10, 0.05, 5, service.poke, lambda: check_output())
    """
    config = RetryConfig.create(
        repetitions,
        delay,
        catch_after=catch_after,
        catch_hook=catch_hook,
        failure_types=failure_types,
    )
    return AttemptDriver(config, clock=clock or DEFAULT_CLOCK).run(predicate)
