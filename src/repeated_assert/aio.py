# src/repeated_assert/aio.py
"""Asyncio adapter for the attempt driver.

Same contract as repeated_assert.driver, for predicates that must be awaited:
the predicate is a zero-argument callable returning an awaitable, and the
delay between attempts is a cooperative asyncio sleep instead of a blocking
one. Suppression is keyed on "<thread name>/<task name>", so concurrent tasks
on one event loop never silence each other.

Example:
    async def message_arrived() -> None:
        assert await inbox.count() == 1

    await retry_async(10, 0.05, message_arrived)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import TypeVar

from tenacity import AsyncRetrying, RetryError, TryAgain

from repeated_assert.clock import DEFAULT_CLOCK, Clock
from repeated_assert.config import DEFAULT_FAILURE_TYPES, RetryConfig
from repeated_assert.driver import DriverBase, Success
from repeated_assert.logging import get_logger
from repeated_assert.workers import current_worker_id

T = TypeVar("T")

logger = get_logger(__name__)


class AsyncAttemptDriver(DriverBase):
    """Cooperative driver for awaitable predicates."""

    async def run(self, predicate: Callable[[], Awaitable[T]]) -> T:
        """Await predicate until it returns or the final attempt fails.

        Raises:
            Exception: The final attempt's exception, unchanged
        """
        self._hook.install()
        worker_id = current_worker_id()
        if worker_id is None:
            logger.warning("repeated_assert_unidentified_worker", repetitions=self._config.repetitions)
            return await predicate()

        with self._suppressed.guard(worker_id) as guard:
            if self._config.repetitions > 1:
                outcome = await self._run_suppressed(predicate, worker_id)
                if outcome is not None:
                    return outcome.value
                await self._clock.async_sleep(self._config.delay)
            guard.release()
            return await predicate()

    async def _run_suppressed(self, predicate: Callable[[], Awaitable[T]], worker_id: str) -> Success[T] | None:
        catch = self._catch_phase()
        retrying = AsyncRetrying(sleep=self._clock.async_sleep, **self._retrying_kwargs())
        try:
            async for attempt in retrying:
                index = attempt.retry_state.attempt_number - 1
                if catch is not None and catch.due(index):
                    await catch.fire_async()
                    with attempt:
                        raise TryAgain
                    continue
                with attempt:
                    return Success(await self._attempt(predicate, index, worker_id))
        except RetryError:
            return None
        raise RuntimeError("Unexpected state in retry loop")  # pragma: no cover

    async def _attempt(self, predicate: Callable[[], Awaitable[T]], index: int, worker_id: str) -> T:
        try:
            return await predicate()
        except self._config.failure_types as exc:
            self._record_failure(exc, index, worker_id)
            raise


async def retry_async(
    repetitions: int,
    delay: float | timedelta,
    predicate: Callable[[], Awaitable[T]],
    *,
    failure_types: tuple[type[BaseException], ...] = DEFAULT_FAILURE_TYPES,
    clock: Clock | None = None,
) -> T:
    """Async counterpart of repeated_assert.retry()."""
    config = RetryConfig.create(repetitions, delay, failure_types=failure_types)
    return await AsyncAttemptDriver(config, clock=clock or DEFAULT_CLOCK).run(predicate)


async def retry_with_catch_async(
    repetitions: int,
    delay: float | timedelta,
    catch_after: int,
    catch_hook: Callable[[], object],
    predicate: Callable[[], Awaitable[T]],
    *,
    failure_types: tuple[type[BaseException], ...] = DEFAULT_FAILURE_TYPES,
    clock: Clock | None = None,
) -> T:
    """Async counterpart of repeated_assert.retry_with_catch().

    catch_hook may be a plain function or a coroutine function.
    """
    config = RetryConfig.create(
        repetitions,
        delay,
        catch_after=catch_after,
        catch_hook=catch_hook,
        failure_types=failure_types,
    )
    return await AsyncAttemptDriver(config, clock=clock or DEFAULT_CLOCK).run(predicate)
