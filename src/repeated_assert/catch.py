# src/repeated_assert/catch.py
"""Catch phase: a single-shot hook fired mid-run.

With catch_after=K, attempt K does not call the predicate. Instead the
worker announces itself on stdout, runs the hook once and then sleeps the
regular delay, so attempt K is spent on the hook. The hook gives a test the
chance to poke an unreliable collaborator before the remaining attempts.

The hook is never protected: anything it raises aborts the retry call.
If K is the final attempt index the hook never runs.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable

from repeated_assert.logging import get_logger
from repeated_assert.workers import current_worker_name

logger = get_logger(__name__)

ANNOUNCEMENT = "{worker}: executing repeated-assert catch block"


def announce() -> None:
    """Print the catch announcement line for the calling worker."""
    worker = current_worker_name()
    print(ANNOUNCEMENT.format(worker=worker), flush=True)
    logger.info("repeated_assert_catch_fired", worker=worker)


class CatchPhase:
    """Tracks when the catch hook is due and makes sure it fires only once."""

    def __init__(self, catch_after: int, hook: Callable[[], object], final_index: int) -> None:
        self._catch_after = catch_after
        self._hook = hook
        self._final_index = final_index
        self._fired = False

    @property
    def fired(self) -> bool:
        return self._fired

    def due(self, index: int) -> bool:
        """Whether attempt ``index`` is the one sacrificed to the hook."""
        return not self._fired and index == self._catch_after and index != self._final_index

    def _consume(self) -> Callable[[], object]:
        if self._fired:
            raise RuntimeError("catch hook already fired")
        self._fired = True
        announce()
        return self._hook

    def fire(self) -> None:
        """Announce and run the hook. Its exceptions propagate.

        Raises:
            TypeError: If the hook returned an awaitable; use the async driver
        """
        hook = self._consume()
        result = hook()
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            raise TypeError(
                f"catch hook {hook!r} returned an awaitable; use retry_with_catch_async() for async catch hooks"
            )

    async def fire_async(self) -> None:
        """Announce and run the hook, awaiting it if it returns an awaitable."""
        hook = self._consume()
        result = hook()
        if inspect.isawaitable(result):
            await result
