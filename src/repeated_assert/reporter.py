# src/repeated_assert/reporter.py
"""Interceptor for the process-wide failure reporter.

Python reports failures that escape a thread through threading.excepthook.
The first retry call in the process replaces that hook with
ReporterHook.intercept, which chains to whatever hook was installed before
(the interpreter default, or the test runner's own hook).

Failures caught by the driver's protected frames are routed through the same
interceptor via report(). Whether a failure is dropped depends only on the
identity of the worker signalling it, looked up at failure time:

- worker in the suppression set: dropped
- worker not in the set, or no readable identity: forwarded unmodified

A thread spawned by a predicate has its own identity, so its uncaught
failures are always reported even while the parent is mid-retry.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from repeated_assert.errors import SuppressionLockError
from repeated_assert.logging import get_logger
from repeated_assert.suppression import SUPPRESSED_WORKERS, SuppressionSet
from repeated_assert.workers import current_worker_id

logger = get_logger(__name__)

# Bounded wait for the suppression lock inside the interceptor. On timeout
# the failure is forwarded rather than risk losing it.
_LOCK_TIMEOUT_SECONDS = 1.0


class ReporterHook:
    """Once-only, lazily installed interceptor on threading.excepthook.

    Example:
        hook = ReporterHook(SUPPRESSED_WORKERS)
        hook.install()  # idempotent
        assert threading.excepthook == hook.intercept
    """

    def __init__(self, suppressed: SuppressionSet) -> None:
        self._suppressed = suppressed
        self._install_lock = threading.Lock()
        self._original: Callable[[threading.ExceptHookArgs], object] | None = None
        self._installed = False
        # Per-thread re-entrancy marker, set while intercept() runs
        self._local = threading.local()

    @property
    def suppressed(self) -> SuppressionSet:
        """The set consulted for every intercepted failure."""
        return self._suppressed

    @property
    def installed(self) -> bool:
        return self._installed

    @property
    def original(self) -> Callable[[threading.ExceptHookArgs], object] | None:
        """The hook captured at installation, None before install()."""
        return self._original

    def install(self) -> None:
        """Capture the current threading.excepthook and replace it.

        Safe to call from many threads at once; only the first call installs.
        Later calls never capture again, so interceptors are never chained
        onto themselves.
        """
        if self._installed:
            return
        with self._install_lock:
            if self._installed:
                return
            self._original = threading.excepthook
            threading.excepthook = self.intercept
            self._installed = True
        logger.debug("repeated_assert_reporter_installed")

    def intercept(self, args: threading.ExceptHookArgs) -> None:
        """Forward a failure to the original reporter unless the worker is suppressed."""
        if getattr(self._local, "active", False):
            # A failure raised while we were deciding; never recurse
            self._forward(args)
            return

        self._local.active = True
        try:
            suppressed = self._is_suppressed()
        finally:
            self._local.active = False

        if suppressed:
            logger.debug(
                "repeated_assert_failure_suppressed",
                worker=current_worker_id(),
                exc_type=args.exc_type.__name__ if args.exc_type else None,
            )
            return
        self._forward(args)

    def report(self, exc: BaseException) -> None:
        """Route a failure caught by a protected frame through the interceptor."""
        args = threading.ExceptHookArgs([type(exc), exc, exc.__traceback__, threading.current_thread()])
        self.intercept(args)

    def _is_suppressed(self) -> bool:
        worker_id = current_worker_id()
        if worker_id is None:
            return False
        try:
            return self._suppressed.contains(worker_id, timeout=_LOCK_TIMEOUT_SECONDS)
        except SuppressionLockError:
            return False

    def _forward(self, args: threading.ExceptHookArgs) -> None:
        original = self._original
        if original is None:
            # Not installed: behave like the interpreter's default hook
            original = threading.__excepthook__
        original(args)


# Process-wide interceptor shared by every retry call
REPORTER_HOOK = ReporterHook(SUPPRESSED_WORKERS)
