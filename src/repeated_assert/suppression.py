# src/repeated_assert/suppression.py
"""Process-wide set of workers whose failures are currently suppressed.

While a retry call is in its non-final phase, the calling worker's identity
sits in SUPPRESSED_WORKERS. The reporter interceptor drops failures signalled
by workers in the set; everything else is forwarded.

Entries are tracked by worker identity, not by call. Two calls on the same
worker share one entry: the guard that inserted it owns it, and only the
owner removes it. A nested call therefore never lifts an outer call's
suppression early.
"""

from __future__ import annotations

import threading
from types import TracebackType

from repeated_assert.errors import SuppressionLockError


class SuppressionSet:
    """Thread-safe set of suppressed worker identities.

    The lock is only ever held for a single set operation. No user code and
    no sleep runs while it is held.
    """

    def __init__(self) -> None:
        self._workers: set[str] = set()
        self._lock = threading.Lock()

    def insert(self, worker_id: str) -> bool:
        """Add a worker. Returns True if it was not already present."""
        with self._lock:
            if worker_id in self._workers:
                return False
            self._workers.add(worker_id)
            return True

    def remove(self, worker_id: str) -> None:
        """Remove a worker. Removing an absent worker is a no-op."""
        with self._lock:
            self._workers.discard(worker_id)

    def contains(self, worker_id: str, *, timeout: float = -1) -> bool:
        """Check membership.

        Args:
            worker_id: Identity to look up
            timeout: Seconds to wait for the lock, -1 to wait forever

        Raises:
            SuppressionLockError: If the lock was not acquired within timeout
        """
        if not self._lock.acquire(timeout=timeout):
            raise SuppressionLockError(worker_id, timeout)
        try:
            return worker_id in self._workers
        finally:
            self._lock.release()

    def snapshot(self) -> frozenset[str]:
        """Return the current members."""
        with self._lock:
            return frozenset(self._workers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._workers)

    def guard(self, worker_id: str) -> SuppressionGuard:
        """Create a guard that suppresses worker_id for the duration of a with block."""
        return SuppressionGuard(self, worker_id)


class SuppressionGuard:
    """Scoped membership of one worker in a SuppressionSet.

    Entering inserts the worker; leaving the block on any path (return,
    exception, thread teardown unwinding the frame) releases it. release()
    may be called early to lift suppression before the final attempt and
    is safe to call again.

    Example:
        with SUPPRESSED_WORKERS.guard(worker_id) as guard:
            ...  # failures on worker_id are dropped by the interceptor
            guard.release()
            ...  # failures are reported again
    """

    def __init__(self, suppressed: SuppressionSet, worker_id: str) -> None:
        self._suppressed = suppressed
        self._worker_id = worker_id
        self._owned = False
        self._released = False

    @property
    def worker_id(self) -> str:
        return self._worker_id

    @property
    def owned(self) -> bool:
        """Whether this guard inserted the entry (and so will remove it)."""
        return self._owned

    @property
    def active(self) -> bool:
        return not self._released

    def acquire(self) -> None:
        self._owned = self._suppressed.insert(self._worker_id)

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        if self._owned:
            self._suppressed.remove(self._worker_id)

    def __enter__(self) -> SuppressionGuard:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.release()


# Shared by every retry call in the process
SUPPRESSED_WORKERS = SuppressionSet()
