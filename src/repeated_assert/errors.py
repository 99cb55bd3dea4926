# src/repeated_assert/errors.py
"""Exceptions raised by the repeated-assert harness itself.

Predicate failures are never wrapped in these types. A failure on the final
attempt propagates as the exact exception object the predicate raised.
"""


class RepeatedAssertError(Exception):
    """Base class for harness errors."""


class SuppressionLockError(RepeatedAssertError):
    """Raised when the suppression set's lock cannot be acquired in time.

    Attributes:
        worker_id: Worker whose membership was being queried
        timeout: Seconds waited before giving up
    """

    def __init__(self, worker_id: str, timeout: float) -> None:
        self.worker_id = worker_id
        self.timeout = timeout
        super().__init__(f"Could not acquire suppression lock for '{worker_id}' within {timeout}s")
