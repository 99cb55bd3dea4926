"""
repeated-assert: Retry a block of assertions until it passes.

A test harness for side effects that happen asynchronously (a file
appearing, another thread updating shared state, a message arriving). The
assertions run up to N times with a fixed delay in between; failures before
the last attempt are swallowed, a failure on the last attempt propagates
exactly as if the assertions had been written inline.
"""

from repeated_assert.aio import AsyncAttemptDriver, retry_async, retry_with_catch_async
from repeated_assert.clock import DEFAULT_CLOCK, Clock, MockClock, SystemClock
from repeated_assert.config import RepeatedAssertSettings, RetryConfig, load_settings
from repeated_assert.driver import AttemptDriver, retry, retry_with_catch
from repeated_assert.errors import RepeatedAssertError, SuppressionLockError
from repeated_assert.reporter import REPORTER_HOOK, ReporterHook
from repeated_assert.suppression import SUPPRESSED_WORKERS, SuppressionGuard, SuppressionSet
from repeated_assert.workers import current_worker_id, current_worker_name

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_CLOCK",
    "REPORTER_HOOK",
    "SUPPRESSED_WORKERS",
    "AsyncAttemptDriver",
    "AttemptDriver",
    "Clock",
    "MockClock",
    "RepeatedAssertError",
    "RepeatedAssertSettings",
    "ReporterHook",
    "RetryConfig",
    "SuppressionGuard",
    "SuppressionLockError",
    "SuppressionSet",
    "SystemClock",
    "__version__",
    "current_worker_id",
    "current_worker_name",
    "load_settings",
    "retry",
    "retry_async",
    "retry_with_catch",
    "retry_with_catch_async",
]
