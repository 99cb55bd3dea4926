# src/repeated_assert/workers.py
"""Worker identity lookup.

A worker is the unit of concurrent execution a test runs on. For plain
threads the identity is the thread name plus the thread ident, so an
unrelated thread that happens to share a name is never treated as the same
worker. Inside a running asyncio task the task name is appended, so two
tasks sharing one event-loop thread never suppress each other's failures.

Identity is always read at the moment it is needed (call entry, failure
time), never cached: a helper thread or task spawned by a predicate has its
own identity and is not covered by its parent's suppression.
"""

from __future__ import annotations

import asyncio
import threading

# Shown in the catch announcement when the worker has no readable name
UNNAMED_WORKER = "<unnamed thread>"


def _current_task_name() -> str | None:
    try:
        task = asyncio.current_task()
    except RuntimeError:
        # No running event loop in this thread
        return None
    if task is None:
        return None
    return task.get_name()


def _with_task(name: str) -> str:
    task_name = _current_task_name()
    if task_name is None:
        return name
    return f"{name}/{task_name}"


def current_worker_id() -> str | None:
    """Return the identity of the calling worker.

    Returns:
        "<thread name>#<thread ident>" in a plain thread, with "/<task name>"
        appended inside an asyncio task, or None when the thread has no
        readable name.
    """
    thread = threading.current_thread()
    if not thread.name:
        return None
    # Names are not unique; the ident separates same-named threads
    return _with_task(f"{thread.name}#{thread.ident}")


def current_worker_name() -> str:
    """Return a display name for the calling worker, never empty.

    Unlike current_worker_id() this leaves out the thread ident.
    """
    thread_name = threading.current_thread().name
    if not thread_name:
        return UNNAMED_WORKER
    return _with_task(thread_name)
